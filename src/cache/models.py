# src/cache/models.py - v1
"""Cache domain models: CachedDocument.

One entry per (task_id, index); written once on fetch, never mutated,
removed by task clear or by the retention sweep.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CachedDocument(BaseModel):
    """Persisted (image blob, metadata) pair of one task document."""

    model_config = ConfigDict(frozen=True)

    task_id: str
    index: int = Field(ge=0)
    image_blob: bytes
    metadata: Any = None
    stored_at: datetime = Field(default_factory=utcnow)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

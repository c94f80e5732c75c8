# src/cache/base_cache_store.py - v1
"""Abstract document store interface.

Backends raise on failure; the fail-open policy lives in
cache.document_cache.DocumentCache.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from taskdocs.cache.models import CachedDocument


class BaseCacheStore(ABC):
    """Unified interface for durable document storage backends."""

    @abstractmethod
    async def get_all(self, task_id: str) -> list[CachedDocument]:
        """Return all documents of a task sorted by index ([] on miss)."""

    @abstractmethod
    async def put(
        self,
        task_id: str,
        index: int,
        blob: bytes,
        metadata: Any,
        stored_at: datetime | None = None,
    ) -> None:
        """Upsert one document (last write wins per (task_id, index))."""

    @abstractmethod
    async def clear_task(self, task_id: str) -> int:
        """Delete every document of a task. Returns the number removed."""

    @abstractmethod
    async def sweep_older_than(self, cutoff: datetime) -> int:
        """Delete documents stored before `cutoff`, any task. Returns count."""

    def close(self) -> None:
        """Release backend resources."""

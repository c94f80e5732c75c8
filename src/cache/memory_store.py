# src/cache/memory_store.py - v1
"""Process-local document store (CACHE_BACKEND=memory).

Nothing survives a restart; used for read-only sessions and tests.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from taskdocs.cache.base_cache_store import BaseCacheStore
from taskdocs.cache.models import CachedDocument, ensure_utc, utcnow


class MemoryCacheStore(BaseCacheStore):
    """Dict-backed document store keyed by (task_id, index)."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, int], CachedDocument] = {}

    async def get_all(self, task_id: str) -> list[CachedDocument]:
        docs = [d for (tid, _), d in self._entries.items() if tid == task_id]
        return sorted(docs, key=lambda d: d.index)

    async def put(
        self,
        task_id: str,
        index: int,
        blob: bytes,
        metadata: Any,
        stored_at: datetime | None = None,
    ) -> None:
        self._entries[(task_id, index)] = CachedDocument(
            task_id=task_id,
            index=index,
            image_blob=blob,
            metadata=metadata,
            stored_at=ensure_utc(stored_at or utcnow()),
        )

    async def clear_task(self, task_id: str) -> int:
        keys = [k for k in self._entries if k[0] == task_id]
        for key in keys:
            del self._entries[key]
        return len(keys)

    async def sweep_older_than(self, cutoff: datetime) -> int:
        cutoff = ensure_utc(cutoff)
        keys = [k for k, d in self._entries.items() if d.stored_at < cutoff]
        for key in keys:
            del self._entries[key]
        return len(keys)

# src/cache/document_cache.py - v1
"""Fail-open facade over a document store.

The durable cache is an optimization: every backend failure is logged
and degrades to "miss" / "not stored" instead of reaching the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from taskdocs.cache.base_cache_store import BaseCacheStore
from taskdocs.cache.models import CachedDocument, ensure_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 7


class DocumentCache:
    """Per-task, per-index document cache with age-based eviction."""

    def __init__(self, store: BaseCacheStore) -> None:
        self._store = store

    @property
    def store(self) -> BaseCacheStore:
        return self._store

    async def get_all(self, task_id: str) -> list[CachedDocument]:
        """Cached documents of a task sorted by index; [] on miss or failure."""
        try:
            docs = await self._store.get_all(task_id)
        except Exception:
            logger.warning("Cache read failed for task %s", task_id, exc_info=True)
            return []
        return sorted(docs, key=lambda d: d.index)

    async def put(
        self,
        task_id: str,
        index: int,
        blob: bytes,
        metadata: Any,
        stored_at: datetime | None = None,
    ) -> bool:
        try:
            await self._store.put(task_id, index, blob, metadata, stored_at=stored_at)
        except Exception:
            logger.warning(
                "Cache write failed for %s/%d", task_id, index, exc_info=True
            )
            return False
        return True

    async def clear_task(self, task_id: str) -> bool:
        """Drop every entry of a task. Stale leftovers are left to the sweep."""
        try:
            removed = await self._store.clear_task(task_id)
        except Exception:
            logger.warning("Failed to clear task cache %s", task_id, exc_info=True)
            return False
        logger.info("Cleared %d cached document(s) of task %s", removed, task_id)
        return True

    async def sweep_expired(
        self,
        max_age_days: int = DEFAULT_RETENTION_DAYS,
        now: datetime | None = None,
    ) -> int:
        """Remove entries older than the retention window, any task."""
        cutoff = ensure_utc(now or utcnow()) - timedelta(days=max_age_days)
        try:
            removed = await self._store.sweep_older_than(cutoff)
        except Exception:
            logger.warning("Failed to sweep expired cache entries", exc_info=True)
            return 0
        if removed:
            logger.info(
                "Swept %d cached document(s) older than %d day(s)", removed, max_age_days
            )
        return removed

    def close(self) -> None:
        self._store.close()

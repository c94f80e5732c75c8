# src/hydration/orchestrator.py - v1
"""Progressive fetch orchestrator: document 0 first, the rest in background.

Flow for a task with N document refs:
  1. N == 0 or document 0 has no ref pair: no hydration.
  2. Cache lookup.
     - hit:  every cached document is exposed at once, missing indices
             are fetched in background.
     - miss: document 0 is fetched (image + metadata concurrently),
             persisted and exposed; indices 1..N-1 go to background.
  3. Background: one task per session walks the pending indices in
     increasing order, one image+metadata pair at a time. A failed index
     is logged and skipped.
  4. Any failure in step 2 raises HydrationError; the caller drops the
     document sub-payload and keeps the task.

Results that arrive after their session was closed (task switched,
refreshed or cleared) are discarded, neither persisted nor merged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from taskdocs.cache.document_cache import DocumentCache
from taskdocs.clients.base import DocumentFetcher
from taskdocs.core.models import DocumentRef, Task, ZoningDocuments
from taskdocs.handles.registry import HandleRegistry
from taskdocs.hydration.session import DocumentSession
from taskdocs.logging.context import set_document_index
from taskdocs.tasks.background import DetachedTasks

logger = logging.getLogger(__name__)


class HydrationError(RuntimeError):
    """Document 0 could not be resolved from cache or network."""

    def __init__(self, task_id: str, cause: Exception) -> None:
        self.task_id = task_id
        self.cause = cause
        super().__init__(f"Hydration failed for task {task_id}: {cause}")


class ProgressiveFetchOrchestrator:
    """Resolve task documents from the durable cache or the network.

    Args:
        cache: Fail-open durable cache.
        fetcher: Network fetch capability for refs.
        handles: Registry owning the rendering handles.
    """

    def __init__(
        self,
        cache: DocumentCache,
        fetcher: DocumentFetcher,
        handles: HandleRegistry,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._handles = handles
        self._background = DetachedTasks()

    @property
    def handles(self) -> HandleRegistry:
        return self._handles

    @property
    def pending_background(self) -> int:
        return self._background.pending

    async def hydrate(self, task: Task) -> DocumentSession | None:
        """Expose the task's first document and schedule the rest.

        Returns:
            The live session, or None when the task carries no usable refs.

        Raises:
            HydrationError: If document 0 could not be resolved.
        """
        docs = task.zoning_documents
        if docs is None or docs.total_count == 0 or not docs.has_first():
            logger.debug("Task %s has no documents to hydrate", task.task_id)
            return None

        total = docs.total_count
        session = DocumentSession(task.task_id, total, self._handles)
        try:
            cached = [d for d in await self._cache.get_all(task.task_id) if d.index < total]
            if cached:
                logger.info(
                    "Using cached documents for task %s: %d/%d available",
                    task.task_id, len(cached), total,
                )
                session.from_cache = True
                for doc in cached:
                    session.merge(doc.index, doc.image_blob, doc.metadata)
            else:
                image, metadata = await self._fetch_pair(docs.ref(0))
                await self._cache.put(task.task_id, 0, image, metadata)
                session.merge(0, image, metadata)
        except Exception as e:
            session.close()
            logger.warning(
                "Dropping documents of task %s: %s", task.task_id, e, exc_info=True
            )
            raise HydrationError(task.task_id, e) from e

        pending = session.missing_indices
        if pending:
            self._background.spawn(
                self._fetch_remaining(session, docs, pending),
                name=f"hydrate:{task.task_id}",
            )
        return session

    async def _fetch_pair(self, ref: DocumentRef) -> tuple[bytes, Any]:
        image, metadata = await asyncio.gather(
            self._fetcher.fetch_binary(ref.image_ref),
            self._fetcher.fetch_json(ref.metadata_ref),
        )
        return image, metadata

    async def _fetch_remaining(
        self,
        session: DocumentSession,
        docs: ZoningDocuments,
        indices: list[int],
    ) -> None:
        total = session.total_count
        for index in indices:
            if session.closed:
                logger.info(
                    "Session for task %s closed, stopping background fetch at %d/%d",
                    session.task_id, index, total,
                )
                return
            set_document_index(index)
            try:
                image, metadata = await self._fetch_pair(docs.ref(index))
            except Exception:
                logger.error(
                    "Failed to download document %d of task %s",
                    index, session.task_id, exc_info=True,
                )
                continue

            if session.closed:
                logger.info(
                    "Discarding late document %d of superseded task %s",
                    index, session.task_id,
                )
                return
            await self._cache.put(session.task_id, index, image, metadata)
            session.merge(index, image, metadata)
            logger.info("Background downloaded document %d/%d", index + 1, total)

    async def drain(self) -> None:
        """Wait for all background hydration to finish."""
        await self._background.drain()

    async def aclose(self) -> None:
        """Cancel outstanding background hydration."""
        await self._background.cancel_all()

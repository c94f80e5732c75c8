# src/hydration/session.py - v1
"""Per-task rendering session: sparse index -> DocumentView map.

A session owns the handles of its views. Arrivals are merged as
idempotent upserts keyed by index, in any order; an index that is
already resolved is never replaced. close() releases every handle
exactly once and makes the session reject further merges.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from taskdocs.handles.registry import DocumentHandle, HandleRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentView:
    """Renderable projection of one document."""

    index: int
    handle: DocumentHandle
    metadata: Any


@dataclass(frozen=True)
class HydratedDocuments:
    """Immutable snapshot of a session for consumers."""

    task_id: str
    current_document: DocumentView | None
    all_documents: tuple[DocumentView, ...]
    total_count: int
    from_cache: bool

    @property
    def loaded_count(self) -> int:
        return len(self.all_documents)

    @property
    def is_complete(self) -> bool:
        return self.loaded_count >= self.total_count


class DocumentSession:
    """Documents of one task for one hydration run."""

    def __init__(
        self,
        task_id: str,
        total_count: int,
        handles: HandleRegistry,
        from_cache: bool = False,
    ) -> None:
        self.task_id = task_id
        self.total_count = total_count
        self.from_cache = from_cache
        self._handles = handles
        self._views: dict[int, DocumentView] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __contains__(self, index: int) -> bool:
        return index in self._views

    def __len__(self) -> int:
        return len(self._views)

    def merge(self, index: int, blob: bytes, metadata: Any) -> bool:
        """Add the document at `index` unless already resolved.

        Returns True when a new view was created.
        """
        if self._closed:
            logger.debug("Ignoring document %d for closed session %s", index, self.task_id)
            return False
        if not 0 <= index < self.total_count:
            logger.warning(
                "Ignoring document %d outside [0, %d) for task %s",
                index, self.total_count, self.task_id,
            )
            return False
        if index in self._views:
            return False
        self._views[index] = DocumentView(
            index=index,
            handle=self._handles.acquire(blob),
            metadata=metadata,
        )
        return True

    @property
    def current_document(self) -> DocumentView | None:
        if not self._views:
            return None
        return self._views[min(self._views)]

    @property
    def all_documents(self) -> list[DocumentView]:
        return [self._views[i] for i in sorted(self._views)]

    @property
    def missing_indices(self) -> list[int]:
        return [i for i in range(self.total_count) if i not in self._views]

    def snapshot(self) -> HydratedDocuments:
        return HydratedDocuments(
            task_id=self.task_id,
            current_document=self.current_document,
            all_documents=tuple(self.all_documents),
            total_count=self.total_count,
            from_cache=self.from_cache,
        )

    def close(self) -> None:
        """Release every handle once. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        # current_document is one of the views, so each handle appears once here.
        released = 0
        for view in self._views.values():
            self._handles.release(view.handle)
            released += 1
        self._views.clear()
        logger.debug("Closed session %s, released %d handle(s)", self.task_id, released)

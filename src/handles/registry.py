# src/handles/registry.py - v1
"""Transient in-memory handles over binary blobs.

A handle is a process-local, non-persistable reference ("blob:<uuid>")
to image bytes held for rendering. Every acquire() must be matched by
exactly one release(); dereferencing or releasing a handle after its
release is a caller bug and raises HandleReleasedError.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

logger = logging.getLogger(__name__)

HANDLE_SCHEME = "blob:"


class HandleReleasedError(RuntimeError):
    """A handle was used after it was released."""

    def __init__(self, handle: DocumentHandle) -> None:
        self.handle = handle
        super().__init__(f"Handle {handle.id} has already been released")


@dataclass(frozen=True)
class DocumentHandle:
    """Opaque reference returned by HandleRegistry.acquire()."""

    id: str
    size: int
    content_type: str | None = None

    def __str__(self) -> str:
        return self.id


class HandleRegistry:
    """Owns the blobs behind live handles."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._acquired = 0
        self._released = 0

    def acquire(self, blob: bytes, content_type: str | None = None) -> DocumentHandle:
        handle = DocumentHandle(
            id=f"{HANDLE_SCHEME}{uuid.uuid4()}",
            size=len(blob),
            content_type=content_type,
        )
        self._blobs[handle.id] = blob
        self._acquired += 1
        return handle

    def release(self, handle: DocumentHandle) -> None:
        try:
            del self._blobs[handle.id]
        except KeyError:
            raise HandleReleasedError(handle) from None
        self._released += 1
        logger.debug("Released handle %s (%d bytes)", handle.id, handle.size)

    def resolve(self, handle: DocumentHandle) -> bytes:
        """Dereference a live handle."""
        try:
            return self._blobs[handle.id]
        except KeyError:
            raise HandleReleasedError(handle) from None

    def is_live(self, handle: DocumentHandle) -> bool:
        return handle.id in self._blobs

    @property
    def acquired_count(self) -> int:
        return self._acquired

    @property
    def released_count(self) -> int:
        return self._released

    @property
    def live_count(self) -> int:
        return len(self._blobs)

# src/logging/context.py - v1
"""Contextual logging support: attach task_id, principal_id, document_index to log records.

Context variables are copied into every asyncio task at creation time, so a
background hydration task keeps the task_id of the refresh that spawned it.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_task_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "task_id", default=None
)
_principal_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "principal_id", default=None
)
_document_index: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "document_index", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    task_id: str | None = None
    principal_id: str | None = None
    document_index: int | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        task_id=_task_id.get(),
        principal_id=_principal_id.get(),
        document_index=_document_index.get(),
    )


def set_task_context(task_id: str | None, principal_id: str | None = None) -> None:
    """Set task-level context (called once per adopted task)."""
    _task_id.set(task_id)
    if principal_id is not None:
        _principal_id.set(principal_id)


def set_document_index(index: int | None) -> None:
    """Set the document currently being fetched."""
    _document_index.set(index)


def clear_context() -> None:
    """Reset all context variables."""
    _task_id.set(None)
    _principal_id.set(None)
    _document_index.set(None)

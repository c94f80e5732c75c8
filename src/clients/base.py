# src/clients/base.py - v1
"""Abstract collaborator interfaces consumed by the core.

TaskSource talks to the remote agent API; DocumentFetcher resolves
document refs. Implementations must allow concurrent calls.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from taskdocs.core.models import AckResponse, TaskResponse


class TaskSource(ABC):
    """Remote task/agent API."""

    @abstractmethod
    async def fetch_task(self, principal_id: str) -> TaskResponse:
        """Fetch the task currently assigned to `principal_id`.

        Raises:
            TaskPayloadError: If the response carries an invalid task.
        """

    @abstractmethod
    async def acknowledge_keyed_on(self, task_id: str, principal_id: str) -> AckResponse:
        """Tell the API that `principal_id` started keying `task_id`."""


class DocumentFetcher(ABC):
    """Fetch document content by ref."""

    @abstractmethod
    async def fetch_binary(self, ref: str) -> bytes:
        """Fetch raw bytes (document image)."""

    @abstractmethod
    async def fetch_json(self, ref: str) -> Any:
        """Fetch and decode a JSON document (document metadata)."""

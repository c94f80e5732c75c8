# tests/conftest.py - v1
"""Shared test fixtures for all unit and integration tests.

Provides an in-memory task source, a scriptable document fetcher, sample
task payloads and settings. No network: all I/O is faked.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from taskdocs.cache.document_cache import DocumentCache
from taskdocs.cache.memory_store import MemoryCacheStore
from taskdocs.clients.base import DocumentFetcher, TaskSource
from taskdocs.config.settings import Settings
from taskdocs.core.models import AckResponse, Task, TaskResponse
from taskdocs.handles.registry import HandleRegistry


# === FAKES ===


class FakeDocumentFetcher(DocumentFetcher):
    """Serves `ref.encode()` as image and {"ref": ref} as metadata.

    `failing` refs raise; `gates` hold a ref until its event is set.
    """

    def __init__(self) -> None:
        self.failing: set[str] = set()
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []

    def gate(self, ref: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[ref] = event
        return event

    async def _serve(self, ref: str) -> None:
        self.calls.append(ref)
        gate = self.gates.get(ref)
        if gate is not None:
            await gate.wait()
        if ref in self.failing:
            raise RuntimeError(f"fetch failed: {ref}")

    async def fetch_binary(self, ref: str) -> bytes:
        await self._serve(ref)
        return ref.encode()

    async def fetch_json(self, ref: str) -> Any:
        await self._serve(ref)
        return {"ref": ref}


class FakeTaskSource(TaskSource):
    """Replays queued responses; the last one repeats forever.

    Queue an Exception instance to make fetch_task raise it.
    """

    def __init__(self) -> None:
        self.responses: list[TaskResponse | Exception] = []
        self.fetch_calls: list[str] = []
        self.acks: list[tuple[str, str]] = []
        self.ack_response = AckResponse(status=True, data="ok")

    def queue(self, *responses: TaskResponse | Exception) -> None:
        self.responses.extend(responses)

    async def fetch_task(self, principal_id: str) -> TaskResponse:
        self.fetch_calls.append(principal_id)
        if not self.responses:
            return TaskResponse(status=True, data=None, status_code=200)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def acknowledge_keyed_on(self, task_id: str, principal_id: str) -> AckResponse:
        self.acks.append((task_id, principal_id))
        return self.ack_response


# === PAYLOADS ===


def _schema_group(prompt: str = "Extract the invoice header") -> dict[str, Any]:
    return {
        "groupList": ["header", "lines", "missing"],
        "group": [
            {
                "id": "header",
                "label": "Header",
                "fields": [
                    {"name": "invoice_no", "type": "text", "pattern": "^[A-Z]-\\d+$"},
                    {"name": "total", "type": "number"},
                    {"name": "currency", "options": ["EUR", "USD"], "required": False},
                    {"name": "shippingcode", "type": "text"},
                ],
            },
            {
                "id": "lines",
                "fields": [
                    {"name": "sku", "type": "text"},
                    {"name": "qty", "type": "integer"},
                ],
            },
        ],
        "prompts": {"header": prompt},
    }


@pytest.fixture
def make_payload() -> Callable[..., dict[str, Any]]:
    """Factory for raw agent-API task payloads."""

    def _make(
        task_id: str = "T1",
        count: int = 3,
        doc_type: str = "INV",
        with_schema: bool = True,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "taskid": task_id,
            "zoningdocuments": {
                "imageurl": [f"/img/{task_id}/{i}.png" for i in range(count)],
                "jsonurl": [f"/meta/{task_id}/{i}.json" for i in range(count)],
            },
            "dbdata": {
                "header": [{"shippingcode": doc_type, "invoice_no": "A-1", "total": 12.5}],
                "lines": [{"sku": "X1", "qty": 2}],
            },
            "documents": [{"name": f"{task_id}.pdf"}],
            "extractionsource": "v2",
        }
        if with_schema:
            payload["schema"] = {
                doc_type: _schema_group(),
                "CRN": _schema_group("Extract the credit note header"),
            }
        return payload

    return _make


@pytest.fixture
def make_task(make_payload) -> Callable[..., Task]:
    def _make(**kwargs: Any) -> Task:
        return Task.model_validate(make_payload(**kwargs))

    return _make


@pytest.fixture
def sample_task(make_task) -> Task:
    return make_task()


# === COLLABORATORS ===


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        principal_id="15",
        cache_backend="memory",
        retry_interval_s=0.01,
    )


@pytest.fixture
def fetcher() -> FakeDocumentFetcher:
    return FakeDocumentFetcher()


@pytest.fixture
def source() -> FakeTaskSource:
    return FakeTaskSource()


@pytest.fixture
def cache() -> DocumentCache:
    return DocumentCache(MemoryCacheStore())


@pytest.fixture
def handles() -> HandleRegistry:
    return HandleRegistry()

# src/tasks/coordinator.py - v1
"""Task lifecycle coordinator.

Polls the agent API for the principal's task, adopts new tasks, drives
progressive document hydration, derives form schemas and exposes the
result as a TaskSnapshot.

State machine (per coordinator):
    Idle -> Loading           start() / refresh()
    Loading -> Ready          task returned; hydrate, derive, acknowledge
    Loading -> Invalid        no task, not-provisioned status code (501)
    Loading -> Idle-retry     empty payload or error; retry timer armed
    any -> Loading            task id changed; previous task's cache cleared

All mutable state lives in CoordinatorState. Nothing here raises to the
caller: failures are logged and degrade to "no task" (retried by the
timer) or "no documents".
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from taskdocs.cache.document_cache import DocumentCache
from taskdocs.clients.base import TaskSource
from taskdocs.config.settings import Settings
from taskdocs.core.models import Task
from taskdocs.hydration.orchestrator import HydrationError, ProgressiveFetchOrchestrator
from taskdocs.hydration.session import DocumentSession
from taskdocs.logging.context import set_task_context
from taskdocs.schema.compiler import compile_schema
from taskdocs.schema.derivation import DerivedSchemas, DocumentTypeError, SchemaCompiler, derive_schemas
from taskdocs.tasks.background import DetachedTasks
from taskdocs.tasks.snapshot import FormStatus, TaskSnapshot

logger = logging.getLogger(__name__)


@dataclass
class CoordinatorState:
    """Mutable state owned by one TaskCoordinator."""

    task: Task | None = None
    session: DocumentSession | None = None
    derived: DerivedSchemas | None = None
    schema_error: str | None = None
    previous_task_id: str | None = None
    status: FormStatus = "VALID"
    is_loading: bool = True
    retry_timer: asyncio.Task[Any] | None = field(default=None, repr=False)
    swept: bool = False


class TaskCoordinator:
    """Drive the fetch -> hydrate -> derive pipeline for one principal.

    Args:
        settings: Principal, read-only flag, retry cadence, retention.
        source: Remote task API.
        orchestrator: Document hydration.
        cache: Durable cache (task clears and retention sweep).
        compiler: Schema compiler primitive.
    """

    def __init__(
        self,
        settings: Settings,
        source: TaskSource,
        orchestrator: ProgressiveFetchOrchestrator,
        cache: DocumentCache,
        compiler: SchemaCompiler = compile_schema,
    ) -> None:
        self._settings = settings
        self._source = source
        self._orchestrator = orchestrator
        self._cache = cache
        self._compiler = compiler
        self._detached = DetachedTasks()
        self._state = CoordinatorState()
        self._refresh_lock = asyncio.Lock()
        self._closed = False

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def retry_armed(self) -> bool:
        timer = self._state.retry_timer
        return timer is not None and not timer.done()

    async def __aenter__(self) -> TaskCoordinator:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start(self) -> TaskSnapshot:
        """Sweep expired cache entries once, then run the first refresh."""
        if not self._state.swept:
            self._state.swept = True
            self._detached.spawn(
                self._cache.sweep_expired(self._settings.cache_retention_days),
                name="cache-sweep",
            )
        return await self.refresh()

    async def refresh(self) -> TaskSnapshot:
        """Re-run the full fetch-and-derive pipeline.

        Concurrent calls (manual refresh racing the retry timer) are
        serialized.
        """
        async with self._refresh_lock:
            state = self._state
            state.is_loading = True
            try:
                if self._settings.can_fetch_tasks:
                    await self._fetch_and_apply()
                else:
                    logger.debug(
                        "Task fetch disabled (read_only=%s, principal=%r)",
                        self._settings.read_only, self._settings.principal_id,
                    )
            finally:
                state.is_loading = False
                self._sync_retry_timer()
            return self.snapshot()

    def snapshot(self) -> TaskSnapshot:
        state = self._state
        derived = state.derived
        return TaskSnapshot(
            task=state.task,
            hydrated=state.session.snapshot() if state.session is not None else None,
            doc_type=derived.doc_type if derived else None,
            form_fields_by_type=derived.form_fields_by_type if derived else {},
            active_field_set=derived.active_field_set if derived else None,
            form_validator=derived.form_validator if derived else None,
            partial_form_validator=derived.partial_form_validator if derived else None,
            validators=derived.full.types if derived else {},
            partial_validators=derived.partial.types if derived else {},
            prompts=derived.prompts if derived else {},
            values=derived.values if derived else None,
            documents=derived.documents if derived else None,
            extraction_version=derived.extraction_version if derived else None,
            is_loading=state.is_loading,
            status=state.status,
            read_only=self._settings.read_only,
            schema_error=state.schema_error,
        )

    async def drain(self) -> None:
        """Wait for background hydration and detached bookkeeping."""
        await self._orchestrator.drain()
        await self._detached.drain()

    async def aclose(self) -> None:
        """End the session: stop retries, release handles, stop background work."""
        if self._closed:
            return
        self._closed = True
        timer = self._state.retry_timer
        self._disarm_retry_timer()
        if timer is not None and timer is not asyncio.current_task():
            await asyncio.gather(timer, return_exceptions=True)
        self._close_session()
        await self._orchestrator.aclose()
        await self._detached.drain()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _fetch_and_apply(self) -> None:
        principal = self._settings.principal_id
        try:
            response = await self._source.fetch_task(principal)
        except Exception:
            logger.error("Error fetching task for principal %s", principal, exc_info=True)
            self._clear_task()
            return

        if response.status and response.data is not None:
            await self._adopt(response.data)
        elif response.status and response.status_code == self._settings.not_provisioned_status_code:
            logger.warning("Principal %s has no task provisioned yet", principal)
            self._state.status = "INVALID"
        else:
            self._clear_task()

    async def _adopt(self, task: Task) -> None:
        state = self._state
        set_task_context(task.task_id, self._settings.principal_id)

        previous = state.previous_task_id
        if previous and previous != task.task_id:
            logger.info("Task changed, clearing previous cache: %s", previous)
            # Stop the superseded session's background writes before the clear runs.
            self._close_session()
            self._detached.spawn(
                self._cache.clear_task(previous), name=f"cache-clear:{previous}"
            )
        state.previous_task_id = task.task_id

        session: DocumentSession | None = None
        try:
            session = await self._orchestrator.hydrate(task)
        except HydrationError:
            task = task.without_documents()

        self._publish(task, session)
        state.status = "VALID"

        self._detached.spawn(
            self._acknowledge(task.task_id), name=f"keyed-on:{task.task_id}"
        )

    def _publish(self, task: Task, session: DocumentSession | None) -> None:
        state = self._state
        if state.session is not None and state.session is not session:
            state.session.close()
        state.task = task
        state.session = session
        state.derived = None
        state.schema_error = None
        if not task.schemas:
            return
        try:
            state.derived = derive_schemas(task, self._compiler)
        except DocumentTypeError as e:
            logger.error("Cannot derive form schemas: %s", e)
            state.schema_error = str(e)
        except (ValueError, TypeError) as e:
            # Schema descriptors pydantic cannot build a model from.
            logger.error("Cannot compile form schemas for task %s: %s", task.task_id, e, exc_info=True)
            state.schema_error = f"Invalid schema: {e}"

    def _clear_task(self) -> None:
        state = self._state
        state.task = None
        state.derived = None
        state.schema_error = None
        self._close_session()

    def _close_session(self) -> None:
        session = self._state.session
        self._state.session = None
        if session is not None:
            session.close()

    async def _acknowledge(self, task_id: str) -> None:
        response = await self._source.acknowledge_keyed_on(task_id, self._settings.principal_id)
        if response.status:
            logger.info("agentKeyedOn successful for task %s: %s", task_id, response.data)
        else:
            logger.error("agentKeyedOn failed for task %s: %s", task_id, response.error)

    # ------------------------------------------------------------------
    # Retry timer
    # ------------------------------------------------------------------

    def _sync_retry_timer(self) -> None:
        if self._closed:
            return
        if self._state.task is None and not self._settings.read_only:
            if not self.retry_armed:
                logger.debug("Arming task retry every %.0fs", self._settings.retry_interval_s)
                self._state.retry_timer = asyncio.create_task(
                    self._retry_loop(), name="task-retry"
                )
        else:
            self._disarm_retry_timer()

    def _disarm_retry_timer(self) -> None:
        timer = self._state.retry_timer
        self._state.retry_timer = None
        # The loop may disarm itself from inside refresh(); it exits on its own.
        if timer is not None and timer is not asyncio.current_task() and not timer.done():
            timer.cancel()

    async def _retry_loop(self) -> None:
        while not self._closed:
            await asyncio.sleep(self._settings.retry_interval_s)
            await self.refresh()
            if self._state.retry_timer is not asyncio.current_task():
                return

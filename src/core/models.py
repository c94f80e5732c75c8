# src/core/models.py - v1
"""Shared Pydantic domain models used across modules.

Task payloads are validated here, at the network boundary. Wire names
(taskid, zoningdocuments, dbdata, ...) are kept as aliases so the models
can be fed the raw JSON body of the agent API.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
)

from taskdocs.schema.models import SchemaGroup

logger = logging.getLogger(__name__)


class TaskPayloadError(ValueError):
    """Raised when a task payload is missing required fields or is unusable."""


# === DOCUMENT REFERENCES ===


class DocumentRef(BaseModel):
    """Pair of remote references for one document of a task."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    image_ref: str
    metadata_ref: str


class ZoningDocuments(BaseModel):
    """Parallel image/metadata reference lists of a task."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    image_urls: list[str | None] = Field(default_factory=list, alias="imageurl")
    json_urls: list[str | None] = Field(default_factory=list, alias="jsonurl")

    @property
    def total_count(self) -> int:
        return len(self.image_urls)

    def has_first(self) -> bool:
        """True when both refs of document 0 are present."""
        return bool(
            self.image_urls
            and self.json_urls
            and self.image_urls[0]
            and self.json_urls[0]
        )

    def ref(self, index: int) -> DocumentRef:
        """Return the reference pair for `index`.

        Raises:
            TaskPayloadError: If either ref is missing for that index.
        """
        image = self.image_urls[index] if index < len(self.image_urls) else None
        meta = self.json_urls[index] if index < len(self.json_urls) else None
        if not image or not meta:
            raise TaskPayloadError(f"Document {index} has no image/metadata ref pair")
        return DocumentRef(index=index, image_ref=image, metadata_ref=meta)


# === TASK ===


class Task(BaseModel):
    """Unit of work: remote document refs, raw schema map and embedded data.

    Identity is `task_id`. Instances are frozen: a new fetch produces a new
    Task, it never mutates the previous one.
    """

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    task_id: str = Field(alias="taskid", min_length=1)
    zoning_documents: ZoningDocuments | None = Field(
        default=None, alias="zoningdocuments"
    )
    schemas: dict[str, SchemaGroup] = Field(default_factory=dict, alias="schema")
    db_data: dict[str, Any] | None = Field(default=None, alias="dbdata")
    documents: Any = None
    extraction_source: Any = Field(default=None, alias="extractionsource")

    @field_validator("task_id", mode="before")
    @classmethod
    def _coerce_task_id(cls, v: Any) -> Any:
        # Some deployments send numeric task ids.
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("zoning_documents", mode="wrap")
    @classmethod
    def _drop_malformed_documents(
        cls, v: Any, handler: ValidatorFunctionWrapHandler
    ) -> ZoningDocuments | None:
        try:
            return handler(v)
        except ValidationError as e:
            logger.warning(
                "Dropping malformed zoningdocuments section: %d error(s)",
                e.error_count(),
            )
            return None

    @property
    def document_refs(self) -> list[DocumentRef]:
        """Usable reference pairs in index order (incomplete pairs skipped)."""
        if self.zoning_documents is None:
            return []
        refs: list[DocumentRef] = []
        for i in range(self.zoning_documents.total_count):
            try:
                refs.append(self.zoning_documents.ref(i))
            except TaskPayloadError:
                continue
        return refs

    def without_documents(self) -> Task:
        """Copy of this task with its document sub-payload removed."""
        return self.model_copy(update={"zoning_documents": None})


def parse_task(payload: Any) -> Task | None:
    """Validate a raw task payload.

    Returns None for an empty payload ("" / None / {}), which the agent API
    uses to signal that no task is currently assigned.

    Raises:
        TaskPayloadError: If the payload is non-empty but invalid.
    """
    if payload in (None, "", {}):
        return None
    if not isinstance(payload, dict):
        raise TaskPayloadError(f"Task payload must be an object, got {type(payload).__name__}")
    try:
        return Task.model_validate(payload)
    except ValidationError as e:
        raise TaskPayloadError(f"Invalid task payload: {e}") from e


# === API RESPONSES ===


class TaskResponse(BaseModel):
    """Result of TaskSource.fetch_task()."""

    status: bool
    data: Task | None = None
    status_code: int | None = None


class AckResponse(BaseModel):
    """Result of TaskSource.acknowledge_keyed_on()."""

    status: bool
    data: Any = None
    error: str | None = None

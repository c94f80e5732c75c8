# src/tasks/snapshot.py - v1
"""Read-only view handed to the consumer layer."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from taskdocs.core.models import Task
from taskdocs.hydration.session import HydratedDocuments
from taskdocs.schema.compiler import SchemaValidator
from taskdocs.schema.models import SchemaSection

FormStatus = Literal["VALID", "INVALID"]


class TaskSnapshot(BaseModel):
    """Frozen picture of the coordinator state at one point in time."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    task: Task | None = None
    hydrated: HydratedDocuments | None = None
    doc_type: str | None = None
    form_fields_by_type: dict[str, list[SchemaSection]] = Field(default_factory=dict)
    active_field_set: list[SchemaSection] | None = None
    form_validator: SchemaValidator | None = None
    partial_form_validator: SchemaValidator | None = None
    validators: dict[str, SchemaValidator] = Field(default_factory=dict)
    partial_validators: dict[str, SchemaValidator] = Field(default_factory=dict)
    prompts: dict[str, Any] = Field(default_factory=dict)
    values: Any = None
    documents: Any = None
    extraction_version: Any = None
    is_loading: bool = False
    status: FormStatus = "VALID"
    read_only: bool = False
    schema_error: str | None = None

    @property
    def task_id(self) -> str | None:
        return self.task.task_id if self.task is not None else None

# src/schema/derivation.py - v1
"""Derive form fields, validators and prompts from a task's schema map.

derive_schemas() is a pure function of the Task: running it twice on the
same payload yields structurally equal results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from taskdocs.core.models import Task
from taskdocs.schema.compiler import SchemaValidator, compile_schema, project_sections
from taskdocs.schema.models import SchemaGroup, SchemaSection

SchemaCompiler = Callable[..., SchemaValidator]

DOCUMENT_TYPE_PATH = "dbdata.header[0].shippingcode"


class DocumentTypeError(ValueError):
    """The task does not name a usable document type."""


@dataclass(frozen=True)
class DerivedSchemaSet:
    """One validator per document type."""

    types: dict[str, SchemaValidator] = field(default_factory=dict)

    def __getitem__(self, doc_type: str) -> SchemaValidator:
        return self.types[doc_type]


@dataclass(frozen=True)
class DerivedSchemas:
    """Everything the form layer needs for one task."""

    doc_type: str
    form_fields_by_type: dict[str, list[SchemaSection]]
    active_field_set: list[SchemaSection]
    full: DerivedSchemaSet
    partial: DerivedSchemaSet
    prompts: dict[str, Any]
    values: Any
    documents: Any
    extraction_version: Any

    @property
    def form_validator(self) -> SchemaValidator:
        return self.full[self.doc_type]

    @property
    def partial_form_validator(self) -> SchemaValidator:
        return self.partial[self.doc_type]


def resolve_document_type(task: Task) -> str:
    """Read the document type discriminator from dbdata.header[0].shippingcode.

    Raises:
        DocumentTypeError: If the path is missing or names no schema.
    """
    try:
        doc_type = task.db_data["header"][0]["shippingcode"]  # type: ignore[index]
    except (KeyError, IndexError, TypeError) as e:
        raise DocumentTypeError(
            f"Task {task.task_id} has no {DOCUMENT_TYPE_PATH}"
        ) from e
    if not isinstance(doc_type, str) or not doc_type:
        raise DocumentTypeError(
            f"Task {task.task_id} has an empty or non-string {DOCUMENT_TYPE_PATH}: {doc_type!r}"
        )
    if doc_type not in task.schemas:
        raise DocumentTypeError(
            f"Task {task.task_id} document type {doc_type!r} has no schema "
            f"(known: {', '.join(sorted(task.schemas)) or 'none'})"
        )
    return doc_type


def derive_schemas(task: Task, compiler: SchemaCompiler = compile_schema) -> DerivedSchemas:
    """Compile full/partial validators, field sets and prompts for every type.

    Raises:
        DocumentTypeError: If the task carries no schema or no usable
            document type.
    """
    if not task.schemas:
        raise DocumentTypeError(f"Task {task.task_id} carries no schema")

    doc_type = resolve_document_type(task)
    schemas: dict[str, SchemaGroup] = task.schemas

    form_fields_by_type = {key: project_sections(group) for key, group in schemas.items()}
    full = DerivedSchemaSet(
        {key: compiler(group, False, name=f"{key}Schema") for key, group in schemas.items()}
    )
    partial = DerivedSchemaSet(
        {key: compiler(group, True, name=f"{key}PartialSchema") for key, group in schemas.items()}
    )
    prompts = {key: group.prompts for key, group in schemas.items()}

    return DerivedSchemas(
        doc_type=doc_type,
        form_fields_by_type=form_fields_by_type,
        active_field_set=form_fields_by_type[doc_type],
        full=full,
        partial=partial,
        prompts=prompts,
        values=task.db_data,
        documents=task.documents,
        extraction_version=task.extraction_source,
    )

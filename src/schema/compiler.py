# src/schema/compiler.py - v1
"""Compile a SchemaGroup into a pydantic validator.

The validator model has one attribute per resolved section id. A section
is itself a model of its fields; `multiple` sections validate a list of
rows. In full mode a field is required when its descriptor says so
(default True); in partial mode every field and section is optional.
"""

from __future__ import annotations

import keyword
import re
from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from taskdocs.schema.models import SchemaField, SchemaGroup, SchemaSection

_TYPE_MAP: dict[str, Any] = {
    "text": str,
    "string": str,
    "textarea": str,
    "email": str,
    "number": float,
    "decimal": float,
    "float": float,
    "integer": int,
    "int": int,
    "boolean": bool,
    "checkbox": bool,
    "date": date,
    "datetime": datetime,
    "table": list[dict[str, Any]],
}

_MODEL_CONFIG = ConfigDict(extra="ignore", populate_by_name=True)


def project_sections(group: SchemaGroup) -> list[SchemaSection]:
    """Sections of `group` in group_list order; unresolved ids are dropped."""
    by_id: dict[str, SchemaSection] = {}
    for section in group.group:
        by_id.setdefault(section.id, section)
    return [by_id[gid] for gid in group.group_list if gid in by_id]


class SchemaValidator:
    """Compiled validator for one document type.

    Equality is structural: two validators compiled from the same group
    compare equal even though their model classes differ.
    """

    def __init__(self, model: type[BaseModel], partial: bool) -> None:
        self.model = model
        self.partial = partial

    def validate(self, values: Any) -> list[dict[str, Any]]:
        """Return pydantic error dicts; empty when `values` is valid."""
        try:
            self.model.model_validate(values)
        except ValidationError as e:
            return e.errors(include_url=False)
        return []

    def is_valid(self, values: Any) -> bool:
        return not self.validate(values)

    def json_schema(self) -> dict[str, Any]:
        return self.model.model_json_schema()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SchemaValidator):
            return NotImplemented
        return self.partial == other.partial and self.json_schema() == other.json_schema()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        mode = "partial" if self.partial else "full"
        return f"SchemaValidator({self.model.__name__}, {mode})"


def compile_schema(
    group: SchemaGroup,
    partial: bool = False,
    name: str = "DocumentSchema",
) -> SchemaValidator:
    """Compile `group` into a full or partial validator."""
    model_name = _identifier(name)
    top_fields: dict[str, Any] = {}
    for section in project_sections(group):
        attr = _unique_identifier(section.id, top_fields)
        section_model = _compile_section(section, partial, f"{model_name}_{attr}")
        annotation: Any = list[section_model] if section.multiple else section_model
        if partial:
            top_fields[attr] = (
                Optional[annotation],
                Field(default=None, alias=section.id),
            )
        else:
            top_fields[attr] = (annotation, Field(alias=section.id))

    model = create_model(model_name, __config__=_MODEL_CONFIG, **top_fields)
    return SchemaValidator(model, partial)


def _compile_section(section: SchemaSection, partial: bool, name: str) -> type[BaseModel]:
    fields: dict[str, Any] = {}
    for field_def in section.fields:
        annotation = _annotation(field_def)
        constraints = _constraints(field_def, annotation)
        attr = _unique_identifier(field_def.name, fields)
        if partial or not field_def.required:
            fields[attr] = (
                Optional[annotation],
                Field(default=None, alias=field_def.name, **constraints),
            )
        else:
            fields[attr] = (
                annotation,
                Field(alias=field_def.name, **constraints),
            )
    return create_model(name, __config__=_MODEL_CONFIG, **fields)


def _annotation(field_def: SchemaField) -> Any:
    if field_def.options:
        return Literal[tuple(field_def.options)]
    return _TYPE_MAP.get(field_def.type.lower(), Any)


def _constraints(field_def: SchemaField, annotation: Any) -> dict[str, Any]:
    if annotation is not str:
        return {}
    constraints: dict[str, Any] = {}
    if field_def.pattern is not None:
        constraints["pattern"] = field_def.pattern
    if field_def.min_length is not None:
        constraints["min_length"] = field_def.min_length
    if field_def.max_length is not None:
        constraints["max_length"] = field_def.max_length
    return constraints


def _identifier(raw: str) -> str:
    """Python-safe attribute name; the raw name stays as the field alias."""
    ident = re.sub(r"\W", "_", raw)
    if (
        not ident
        or ident[0].isdigit()
        or ident[0] == "_"
        or keyword.iskeyword(ident)
        or ident.startswith("model_")
        or hasattr(BaseModel, ident)
    ):
        ident = f"f_{ident}"
    return ident


def _unique_identifier(raw: str, taken: dict[str, Any]) -> str:
    """`_identifier(raw)`, suffixed when another name already maps to it."""
    ident = _identifier(raw)
    candidate, n = ident, 2
    while candidate in taken:
        candidate = f"{ident}_{n}"
        n += 1
    return candidate

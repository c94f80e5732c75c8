# src/schema/models.py - v1
"""Raw schema description models: SchemaField, SchemaSection, SchemaGroup.

These mirror the hierarchical schema map embedded in a task payload
(docType -> {groupList, group, prompts}). Unknown keys on fields and
sections are preserved so that UI-only descriptors survive round trips.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SchemaField(BaseModel):
    """Single field descriptor inside a section."""

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str = Field(min_length=1)
    label: str | None = None
    type: str = "text"
    required: bool = True
    options: list[str] | None = None
    pattern: str | None = None
    min_length: int | None = None
    max_length: int | None = None


class SchemaSection(BaseModel):
    """Field group referenced by id from SchemaGroup.group_list.

    `multiple` sections hold a list of rows (e.g. dbdata.header[0]).
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    id: str
    label: str | None = None
    multiple: bool = True
    fields: list[SchemaField] = Field(default_factory=list)


class SchemaGroup(BaseModel):
    """Schema for one document type."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    group_list: list[str] = Field(default_factory=list, alias="groupList")
    group: list[SchemaSection] = Field(default_factory=list)
    prompts: Any = None

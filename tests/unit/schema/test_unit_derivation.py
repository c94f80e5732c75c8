# tests/unit/schema/test_unit_derivation.py - v1
"""Tests for schema/derivation.py - per-task derived validators and fields."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from taskdocs.core.models import Task
from taskdocs.schema.compiler import compile_schema
from taskdocs.schema.derivation import (
    DocumentTypeError,
    derive_schemas,
    resolve_document_type,
)


class TestResolveDocumentType:
    def test_reads_header_shippingcode(self, sample_task):
        assert resolve_document_type(sample_task) == "INV"

    @pytest.mark.parametrize("db_data", [
        None,
        {},
        {"header": []},
        {"header": [{}]},
        {"header": "INV"},
    ])
    def test_missing_path(self, make_payload, db_data):
        payload = make_payload()
        payload["dbdata"] = db_data
        with pytest.raises(DocumentTypeError, match="shippingcode"):
            resolve_document_type(Task.model_validate(payload))

    def test_empty_value(self, make_payload):
        payload = make_payload()
        payload["dbdata"] = {"header": [{"shippingcode": ""}]}
        with pytest.raises(DocumentTypeError, match="empty or non-string"):
            resolve_document_type(Task.model_validate(payload))

    def test_type_without_schema(self, make_payload):
        payload = make_payload(doc_type="INV")
        payload["dbdata"]["header"][0]["shippingcode"] = "PO"
        with pytest.raises(DocumentTypeError, match="has no schema"):
            resolve_document_type(Task.model_validate(payload))


class TestDeriveSchemas:
    def test_all_types_compiled(self, sample_task):
        derived = derive_schemas(sample_task)
        assert derived.doc_type == "INV"
        assert set(derived.full.types) == {"INV", "CRN"}
        assert set(derived.partial.types) == {"INV", "CRN"}
        assert derived.full["INV"].partial is False
        assert derived.partial["INV"].partial is True

    def test_active_selection(self, sample_task):
        derived = derive_schemas(sample_task)
        assert derived.form_validator is derived.full["INV"]
        assert derived.partial_form_validator is derived.partial["INV"]
        assert [s.id for s in derived.active_field_set] == ["header", "lines"]
        assert derived.active_field_set == derived.form_fields_by_type["INV"]

    def test_prompts_and_passthrough(self, sample_task):
        derived = derive_schemas(sample_task)
        assert derived.prompts == {
            "INV": {"header": "Extract the invoice header"},
            "CRN": {"header": "Extract the credit note header"},
        }
        assert derived.values == sample_task.db_data
        assert derived.documents == [{"name": "T1.pdf"}]
        assert derived.extraction_version == "v2"

    def test_form_validator_accepts_task_values(self, sample_task):
        derived = derive_schemas(sample_task)
        assert derived.form_validator.validate(derived.values) == []

    def test_deterministic(self, sample_task):
        first = derive_schemas(sample_task)
        second = derive_schemas(sample_task)
        assert first.full.types == second.full.types
        assert first.partial.types == second.partial.types
        assert first.form_fields_by_type == second.form_fields_by_type

    def test_no_schema(self, make_task):
        with pytest.raises(DocumentTypeError, match="carries no schema"):
            derive_schemas(make_task(with_schema=False))

    def test_uses_injected_compiler(self, sample_task):
        compiler = MagicMock(side_effect=compile_schema)
        derive_schemas(sample_task, compiler)
        names = sorted(call.kwargs["name"] for call in compiler.call_args_list)
        assert names == ["CRNPartialSchema", "CRNSchema", "INVPartialSchema", "INVSchema"]

"""
Tests for error-code normalization.
"""

import pytest

from conftest import make_raw_code
from ezvizinho.src.core.exceptions import RecordValidationError
from ezvizinho.src.core.normalizer import error_code_id, normalize, parse_error_codes


class TestErrorCodeId:
    def test_composite_id(self):
        assert error_code_id("10", "120002") == "10_120002"

    def test_bare_code_without_module(self):
        assert error_code_id("", "120002") == "120002"


class TestParseErrorCodes:
    """Validation is all-or-nothing."""

    def test_valid_payload(self):
        records = parse_error_codes([make_raw_code("1"), make_raw_code("2")])
        assert [r.detailCode for r in records] == ["1", "2"]

    def test_one_bad_record_rejects_all(self):
        bad = make_raw_code("2")
        del bad["solution"]

        with pytest.raises(RecordValidationError) as exc_info:
            parse_error_codes([make_raw_code("1"), bad])

        assert str(exc_info.value).startswith("Invalid error codes format:")
        assert exc_info.value.errors

    def test_wrong_type_rejected(self):
        with pytest.raises(RecordValidationError):
            parse_error_codes([make_raw_code(120002)])

    def test_non_list_rejected(self):
        with pytest.raises(RecordValidationError):
            parse_error_codes({"moduleCode": "", "detailCode": "1"})

    def test_blank_detail_codes_filtered(self):
        records = parse_error_codes([make_raw_code("1"), make_raw_code(""), make_raw_code("   ")])
        assert [r.detailCode for r in records] == ["1"]

    def test_extra_fields_ignored(self):
        raw = make_raw_code("1")
        raw["extra"] = "ignored"
        assert len(parse_error_codes([raw])) == 1


class TestNormalize:
    def test_entity_fields(self):
        [entity] = normalize([make_raw_code("120002", module_code="10", description="设备离线", solution="请检查网络")])

        assert entity.id == "10_120002"
        assert entity.code == "120002"
        assert entity.module_code == "10"
        assert entity.category == "network"
        assert entity.document_text() == "Error 120002: 设备离线 请检查网络"

    def test_same_detail_code_under_two_modules(self):
        entities = normalize([make_raw_code("5", module_code="A"), make_raw_code("5", module_code="B")])
        assert [e.id for e in entities] == ["A_5", "B_5"]
        assert {e.code for e in entities} == {"5"}

    def test_deterministic(self):
        payload = [make_raw_code("1", module_code="M")]
        assert normalize(payload) == normalize(payload)

    def test_metadata_uses_store_field_names(self):
        [entity] = normalize([make_raw_code("7", module_code="M")])
        assert entity.to_metadata() == {
            "code": "7",
            "moduleCode": "M",
            "description": "Device offline",
            "solution": "Check the device",
            "category": "device",
        }

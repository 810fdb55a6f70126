"""
Ezvizinho - Record Normalizer
==============================
Turns the upstream error-code JSON into ``ErrorCodeEntity`` objects.

Steps, in order:
    1. Validate the *whole* payload (strict pydantic).  One bad record
       rejects the batch with ``RecordValidationError``.
    2. Drop records whose ``detailCode`` is blank (logged, not an error).
    3. Compute the composite id and the category of each survivor.

Pure in-memory transformation — no store or network access.
"""

from __future__ import annotations

from typing import Any

from pydantic import TypeAdapter, ValidationError

from ezvizinho.src.core.categorizer import categorize
from ezvizinho.src.core.exceptions import RecordValidationError
from ezvizinho.src.database.models import ErrorCodeEntity, RawErrorCode
from ezvizinho.src.utils.logger import get_logger

logger = get_logger(__name__)

_RAW_BATCH_ADAPTER: TypeAdapter[list[RawErrorCode]] = TypeAdapter(list[RawErrorCode])


def error_code_id(module_code: str, detail_code: str) -> str:
    """``<moduleCode>_<detailCode>``, or the bare detail code without a module."""
    return f"{module_code}_{detail_code}" if module_code else detail_code


def parse_error_codes(data: Any) -> list[RawErrorCode]:
    """
    Validate raw input and filter out blank detail codes.

    Raises
    ------
    RecordValidationError
        If *data* is not a list of well-formed records.
    """
    try:
        records = _RAW_BATCH_ADAPTER.validate_python(data)
    except ValidationError as exc:
        raise RecordValidationError(f"Invalid error codes format: {exc}", errors=exc.errors(include_url=False)) from exc

    valid = [r for r in records if r.detailCode.strip() != ""]
    filtered = len(records) - len(valid)
    if filtered > 0:
        logger.info("[NORMALIZE] Filtered out %d entries with empty detailCode.", filtered)

    return valid


def transform_error_code(raw: RawErrorCode) -> ErrorCodeEntity:
    return ErrorCodeEntity(
        id=error_code_id(raw.moduleCode, raw.detailCode),
        code=raw.detailCode,
        module_code=raw.moduleCode,
        description=raw.description,
        solution=raw.solution,
        category=categorize(raw.description, raw.solution),
    )


def normalize(data: Any) -> list[ErrorCodeEntity]:
    """Validate, filter and transform a raw error-code payload."""
    return [transform_error_code(raw) for raw in parse_error_codes(data)]

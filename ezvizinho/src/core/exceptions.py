"""
Ezvizinho - Exception Hierarchy
================================
Domain errors raised by the ingestion and retrieval core.

Outcomes that are *not* errors never appear here:
  • a partially committed ingestion is an ``IngestionResult``
  • an exact-lookup miss is ``None``
  • duplicate ids and blank detail codes are filtered and logged
"""

from __future__ import annotations

from typing import Any


class EzvizinhoError(Exception):
    """Base exception for all Ezvizinho errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class RecordValidationError(EzvizinhoError):
    """
    Raised when an ingestion payload fails schema validation.

    Validation is all-or-nothing: one bad record rejects the whole
    batch and nothing is written.
    """

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message, {"errors": errors or []})

    @property
    def errors(self) -> list[dict[str, Any]]:
        return self.details["errors"]


class StoreUnavailableError(EzvizinhoError):
    """Raised when the corpus store is not initialised or cannot be reached."""

    def __init__(self, message: str, operation: str | None = None) -> None:
        details = {"operation": operation} if operation else None
        super().__init__(message, details)


class SynthesisError(EzvizinhoError):
    """
    Raised when the language model fails to produce an answer.

    The evidence retrieved before the failure travels on the exception
    (``details["sources"]``) so a caller may still show it.
    """

    def __init__(self, message: str, sources: list[Any] | None = None) -> None:
        super().__init__(message, {"sources": sources or []})

    @property
    def sources(self) -> list[Any]:
        return self.details["sources"]

"""
Ezvizinho - Corpus Entities
============================
Typed shapes that cross the ingestion / store / retrieval seams.

  • ``RawErrorCode``            — one record of the upstream error-code JSON
                                  (validated strictly, all-or-nothing).
  • ``ErrorCodeEntity``         — canonical, categorised error code as stored.
  • ``DocumentationMetadata``   — chunk metadata; absent values become ``""``
                                  because the store rejects nulls.
  • ``DocumentationChunk``      — one markdown section with its context prefix.
  • ``IngestionResult``         — outcome of an ingestion call, including
                                  partial success.
"""

from __future__ import annotations

import hashlib
from dataclasses import asdict, dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr, field_validator, model_validator

# ── Type Aliases ──────────────────────────────────────────────────────
Metadata = dict[str, str | int | float | bool]

# Metadata columns of the two LanceDB tables, in schema order.
ERROR_CODE_FIELDS: tuple[str, ...] = ("code", "moduleCode", "description", "solution", "category")
DOCUMENTATION_FIELDS: tuple[str, ...] = ("source", "platform", "title", "url", "section_path", "type", "language", "hash", "version")


def documentation_chunk_id(url: str, section_title: str) -> str:
    """Deterministic chunk id: same logical location → same id."""
    digest = hashlib.md5(f"{url}_{section_title}".encode("utf-8")).hexdigest()
    return f"doc_{digest}"


# ══════════════════════════════════════════════════════════════════════
#  ERROR CODES
# ══════════════════════════════════════════════════════════════════════


class RawErrorCode(BaseModel):
    """Upstream record: ``{moduleCode, detailCode, description, solution, updateTime}``."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    moduleCode: StrictStr
    detailCode: StrictStr
    description: StrictStr
    solution: StrictStr
    updateTime: StrictInt | StrictFloat


@dataclass(frozen=True)
class ErrorCodeEntity:
    """
    A categorised error code.

    ``id`` is the store's primary key (``<moduleCode>_<detailCode>``, or
    the bare detail code when there is no module).  ``code`` is a
    secondary, non-unique field: the same detail code may exist under
    several modules.
    """

    id: str
    code: str
    module_code: str
    description: str
    solution: str
    category: str

    def document_text(self) -> str:
        """Text handed to the embedder."""
        return f"Error {self.code}: {self.description} {self.solution}"

    def to_metadata(self) -> Metadata:
        return {"code": self.code, "moduleCode": self.module_code, "description": self.description, "solution": self.solution, "category": self.category}

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_metadata(cls, entity_id: str, metadata: dict[str, Any]) -> ErrorCodeEntity:
        return cls(id=entity_id, code=str(metadata.get("code", "")), module_code=str(metadata.get("moduleCode", "")), description=str(metadata.get("description", "")), solution=str(metadata.get("solution", "")), category=str(metadata.get("category", "")))


# ══════════════════════════════════════════════════════════════════════
#  DOCUMENTATION
# ══════════════════════════════════════════════════════════════════════


class DocumentationMetadata(BaseModel):
    """
    Metadata of a documentation chunk.

    ``source``   — e.g. ``"iOS SDK"``, ``"openapi"``
    ``platform`` — ``"ios"``, ``"android"``, ``"js"``, ``"cross-platform"``
    ``type``     — ``"guide"``, ``"tutorial"``, ``"api_reference"``, ...
    ``language`` — ``"en"``, ``"pt"``, ``"zh"``
    ``hash``     — content hash, used to spot unchanged sections
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    source: str = ""
    platform: str = ""
    title: str = ""
    url: str = ""
    section_path: str = ""
    type: str = ""
    language: str = ""
    hash: str = ""
    version: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    def to_metadata(self) -> Metadata:
        return self.model_dump()


class DocumentationChunk(BaseModel):
    """One documentation section ready for the store."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    text: str
    metadata: DocumentationMetadata = Field(default_factory=DocumentationMetadata)

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_none(cls, v: Any) -> Any:
        return {} if v is None else v

    @model_validator(mode="after")
    def _ensure_id(self) -> DocumentationChunk:
        if not self.id:
            self.id = documentation_chunk_id(self.metadata.url, self.metadata.title)
        return self

    @classmethod
    def from_store(cls, chunk_id: str, text: str, metadata: dict[str, Any]) -> DocumentationChunk:
        return cls(id=chunk_id, text=text, metadata=DocumentationMetadata.model_validate(metadata))


# ══════════════════════════════════════════════════════════════════════
#  RESULTS
# ══════════════════════════════════════════════════════════════════════


@dataclass
class IngestionResult:
    """
    Outcome of an ingestion call.

    A failed batch does not raise: ``success`` is ``True`` as long as at
    least one batch committed, and ``count`` says how many records did.
    """

    success: bool
    count: int
    message: str
    total: int = 0
    duplicates_removed: int = 0

    def to_dict(self) -> dict[str, bool | int | str]:
        return {"success": self.success, "count": self.count, "message": self.message}


@dataclass
class QueryResponse:
    answer: str
    sources: list[ErrorCodeEntity] = field(default_factory=list)


@dataclass
class DocumentationQueryResponse:
    answer: str
    sources: list[DocumentationChunk] = field(default_factory=list)

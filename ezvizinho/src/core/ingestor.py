"""
Ezvizinho - Ingestion Pipelines
================================
Loads error codes and documentation chunks into their corpus stores.

Key design decisions:
    • **Dependency Injection** – each pipeline receives its ``CorpusStore``.
    • **Fail-fast validation** – a malformed payload is rejected as a whole
      (``RecordValidationError``) before anything is written.
    • **First occurrence wins** – records are deduplicated by id before
      any write; the number dropped is logged.
    • **Progressive commit** – unique records are upserted in fixed-size
      batches, strictly one after the other.  The first failing batch
      stops the run and the result reports what was already committed.
      Nothing is rolled back: upsert is idempotent, so re-running the
      same ingestion after a failure heals the corpus without duplicates.

Usage:
    from ezvizinho.src.core.ingestor import IngestionPipeline
    pipeline = IngestionPipeline(error_store)
    result   = pipeline.ingest(json.loads(raw))
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from ezvizinho.config.settings import settings
from ezvizinho.src.core.exceptions import RecordValidationError
from ezvizinho.src.core.normalizer import normalize
from ezvizinho.src.database.models import DocumentationChunk, ErrorCodeEntity, IngestionResult
from ezvizinho.src.database.vector_store import CorpusStore
from ezvizinho.src.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_CHUNKS_ADAPTER: TypeAdapter[list[DocumentationChunk]] = TypeAdapter(list[DocumentationChunk])


def deduplicate(items: Sequence[T], key: Callable[[T], str]) -> tuple[list[T], int]:
    """Keep the first item per key.  Returns ``(unique_items, duplicates_removed)``."""
    unique: dict[str, T] = {}
    for item in items:
        unique.setdefault(key(item), item)
    return list(unique.values()), len(items) - len(unique)


def batched(items: Sequence[T], size: int) -> list[Sequence[T]]:
    if size < 1:
        raise ValueError(f"batch size must be ≥ 1, got {size}")
    return [items[i : i + size] for i in range(0, len(items), size)]


class _BatchUpserter(Generic[T]):
    """
    Shared dedupe → batch → sequential upsert loop.

    Subclasses say how to parse a payload, which id an item has and how
    an item maps onto the store's ``(id, metadata, document)`` triple.
    """

    noun = "records"

    def __init__(self, store: CorpusStore, batch_size: int) -> None:
        if batch_size < 1:
            raise ValueError(f"batch size must be ≥ 1, got {batch_size}")
        self._store = store
        self._batch_size = batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    # ── hooks ──────────────────────────────────────────────────────────

    def parse(self, payload: Any) -> list[T]:
        raise NotImplementedError

    def item_id(self, item: T) -> str:
        raise NotImplementedError

    def to_row(self, item: T) -> tuple[str, dict[str, Any], str]:
        raise NotImplementedError

    # ── pipeline ───────────────────────────────────────────────────────

    def ingest(self, payload: Any) -> IngestionResult:
        """
        Validate, deduplicate and upsert *payload*.

        Raises
        ------
        RecordValidationError
            The payload failed validation; nothing was written.
        """
        t_start = time.perf_counter()
        items = self.parse(payload)

        unique, duplicates = deduplicate(items, self.item_id)
        if duplicates > 0:
            logger.info("[INGEST] Removed %d duplicates, processing %d unique %s.", duplicates, len(unique), self.noun)

        total = len(unique)
        success_count = 0

        for index, batch in enumerate(batched(unique, self._batch_size)):
            rows = [self.to_row(item) for item in batch]
            try:
                self._store.upsert(ids=[r[0] for r in rows], metadatas=[r[1] for r in rows], documents=[r[2] for r in rows])
            except Exception as exc:
                logger.error("[INGEST] Batch %d failed at offset %d, saved %d %s so far: %s", index + 1, index * self._batch_size, success_count, self.noun, exc)
                return IngestionResult(success=success_count > 0, count=success_count, message=f"Ingested {success_count}/{total} {self.noun}. Error: {exc}", total=total, duplicates_removed=duplicates)

            success_count += len(batch)
            logger.debug("[INGEST] Ingested %d/%d %s.", success_count, total, self.noun)

        elapsed = time.perf_counter() - t_start
        logger.info("[INGEST] Completed — %d %s stored in %.2fs.", success_count, self.noun, elapsed)
        return IngestionResult(success=True, count=success_count, message=self.success_message(success_count), total=total, duplicates_removed=duplicates)

    def success_message(self, count: int) -> str:
        return f"Successfully ingested {count} {self.noun}"


class IngestionPipeline(_BatchUpserter[ErrorCodeEntity]):
    """
    Error-code ingestion: normalise → dedupe → batch → upsert.

    Parameters
    ----------
    store
        The error-code ``CorpusStore`` (injected).
    batch_size
        Records per upsert.  Defaults to ``settings.ERROR_CODE_BATCH_SIZE``.
    """

    noun = "codes"

    def __init__(self, store: CorpusStore, batch_size: int | None = None) -> None:
        super().__init__(store, batch_size or settings.ERROR_CODE_BATCH_SIZE)

    def parse(self, payload: Any) -> list[ErrorCodeEntity]:
        return normalize(payload)

    def item_id(self, item: ErrorCodeEntity) -> str:
        return item.id

    def to_row(self, item: ErrorCodeEntity) -> tuple[str, dict[str, Any], str]:
        return item.id, item.to_metadata(), item.document_text()

    def success_message(self, count: int) -> str:
        return f"Successfully ingested {count} error codes"


class DocumentationIngestionPipeline(_BatchUpserter[DocumentationChunk]):
    """
    Documentation ingestion.

    Accepts the ``{"chunks": [...]}`` envelope (or a bare list of chunks).
    Optional metadata is normalised to ``""`` and missing ids are derived
    from ``(url, title)``, so re-ingesting a section overwrites it.
    """

    noun = "chunks"

    def __init__(self, store: CorpusStore, batch_size: int | None = None) -> None:
        super().__init__(store, batch_size or settings.DOC_BATCH_SIZE)

    def parse(self, payload: Any) -> list[DocumentationChunk]:
        if isinstance(payload, dict):
            payload = payload.get("chunks")
        if not isinstance(payload, list):
            raise RecordValidationError("Invalid documentation payload: 'chunks' array is required")

        try:
            return _CHUNKS_ADAPTER.validate_python(payload)
        except ValidationError as exc:
            raise RecordValidationError(f"Invalid documentation payload: {exc}", errors=exc.errors(include_url=False)) from exc

    def item_id(self, item: DocumentationChunk) -> str:
        return item.id

    def to_row(self, item: DocumentationChunk) -> tuple[str, dict[str, Any], str]:
        return item.id, item.metadata.to_metadata(), item.text

    def success_message(self, count: int) -> str:
        return f"Successfully ingested {count} documentation chunks"

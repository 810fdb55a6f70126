"""
Ezvizinho - Corpus Store
=========================
The vector-capable persistence layer behind ingestion and retrieval.

``CorpusStore`` is the capability interface the core consumes:
  • ``upsert(ids, metadatas, documents)`` — full-record upsert by id
  • ``get(ids=, where=, limit=, offset=)`` — exact lookup / listing
  • ``query(query_text, n_results)``       — nearest-neighbour search
  • ``count()``
plus an explicit ``initialize()`` / ``shutdown()`` lifecycle.

``LanceCorpusStore`` implements it on top of a LanceDB table:
  • **Dependency Injection** — the embedder is injected, never
    hard-coded, so tests can run against a deterministic fake.
  • **Explicit lifecycle** — no module-level connection; callers build
    the store, ``initialize()`` it and pass it where it is needed.
  • **Lazy table** — the table is created by the first upsert, with
    the vector width taken from the first embedding.  Until then reads
    return nothing and ``count()`` is 0.
  • **Null-free metadata** — every schema column must be present and
    non-null, mirroring stores that reject null metadata values.
  • **Rate-limit retry** — 429 / ``RESOURCE_EXHAUSTED`` embedding errors
    are retried with exponential backoff (``tenacity``); anything else
    propagates.

Usage:
    from langchain_google_genai import GoogleGenerativeAIEmbeddings
    from ezvizinho.src.database.vector_store import LanceCorpusStore

    store = LanceCorpusStore(embedder, table_name="ezviz_error_codes", metadata_fields=ERROR_CODE_FIELDS)
    store.initialize()
    store.upsert(ids=[...], metadatas=[...], documents=[...])
    hits = store.query("camera offline", n_results=5)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import lancedb
import pyarrow as pa
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from ezvizinho.config.settings import settings
from ezvizinho.src.core.exceptions import StoreUnavailableError
from ezvizinho.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type Aliases ──────────────────────────────────────────────────────
Metadata = dict[str, str | int | float | bool]
WhereFilter = dict[str, str | int | float | bool]

# ── Constants ──────────────────────────────────────────────────────────
_EMBED_BATCH_SIZE = 100
_ID_COLUMN = "id"
_VECTOR_COLUMN = "vector"
_DOCUMENT_COLUMN = "document"
_RATE_LIMIT_MARKERS = ("429", "RESOURCE_EXHAUSTED", "rate limit")


@dataclass
class StoreRecords:
    """Parallel lists returned by ``get`` and ``query`` (store order)."""

    ids: list[str] = field(default_factory=list)
    metadatas: list[dict[str, Any]] = field(default_factory=list)
    documents: list[str] = field(default_factory=list)
    distances: list[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.ids)


# ── Collaborator Protocols ─────────────────────────────────────────────

@runtime_checkable
class Embedder(Protocol):
    """Structural type for any LangChain-compatible embedding model."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]: ...

    def embed_query(self, text: str) -> list[float]: ...


@runtime_checkable
class CorpusStore(Protocol):
    """Capability interface consumed by the ingestion and retrieval core."""

    def initialize(self) -> None: ...

    def shutdown(self) -> None: ...

    def upsert(self, ids: list[str], metadatas: list[Metadata], documents: list[str]) -> None: ...

    def get(self, ids: list[str] | None = None, where: WhereFilter | None = None, limit: int | None = None, offset: int = 0) -> StoreRecords: ...

    def query(self, query_text: str, n_results: int) -> StoreRecords: ...

    def count(self) -> int: ...


# ── Helpers ────────────────────────────────────────────────────────────

def _is_rate_limited(exc: BaseException) -> bool:
    text = str(exc)
    return any(marker in text for marker in _RATE_LIMIT_MARKERS)


def _sql_literal(value: str | int | float | bool) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    return "'" + str(value).replace("'", "''") + "'"


def _table_names(db: lancedb.DBConnection) -> set[str]:
    """Table names across LanceDB API variants (``list_tables`` vs ``table_names``)."""
    listed = db.list_tables() if hasattr(db, "list_tables") else db.table_names()
    tables = getattr(listed, "tables", listed)
    return {str(name) for name in tables}


class LanceCorpusStore:
    """
    ``CorpusStore`` backed by one LanceDB table.

    Parameters
    ----------
    embedder : Embedder
        Produces document and query vectors.
    table_name
        LanceDB table holding this corpus.
    metadata_fields
        Metadata columns of the table (all stored as UTF-8 strings).
    db_path
        Override the database directory.  Defaults to ``settings.LANCEDB_PATH``.
    max_attempts / backoff_seconds
        Retry budget for rate-limited embedding calls.
    """

    __slots__ = ("embedder", "_db_path", "_table_name", "_fields", "_retrying", "db", "table")

    def __init__(self, embedder: Embedder, table_name: str, metadata_fields: tuple[str, ...], db_path: str | Path | None = None, max_attempts: int | None = None, backoff_seconds: float | None = None) -> None:
        self.embedder: Embedder = embedder
        self._db_path: str = str(db_path or settings.LANCEDB_PATH)
        self._table_name: str = table_name
        self._fields: tuple[str, ...] = tuple(metadata_fields)
        self.db: lancedb.DBConnection | None = None
        self.table: Any | None = None

        attempts = max_attempts if max_attempts is not None else settings.EMBED_MAX_ATTEMPTS
        backoff = backoff_seconds if backoff_seconds is not None else settings.EMBED_BACKOFF_SECONDS
        self._retrying = Retrying(
            retry=retry_if_exception(_is_rate_limited),
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=backoff, min=backoff, max=backoff * 4),
            before_sleep=lambda state: logger.warning("[EMBED] Rate limited, retry %d/%d for table '%s'.", state.attempt_number, attempts, self._table_name),
            reraise=True,
        )

    # ══════════════════════════════════════════════════════════════════
    #  LIFECYCLE
    # ══════════════════════════════════════════════════════════════════

    def initialize(self) -> None:
        """Open the LanceDB connection and the table if it already exists."""
        if self.db is not None:
            return

        try:
            if "://" not in self._db_path:
                Path(self._db_path).mkdir(parents=True, exist_ok=True)
            self.db = lancedb.connect(self._db_path)

            if self._table_name in _table_names(self.db):
                self.table = self.db.open_table(self._table_name)
                logger.info("Opened existing table '%s' (%d rows).", self._table_name, self.table.count_rows())
            else:
                logger.info("Table '%s' does not exist yet; it is created on first upsert.", self._table_name)

        except OSError as exc:
            self.db = None
            logger.error("LanceDB filesystem error at %s: %s", self._db_path, exc)
            raise StoreUnavailableError(f"Cannot open LanceDB at {self._db_path}: {exc}", operation="initialize") from exc


    def shutdown(self) -> None:
        """Release the connection.  ``initialize()`` may be called again."""
        self.table = None
        self.db = None
        logger.info("Corpus store '%s' shut down.", self._table_name)


    def _require_db(self, operation: str) -> lancedb.DBConnection:
        if self.db is None:
            raise StoreUnavailableError(f"Corpus store '{self._table_name}' is not initialised. Call initialize() first.", operation=operation)
        return self.db

    # ══════════════════════════════════════════════════════════════════
    #  WRITE PATH
    # ══════════════════════════════════════════════════════════════════

    def upsert(self, ids: list[str], metadatas: list[Metadata], documents: list[str]) -> None:
        """
        Embed *documents* and insert-or-replace the rows keyed by *ids*.

        Raises
        ------
        ValueError
            Mismatched lengths, or a metadata value that is missing,
            null or not a scalar.
        StoreUnavailableError
            The store is not initialised or the write hit the filesystem.
        """
        if not len(ids) == len(metadatas) == len(documents):
            raise ValueError(f"Length mismatch: {len(ids)} ids vs {len(metadatas)} metadatas vs {len(documents)} documents.")
        db = self._require_db("upsert")
        if not ids:
            return

        columns = [self._metadata_row(entity_id, meta) for entity_id, meta in zip(ids, metadatas)]
        vectors = self._embed_documents(documents)

        records = [{_ID_COLUMN: entity_id, _VECTOR_COLUMN: vec, _DOCUMENT_COLUMN: doc, **cols} for entity_id, vec, doc, cols in zip(ids, vectors, documents, columns)]

        try:
            if self.table is None:
                schema = self._schema(len(vectors[0]))
                self.table = db.create_table(self._table_name, schema=schema, exist_ok=True)
                logger.info("Created table '%s' (vector width %d).", self._table_name, len(vectors[0]))

            batch = pa.Table.from_pylist(records, schema=self.table.schema)
            self.table.merge_insert(_ID_COLUMN).when_matched_update_all().when_not_matched_insert_all().execute(batch)

        except OSError as exc:
            logger.error("Failed to write %d rows to '%s': %s", len(records), self._table_name, exc)
            raise StoreUnavailableError(f"Write to '{self._table_name}' failed: {exc}", operation="upsert") from exc

        logger.debug("Upserted %d rows into '%s'.", len(records), self._table_name)


    def _metadata_row(self, entity_id: str, metadata: Metadata) -> dict[str, str]:
        unknown = set(metadata) - set(self._fields)
        if unknown:
            raise ValueError(f"Unknown metadata field(s) {sorted(unknown)} for id '{entity_id}'.")

        row: dict[str, str] = {}
        for name in self._fields:
            value = metadata.get(name)
            if value is None:
                raise ValueError(f"Metadata '{name}' of id '{entity_id}' is null or missing.")
            if not isinstance(value, (str, int, float, bool)):
                raise ValueError(f"Metadata '{name}' of id '{entity_id}' must be a scalar, got {type(value).__name__}.")
            row[name] = str(value)
        return row


    def _embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed in batches of ``_EMBED_BATCH_SIZE``, retrying rate limits."""
        vectors: list[list[float]] = []
        for i in range(0, len(texts), _EMBED_BATCH_SIZE):
            batch = texts[i : i + _EMBED_BATCH_SIZE]
            try:
                vectors.extend(self._retrying(self.embedder.embed_documents, batch))
            except Exception as exc:
                logger.error("Embedding batch %d–%d failed: %s", i, i + len(batch) - 1, exc)
                raise

        if len(vectors) != len(texts):
            raise RuntimeError(f"Embedder returned {len(vectors)} vectors for {len(texts)} documents.")
        return vectors


    def _schema(self, dimension: int) -> pa.Schema:
        return pa.schema([
            pa.field(_ID_COLUMN, pa.utf8(), nullable=False),
            pa.field(_VECTOR_COLUMN, pa.list_(pa.float32(), dimension)),
            pa.field(_DOCUMENT_COLUMN, pa.utf8()),
            *(pa.field(name, pa.utf8()) for name in self._fields),
        ])

    # ══════════════════════════════════════════════════════════════════
    #  READ PATH
    # ══════════════════════════════════════════════════════════════════

    def get(self, ids: list[str] | None = None, where: WhereFilter | None = None, limit: int | None = None, offset: int = 0) -> StoreRecords:
        """
        Exact retrieval by primary ids and/or equality filters.

        Rows come back in store order.  With *ids* and no *limit*, the
        limit defaults to ``len(ids)``.
        """
        self._require_db("get")
        if self.table is None or ids == []:
            return StoreRecords()

        clauses: list[str] = []
        if ids:
            clauses.append(f"`{_ID_COLUMN}` IN ({', '.join(_sql_literal(i) for i in ids)})")
        for key, value in (where or {}).items():
            if key != _ID_COLUMN and key not in self._fields:
                raise ValueError(f"Cannot filter '{self._table_name}' on unknown field '{key}'.")
            clauses.append(f"`{key}` = {_sql_literal(value)}")

        if limit is None and ids:
            limit = len(ids)

        query = self.table.search()
        if clauses:
            query = query.where(" AND ".join(clauses))
        query = query.limit(limit)
        if offset:
            query = query.offset(offset)

        rows: list[dict[str, Any]] = query.to_list()
        return self._to_records(rows)


    def query(self, query_text: str, n_results: int) -> StoreRecords:
        """Nearest-neighbour search; rows ordered by ascending distance."""
        if n_results < 1:
            raise ValueError(f"n_results must be ≥ 1, got {n_results}")
        self._require_db("query")
        if self.table is None:
            logger.info("Table '%s' is empty; semantic search returns nothing.", self._table_name)
            return StoreRecords()

        try:
            query_vector = self._retrying(self.embedder.embed_query, query_text)
        except Exception as exc:
            logger.error("Failed to embed query: %s", exc)
            raise

        rows: list[dict[str, Any]] = self.table.search(query_vector).limit(n_results).to_list()
        logger.debug("Search on '%s' returned %d rows.", self._table_name, len(rows))
        return self._to_records(rows)


    def count(self) -> int:
        """Return the number of rows in the table (0 before the first upsert)."""
        self._require_db("count")
        if self.table is None:
            return 0
        return self.table.count_rows()


    def _to_records(self, rows: list[dict[str, Any]]) -> StoreRecords:
        records = StoreRecords()
        for row in rows:
            records.ids.append(row[_ID_COLUMN])
            records.metadatas.append({name: row.get(name) or "" for name in self._fields})
            records.documents.append(row.get(_DOCUMENT_COLUMN) or "")
            if "_distance" in row:
                records.distances.append(float(row["_distance"]))
        return records

    # ══════════════════════════════════════════════════════════════════
    #  ADMINISTRATION
    # ══════════════════════════════════════════════════════════════════

    def drop(self) -> None:
        """Drop the table (administrative re-ingestion only)."""
        db = self._require_db("drop")
        if self._table_name not in _table_names(db):
            logger.warning("Table '%s' does not exist — nothing to drop.", self._table_name)
            self.table = None
            return
        try:
            db.drop_table(self._table_name)
        except OSError as exc:
            logger.error("Filesystem error dropping table '%s': %s", self._table_name, exc)
            raise StoreUnavailableError(f"Cannot drop '{self._table_name}': {exc}", operation="drop") from exc
        self.table = None
        logger.info("Dropped table '%s'.", self._table_name)


    def __repr__(self) -> str:
        return f"LanceCorpusStore(db='{self._db_path}', table='{self._table_name}', initialised={self.db is not None})"

"""
Ezvizinho - Retrieval
======================
Builds the evidence set handed to the answer synthesizer.

``RetrievalEngine`` (error codes) decides per query:

    query ─► looks like a code? ──no──────────────────────┐
                 │ yes                                     ▼
                 ▼                                  semantic search
         lookup by primary id ──hit──► [entity]     (top_k, store order)
                 │ miss
                 ▼
         lookup by ``code`` field ──hit──► [entity]
                 │ miss
                 └──────────────────────────────────────► semantic search

``DocumentationRetriever`` always runs semantic search.

No state is kept between queries and nothing is cached: every call is a
live round trip to the store, and store errors propagate unchanged.
"""

from __future__ import annotations

import re

from ezvizinho.config.settings import settings
from ezvizinho.src.database.models import DocumentationChunk, ErrorCodeEntity
from ezvizinho.src.database.vector_store import CorpusStore
from ezvizinho.src.utils.logger import get_logger

logger = get_logger(__name__)

# Historical pattern, evaluated with ``re.search``: the alternation binds
# ``^`` to the decimal branch only and ``$`` to the hex branch only, so
# "120002", "-100" and "0x1F" match but so do "12abc" and "abc0x1F".
CODE_PATTERN_LENIENT = re.compile(r"^-?\d+|0x[0-9a-fA-F]+$")
# Whole-string match of a decimal (optionally negative) or hex code.
CODE_PATTERN_STRICT = re.compile(r"^(?:-?\d+|0x[0-9a-fA-F]+)$")


def looks_like_code(query_text: str, strict: bool | None = None) -> bool:
    """Return True when *query_text* has the shape of an error code."""
    use_strict = settings.STRICT_CODE_MATCH if strict is None else strict
    pattern = CODE_PATTERN_STRICT if use_strict else CODE_PATTERN_LENIENT
    return pattern.search(query_text.strip()) is not None


class RetrievalEngine:
    """
    Hybrid exact / semantic retrieval over the error-code corpus.

    Parameters
    ----------
    store
        The error-code ``CorpusStore`` (injected).
    strict_code_match
        Use the anchored code pattern.  Defaults to ``settings.STRICT_CODE_MATCH``.
    """

    __slots__ = ("_store", "_strict")

    def __init__(self, store: CorpusStore, strict_code_match: bool | None = None) -> None:
        self._store = store
        self._strict = settings.STRICT_CODE_MATCH if strict_code_match is None else strict_code_match


    def retrieve(self, query_text: str, top_k: int | None = None) -> list[ErrorCodeEntity]:
        """
        Return the evidence set for *query_text*.

        A code-shaped query that hits an exact lookup yields exactly one
        entity and skips vector search.  Anything else yields up to
        *top_k* entities in the store's similarity order.  An empty list
        means nothing relevant was found.
        """
        top_k = top_k or settings.DEFAULT_TOP_K

        if looks_like_code(query_text, strict=self._strict):
            code = query_text.strip()
            logger.info("[RETRIEVE] Query '%s' looks like a code, trying exact lookup.", code)

            match = self.get_by_id(code) or self.get_by_code(code)
            if match is not None:
                logger.info("[RETRIEVE] Exact match for code '%s' → id '%s'.", code, match.id)
                return [match]

            logger.info("[RETRIEVE] No exact match for code '%s', falling back to vector search.", code)

        return self.semantic_search(query_text, top_k)


    def get_by_id(self, entity_id: str) -> ErrorCodeEntity | None:
        """Exact lookup by primary key (``<moduleCode>_<detailCode>`` or bare code)."""
        records = self._store.get(ids=[entity_id])
        if not records.ids:
            return None
        return ErrorCodeEntity.from_metadata(records.ids[0], records.metadatas[0])


    def get_by_code(self, code: str) -> ErrorCodeEntity | None:
        """
        Lookup by the secondary ``code`` field.

        The field is not unique (one detail code can live under several
        modules); the first row in store order is returned.
        """
        records = self._store.get(where={"code": code}, limit=1)
        if not records.ids:
            return None
        return ErrorCodeEntity.from_metadata(records.ids[0], records.metadatas[0])


    def semantic_search(self, query_text: str, top_k: int) -> list[ErrorCodeEntity]:
        records = self._store.query(query_text, n_results=top_k)
        results = [ErrorCodeEntity.from_metadata(i, m) for i, m in zip(records.ids, records.metadatas)]
        logger.info("[RETRIEVE] Semantic search returned %d/%d result(s).", len(results), top_k)
        return results


    def list_errors(self, limit: int = 100, offset: int = 0) -> tuple[list[ErrorCodeEntity], int]:
        """
        Page through the corpus.

        *limit* is clamped to ``[1, settings.MAX_LIST_LIMIT]``; a negative
        *offset* is treated as 0.  Returns ``(errors, total)``.
        """
        limit = min(max(limit, 1), settings.MAX_LIST_LIMIT)
        offset = max(offset, 0)

        total = self._store.count()
        records = self._store.get(limit=limit, offset=offset)
        errors = [ErrorCodeEntity.from_metadata(i, m) for i, m in zip(records.ids, records.metadatas)]
        return errors, total


class DocumentationRetriever:
    """Semantic-only retrieval over the documentation corpus."""

    __slots__ = ("_store",)

    def __init__(self, store: CorpusStore) -> None:
        self._store = store


    def retrieve(self, query_text: str, top_k: int | None = None) -> list[DocumentationChunk]:
        top_k = top_k or settings.DEFAULT_TOP_K
        records = self._store.query(query_text, n_results=top_k)

        documents = records.documents or [""] * len(records.ids)
        chunks = [DocumentationChunk.from_store(i, text, meta) for i, text, meta in zip(records.ids, documents, records.metadatas)]
        logger.info("[RETRIEVE] Documentation search returned %d/%d chunk(s).", len(chunks), top_k)
        return chunks

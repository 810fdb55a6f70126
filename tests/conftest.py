"""
Shared pytest fixtures.

The settings singleton requires ``GOOGLE_API_KEY`` at import time, so a
dummy key is exported before any ``ezvizinho`` module is imported.
"""

import hashlib
import os

os.environ.setdefault("GOOGLE_API_KEY", "test-key-0000")

import pytest

from ezvizinho.src.database.vector_store import StoreRecords


class FakeEmbedder:
    """Deterministic embedder: the same text always yields the same vector."""

    dimension = 8

    def __init__(self):
        self.document_calls = []
        self.query_calls = []

    def _vector(self, text):
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [b / 255.0 for b in digest[: self.dimension]]

    def embed_documents(self, texts):
        self.document_calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def embed_query(self, text):
        self.query_calls.append(text)
        return self._vector(text)


class FakeCorpusStore:
    """
    In-memory ``CorpusStore``.

    ``query`` returns rows in insertion order; ``fail_on_upsert`` makes the
    N-th upsert call (1-based) raise, to exercise partial ingestion.
    """

    def __init__(self, fail_on_upsert=None):
        self.rows = {}
        self.upsert_calls = []
        self.get_calls = []
        self.query_calls = []
        self.fail_on_upsert = fail_on_upsert

    def initialize(self):
        pass

    def shutdown(self):
        pass

    def upsert(self, ids, metadatas, documents):
        self.upsert_calls.append(list(ids))
        if self.fail_on_upsert == len(self.upsert_calls):
            raise RuntimeError("store write failed")
        for entity_id, meta, doc in zip(ids, metadatas, documents):
            self.rows[entity_id] = (dict(meta), doc)

    def get(self, ids=None, where=None, limit=None, offset=0):
        self.get_calls.append({"ids": ids, "where": where, "limit": limit, "offset": offset})
        if ids == []:
            return StoreRecords()
        matches = [
            (entity_id, meta, doc)
            for entity_id, (meta, doc) in self.rows.items()
            if (ids is None or entity_id in ids) and all(meta.get(k) == v for k, v in (where or {}).items())
        ]
        matches = matches[offset:]
        if limit is not None:
            matches = matches[:limit]
        return StoreRecords(ids=[m[0] for m in matches], metadatas=[m[1] for m in matches], documents=[m[2] for m in matches])

    def query(self, query_text, n_results):
        self.query_calls.append((query_text, n_results))
        matches = list(self.rows.items())[:n_results]
        return StoreRecords(
            ids=[entity_id for entity_id, _ in matches],
            metadatas=[meta for _, (meta, _) in matches],
            documents=[doc for _, (_, doc) in matches],
            distances=[float(i) for i in range(len(matches))],
        )

    def count(self):
        return len(self.rows)


def make_raw_code(detail_code, module_code="", description="Device offline", solution="Check the device", update_time=1700000000):
    return {
        "moduleCode": module_code,
        "detailCode": detail_code,
        "description": description,
        "solution": solution,
        "updateTime": update_time,
    }


@pytest.fixture
def fake_store():
    return FakeCorpusStore()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()

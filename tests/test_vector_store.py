"""
Tests for LanceCorpusStore against a real temporary LanceDB directory.
"""

from unittest.mock import Mock

import pytest

from ezvizinho.src.core.exceptions import StoreUnavailableError
from ezvizinho.src.database.models import ERROR_CODE_FIELDS
from ezvizinho.src.database.vector_store import LanceCorpusStore


def _meta(code, module="", category="device"):
    return {"code": code, "moduleCode": module, "description": f"desc {code}", "solution": f"fix {code}", "category": category}


@pytest.fixture
def store(tmp_path, fake_embedder):
    s = LanceCorpusStore(fake_embedder, table_name="test_codes", metadata_fields=ERROR_CODE_FIELDS, db_path=tmp_path / "lancedb", backoff_seconds=0)
    s.initialize()
    yield s
    s.shutdown()


class TestLifecycle:
    def test_uninitialised_store_raises(self, tmp_path, fake_embedder):
        s = LanceCorpusStore(fake_embedder, table_name="t", metadata_fields=ERROR_CODE_FIELDS, db_path=tmp_path)

        with pytest.raises(StoreUnavailableError):
            s.count()
        with pytest.raises(StoreUnavailableError):
            s.upsert(["1"], [_meta("1")], ["doc"])

    def test_empty_before_first_upsert(self, store):
        assert store.count() == 0
        assert len(store.get(ids=["1"])) == 0
        assert len(store.query("anything", n_results=3)) == 0

    def test_reopen_existing_table(self, tmp_path, fake_embedder, store):
        store.upsert(["1"], [_meta("1")], ["Error 1"])

        other = LanceCorpusStore(fake_embedder, table_name="test_codes", metadata_fields=ERROR_CODE_FIELDS, db_path=tmp_path / "lancedb")
        other.initialize()
        assert other.count() == 1


class TestUpsert:
    def test_upsert_is_idempotent(self, store):
        store.upsert(["A_1", "B_1"], [_meta("1", "A"), _meta("1", "B")], ["Error 1 a", "Error 1 b"])
        store.upsert(["A_1", "B_1"], [_meta("1", "A"), _meta("1", "B")], ["Error 1 a", "Error 1 b"])
        assert store.count() == 2

    def test_upsert_replaces_record(self, store):
        store.upsert(["1"], [_meta("1", category="device")], ["old"])
        store.upsert(["1"], [_meta("1", category="network")], ["new"])

        records = store.get(ids=["1"])
        assert records.documents == ["new"]
        assert records.metadatas[0]["category"] == "network"

    def test_null_metadata_rejected(self, store):
        meta = _meta("1")
        meta["solution"] = None
        with pytest.raises(ValueError):
            store.upsert(["1"], [meta], ["doc"])

    def test_unknown_metadata_rejected(self, store):
        meta = dict(_meta("1"), colour="red")
        with pytest.raises(ValueError):
            store.upsert(["1"], [meta], ["doc"])

    def test_length_mismatch(self, store):
        with pytest.raises(ValueError):
            store.upsert(["1", "2"], [_meta("1")], ["doc"])


class TestRead:
    @pytest.fixture
    def filled(self, store):
        store.upsert(
            ["10_120002", "A_5", "B_5", "O'Brien"],
            [_meta("120002", "10"), _meta("5", "A"), _meta("5", "B"), _meta("q")],
            ["Error 120002: offline", "Error 5: a", "Error 5: b", "quote"],
        )
        return store

    def test_get_by_ids(self, filled):
        records = filled.get(ids=["10_120002", "missing"])
        assert records.ids == ["10_120002"]
        assert records.metadatas[0]["moduleCode"] == "10"

    def test_get_by_where_with_limit(self, filled):
        records = filled.get(where={"code": "5"}, limit=1)
        assert len(records) == 1
        assert records.metadatas[0]["code"] == "5"

    def test_quotes_are_escaped(self, filled):
        assert filled.get(ids=["O'Brien"]).ids == ["O'Brien"]

    def test_unknown_filter_field(self, filled):
        with pytest.raises(ValueError):
            filled.get(where={"colour": "red"})

    def test_query_nearest_first(self, filled):
        records = filled.query("Error 5: b", n_results=2)
        assert records.ids[0] == "B_5"
        assert len(records) == 2
        assert records.distances[0] == pytest.approx(0.0, abs=1e-6)

    def test_query_rejects_zero(self, filled):
        with pytest.raises(ValueError):
            filled.query("x", n_results=0)

    def test_drop(self, filled):
        filled.drop()
        assert filled.count() == 0


class TestRateLimitRetry:
    def test_retries_429_then_succeeds(self, tmp_path):
        embedder = Mock()
        embedder.embed_documents.side_effect = [Exception("429 RESOURCE_EXHAUSTED"), [[0.1, 0.2]]]
        s = LanceCorpusStore(embedder, table_name="t", metadata_fields=ERROR_CODE_FIELDS, db_path=tmp_path, backoff_seconds=0)
        s.initialize()

        s.upsert(["1"], [_meta("1")], ["doc"])

        assert embedder.embed_documents.call_count == 2
        assert s.count() == 1

    def test_other_errors_not_retried(self, tmp_path):
        embedder = Mock()
        embedder.embed_documents.side_effect = Exception("invalid argument")
        s = LanceCorpusStore(embedder, table_name="t", metadata_fields=ERROR_CODE_FIELDS, db_path=tmp_path, backoff_seconds=0)
        s.initialize()

        with pytest.raises(Exception, match="invalid argument"):
            s.upsert(["1"], [_meta("1")], ["doc"])
        assert embedder.embed_documents.call_count == 1

    def test_gives_up_after_max_attempts(self, tmp_path):
        embedder = Mock()
        embedder.embed_documents.side_effect = Exception("429 rate limit")
        s = LanceCorpusStore(embedder, table_name="t", metadata_fields=ERROR_CODE_FIELDS, db_path=tmp_path, max_attempts=3, backoff_seconds=0)
        s.initialize()

        with pytest.raises(Exception, match="429"):
            s.upsert(["1"], [_meta("1")], ["doc"])
        assert embedder.embed_documents.call_count == 3

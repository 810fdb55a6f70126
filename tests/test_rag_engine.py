"""
Tests for the synthesizers and the RAGManager facade.

The chat model is always a Mock; no network call is made.
"""

from unittest.mock import Mock

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from conftest import FakeCorpusStore, make_raw_code
from ezvizinho.config.prompt_templates import ERROR_CODE_SYSTEM_PROMPT, NO_DOCUMENTATION_CONTEXT, NO_ERROR_CODES_CONTEXT
from ezvizinho.src.core.exceptions import StoreUnavailableError, SynthesisError
from ezvizinho.src.core.rag_engine import DocumentationSynthesizer, ErrorCodeSynthesizer, RAGManager, format_documentation_answer
from ezvizinho.src.database.models import DocumentationChunk, DocumentationQueryResponse, ErrorCodeEntity


@pytest.fixture
def mock_llm():
    llm = Mock()
    llm.invoke.return_value = AIMessage(content="Check the network cable.")
    return llm


@pytest.fixture
def entity():
    return ErrorCodeEntity(id="10_120002", code="120002", module_code="10", description="Device offline", solution="Check the network", category="network")


class TestErrorCodeSynthesizer:
    def test_prompt_contains_evidence(self, mock_llm, entity):
        answer = ErrorCodeSynthesizer(mock_llm).generate("120002", [entity])

        assert answer == "Check the network cable."
        [messages] = mock_llm.invoke.call_args.args
        assert isinstance(messages[0], SystemMessage)
        assert messages[0].content == ERROR_CODE_SYSTEM_PROMPT
        assert isinstance(messages[1], HumanMessage)
        assert "[1] Code: 120002" in messages[1].content
        assert "Category: network" in messages[1].content
        assert messages[1].content.endswith("User query: 120002")

    def test_empty_evidence_still_calls_model(self, mock_llm):
        ErrorCodeSynthesizer(mock_llm).generate("what is this?", [])

        [messages] = mock_llm.invoke.call_args.args
        assert NO_ERROR_CODES_CONTEXT in messages[1].content

    def test_list_content_is_flattened(self, mock_llm, entity):
        mock_llm.invoke.return_value = AIMessage(content=[{"type": "text", "text": "part one, "}, "part two"])
        assert ErrorCodeSynthesizer(mock_llm).generate("x", [entity]) == "part one, part two"

    def test_model_failure_raises_synthesis_error(self, mock_llm, entity):
        mock_llm.invoke.side_effect = RuntimeError("quota exceeded")

        with pytest.raises(SynthesisError, match="quota exceeded"):
            ErrorCodeSynthesizer(mock_llm).generate("x", [entity])


class TestDocumentationSynthesizer:
    def test_context_blocks(self, mock_llm):
        chunk = DocumentationChunk(text="Call init()", metadata={"source": "iOS SDK", "title": "Init", "section_path": "iOS SDK > Init"})
        DocumentationSynthesizer(mock_llm).generate("how to init?", [chunk])

        [messages] = mock_llm.invoke.call_args.args
        assert "[Document 1]\nSource: iOS SDK\nTitle: Init\nPath: iOS SDK > Init\n\nCall init()" in messages[1].content

    def test_empty_evidence(self, mock_llm):
        DocumentationSynthesizer(mock_llm).generate("anything", [])
        [messages] = mock_llm.invoke.call_args.args
        assert NO_DOCUMENTATION_CONTEXT in messages[1].content


class TestFormatDocumentationAnswer:
    def test_layout(self):
        chunk = DocumentationChunk(text="t", metadata={"title": "Init", "section_path": "SDK > Init", "url": "ezviz://sdk/init"})
        text = format_documentation_answer(DocumentationQueryResponse(answer="Do this.", sources=[chunk]))

        assert text == "Answer:\nDo this.\n\n---\n\nSources referenced:\n[1] Title: Init\nPath: SDK > Init\nURL: ezviz://sdk/init"


class TestRAGManager:
    """Tests for the facade"""

    @pytest.fixture
    def error_store(self):
        store = FakeCorpusStore()
        store.upsert(["10_120002"], [{"code": "120002", "moduleCode": "10", "description": "Device offline", "solution": "Check the network", "category": "network"}], ["Error 120002: Device offline Check the network"])
        return store

    @pytest.fixture
    def rag(self, error_store, fake_store, mock_llm):
        return RAGManager(error_store, fake_store, llm=mock_llm)

    def test_query_exact_code(self, rag, error_store, mock_llm):
        response = rag.query("120002")

        assert response.answer == "Check the network cable."
        assert [s.id for s in response.sources] == ["10_120002"]
        assert error_store.query_calls == []
        mock_llm.invoke.assert_called_once()

    def test_query_without_evidence_still_synthesizes(self, fake_store, mock_llm):
        rag = RAGManager(fake_store, FakeCorpusStore(), llm=mock_llm)
        response = rag.query("camera offline")

        assert response.sources == []
        mock_llm.invoke.assert_called_once()

    def test_synthesis_error_carries_sources(self, rag, mock_llm):
        mock_llm.invoke.side_effect = RuntimeError("boom")

        with pytest.raises(SynthesisError) as exc_info:
            rag.query("120002")

        assert [s.id for s in exc_info.value.sources] == ["10_120002"]

    def test_custom_synthesizer(self, error_store, fake_store):
        synthesizer = Mock()
        synthesizer.generate.return_value = "custom"

        response = RAGManager(error_store, fake_store, error_synthesizer=synthesizer).query("120002")

        assert response.answer == "custom"
        synthesizer.generate.assert_called_once()

    @pytest.mark.parametrize("query", ["", "   "])
    def test_blank_query_rejected(self, rag, query):
        with pytest.raises(ValueError, match="Query is required"):
            rag.query(query)

    @pytest.mark.parametrize("top_k", [0, 21])
    def test_top_k_out_of_range(self, rag, top_k):
        with pytest.raises(ValueError):
            rag.query("camera offline", top_k=top_k)

    def test_retrieve_without_answer(self, rag, mock_llm):
        assert [s.id for s in rag.retrieve("120002")] == ["10_120002"]
        mock_llm.invoke.assert_not_called()

    def test_query_documentation(self, rag, fake_store):
        rag.ingest_documentation({"chunks": [{"text": "Call init()", "metadata": {"title": "Init", "url": "ezviz://sdk/init"}}]})

        response = rag.query_documentation("how to init?", top_k=3)

        assert response.answer == "Check the network cable."
        assert [c.metadata.title for c in response.sources] == ["Init"]
        assert fake_store.query_calls == [("how to init?", 3)]

    def test_search_documentation_skips_model(self, rag, mock_llm):
        assert rag.search_documentation("anything") == []
        mock_llm.invoke.assert_not_called()

    def test_get_error_by_code(self, rag):
        assert rag.get_error_by_code(" 10_120002 ").code == "120002"
        assert rag.get_error_by_code("missing") is None

    def test_ingest_and_list(self, rag):
        result = rag.ingest_error_codes([make_raw_code("1"), make_raw_code("2")])
        errors, total = rag.list_errors(limit=10)

        assert result.count == 2
        assert total == 3
        assert len(errors) == 3

    def test_stats(self, rag):
        assert rag.stats() == {"errorCodes": 1, "documentation": 0}

    def test_health_ok(self, rag):
        health = rag.health()

        assert health["status"] == "healthy"
        assert health["store"] == {"connected": True, "documentCount": 1}
        assert "timestamp" in health

    def test_health_unhealthy(self, fake_store, mock_llm):
        broken = Mock()
        broken.count.side_effect = StoreUnavailableError("not initialised")

        health = RAGManager(broken, fake_store, llm=mock_llm).health()

        assert health["status"] == "unhealthy"
        assert health["error"] == "not initialised"

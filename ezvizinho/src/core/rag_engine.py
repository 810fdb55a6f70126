"""
Ezvizinho - RAG Engine
=======================
Wires retrieval, synthesis and ingestion into the operations the
outer surfaces (CLI, HTTP, MCP tools) call.

Architecture (OOP)
------------------
``ErrorCodeSynthesizer`` / ``DocumentationSynthesizer``
    Turn ``(query, evidence)`` into prose with a Gemini chat model via
    LangChain.  An empty evidence set still produces a call, with an
    explicit "nothing found" context.  Model failures surface as
    ``SynthesisError``; there is no retry here.

``RAGManager``
    Stateless facade.  Flow for ``query``:
        1. Validate the query text.
        2. Retrieve → hybrid exact / semantic evidence set.
        3. Synthesize → answer from evidence.
        4. Return answer + sources.
    Also exposes ingestion, exact lookup, listing and a health probe.

Every collaborator is injected, so tests substitute fakes for the
stores and the chat model.

Usage:
    from ezvizinho.src.core.rag_engine import RAGManager
    rag = RAGManager(error_store, doc_store)
    response = rag.query("120002")
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Protocol, Sequence, runtime_checkable

from langchain_core.messages import HumanMessage, SystemMessage

from ezvizinho.config.prompt_templates import DOC_CONTEXT_BLOCK, DOC_CONTEXT_SEPARATOR, DOC_PROMPT_TEMPLATE, DOC_SOURCE_ENTRY, DOC_SYSTEM_PROMPT, ERROR_CODE_CONTEXT_BLOCK, ERROR_CODE_PROMPT_TEMPLATE, ERROR_CODE_SYSTEM_PROMPT, NO_DOCUMENTATION_CONTEXT, NO_ERROR_CODES_CONTEXT
from ezvizinho.config.settings import settings
from ezvizinho.src.core.exceptions import SynthesisError
from ezvizinho.src.core.ingestor import DocumentationIngestionPipeline, IngestionPipeline
from ezvizinho.src.core.retriever import DocumentationRetriever, RetrievalEngine
from ezvizinho.src.database.models import DocumentationChunk, DocumentationQueryResponse, ErrorCodeEntity, IngestionResult, QueryResponse
from ezvizinho.src.database.vector_store import CorpusStore
from ezvizinho.src.utils.logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  COLLABORATOR PROTOCOLS
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class ChatModel(Protocol):
    """Anything with LangChain's ``invoke(messages)`` chat interface."""

    def invoke(self, input: Any, *args: Any, **kwargs: Any) -> Any: ...


@runtime_checkable
class AnswerSynthesizer(Protocol):
    def generate(self, query: str, evidence: Sequence[Any]) -> str: ...


def init_llm() -> ChatModel:
    """Initialise the Gemini chat model via LangChain."""
    from langchain_google_genai import ChatGoogleGenerativeAI

    llm = ChatGoogleGenerativeAI(model=settings.LLM_MODEL, temperature=settings.LLM_TEMPERATURE, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    logger.info("LLM initialised: %s (temperature=%.1f)", settings.LLM_MODEL, settings.LLM_TEMPERATURE)
    return llm


def _content_text(response: Any) -> str:
    """Flatten a chat response; Gemini may return a list of content parts."""
    content = response.content if hasattr(response, "content") else response
    if isinstance(content, list):
        parts = [part.get("text", "") if isinstance(part, dict) else str(part) for part in content]
        return "".join(parts)
    return str(content)


# ══════════════════════════════════════════════════════════════════════
#  SYNTHESIZERS
# ══════════════════════════════════════════════════════════════════════


class _GeminiSynthesizer:
    """Common LLM call path; subclasses supply prompts and context formatting."""

    system_prompt: str = ""
    prompt_template: str = ""

    __slots__ = ("_llm",)

    def __init__(self, llm: ChatModel | None = None) -> None:
        self._llm = llm


    @property
    def llm(self) -> ChatModel:
        if self._llm is None:
            self._llm = init_llm()
        return self._llm


    def format_context(self, evidence: Sequence[Any]) -> str:
        raise NotImplementedError


    def build_prompt(self, query: str, evidence: Sequence[Any]) -> str:
        return self.prompt_template.format(context=self.format_context(evidence), question=query)


    def generate(self, query: str, evidence: Sequence[Any]) -> str:
        """
        Generate an answer grounded on *evidence*.

        Raises
        ------
        SynthesisError
            The model call failed.
        """
        prompt = self.build_prompt(query, evidence)
        messages = [SystemMessage(content=self.system_prompt), HumanMessage(content=prompt)]

        t_llm = time.perf_counter()
        try:
            response = self.llm.invoke(messages)
        except Exception as exc:
            logger.exception("[LLM] Error generating response.")
            raise SynthesisError(f"Answer generation failed: {exc}") from exc

        answer = _content_text(response)
        logger.info("[LLM] Response in %.1fms (%d chars, %d evidence item(s)).", (time.perf_counter() - t_llm) * 1000, len(answer), len(evidence))
        return answer


class ErrorCodeSynthesizer(_GeminiSynthesizer):
    """Troubleshooting answers from error-code evidence."""

    system_prompt = ERROR_CODE_SYSTEM_PROMPT
    prompt_template = ERROR_CODE_PROMPT_TEMPLATE

    __slots__ = ()

    def format_context(self, evidence: Sequence[ErrorCodeEntity]) -> str:
        if not evidence:
            return NO_ERROR_CODES_CONTEXT
        return "\n\n".join(ERROR_CODE_CONTEXT_BLOCK.format(index=i, code=ec.code, description=ec.description, solution=ec.solution, category=ec.category) for i, ec in enumerate(evidence, 1))


class DocumentationSynthesizer(_GeminiSynthesizer):
    """Developer answers from documentation evidence."""

    system_prompt = DOC_SYSTEM_PROMPT
    prompt_template = DOC_PROMPT_TEMPLATE

    __slots__ = ()

    def format_context(self, evidence: Sequence[DocumentationChunk]) -> str:
        if not evidence:
            return NO_DOCUMENTATION_CONTEXT
        return DOC_CONTEXT_SEPARATOR.join(DOC_CONTEXT_BLOCK.format(index=i, source=c.metadata.source, title=c.metadata.title, section_path=c.metadata.section_path, text=c.text) for i, c in enumerate(evidence, 1))


def format_documentation_answer(response: DocumentationQueryResponse) -> str:
    """Answer followed by the numbered list of referenced sections."""
    sources = "\n\n".join(DOC_SOURCE_ENTRY.format(index=i, title=c.metadata.title, section_path=c.metadata.section_path, url=c.metadata.url) for i, c in enumerate(response.sources, 1))
    return f"Answer:\n{response.answer}\n\n---\n\nSources referenced:\n{sources}"


# ══════════════════════════════════════════════════════════════════════
#  RAG MANAGER
# ══════════════════════════════════════════════════════════════════════


class RAGManager:
    """
    Orchestrates retrieval → synthesis, and exposes ingestion.

    Parameters
    ----------
    error_store
        Initialised ``CorpusStore`` holding error codes.
    doc_store
        Initialised ``CorpusStore`` holding documentation chunks.
    error_synthesizer / doc_synthesizer
        Optional custom synthesizers (default: Gemini-backed).
    llm
        Chat model shared by the default synthesizers.
    """

    __slots__ = ("_error_store", "_doc_store", "_retriever", "_doc_retriever", "_error_synth", "_doc_synth", "_ingestor", "_doc_ingestor")

    def __init__(self, error_store: CorpusStore, doc_store: CorpusStore, error_synthesizer: AnswerSynthesizer | None = None, doc_synthesizer: AnswerSynthesizer | None = None, llm: ChatModel | None = None) -> None:
        self._error_store = error_store
        self._doc_store = doc_store
        self._retriever = RetrievalEngine(error_store)
        self._doc_retriever = DocumentationRetriever(doc_store)
        self._error_synth = error_synthesizer or ErrorCodeSynthesizer(llm)
        self._doc_synth = doc_synthesizer or DocumentationSynthesizer(llm)
        self._ingestor = IngestionPipeline(error_store)
        self._doc_ingestor = DocumentationIngestionPipeline(doc_store)

    # ── Query ──────────────────────────────────────────────────────────

    def query(self, query_text: str, top_k: int | None = None) -> QueryResponse:
        """
        Answer a natural-language question or an error code.

        Raises
        ------
        ValueError
            Blank query or ``top_k`` outside ``[1, settings.MAX_TOP_K]``.
        StoreUnavailableError
            The corpus store is unreachable.
        SynthesisError
            The model failed; ``exc.sources`` holds the evidence.
        """
        top_k = self._validate(query_text, top_k)

        t_start = time.perf_counter()
        sources = self._retriever.retrieve(query_text, top_k)
        answer = self._synthesize(self._error_synth, query_text, sources)

        logger.info("[RAG] Query answered in %.1fms with %d source(s).", (time.perf_counter() - t_start) * 1000, len(sources))
        return QueryResponse(answer=answer, sources=sources)


    def retrieve(self, query_text: str, top_k: int | None = None) -> list[ErrorCodeEntity]:
        """Error-code evidence only, without an answer."""
        top_k = self._validate(query_text, top_k)
        return self._retriever.retrieve(query_text, top_k)


    def query_documentation(self, query_text: str, top_k: int | None = None) -> DocumentationQueryResponse:
        """Answer a developer question from the documentation corpus."""
        top_k = self._validate(query_text, top_k)

        sources = self._doc_retriever.retrieve(query_text, top_k)
        answer = self._synthesize(self._doc_synth, query_text, sources)
        return DocumentationQueryResponse(answer=answer, sources=sources)


    def search_documentation(self, query_text: str, top_k: int | None = None) -> list[DocumentationChunk]:
        """Documentation chunks only, without an answer."""
        top_k = self._validate(query_text, top_k)
        return self._doc_retriever.retrieve(query_text, top_k)


    @staticmethod
    def _synthesize(synthesizer: AnswerSynthesizer, query_text: str, sources: list[Any]) -> str:
        try:
            return synthesizer.generate(query_text, sources)
        except SynthesisError as exc:
            exc.details["sources"] = sources
            raise


    @staticmethod
    def _validate(query_text: str, top_k: int | None) -> int:
        if not query_text or not query_text.strip():
            raise ValueError("Query is required")
        top_k = settings.DEFAULT_TOP_K if top_k is None else top_k
        if not 1 <= top_k <= settings.MAX_TOP_K:
            raise ValueError(f"top_k must be 1–{settings.MAX_TOP_K}, got {top_k}")
        return top_k

    # ── Lookup ─────────────────────────────────────────────────────────

    def get_error_by_code(self, code: str) -> ErrorCodeEntity | None:
        """Exact lookup by primary id; ``None`` when not found."""
        return self._retriever.get_by_id(code.strip())


    def list_errors(self, limit: int = 100, offset: int = 0) -> tuple[list[ErrorCodeEntity], int]:
        return self._retriever.list_errors(limit, offset)

    # ── Ingestion ──────────────────────────────────────────────────────

    def ingest_error_codes(self, raw_data: Any) -> IngestionResult:
        return self._ingestor.ingest(raw_data)


    def ingest_documentation(self, payload: Any) -> IngestionResult:
        return self._doc_ingestor.ingest(payload)

    # ── Health ─────────────────────────────────────────────────────────

    def stats(self) -> dict[str, int]:
        return {"errorCodes": self._error_store.count(), "documentation": self._doc_store.count()}


    def health(self) -> dict[str, Any]:
        """Report store connectivity; never raises."""
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            count = self._error_store.count()
        except Exception as exc:
            logger.warning("[HEALTH] Store check failed: %s", exc)
            return {"status": "unhealthy", "timestamp": timestamp, "error": str(exc) or "Unknown error"}
        return {"status": "healthy", "timestamp": timestamp, "store": {"connected": True, "documentCount": count}}

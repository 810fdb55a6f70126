"""
ask.py — Query the error-code or documentation corpus from the terminal.

Runs the same retrieval path the assistant uses and prints the evidence
with its metadata, then (unless ``--no-answer``) the synthesized answer.
Handy to check that an ingestion produced searchable rows.

Run:
    python -m ezvizinho.scripts.ask "120002"
    python -m ezvizinho.scripts.ask "camera keeps going offline" --top-k 3
    python -m ezvizinho.scripts.ask "How do I start live preview on iOS?" --docs
    python -m ezvizinho.scripts.ask "10002" --no-answer
"""

from __future__ import annotations

import argparse
import sys


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ask", description="Ezvizinho — ask the EZVIZ SDK assistant.")
    parser.add_argument("query", help="Error code or natural-language question.")
    parser.add_argument("--docs", action="store_true", default=False, help="Search the documentation corpus instead of error codes.")
    parser.add_argument("--top-k", type=int, default=None, help="Number of semantic results (default: settings.DEFAULT_TOP_K).")
    parser.add_argument("--no-answer", action="store_true", default=False, help="Print retrieved sources only; skip the LLM call.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from langchain_google_genai import GoogleGenerativeAIEmbeddings

    from ezvizinho.config.settings import settings
    from ezvizinho.src.core.exceptions import EzvizinhoError, SynthesisError
    from ezvizinho.src.core.rag_engine import RAGManager, format_documentation_answer
    from ezvizinho.src.database.models import DOCUMENTATION_FIELDS, ERROR_CODE_FIELDS
    from ezvizinho.src.database.vector_store import LanceCorpusStore

    # -- Init --
    embedder = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    error_store = LanceCorpusStore(embedder, table_name=settings.ERROR_CODES_TABLE_NAME, metadata_fields=ERROR_CODE_FIELDS)
    doc_store = LanceCorpusStore(embedder, table_name=settings.DOCUMENTATION_TABLE_NAME, metadata_fields=DOCUMENTATION_FIELDS)

    try:
        error_store.initialize()
        doc_store.initialize()
        rag = RAGManager(error_store, doc_store)

        stats = rag.stats()
        print(f"Corpus: {stats['errorCodes']} error codes, {stats['documentation']} documentation chunks.\n")
        print(f"Query: {args.query}")
        print("=" * 60)

        # -- Query --
        if args.docs:
            if args.no_answer:
                _print_chunks(rag.search_documentation(args.query, args.top_k))
            else:
                print(format_documentation_answer(rag.query_documentation(args.query, args.top_k)))
        else:
            if args.no_answer:
                _print_errors(rag.retrieve(args.query, args.top_k))
            else:
                response = rag.query(args.query, args.top_k)
                _print_errors(response.sources)
                print("\n" + "=" * 60)
                print("ANSWER:\n")
                print(response.answer)

    except SynthesisError as exc:
        print(f"\n[ERROR] {exc}")
        if exc.sources:
            print("Sources retrieved before the failure:")
            if args.docs:
                _print_chunks(exc.sources)
            else:
                _print_errors(exc.sources)
        return 1
    except (EzvizinhoError, ValueError) as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    finally:
        error_store.shutdown()
        doc_store.shutdown()

    return 0


def _print_errors(errors: list) -> None:
    if not errors:
        print("\n(no matching error codes)")
    for i, ec in enumerate(errors, 1):
        print(f"\n--- Result {i} ---")
        print(f"  Id:          {ec.id}")
        print(f"  Code:        {ec.code}")
        print(f"  Module:      {ec.module_code or 'N/A'}")
        print(f"  Category:    {ec.category}")
        print(f"  Description: {ec.description}")
        print(f"  Solution:    {ec.solution}")


def _print_chunks(chunks: list) -> None:
    if not chunks:
        print("\n(no matching documentation)")
    for i, chunk in enumerate(chunks, 1):
        print(f"\n--- Result {i} ---")
        print(f"  Source: {chunk.metadata.source or 'N/A'}")
        print(f"  Path:   {chunk.metadata.section_path}")
        print(f"  URL:    {chunk.metadata.url}")
        print("  Text:")
        print(f"    {chunk.text[:500]}")


if __name__ == "__main__":
    sys.exit(main())

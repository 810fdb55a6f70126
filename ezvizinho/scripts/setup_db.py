"""
Ezvizinho - Database Setup & Ingestion Script
==============================================
CLI entry point that orchestrates:
    1. Validate settings (``GOOGLE_API_KEY`` is required — fail-fast).
    2. Initialise the embedder and both ``LanceCorpusStore`` tables
       (optionally dropping them first).
    3. Ingest an error-code JSON file and/or a directory of SDK markdown.
    4. Print a structured execution summary with timing breakdown.

Flags:
    --errors FILE  JSON array of ``{moduleCode, detailCode, description,
                   solution, updateTime}`` records.
    --docs DIR     Root of the crawled markdown docs (default: ``settings.DOCS_DIR``
                   when ``--with-docs`` is given).
    --drop         Drop both tables before ingesting.
    --drop-only    Drop both tables and exit.

Ingestion is idempotent: after a partial failure, re-run the same
command; committed rows are overwritten, not duplicated.

Usage:
    python -m ezvizinho.scripts.setup_db --errors data/error_codes.json
    python -m ezvizinho.scripts.setup_db --docs docs/sdk
    python -m ezvizinho.scripts.setup_db --drop --errors data/error_codes.json --with-docs
    python -m ezvizinho.scripts.setup_db --drop-only
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="Ezvizinho — Initialise the vector tables and ingest error codes / documentation.")
    parser.add_argument("--errors", type=Path, default=None, help="Path to the error-code JSON file.")
    parser.add_argument("--docs", type=Path, default=None, help="Root directory of the markdown documentation.")
    parser.add_argument("--with-docs", action="store_true", default=False, help="Ingest documentation from settings.DOCS_DIR.")
    parser.add_argument("--drop", action="store_true", default=False, help="Drop both tables before ingesting.")
    parser.add_argument("--drop-only", action="store_true", default=False, help="Drop both tables and exit (no ingestion).")
    return parser.parse_args(argv)


# ── Main Orchestration ─────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    # ── 0. Load settings + .env (timed) ────────────────────────────────
    t_settings = time.perf_counter()
    try:
        from ezvizinho.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1
    settings_ms = (time.perf_counter() - t_settings) * 1000

    from ezvizinho.src.utils.logger import get_logger
    logger = get_logger(__name__)

    docs_dir: Path | None = args.docs or (settings.DOCS_DIR if args.with_docs else None)
    if not (args.errors or docs_dir or args.drop_only):
        print("Nothing to do: pass --errors FILE, --docs DIR, --with-docs or --drop-only.")
        return 2

    _print_header(settings, args.errors, docs_dir)

    # ── 1. Initialise embedder (timed) ─────────────────────────────────
    t_embedder = time.perf_counter()
    logger.info("Initialising embedding model: %s", settings.EMBEDDING_MODEL)
    try:
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        embedder = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    except ImportError:
        logger.error("langchain-google-genai is not installed.")
        return 1
    embedder_ms = (time.perf_counter() - t_embedder) * 1000

    # ── 2. Initialise stores (timed) ───────────────────────────────────
    from ezvizinho.src.core.exceptions import RecordValidationError, StoreUnavailableError
    from ezvizinho.src.database.models import DOCUMENTATION_FIELDS, ERROR_CODE_FIELDS
    from ezvizinho.src.database.vector_store import LanceCorpusStore

    t_lancedb = time.perf_counter()
    error_store = LanceCorpusStore(embedder, table_name=settings.ERROR_CODES_TABLE_NAME, metadata_fields=ERROR_CODE_FIELDS)
    doc_store = LanceCorpusStore(embedder, table_name=settings.DOCUMENTATION_TABLE_NAME, metadata_fields=DOCUMENTATION_FIELDS)
    try:
        error_store.initialize()
        doc_store.initialize()
    except StoreUnavailableError as exc:
        logger.error("%s", exc)
        return 1
    lancedb_ms = (time.perf_counter() - t_lancedb) * 1000
    startup_ms = settings_ms + embedder_ms + lancedb_ms

    if args.drop or args.drop_only:
        logger.warning("Dropping tables '%s' and '%s' as requested.", settings.ERROR_CODES_TABLE_NAME, settings.DOCUMENTATION_TABLE_NAME)
        error_store.drop()
        doc_store.drop()
        if args.drop_only:
            _print_footer({}, time.perf_counter() - t_start, settings_ms, embedder_ms, lancedb_ms, startup_ms)
            return 0

    # ── 3. Run pipelines ───────────────────────────────────────────────
    from ezvizinho.src.core.ingestor import DocumentationIngestionPipeline, IngestionPipeline
    from ezvizinho.src.utils.text_utils import build_documentation_chunks, iter_markdown_files

    results: dict[str, str] = {}
    exit_code = 0

    try:
        if args.errors:
            raw = json.loads(Path(args.errors).read_text(encoding="utf-8"))
            result = IngestionPipeline(error_store).ingest(raw)
            results["Error codes"] = result.message
            exit_code = exit_code or (0 if result.success and result.count == result.total else 3)

        if docs_dir:
            files = iter_markdown_files(docs_dir)
            logger.info("Found %d markdown file(s) under %s.", len(files), docs_dir)
            chunks = [chunk for path in files for chunk in build_documentation_chunks(path, docs_dir)]
            result = DocumentationIngestionPipeline(doc_store).ingest({"chunks": chunks})
            results["Documentation"] = result.message
            exit_code = exit_code or (0 if result.success and result.count == result.total else 3)

    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Cannot read input: %s", exc)
        return 1
    except RecordValidationError as exc:
        logger.error("%s", exc)
        return 1
    finally:
        error_store.shutdown()
        doc_store.shutdown()

    # ── 4. Print execution summary ─────────────────────────────────────
    _print_footer(results, time.perf_counter() - t_start, settings_ms, embedder_ms, lancedb_ms, startup_ms)
    return exit_code


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object, errors_file: Path | None, docs_dir: Path | None) -> None:
    api_key_val = settings.GOOGLE_API_KEY.get_secret_value()  # type: ignore[attr-defined]
    masked = f"****{api_key_val[-4:]}" if len(api_key_val) > 4 else "****"

    print()
    print("=" * 60)
    print("  EZVIZINHO — Vector Database Setup & Ingestion")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                   # type: ignore[attr-defined]
    print(f"  Embedding    : {settings.EMBEDDING_MODEL}")       # type: ignore[attr-defined]
    print(f"  LanceDB path : {settings.LANCEDB_PATH}")          # type: ignore[attr-defined]
    print(f"  Error codes  : {errors_file or '-'}")
    print(f"  Docs dir     : {docs_dir or '-'}")
    print(f"  Batch sizes  : {settings.ERROR_CODE_BATCH_SIZE} codes / {settings.DOC_BATCH_SIZE} chunks")  # type: ignore[attr-defined]
    print(f"  API Key      : {masked}")
    print("=" * 60)
    print()


def _print_footer(results: dict[str, str], elapsed: float, settings_ms: float, embedder_ms: float, lancedb_ms: float, startup_ms: float) -> None:
    processing_s = elapsed - (startup_ms / 1000)

    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    if not results:
        print("  No ingestion performed.")
    for label, message in results.items():
        print(f"  {label:<13}: {message}")
    print("-" * 60)
    print("  TIMING BREAKDOWN")
    print("-" * 60)
    print(f"  Settings + .env load : {settings_ms:>8.1f}ms")
    print(f"  Embedder init        : {embedder_ms:>8.1f}ms")
    print(f"  LanceDB connection   : {lancedb_ms:>8.1f}ms")
    print(f"  Startup time (total) : {startup_ms:>8.1f}ms")
    print(f"  Processing time      : {processing_s:>8.2f}s")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    sys.exit(main())

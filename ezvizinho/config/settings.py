"""
Ezvizinho - Centralized Configuration
======================================
One ``pydantic-settings`` model holds every tunable of the engine; values
come from the process environment first, then from ``ezvizinho/.env``.

Secrets
-------
- ``GOOGLE_API_KEY`` is a ``SecretStr`` without a default: importing
  ``settings`` without it fails immediately with a ``ValidationError``,
  and the key never shows up in ``repr()`` or log lines.

Paths
-----
``LANCEDB_PATH`` and ``DOCS_DIR`` are absolute, anchored on the package
directory, so scripts behave the same from any working directory.

Batching
--------
``ERROR_CODE_BATCH_SIZE`` and ``DOC_BATCH_SIZE`` size the sequential
upsert batches of the ingestion pipelines.  Every batch costs one
``embed_documents`` call against the Gemini API, so documentation
chunks (long texts) use a much smaller batch than error codes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required** — the app will refuse
    to start until they are provided.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini).  **Required.**
        Access the raw value with ``settings.GOOGLE_API_KEY.get_secret_value()``.
    ENV : Literal["dev", "prod"]
        Environment mode controlling logging verbosity.
    LOG_LEVEL : str | None
        Explicit level that overrides the ``ENV`` default.
    EMBEDDING_MODEL : str
        Model identifier passed to ``GoogleGenerativeAIEmbeddings``.
    LLM_MODEL : str
        Model identifier for the response-generation LLM.
    ERROR_CODES_TABLE_NAME / DOCUMENTATION_TABLE_NAME : str
        LanceDB table names of the two corpora.
    ERROR_CODE_BATCH_SIZE / DOC_BATCH_SIZE : int
        Upsert batch sizes of the ingestion pipelines.
    DEFAULT_TOP_K / MAX_TOP_K : int
        Semantic search result count and its upper bound.
    EMBED_MAX_ATTEMPTS / EMBED_BACKOFF_SECONDS
        Retry budget for rate-limited (HTTP 429) embedding calls.
    STRICT_CODE_MATCH : bool
        Use the fully anchored error-code pattern instead of the
        historical lenient one (see ``retriever.py``).
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    DOCS_DIR: Path = BASE_DIR / "docs" / "sdk"
    LANCEDB_PATH: Path = BASE_DIR / "data" / "lancedb"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None

    # ── API Keys (REQUIRED, no default) ────────────────────────────────
    GOOGLE_API_KEY: SecretStr

    # ── Model Configuration ────────────────────────────────────────────
    EMBEDDING_MODEL: str = "models/gemini-embedding-001"
    LLM_MODEL: str = "gemini-2.0-flash"
    LLM_TEMPERATURE: float = 0.2

    # ── LanceDB ────────────────────────────────────────────────────────
    ERROR_CODES_TABLE_NAME: str = "ezviz_error_codes"
    DOCUMENTATION_TABLE_NAME: str = "ezviz_documentation"

    # ── Ingestion Parameters ───────────────────────────────────────────
    ERROR_CODE_BATCH_SIZE: int = 100
    DOC_BATCH_SIZE: int = 10

    # ── Embedding retry (rate limits) ──────────────────────────────────
    EMBED_MAX_ATTEMPTS: int = 3
    EMBED_BACKOFF_SECONDS: float = 2.0

    # ── Retrieval ──────────────────────────────────────────────────────
    DEFAULT_TOP_K: int = 5
    MAX_TOP_K: int = 20
    MAX_LIST_LIMIT: int = 500
    STRICT_CODE_MATCH: bool = False

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("ERROR_CODE_BATCH_SIZE", "DOC_BATCH_SIZE", "EMBED_MAX_ATTEMPTS")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be ≥ 1, got {v}")
        return v


    @model_validator(mode="after")
    def _top_k_range(self) -> Settings:
        if not 1 <= self.DEFAULT_TOP_K <= self.MAX_TOP_K:
            raise ValueError(f"DEFAULT_TOP_K must be 1–{self.MAX_TOP_K}, got {self.DEFAULT_TOP_K}")
        return self

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from ezvizinho.config.settings import settings
settings = Settings()

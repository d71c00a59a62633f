"""
RagChat - Centralized Configuration
====================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  It authenticates the answer-generation LLM.  If the key is missing at
  startup, Pydantic raises a ``ValidationError`` with a clear message.
- ``MONGO_URI`` is also ``SecretStr`` and required — connection strings
  contain credentials and must never leak into logs.
- ``OPENAI_API_KEY`` / ``COHERE_API_KEY`` are optional.  An embedding
  provider whose key is absent is simply skipped by the gateway.

Embedding providers
-------------------
``EMBEDDING_PROVIDER`` picks the primary backend, ``EMBEDDING_FALLBACK_PROVIDER``
an optional secondary one.  When neither produces a vector the gateway
falls back to a deterministic local embedding.

Concurrency
-----------
``MAX_WORKERS`` bounds how many chunk embeddings are in flight while the
knowledge base loads (default 4 — the calls are I/O-bound).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

EmbeddingProviderName = Literal["openai", "cohere", "mock"]


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required** — the app will refuse
    to start until they are provided.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for the Gemini completion model.  **Required.**
    MONGO_URI : SecretStr
        MongoDB connection string for conversation history.  **Required.**
    EMBEDDING_PROVIDER : {"openai", "cohere", "mock"}
        Primary embedding backend.
    EMBEDDING_FALLBACK_PROVIDER : {"openai", "cohere", "mock"} | None
        Secondary backend tried when the primary fails.
    REDIS_URL : str
        Address of the semantic-cache store.
    CACHE_SIMILARITY_THRESHOLD : float
        Minimum cosine similarity for a cache hit.
    CACHE_TTL_SECONDS : int
        Lifetime of a cached answer.
    RETRIEVAL_TOP_K : int
        Knowledge chunks injected into each prompt.
    HISTORY_WINDOW : int
        Prior turns rendered into each prompt.
    CHUNK_SIZE : int
        Maximum characters per knowledge chunk.
    KNOWLEDGE_FILE : Path
        Corpus loaded into the in-memory index at startup.
    LOG_LEVEL : {"DEBUG", "INFO", "WARNING", "ERROR"} | None
        Overrides the level implied by ``ENV``.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    KNOWLEDGE_FILE: Path = BASE_DIR / "knowledge.txt"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None

    # ── API Keys ───────────────────────────────────────────────────────
    GOOGLE_API_KEY: SecretStr
    OPENAI_API_KEY: SecretStr | None = None
    COHERE_API_KEY: SecretStr | None = None

    # ── MongoDB (REQUIRED, no default) ──────────────────────────────────
    MONGO_URI: SecretStr
    MONGO_DB_NAME: str = "rag_chat"
    MONGO_TIMEOUT_MS: int = 5000

    # ── Redis (semantic cache) ─────────────────────────────────────────
    REDIS_URL: str = "redis://127.0.0.1:6379/0"
    REDIS_TIMEOUT_SECONDS: float = 3.0
    CACHE_SIMILARITY_THRESHOLD: float = 0.85
    CACHE_TTL_SECONDS: int = 24 * 60 * 60

    # ── Embeddings ─────────────────────────────────────────────────────
    EMBEDDING_PROVIDER: EmbeddingProviderName = "openai"
    EMBEDDING_FALLBACK_PROVIDER: EmbeddingProviderName | None = None
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"
    COHERE_EMBEDDING_MODEL: str = "embed-multilingual-v3.0"
    EMBEDDING_TIMEOUT_SECONDS: float = 10.0

    # ── Generation ─────────────────────────────────────────────────────
    LLM_MODEL: str = "gemini-2.0-flash"
    LLM_TEMPERATURE: float = 0.2
    LLM_TIMEOUT_SECONDS: float = 20.0

    # ── Retrieval & Memory ─────────────────────────────────────────────
    RETRIEVAL_TOP_K: int = 3
    HISTORY_WINDOW: int = 8
    CHUNK_SIZE: int = 250

    # ── Concurrency ────────────────────────────────────────────────────
    MAX_WORKERS: int = 4

    # ── HTTP Server ────────────────────────────────────────────────────
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3000

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("CHUNK_SIZE")
    @classmethod
    def _chunk_size_positive(cls, v: int) -> int:
        if v < 50:
            raise ValueError(f"CHUNK_SIZE must be ≥ 50, got {v}")
        return v


    @field_validator("MAX_WORKERS")
    @classmethod
    def _workers_range(cls, v: int) -> int:
        if not 1 <= v <= 16:
            raise ValueError(f"MAX_WORKERS must be 1–16, got {v}")
        return v


    @field_validator("CACHE_SIMILARITY_THRESHOLD")
    @classmethod
    def _threshold_range(cls, v: float) -> float:
        if not 0.0 < v <= 1.01:
            raise ValueError(f"CACHE_SIMILARITY_THRESHOLD must be in (0, 1.01], got {v}")
        return v


    @field_validator("CACHE_TTL_SECONDS", "RETRIEVAL_TOP_K", "HISTORY_WINDOW", "MONGO_TIMEOUT_MS")
    @classmethod
    def _positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"must be > 0, got {v}")
        return v


    @field_validator("EMBEDDING_TIMEOUT_SECONDS", "LLM_TIMEOUT_SECONDS", "REDIS_TIMEOUT_SECONDS")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout must be > 0, got {v}")
        return v

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from ragchat.config.settings import settings
settings = Settings()

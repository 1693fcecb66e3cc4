from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_env: str = os.getenv("APP_ENV", "development")
    app_debug: bool = _env_bool("APP_DEBUG", True)

    storage_backend: str = os.getenv("STORAGE_BACKEND", "memory").strip().lower()
    database_url: str | None = os.getenv("DATABASE_URL")
    postgres_host: str = os.getenv("POSTGRES_HOST", "postgres")
    postgres_port: int = _env_int("POSTGRES_PORT", 5432)
    postgres_db: str = os.getenv("POSTGRES_DB", "misinfo_guard")
    postgres_user: str = os.getenv("POSTGRES_USER", "app")
    postgres_password: str = os.getenv("POSTGRES_PASSWORD", "secure-password")

    redis_url: str | None = os.getenv("REDIS_URL")

    rate_limit_requests: int = _env_int("RATE_LIMIT_REQUESTS", 120)
    rate_limit_window: int = _env_int("RATE_LIMIT_WINDOW", 60)

    ingest_max_chars: int = _env_int("INGEST_MAX_CHARS", 20000)
    ingest_timeout: float = _env_float("INGEST_TIMEOUT", 15.0)
    ingest_max_bytes: int = _env_int("INGEST_MAX_BYTES", 2_000_000)

    evidence_top_k: int = _env_int("EVIDENCE_TOP_K", 5)
    evidence_min_relevance: int = _env_int("EVIDENCE_MIN_RELEVANCE", 25)
    evidence_max_retries: int = _env_int("EVIDENCE_MAX_RETRIES", 2)
    evidence_retry_backoff: float = _env_float("EVIDENCE_RETRY_BACKOFF", 0.25)
    risk_max_concurrency: int = _env_int("RISK_MAX_CONCURRENCY", 4)

    max_claims: int = _env_int("MAX_CLAIMS", 12)

    llm_provider: str = os.getenv("LLM_PROVIDER", "").strip().lower()
    llm_model: str | None = os.getenv("LLM_MODEL")
    llm_temperature: float = _env_float("LLM_TEMPERATURE", 0.0)
    llm_max_tokens: int = _env_int("LLM_MAX_TOKENS", 2048)
    llm_max_retries: int = _env_int("LLM_MAX_RETRIES", 2)
    llm_retry_backoff: float = _env_float("LLM_RETRY_BACKOFF", 0.5)
    llm_timeout: float = _env_float("LLM_TIMEOUT", 30.0)
    llm_read_timeout: float = _env_float("LLM_READ_TIMEOUT", 120.0)
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL") or "https://api.openai.com/v1"

    @property
    def database_dsn(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            "postgresql://{user}:{password}@{host}:{port}/{db}".format(
                user=self.postgres_user,
                password=self.postgres_password,
                host=self.postgres_host,
                port=self.postgres_port,
                db=self.postgres_db,
            )
        )

"""Application configuration and .env loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized runtime configuration."""

    default_model: str = Field(default="openai:gpt-4o", validation_alias="DEFAULT_MODEL")
    default_model_provider: str | None = Field(
        default=None, validation_alias="DEFAULT_MODEL_PROVIDER"
    )
    default_temperature: float = Field(default=0.0, validation_alias="DEFAULT_TEMPERATURE")

    reasoning_timeout: float | None = Field(
        default=120.0, validation_alias="REASONING_TIMEOUT"
    )
    reasoning_max_tokens: int | None = Field(
        default=None, validation_alias="REASONING_MAX_TOKENS"
    )
    reasoning_max_retries: int = Field(default=2, validation_alias="REASONING_MAX_RETRIES")

    embedding_model: str = Field(
        default="openai:text-embedding-3-small", validation_alias="EMBEDDING_MODEL"
    )
    embedding_timeout: float | None = Field(
        default=30.0, validation_alias="EMBEDDING_TIMEOUT"
    )

    agent_max_iterations: int = Field(default=5, validation_alias="AGENT_MAX_ITERATIONS")
    agent_tool_concurrency: int = Field(
        default=4, validation_alias="AGENT_TOOL_CONCURRENCY"
    )

    rag_default_top_k: int = Field(default=5, validation_alias="RAG_DEFAULT_TOP_K")
    rag_max_top_k: int = Field(default=50, validation_alias="RAG_MAX_TOP_K")
    retrieval_retry_backoff_ms: int = Field(
        default=250, validation_alias="RETRIEVAL_RETRY_BACKOFF_MS"
    )
    read_document_max_lines: int = Field(
        default=400, validation_alias="READ_DOCUMENT_MAX_LINES"
    )

    agent_log_db: str = Field(
        default="data/agent_logs.sqlite", validation_alias="AGENT_LOG_DB"
    )

    langsmith_tracing: bool = Field(default=False, validation_alias="LANGSMITH_TRACING")
    langsmith_project: str = Field(
        default="docedit-agent", validation_alias="LANGSMITH_PROJECT"
    )
    langsmith_endpoint: str | None = Field(
        default=None, validation_alias="LANGSMITH_ENDPOINT"
    )
    langsmith_api_key: str | None = Field(default=None, validation_alias="LANGSMITH_API_KEY")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once from .env/environment."""
    return Settings()


__all__ = ["Settings", "get_settings"]

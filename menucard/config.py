# menucard/config.py
import logging
from functools import lru_cache
from typing import Literal

from pydantic import (
    Field,
    field_validator,  # v2 validator
)
from pydantic_settings import BaseSettings, SettingsConfigDict

log = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Central configuration for the service (Pydantic v2).
    Loads from environment variables and a .env file (if present).
    """

    # --- Runtime / env ---
    env: Literal["dev", "prod", "test"] = "dev"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # --- Persistence ---
    sqlite_path: str = Field("menucard.db", alias="SQLITE_PATH")
    db_timeout_s: float = Field(5.0, gt=0, alias="DB_TIMEOUT_S")

    # --- Embeddings ---
    # Comma separated, tried in order: openai | openrouter | local
    embedding_providers: str = Field("openai,openrouter", alias="EMBEDDING_PROVIDERS")
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    openrouter_api_key: str | None = Field(default=None, alias="OPENROUTER_API_KEY")
    openrouter_base_url: str = Field("https://openrouter.ai/api/v1", alias="OPENROUTER_BASE_URL")
    embed_model: str = Field("text-embedding-ada-002", alias="EMBED_MODEL")
    local_embed_model: str = Field("BAAI/bge-small-en-v1.5", alias="LOCAL_EMBED_MODEL")
    embed_timeout_s: float = Field(15.0, gt=0, alias="EMBED_TIMEOUT_S")
    vector_backend: Literal["numpy", "faiss"] = Field("numpy", alias="VECTOR_BACKEND")

    # --- Retrieval ---
    search_threshold: float = Field(0.78, ge=0.0, le=1.0, alias="SEARCH_THRESHOLD")
    search_limit: int = Field(10, ge=1, le=100, alias="SEARCH_LIMIT")
    chat_search_threshold: float = Field(0.75, ge=0.0, le=1.0, alias="CHAT_SEARCH_THRESHOLD")
    chat_search_limit: int = Field(8, ge=1, le=100, alias="CHAT_SEARCH_LIMIT")
    text_search_limit: int = Field(10, ge=1, le=100, alias="TEXT_SEARCH_LIMIT")
    context_items_per_restaurant: int = Field(3, ge=1, alias="CONTEXT_ITEMS_PER_RESTAURANT")

    # --- Assistant ---
    search_mode: Literal["semantic", "lexical"] = Field("semantic", alias="SEARCH_MODE")
    lexical_fallback: bool = Field(True, alias="LEXICAL_FALLBACK")
    chat_providers: str = Field("openrouter,groq", alias="CHAT_PROVIDERS")
    groq_api_key: str | None = Field(default=None, alias="GROQ_API_KEY")
    groq_model: str = Field("llama-3.1-8b-instant", alias="GROQ_MODEL")
    openrouter_chat_model: str = Field("openai/gpt-3.5-turbo", alias="OPENROUTER_CHAT_MODEL")
    extraction_model: str = Field(
        "google/gemini-2.5-flash-image-preview:free", alias="EXTRACTION_MODEL"
    )
    chat_timeout_s: float = Field(30.0, gt=0, alias="CHAT_TIMEOUT_S")
    chat_max_tokens: int = Field(500, ge=1, alias="CHAT_MAX_TOKENS")
    chat_temperature: float = Field(0.7, ge=0.0, le=2.0, alias="CHAT_TEMPERATURE")
    app_url: str = Field("http://localhost:3000", alias="APP_URL")
    app_name: str = Field("MenuCard", alias="APP_NAME")

    # --- Indexing ---
    index_workers: int = Field(4, ge=1, le=32, alias="INDEX_WORKERS")

    # --- Observability ---
    enable_tracing: bool = Field(False, alias="ENABLE_TRACING")

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # env var names are case-insensitive
        extra="ignore",  # ignore extra envs silently
        populate_by_name=True,  # allow using field names as env keys too
    )

    @field_validator("embedding_providers", "chat_providers")
    @classmethod
    def _normalize_provider_list(cls, v: str) -> str:
        names = [p.strip().lower() for p in v.split(",") if p.strip()]
        return ",".join(names)

    @field_validator("openai_api_key")
    @classmethod
    def _warn_if_missing_embedding_key(cls, v, info):
        # Warn (don't crash) when no remote embedding credential is present
        data = info.data if hasattr(info, "data") else {}
        providers = data.get("embedding_providers", "")
        if not v and "openai" in providers.split(","):
            log.warning("OPENAI_API_KEY missing; the openai embedding provider is disabled.")
        return v

    @property
    def embedding_provider_names(self) -> list[str]:
        return [p for p in self.embedding_providers.split(",") if p]

    @property
    def chat_provider_names(self) -> list[str]:
        return [p for p in self.chat_providers.split(",") if p]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings instance so every import doesn't re-parse the env."""
    return Settings()

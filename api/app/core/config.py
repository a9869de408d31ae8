"""
Configuration module using Pydantic Settings.

Loads search, OpenAI and pipeline settings from environment variables.
Supports .env files for local development. The settings object is frozen
and handed to services at construction time.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_INSTRUCTIONS = "You are a helpful assistant."
DEFAULT_FALLBACK_MESSAGE = "I'm sorry, but I couldn't find the answer."


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
    )

    # Azure AI Search
    azure_search_endpoint: str
    azure_search_index_name: str = "documents-idx"
    azure_search_key: str = ""
    azure_semantic_configuration: str = "default"
    azure_search_content_field: str = "content"
    azure_search_url_field: str = "url"
    azure_search_vector_field: str = "embedding"
    use_vector_search: bool = False

    # Azure OpenAI
    azure_openai_endpoint: str
    azure_openai_api_key: str = ""
    azure_openai_api_version: str = "2024-06-01"
    azure_embedding_model: str = "text-embedding-3-small"
    azure_openai_deployment_name: str = "gpt-4o"
    openai_temperature: float = Field(0.7, ge=0.0, le=2.0)
    openai_max_tokens: int = Field(300, gt=0)

    # Pipeline
    max_turns: int = Field(3, ge=0)
    top_k: int = Field(3, gt=0)
    max_source_characters: int = Field(600, gt=0)
    max_input_tokens: int = Field(3000, gt=0)
    azure_openai_instructions: str = DEFAULT_INSTRUCTIONS
    fallback_message: str = DEFAULT_FALLBACK_MESSAGE
    fallback_strategy: Literal["clause", "exact", "prefix", "semantic"] = "clause"
    fallback_similarity_threshold: float = Field(0.85, ge=0.0, le=1.0)
    language_detection_enabled: bool = True
    upstream_timeout_seconds: float = Field(30.0, gt=0)

    # Widget feature flags
    enable_speech: bool = False

    # Application Insights
    applicationinsights_connection_string: str = ""

    # App
    debug_logging: bool = False
    log_level: str = "INFO"
    allowed_origins: str = "*"

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug_logging else self.log_level.upper()

    @property
    def effective_fallback_message(self) -> str:
        """Configured fallback text, or the built-in one when blank."""
        return self.fallback_message.strip() or DEFAULT_FALLBACK_MESSAGE


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Factory for cached settings instance."""
    return Settings()

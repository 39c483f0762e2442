"""
Ateria - Configuration Management

Loads and validates environment variables for the food search provider,
the optional AI provider and engine tuning knobs.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Fineli food-composition API
    fineli_base_url: str = Field(
        default="https://fineli.fi/fineli/api/v1",
        alias="FINELI_BASE_URL",
        description="Base URL of the Fineli REST API",
    )
    fineli_default_lang: Literal["fi", "en", "sv"] = Field(
        default="fi",
        alias="FINELI_DEFAULT_LANG",
    )
    fineli_timeout_seconds: float = Field(default=10.0, alias="FINELI_TIMEOUT_SECONDS")

    # Optional AI provider
    ai_provider: Literal["none", "gemini"] = Field(
        default="none",
        alias="AI_PROVIDER",
        description="External NLU/ranker/responder backend",
    )
    google_api_key: str = Field(
        default="",
        alias="GOOGLE_GENERATIVE_AI_API_KEY",
        description="Google Gemini API key",
    )
    ai_parse_model: str = Field(default="gemini-2.0-flash", alias="AI_PARSE_MODEL")
    ai_response_model: str = Field(default="gemini-2.0-flash", alias="AI_RESPONSE_MODEL")
    ai_confidence_threshold: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        alias="AI_CONFIDENCE_THRESHOLD",
        description="Below this the regex classifier is used instead",
    )
    ai_use_responses: bool = Field(default=True, alias="AI_USE_RESPONSES")
    ai_parse_timeout_seconds: float = Field(default=5.0, alias="AI_PARSE_TIMEOUT_SECONDS")
    ai_rank_timeout_seconds: float = Field(default=4.0, alias="AI_RANK_TIMEOUT_SECONDS")
    ai_response_timeout_seconds: float = Field(default=5.0, alias="AI_RESPONSE_TIMEOUT_SECONDS")

    # Engine tuning
    max_no_match_retries: int = Field(default=2, ge=1, alias="MAX_NO_MATCH_RETRIES")
    search_result_limit: int = Field(default=5, ge=1, alias="SEARCH_RESULT_LIMIT")

    # Application Settings
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Opik Settings
    opik_api_key: str = Field(
        default="",
        alias="OPIK_API_KEY",
        description="Comet Opik API key for tracing",
    )
    opik_project_name: str = Field(default="ateria", alias="OPIK_PROJECT_NAME")

    @property
    def ai_enabled(self) -> bool:
        """True when an AI provider is selected and its key is present."""
        return self.ai_provider != "none" and bool(self.google_api_key)

    def validate_required_keys(self) -> dict[str, bool]:
        """Check which API keys are configured."""
        return {
            "google_api_key": bool(self.google_api_key),
            "opik_api_key": bool(self.opik_api_key),
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

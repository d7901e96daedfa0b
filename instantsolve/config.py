"""
Configuration management for InstantSolve.

Uses pydantic-settings for type-safe configuration with environment variable support.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OpenRouterSettings(BaseSettings):
    """Chat-completions endpoint settings."""

    model_config = SettingsConfigDict(
        env_prefix="OPENROUTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = "https://openrouter.ai/api/v1"
    referer: str = "https://instantsolve-app.com"
    app_title: str = "InstantSolve"
    timeout: float = 60.0  # seconds


class ModelKeySettings(BaseSettings):
    """One API key per remote model (PHI_3_MINI_KEY, ZEPHYR_KEY, ...)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    phi_3_mini_key: str = ""
    phi_3_medium_key: str = ""
    mythomax_key: str = ""
    gemini_key: str = ""
    zephyr_key: str = ""
    llama_3_key: str = ""
    llama_vision_key: str = ""

    def configured(self) -> dict[str, bool]:
        """Which keys are set, without exposing their values."""
        return {name.removesuffix("_key"): bool(value) for name, value in self.model_dump().items()}


class APISettings(BaseSettings):
    """API server settings."""

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: str = "http://localhost:3000,http://localhost:8081,http://localhost:19006"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


class Settings(BaseSettings):
    """Main settings class that combines all settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    openrouter: OpenRouterSettings = Field(default_factory=OpenRouterSettings)
    keys: ModelKeySettings = Field(default_factory=ModelKeySettings)
    api: APISettings = Field(default_factory=APISettings)

    log_level: str = "INFO"
    log_file: str | None = None

    # Retained chat sessions in the chat-history store (oldest evicted first)
    max_chats: int = 500


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()

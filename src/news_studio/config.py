"""Configuration helpers for the news studio relay."""

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    host: str = Field("0.0.0.0", description="Interface the HTTP server binds to.")
    port: int = Field(3000, description="Listening port (PORT).")
    log_level: str = Field("INFO", description="Root log level.")

    openai_api_key: str | None = Field(
        None, description="Fallback OpenAI key when the caller sends no Bearer token."
    )
    gemini_api_key: str | None = Field(
        None, description="Fallback Gemini key when the caller sends no Bearer token."
    )
    default_model: str = Field(
        "gpt-4o-mini", description="Model used when a request omits `model`."
    )
    gemini_flash_model: str = Field(
        "gemini-1.5-flash", description="Upstream name for any *flash* alias."
    )
    gemini_pro_model: str = Field(
        "gemini-1.5-pro", description="Upstream name for any *pro* alias."
    )
    temperature: float = Field(0.7, description="Generation temperature.")
    model_timeout: float = Field(
        60.0, description="Seconds to wait for a single provider completion."
    )

    scrape_timeout: float = Field(10.0, description="Seconds per portal request.")
    scrape_cache_ttl: float = Field(
        60.0,
        description="Seconds to keep scraped listings per category; 0 disables caching.",
    )
    list_max_items: int = Field(50, description="Cap for section listings.")
    ranking_max_items: int = Field(200, description="Cap for the ranking listing.")
    user_agent: str = Field(
        (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
        ),
        description="Browser-like User-Agent; the portal rejects bare clients.",
    )

    cors_allow_all: bool = Field(True, description="Allow every origin.")
    cors_allow_origins: str = Field(
        "", description="Comma-separated origins used when CORS_ALLOW_ALL is false."
    )


def get_settings() -> Settings:
    """Return a fresh settings instance read from the environment."""
    return Settings()


def configure_logging(settings: Settings) -> None:
    """Install the process-wide log format once."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)

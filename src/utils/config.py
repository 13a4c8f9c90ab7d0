"""
Configuration management using pydantic-settings.

Loads settings from environment variables and .env files.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Ledger Configuration
    ledger_owner: str = Field(
        default="owner",
        description="Identity that holds the Owner role from initialization onward",
    )
    ledger_strict_lookup: bool = Field(
        default=False,
        description="Reject mutations against missing policy/claim ids instead of silently no-op'ing",
    )
    event_history_size: int = Field(
        default=1000,
        ge=1,
        description="Number of notifications kept in memory for /events",
    )

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    @property
    def base_url(self) -> str:
        """Get the local HTTP base URL."""
        return f"http://{self.host}:{self.port}"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-reading environment on every call.
    """
    return Settings()


# Convenience access
settings = get_settings()

"""Central configuration for airdrop loads."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class Settings(BaseSettings):
    database_url: Optional[str] = Field(None, alias="DATABASE_URL")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field("INFO", alias="LOG_LEVEL")

    statement_timeout_ms: int = Field(30_000, ge=0, alias="AIRDROP_STATEMENT_TIMEOUT_MS")
    connect_timeout: int = Field(10, ge=1, alias="AIRDROP_CONNECT_TIMEOUT")
    application_name: str = Field("airdrop_store", alias="AIRDROP_APPLICATION_NAME")
    verify_proofs: bool = Field(False, alias="AIRDROP_VERIFY_PROOFS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    def require_database_url(self) -> str:
        url = (self.database_url or "").strip()
        if not url:
            raise ConfigurationError("DATABASE_URL must be set in the environment or .env file")
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached settings instance."""

    return Settings()


def reset_settings() -> None:
    """Clear the cached settings (for testing)."""
    get_settings.cache_clear()

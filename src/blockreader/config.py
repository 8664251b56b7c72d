"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Every variable is prefixed with ``BLOCKREADER_``.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BLOCK_SIZE = 1_000_000  # 1MB
DEFAULT_CACHE_MAX_BYTES = 500_000_000  # 500MB
DEFAULT_MAX_CONCURRENCY = 8


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    Optional:
        BLOCKREADER_BLOCK_SIZE: Bytes per block
        BLOCKREADER_CACHE_MAX_BYTES: Total bytes the block cache may hold
        BLOCKREADER_MAX_CONCURRENCY: Block resolutions in flight per range request
        BLOCKREADER_CACHE_DIR: Directory for backing files (default: fresh temp dir)
        BLOCKREADER_HTTP_TIMEOUT: Timeout for HTTP block sources, in seconds
        BLOCKREADER_HTTP_MAX_RETRIES: Attempts per HTTP block fetch
        BLOCKREADER_LOG_LEVEL: Logging level
        BLOCKREADER_LOG_FILE: JSON-lines log file
    """

    model_config = SettingsConfigDict(
        env_prefix="BLOCKREADER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    BLOCK_SIZE: int = Field(
        default=DEFAULT_BLOCK_SIZE, ge=1, description="Bytes per block"
    )
    CACHE_MAX_BYTES: int = Field(
        default=DEFAULT_CACHE_MAX_BYTES,
        ge=1,
        description="Capacity of the shared block cache in bytes",
    )
    MAX_CONCURRENCY: int = Field(
        default=DEFAULT_MAX_CONCURRENCY,
        ge=1,
        le=64,
        description="Maximum concurrent block resolutions per range request",
    )

    CACHE_DIR: Path | None = Field(
        default=None, description="Directory for cached block files"
    )

    HTTP_TIMEOUT: float = Field(default=30.0, gt=0.0, description="HTTP timeout in seconds")
    HTTP_MAX_RETRIES: int = Field(
        default=3, ge=1, le=10, description="Attempts per HTTP block fetch"
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON-lines log file")

    @model_validator(mode="after")
    def validate_capacity_holds_a_block(self) -> Settings:
        """Ensure at least one full block fits in the cache."""
        if self.CACHE_MAX_BYTES < self.BLOCK_SIZE:
            raise ValueError(
                "BLOCKREADER_CACHE_MAX_BYTES must be at least BLOCKREADER_BLOCK_SIZE"
            )
        return self

    def ensure_directories(self) -> None:
        """Create the cache directory if one is configured."""
        if self.CACHE_DIR is not None:
            self.CACHE_DIR.mkdir(parents=True, exist_ok=True)

    def display(self) -> dict[str, str | int | float | None]:
        """Return settings as a flat mapping for display."""
        return {
            "BLOCK_SIZE": self.BLOCK_SIZE,
            "CACHE_MAX_BYTES": self.CACHE_MAX_BYTES,
            "MAX_CONCURRENCY": self.MAX_CONCURRENCY,
            "CACHE_DIR": str(self.CACHE_DIR) if self.CACHE_DIR else None,
            "HTTP_TIMEOUT": self.HTTP_TIMEOUT,
            "HTTP_MAX_RETRIES": self.HTTP_MAX_RETRIES,
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else None,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()

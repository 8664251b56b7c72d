"""
Tests for configuration module.
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from blockreader.config import (
    DEFAULT_BLOCK_SIZE,
    DEFAULT_CACHE_MAX_BYTES,
    DEFAULT_MAX_CONCURRENCY,
    Settings,
    clear_settings_cache,
    get_settings,
)


class TestSettingsDefaults:
    """Tests for default values."""

    def test_defaults(self) -> None:
        """Test defaults with an empty environment."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.BLOCK_SIZE == DEFAULT_BLOCK_SIZE == 1_000_000
        assert settings.CACHE_MAX_BYTES == DEFAULT_CACHE_MAX_BYTES == 500_000_000
        assert settings.MAX_CONCURRENCY == DEFAULT_MAX_CONCURRENCY == 8
        assert settings.CACHE_DIR is None
        assert settings.LOG_LEVEL == "INFO"


class TestSettingsValidation:
    """Tests for Settings validation."""

    def test_settings_loads_from_env(self, mock_env_vars: dict[str, str]) -> None:
        """Test that settings correctly loads from environment variables."""
        settings = get_settings()

        assert settings.BLOCK_SIZE == 10
        assert settings.CACHE_MAX_BYTES == 1000
        assert settings.MAX_CONCURRENCY == 4
        assert settings.CACHE_DIR == Path(mock_env_vars["BLOCKREADER_CACHE_DIR"])
        assert settings.LOG_LEVEL == "DEBUG"

    def test_capacity_must_hold_a_block(self) -> None:
        """Test that the cache must be at least one block large."""
        env_vars = {
            "BLOCKREADER_BLOCK_SIZE": "1000",
            "BLOCKREADER_CACHE_MAX_BYTES": "999",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            with pytest.raises(ValidationError) as exc_info:
                Settings(_env_file=None)

        assert "CACHE_MAX_BYTES" in str(exc_info.value)

    @pytest.mark.parametrize("value", ["0", "65"])
    def test_concurrency_bounds(self, value: str) -> None:
        """Test that concurrency must be between 1 and 64."""
        with patch.dict(os.environ, {"BLOCKREADER_MAX_CONCURRENCY": value}, clear=True):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)

    def test_invalid_log_level(self) -> None:
        """Test that unknown log levels are rejected."""
        with patch.dict(os.environ, {"BLOCKREADER_LOG_LEVEL": "LOUD"}, clear=True):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)


class TestSettingsHelpers:
    """Tests for helper methods."""

    def test_get_settings_is_cached(self, mock_env_vars: dict[str, str]) -> None:
        """Test that get_settings returns the same instance until cleared."""
        first = get_settings()
        assert get_settings() is first

        clear_settings_cache()
        assert get_settings() is not first

    def test_ensure_directories(self, mock_env_vars: dict[str, str]) -> None:
        """Test that the configured cache directory is created."""
        settings = get_settings()
        settings.ensure_directories()
        assert Path(mock_env_vars["BLOCKREADER_CACHE_DIR"]).is_dir()

    def test_display(self, mock_env_vars: dict[str, str]) -> None:
        """Test the flat display mapping."""
        display = get_settings().display()
        assert display["BLOCK_SIZE"] == 10
        assert display["LOG_FILE"] is None

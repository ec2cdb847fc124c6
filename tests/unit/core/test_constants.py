"""Tests for constants and settings validation."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from pydantic import ValidationError

from agent_orchestrator.core.constants import (
    AGENT_KINDS,
    JSON_OUTPUT_FORMATS,
    JSON_REPORTED_FORMATS,
    SYSTEM_PROMPT_DIVIDER,
    Settings,
    clear_settings_cache,
    get_settings,
    reload_settings,
)


class TestConstants:
    """Tests for module-level constants."""

    def test_agent_kinds_closed_set(self) -> None:
        """Test the accepted agent kinds."""
        assert {
            "chat",
            "voice-transcription",
            "image-generation",
            "video-generation",
            "graph-generation",
            "orchestrator",
            "search",
        } == AGENT_KINDS

    def test_reported_formats_are_json_formats(self) -> None:
        """Test every format reported as json also forces JSON mode."""
        assert JSON_REPORTED_FORMATS <= JSON_OUTPUT_FORMATS
        assert "json" in JSON_OUTPUT_FORMATS
        assert "string" not in JSON_OUTPUT_FORMATS

    def test_divider(self) -> None:
        """Test the system prompt divider is a horizontal rule between blank lines."""
        assert SYSTEM_PROMPT_DIVIDER == "\n\n***\n\n"


class TestSettings:
    """Tests for the Settings model."""

    def test_defaults(self) -> None:
        """Test default timeouts and retry policy."""
        settings = Settings(llm_api_key=None)

        assert settings.chat_timeout == 120.0
        assert settings.image_timeout == 60.0
        assert settings.video_timeout == 300.0
        assert settings.voice_timeout == 60.0
        assert settings.preload_timeout == 30.0
        assert settings.models_cache_ttl == 300.0

    def test_app_env_normalized(self) -> None:
        """Test APP_ENV is case-insensitive."""
        settings = Settings(app_env="PRODUCTION")

        assert settings.app_env == "production"
        assert settings.is_production is True
        assert settings.is_development is False

    def test_invalid_app_env(self) -> None:
        """Test unknown environments are rejected."""
        with pytest.raises(ValidationError):
            Settings(app_env="staging")

    def test_short_api_key_rejected(self) -> None:
        """Test an implausibly short API key fails validation."""
        with pytest.raises(ValidationError, match="Invalid LLM API key format"):
            Settings(llm_api_key="short")

    def test_api_key_stripped(self) -> None:
        """Test surrounding whitespace is removed from the API key."""
        assert Settings(llm_api_key="  sk-abcdefghijkl  ").llm_api_key == "sk-abcdefghijkl"

    def test_base_url_trailing_slash_removed(self) -> None:
        """Test the base URL is normalized for path joining."""
        assert Settings(app_base_url="https://app.test/").app_base_url == "https://app.test"

    def test_environment_variable_override(self) -> None:
        """Test values are read from the environment."""
        with patch.dict("os.environ", {"CHAT_TIMEOUT": "15", "DEBUG": "true"}):
            settings = Settings()

        assert settings.chat_timeout == 15.0
        assert settings.debug is True


class TestSettingsManagement:
    """Tests for the cached settings accessor."""

    def test_get_settings_is_cached(self) -> None:
        """Test repeated calls return the same instance."""
        assert get_settings() is get_settings()

    def test_clear_settings_cache(self) -> None:
        """Test clearing forces a fresh instance."""
        first = get_settings()
        clear_settings_cache()

        assert get_settings() is not first

    def test_reload_settings_picks_up_environment(self) -> None:
        """Test reload re-reads environment variables."""
        get_settings()
        with patch.dict("os.environ", {"VIDEO_TIMEOUT": "42"}):
            reloaded = reload_settings()

        assert reloaded.video_timeout == 42.0
        assert get_settings() is reloaded

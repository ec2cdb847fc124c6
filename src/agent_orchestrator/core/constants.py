"""
Constants and configuration for the agent orchestrator.
Centralizes magic numbers, allow-lists and timeouts.
Includes Pydantic validation for environment variables.
"""

from __future__ import annotations

import os
import threading

from pathlib import Path
from typing import Final, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import (
    DotEnvSettingsSource,
    PydanticBaseSettingsSource,
)

# ============================================================================
# Project Paths
# ============================================================================

#: Project root directory (parent of src/)
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_MAX_SIZE = 10 * 1024 * 1024  # 10MB per log file
LOG_BACKUP_COUNT_ERRORS = 2
LOG_PREVIEW_LENGTH = 80  # Characters of prompt/response shown in log lines

# ============================================================================
# Agent Kinds and Output Formats
# ============================================================================

AgentKind = Literal[
    "chat",
    "voice-transcription",
    "image-generation",
    "video-generation",
    "graph-generation",
    "orchestrator",
    "search",
]

#: Closed set of agent kinds accepted by the validator
AGENT_KINDS: Final[frozenset[str]] = frozenset(
    {
        "chat",
        "voice-transcription",
        "image-generation",
        "video-generation",
        "graph-generation",
        "orchestrator",
        "search",
    }
)

#: Output formats that force the provider into JSON response mode
JSON_OUTPUT_FORMATS: Final[frozenset[str]] = frozenset({"json", "table", "search-results", "search-card"})

#: Output formats reported back to callers as "json"
JSON_REPORTED_FORMATS: Final[frozenset[str]] = frozenset({"table", "search-results", "search-card"})

#: The generic textual output format (enables markdown/citation/mermaid rules)
TEXT_OUTPUT_FORMAT = "string"

#: Format reported for graph-generation responses
GRAPH_OUTPUT_FORMAT = "graph"

# ============================================================================
# Model Defaults
# ============================================================================

DEFAULT_CHAT_MODEL = "gpt-4o-mini"
DEFAULT_IMAGE_MODEL = "flux-1.1-pro"
DEFAULT_VIDEO_MODEL = "veo-3.1-fast-generate-preview"
DEFAULT_VOICE_MODEL = "whisper-1"

# ============================================================================
# Security Limits and Allow-lists
# ============================================================================

MAX_PROMPT_LENGTH = 100_000
MAX_FILE_SIZE = 15 * 1024 * 1024  # 15MB
ALLOWED_FILE_MIME_PREFIXES: Final[tuple[str, ...]] = ("audio/", "video/", "image/")

VALID_IMAGE_SIZES: Final[tuple[str, ...]] = ("1024x1024", "1024x1792", "1792x1024")
VALID_IMAGE_OUTPUT_FORMATS: Final[tuple[str, ...]] = ("url", "png")

VALID_VIDEO_SIZES: Final[tuple[str, ...]] = ("720x1280", "1280x720", "1024x1792", "1792x1024")
VALID_VIDEO_DURATIONS: Final[tuple[int, ...]] = (4, 8, 12)
VALID_VIDEO_OUTPUT_FORMATS: Final[tuple[str, ...]] = ("mp4", "url")

# ============================================================================
# Prompt Assembly
# ============================================================================

#: Divider placed between system prompt segments
SYSTEM_PROMPT_DIVIDER = "\n\n***\n\n"

#: Separator between composed user prompt parts
PROMPT_PART_SEPARATOR = "\n\n"

#: Fields sort last when no explicit order is declared
DEFAULT_FIELD_ORDER = 999

#: Default language code; no directive is emitted for it
DEFAULT_LANGUAGE = "en"

#: Field names recognised as output-language selectors
LANGUAGE_FIELD_NAMES: Final[tuple[str, ...]] = (
    "language",
    "outputLanguage",
    "output-language",
    "output_language",
    "outputLanguageCode",
    "lang",
)

#: Canonical organization-wide context source, always preloaded
ORGANIZATION_RAG_ROUTE = "/api/organization-rag"

#: Image style used when the request does not name one
DEFAULT_IMAGE_TYPE = "standard"

# ============================================================================
# Network Timeouts (seconds)
# ============================================================================

CHAT_TIMEOUT = 120.0
IMAGE_TIMEOUT = 60.0
VIDEO_TIMEOUT = 300.0
VOICE_TIMEOUT = 60.0
PRELOAD_TIMEOUT = 30.0
MODELS_FETCH_TIMEOUT = 10.0

#: Model metadata cache lifetime
MODELS_CACHE_TTL = 300.0

#: Successful preload results are reused for this long
PRELOAD_CACHE_TTL = 300.0

#: Error bodies longer than this are replaced by a generic status message
MAX_ERROR_BODY_LENGTH = 500

DEFAULT_RETRY_MAX_ATTEMPTS = 3
DEFAULT_RETRY_INITIAL_DELAY = 1.0

# ============================================================================
# Settings
# ============================================================================

Environment = Literal["development", "production", "test"]


def _get_env_files() -> list[Path]:
    """Determine which .env files to load based on APP_ENV.

    Load order (later files override earlier):
    1. .env (base defaults)
    2. .env.{environment}
    3. .env.local (local developer overrides)

    Returns:
        List of Path objects for env files that exist.
    """
    env_name = os.getenv("APP_ENV", "development").lower()
    if env_name not in ("development", "production", "test"):
        env_name = "development"

    candidates = [
        PROJECT_ROOT / ".env",
        PROJECT_ROOT / f".env.{env_name}",
        PROJECT_ROOT / ".env.local",
    ]
    return [p for p in candidates if p.exists()]


class Settings(BaseSettings):
    """Environment settings for the orchestrator.

    Configuration priority (highest to lowest):
    1. Values passed to Settings() constructor
    2. Environment variables
    3. .env.local > .env.{APP_ENV} > .env (dotenv files, last wins)
    """

    app_env: Environment = Field(default="development", description="Application environment")

    # Provider credentials
    llm_api_key: str | None = Field(default=None, description="Bearer token for the AI provider")

    # Fallback base URL for the model listing and preload collaborators
    app_base_url: str | None = Field(default=None, description="Base URL used when no request base URL is given")

    # Provider endpoints per agent kind
    llm_chat_url: str = Field(
        default="https://api.openai.com/v1/chat/completions", description="Chat completions endpoint"
    )
    llm_images_url: str = Field(
        default="https://api.openai.com/v1/images/generations", description="Image generation endpoint"
    )
    llm_videos_url: str = Field(default="https://api.openai.com/v1/videos", description="Video generation endpoint")
    llm_transcribe_url: str = Field(
        default="https://api.openai.com/v1/audio/transcriptions", description="Voice transcription endpoint"
    )

    # Timeouts per agent kind (seconds)
    chat_timeout: float = Field(default=CHAT_TIMEOUT, description="Chat request deadline")
    image_timeout: float = Field(default=IMAGE_TIMEOUT, description="Image request deadline")
    video_timeout: float = Field(default=VIDEO_TIMEOUT, description="Video request deadline")
    voice_timeout: float = Field(default=VOICE_TIMEOUT, description="Transcription request deadline")
    preload_timeout: float = Field(default=PRELOAD_TIMEOUT, description="Per-route preload deadline")
    models_fetch_timeout: float = Field(default=MODELS_FETCH_TIMEOUT, description="Model listing deadline")

    # Caching and retry policy
    models_cache_ttl: float = Field(default=MODELS_CACHE_TTL, description="Model metadata cache TTL (seconds)")
    retry_max_attempts: int = Field(default=DEFAULT_RETRY_MAX_ATTEMPTS, description="Retries after HTTP 429")
    retry_initial_delay: float = Field(
        default=DEFAULT_RETRY_INITIAL_DELAY, description="First 429 backoff delay (seconds)"
    )

    # Debug and logging
    debug: bool = Field(default=False, description="Enable debug logging and raw error messages")
    http_request_logging: bool = Field(default=False, description="Enable HTTP request/response logging")

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Environment variables override dotenv files, constructor args override both."""
        dotenv_source = DotEnvSettingsSource(
            settings_cls,
            env_file=_get_env_files(),
            env_file_encoding="utf-8",
        )
        return (init_settings, env_settings, dotenv_source)

    @field_validator("app_env", mode="before")
    @classmethod
    def validate_app_env(cls, v: str | None) -> str:
        """Validate and normalize APP_ENV value."""
        if v is None:
            return "development"
        normalized = str(v).lower()
        if normalized not in ("development", "production", "test"):
            raise ValueError(f"app_env must be 'development', 'production', or 'test', got '{v}'")
        return normalized

    @field_validator("llm_api_key")
    @classmethod
    def validate_llm_api_key(cls, v: str | None) -> str | None:
        """Basic validation of the provider API key format."""
        if v is not None and len(v.strip()) < 10:
            raise ValueError("Invalid LLM API key format")
        return v.strip() if v else v

    @field_validator("app_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Base URLs are joined with absolute paths, so drop any trailing slash."""
        return v.rstrip("/") if v else v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"


# ============================================================================
# Settings Management
# ============================================================================


class _SettingsManager:
    """Thread-safe lazy settings singleton."""

    __slots__ = ("_instance", "_lock")

    def __init__(self) -> None:
        self._instance: Settings | None = None
        self._lock = threading.Lock()

    def get(self) -> Settings:
        """Get the cached settings instance, loading it on first use.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self._instance is not None:
            return self._instance

        with self._lock:
            if self._instance is None:
                self._instance = Settings()
            return self._instance

    def reload(self) -> Settings:
        """Force reload settings from the environment."""
        with self._lock:
            self._instance = Settings()
            return self._instance

    def clear(self) -> None:
        """Clear cached settings instance."""
        with self._lock:
            self._instance = None


_settings_manager = _SettingsManager()


def get_settings() -> Settings:
    """Get the validated settings instance.

    Returns:
        Validated Settings instance.

    Raises:
        ValueError: If required configuration is missing or invalid.
    """
    return _settings_manager.get()


def reload_settings() -> Settings:
    """Force reload settings from environment files."""
    return _settings_manager.reload()


def clear_settings_cache() -> None:
    """Clear cached settings instance.

    Primarily useful for testing to ensure fresh settings on each test.
    """
    _settings_manager.clear()

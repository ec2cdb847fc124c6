"""Shared test fixtures for the agent orchestrator test suite.

This module provides common fixtures used across all test modules,
including settings overrides, a fake clock and an httpx mock transport
that records outbound requests.
"""

from __future__ import annotations

import os

# Keep test runs from writing JSON error logs under logs/
os.environ.setdefault("LOG_TO_FILE", "false")

from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import patch

import httpx
import pytest

from agent_orchestrator.core.constants import Settings, clear_settings_cache
from agent_orchestrator.integrations.preload import reset_preload_cache
from agent_orchestrator.models.agent_models import AgentConfig
from agent_orchestrator.services.builders import BuilderContext
from agent_orchestrator.services.model_cache import ModelMetadataCache, reset_model_cache

Handler = Callable[[httpx.Request], httpx.Response]

# ============================================================================
# Test Isolation
# ============================================================================


@pytest.fixture(autouse=True)
def reset_process_state() -> Generator[None, None, None]:
    """Clear cached settings and the process-wide caches around every test."""
    clear_settings_cache()
    reset_model_cache()
    reset_preload_cache()
    yield
    clear_settings_cache()
    reset_model_cache()
    reset_preload_cache()


# ============================================================================
# Settings
# ============================================================================


@pytest.fixture
def settings() -> Generator[Settings, None, None]:
    """Deterministic settings with fast retries, patched into every consumer."""
    test_settings = Settings(
        app_env="test",
        llm_api_key="sk-test-key-1234567890",
        app_base_url=None,
        llm_chat_url="https://llm.test/v1/chat/completions",
        llm_images_url="https://llm.test/v1/images/generations",
        llm_videos_url="https://llm.test/v1/videos",
        llm_transcribe_url="https://llm.test/v1/audio/transcriptions",
        retry_max_attempts=0,
        retry_initial_delay=0.0,
        debug=False,
        http_request_logging=False,
    )
    with patch("agent_orchestrator.services.dispatcher.get_settings", return_value=test_settings):
        yield test_settings


# ============================================================================
# Time
# ============================================================================


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# HTTP
# ============================================================================


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)


@pytest.fixture
def mock_http() -> Callable[[Handler], tuple[httpx.AsyncClient, RecordingTransport]]:
    """Factory returning an AsyncClient backed by a recording mock transport."""

    def factory(handler: Handler) -> tuple[httpx.AsyncClient, RecordingTransport]:
        transport = RecordingTransport(handler)
        return httpx.AsyncClient(transport=transport), transport

    return factory


def _chat_completion(content: str | None, prompt_tokens: int = 100, completion_tokens: int = 50) -> dict[str, Any]:
    return {
        "id": "chatcmpl-1",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }


@pytest.fixture
def chat_completion() -> Callable[..., dict[str, Any]]:
    """Builder for provider chat completion bodies."""
    return _chat_completion


# ============================================================================
# Domain Objects
# ============================================================================


@pytest.fixture
def empty_model_cache() -> ModelMetadataCache:
    """Model cache that knows no models (pricing always unknown)."""

    async def fetch() -> list[Any]:
        return []

    return ModelMetadataCache(fetch)


@pytest.fixture
def chat_agent() -> AgentConfig:
    return AgentConfig.model_validate(
        {
            "id": "writer",
            "agentType": "chat",
            "model": "gpt-4o-mini",
            "label": "Writer",
            "requiredOutputFormat": "string",
            "systemPrompt": "You write concise business briefs.",
            "renderComponents": [
                {"name": "topic", "component": "text", "label": "Topic", "order": 1},
                {
                    "name": "tone",
                    "component": "select",
                    "order": 2,
                    "options": [
                        {"id": "formal", "label": "Formal", "description": "Use a formal register."},
                        {"id": "casual", "label": "Casual"},
                    ],
                },
                {"name": "language", "component": "select", "order": 3},
            ],
        }
    )


@pytest.fixture
def builder_context(settings: Settings, empty_model_cache: ModelMetadataCache) -> Callable[..., BuilderContext]:
    """Factory for builder collaborators around a given client."""

    def factory(client: httpx.AsyncClient, **overrides: Any) -> BuilderContext:
        values: dict[str, Any] = {"settings": settings, "model_cache": empty_model_cache}
        values.update(overrides)
        return BuilderContext(client=client, **values)

    return factory

"""
Agent Dispatcher - the single orchestration entry point.

Validates the agent definition, routes to exactly one builder by kind and
converts every failure into an AgentResponse. Nothing raised by a builder
escapes this module.
"""

from __future__ import annotations

import time

from collections.abc import Awaitable, Callable

import httpx

from agent_orchestrator.core.constants import get_settings
from agent_orchestrator.core.exceptions import (
    AppException,
    ConfigurationError,
    ProviderHttpError,
    TransportTimeout,
    ValidationException,
)
from agent_orchestrator.core.prompts import DEFAULT_STYLE_GUIDE, StyleGuide
from agent_orchestrator.models.agent_models import AgentConfig, AgentRequestData
from agent_orchestrator.models.error_models import ErrorCode, get_error_message
from agent_orchestrator.models.response_models import AgentMeta, AgentResponse, AgentResponseData, Timing
from agent_orchestrator.services.builders import BuilderContext
from agent_orchestrator.services.builders.chat import build_chat
from agent_orchestrator.services.builders.graph import build_graph
from agent_orchestrator.services.builders.image import build_image
from agent_orchestrator.services.builders.video import build_video
from agent_orchestrator.services.builders.voice import build_voice
from agent_orchestrator.services.model_cache import ModelMetadataCache, get_model_cache
from agent_orchestrator.services.system_prompt import Preloader
from agent_orchestrator.services.validation import validate_agent_config
from agent_orchestrator.utils.client_factory import create_http_client
from agent_orchestrator.utils.logger import logger
from agent_orchestrator.utils.metrics import agent_request_duration_seconds, agent_requests_total
from agent_orchestrator.utils.request_context import request_context

Builder = Callable[[AgentConfig, AgentRequestData, BuilderContext], Awaitable[AgentResponseData]]

BUILDERS: dict[str, Builder] = {
    "chat": build_chat,
    "graph-generation": build_graph,
    "image-generation": build_image,
    "video-generation": build_video,
    "voice-transcription": build_voice,
}


class UnsupportedKindError(AppException):
    """Agent kind is valid but has no builder."""

    def __init__(self, kind: str | None):
        super().__init__(code=ErrorCode.INTERNAL_UNSUPPORTED_KIND, message=f"Unsupported agent kind: {kind}")


def _outcome(exc: AppException) -> str:
    if isinstance(exc, ValidationException):
        return "validation_error"
    if isinstance(exc, TransportTimeout):
        return "timeout"
    if isinstance(exc, ProviderHttpError):
        return "provider_error"
    return "error"


def _timing(started_wall: float, started: float) -> Timing:
    elapsed_ms = (time.perf_counter() - started) * 1000
    start_ms = started_wall * 1000
    return Timing(
        start_time=start_ms,
        end_time=start_ms + elapsed_ms,
        response_time=round(elapsed_ms, 2),
        duration=round(elapsed_ms, 2),
    )


def _failure(exc: AppException, debug: bool) -> AgentResponse:
    if isinstance(exc, ValidationException):
        return AgentResponse.failure(exc.message, exc.errors)
    message = exc.message
    if debug and exc.cause is not None:
        message = f"{message} ({exc.cause})"
    return AgentResponse.failure(message)


async def dispatch(
    agent: AgentConfig,
    request: AgentRequestData,
    base_url: str | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    cache: ModelMetadataCache | None = None,
    preloader: Preloader | None = None,
    style_guide: StyleGuide | None = None,
) -> AgentResponse:
    """Run one agent invocation end to end.

    Args:
        agent: Agent definition
        request: Per-invocation payload
        base_url: Base URL for the model listing and preload collaborators
            (falls back to APP_BASE_URL)
        client: Shared HTTP client; a short-lived one is created when omitted
        cache: Model metadata cache; the process default when omitted
        preloader: Context preloader override
        style_guide: Rule block texts override

    Returns:
        AgentResponse, with success=False for every failure
    """
    settings = get_settings()
    base_url = base_url or settings.app_base_url

    with request_context(agent_id=agent.id, agent_kind=agent.kind):
        kind = agent.kind or "unknown"
        started_wall = time.time()
        started = time.perf_counter()

        try:
            validate_agent_config(agent)
            builder = BUILDERS.get(agent.kind or "")
            if builder is None:
                raise UnsupportedKindError(agent.kind)

            ctx = BuilderContext(
                client=client or create_http_client(enable_logging=settings.http_request_logging),
                settings=settings,
                model_cache=cache or get_model_cache(base_url),
                base_url=base_url,
                preloader=preloader,
                style_guide=style_guide or DEFAULT_STYLE_GUIDE,
            )
            try:
                data = await builder(agent, request, ctx)
            finally:
                if client is None:
                    await ctx.client.aclose()

        except AppException as e:
            agent_requests_total.labels(kind=kind, outcome=_outcome(e)).inc()
            level = logger.error if isinstance(e, ConfigurationError) else logger.warning
            level(f"Agent call failed [{e.code.value}]: {e.message}", error_code=e.code.value)
            return _failure(e, settings.debug)

        except Exception as e:
            agent_requests_total.labels(kind=kind, outcome="error").inc()
            logger.error(f"Unexpected error in agent dispatch: {e}", exc_info=True)
            message = get_error_message(ErrorCode.INTERNAL_UNEXPECTED)
            return AgentResponse.failure(f"{message} ({e})" if settings.debug else message)

        finally:
            agent_request_duration_seconds.labels(kind=kind).observe(time.perf_counter() - started)

        data.timing = _timing(started_wall, started)
        data.agent = AgentMeta.from_agent(agent)
        agent_requests_total.labels(kind=kind, outcome="success").inc()
        logger.log_agent_call(
            kind,
            request.user_prompt,
            success=True,
            duration_ms=data.timing.duration,
            tokens_used=data.token_usage.total_tokens if data.token_usage else None,
        )
        return AgentResponse.ok(data)

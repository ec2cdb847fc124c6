"""Video generation builder.

Providers answer with a queued job descriptor rather than a finished clip;
the descriptor is passed through unchanged.
"""

from __future__ import annotations

from typing import Any

from agent_orchestrator.core.constants import DEFAULT_VIDEO_MODEL
from agent_orchestrator.models.agent_models import AgentConfig, AgentRequestData
from agent_orchestrator.models.response_models import AgentResponseData, VideoUsage
from agent_orchestrator.services.builders import PROMPT_BODY_KEYS, BuilderContext, resolve_params, without_keys
from agent_orchestrator.services.prompt_composer import compose_prompt
from agent_orchestrator.services.response_parsers import VideoJob, parse_video_response
from agent_orchestrator.services.validation import (
    sanitize_prompt,
    validate_file,
    validate_video_duration,
    validate_video_output_format,
    validate_video_size,
)
from agent_orchestrator.utils.json_utils import json_compact, json_pretty
from agent_orchestrator.utils.logger import logger


def _video_usage(job: VideoJob) -> VideoUsage | None:
    duration = job.duration
    if duration is None and job.usage:
        duration = job.usage.get("duration_seconds") or job.usage.get("seconds")
    if duration is None and job.estimated_cost is None:
        return None
    return VideoUsage(duration_seconds=duration, estimated_cost=job.estimated_cost)


async def build_video(agent: AgentConfig, request: AgentRequestData, ctx: BuilderContext) -> AgentResponseData:
    """Submit one video generation job.

    Sends multipart form data when a reference file is attached, JSON otherwise.
    """
    body_params, extra_params = resolve_params(agent, request)

    explicit = body_params.get("prompt")
    if isinstance(explicit, str) and explicit.strip():
        prompt = sanitize_prompt(explicit)
    else:
        prompt = sanitize_prompt(compose_prompt(agent, request.form_values, request.language) or request.user_prompt)

    if body_params.get("size") is not None:
        body_params["size"] = validate_video_size(body_params["size"])
    if body_params.get("seconds") is not None:
        body_params["seconds"] = validate_video_duration(body_params["seconds"])
    if extra_params.get("output_format") is not None:
        validate_video_output_format(extra_params["output_format"])
    if request.file is not None:
        validate_file(request.file)

    model = agent.model or DEFAULT_VIDEO_MODEL
    settings = ctx.settings

    if request.file is not None:
        form: dict[str, Any] = {"model": model, "prompt": prompt}
        for key, value in without_keys(body_params, PROMPT_BODY_KEYS).items():
            form[key] = value if isinstance(value, str) else json_compact(value)
        if extra_params:
            form["extra_body"] = json_compact(extra_params)
        files = {"input_reference": (request.file.filename, request.file.content, request.file.content_type)}
        logger.debug(f"Video request (multipart): model={model} file={request.file.filename}")
        result = await ctx.send(settings.llm_videos_url, data=form, files=files, timeout=settings.video_timeout)
    else:
        payload: dict[str, Any] = {"model": model, "prompt": prompt}
        payload.update(without_keys(body_params, PROMPT_BODY_KEYS))
        if extra_params:
            payload["extra_body"] = extra_params
        logger.debug(f"Video request: model={model}")
        result = await ctx.send(settings.llm_videos_url, json=payload, timeout=settings.video_timeout)

    job = parse_video_response(result.json())
    if job.model is None:
        job = job.model_copy(update={"model": model})

    return AgentResponseData(
        response=json_pretty(job.model_dump()),
        format="video",
        video_usage=_video_usage(job),
    )

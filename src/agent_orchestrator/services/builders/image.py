"""Image generation builder."""

from __future__ import annotations

from typing import Any

from agent_orchestrator.core.constants import DEFAULT_IMAGE_MODEL
from agent_orchestrator.models.agent_models import AgentConfig, AgentRequestData
from agent_orchestrator.models.response_models import AgentResponseData
from agent_orchestrator.services.builders import PROMPT_BODY_KEYS, BuilderContext, resolve_params, without_keys
from agent_orchestrator.services.prompt_composer import compose_prompt, resolve_image_type
from agent_orchestrator.services.response_parsers import parse_image_response
from agent_orchestrator.services.validation import (
    sanitize_prompt,
    validate_image_output_format,
    validate_image_size,
)
from agent_orchestrator.utils.json_utils import json_pretty
from agent_orchestrator.utils.logger import logger

#: Body keys used only for prompt building
IMAGE_ONLY_KEYS = PROMPT_BODY_KEYS | {"imageType"}


def build_image_prompt(
    agent: AgentConfig,
    request: AgentRequestData,
    body_params: dict[str, Any],
    type_prompt: str,
) -> str:
    """Explicit ``body.prompt`` first, otherwise the composed or raw user prompt.

    A sub-style prompt, when the image type has one, is placed before the
    user's text as ``{type prompt}\\n\\nUser Prompt: {prompt}``.
    """
    explicit = body_params.get("prompt")
    if isinstance(explicit, str) and explicit.strip():
        prompt = explicit
    else:
        prompt = compose_prompt(agent, request.form_values, request.language) or request.user_prompt

    if type_prompt and prompt and prompt.strip():
        prompt = f"{type_prompt.strip()}\n\nUser Prompt: {prompt}"
    return sanitize_prompt(prompt)


async def build_image(agent: AgentConfig, request: AgentRequestData, ctx: BuilderContext) -> AgentResponseData:
    """Generate one image. Parameters are validated before any network call."""
    body_params, extra_params = resolve_params(agent, request)

    image_type = resolve_image_type(request.form_values, body_params)
    prompt = build_image_prompt(agent, request, body_params, ctx.style_guide.image_type_prompt(image_type))

    if body_params.get("size") is not None:
        validate_image_size(body_params["size"])
    if extra_params.get("output_format") is not None:
        validate_image_output_format(extra_params["output_format"])

    payload: dict[str, Any] = {"model": agent.model or DEFAULT_IMAGE_MODEL, "prompt": prompt}
    payload.update(without_keys(body_params, IMAGE_ONLY_KEYS))
    if extra_params:
        payload["extra_body"] = extra_params

    logger.debug(f"Image request: model={payload['model']} type={image_type}", image_type=image_type)

    result = await ctx.send(ctx.settings.llm_images_url, json=payload, timeout=ctx.settings.image_timeout)
    image = parse_image_response(result.json())

    return AgentResponseData(response=json_pretty(image.model_dump()), format="image")

"""Chat builder and the completion helpers shared with graph generation."""

from __future__ import annotations

from typing import Any

from agent_orchestrator.core.constants import (
    DEFAULT_CHAT_MODEL,
    JSON_OUTPUT_FORMATS,
    JSON_REPORTED_FORMATS,
)
from agent_orchestrator.core.exceptions import MalformedResponseError, ValidationException
from agent_orchestrator.models.agent_models import AgentConfig, AgentRequestData
from agent_orchestrator.models.response_models import AgentResponseData, TokenUsage
from agent_orchestrator.services.builders import PROMPT_BODY_KEYS, BuilderContext, resolve_params, without_keys
from agent_orchestrator.services.prompt_composer import apply_modification_block, compose_prompt
from agent_orchestrator.services.response_parsers import ChatCompletion, parse_chat_completion
from agent_orchestrator.services.system_prompt import build_system_prompt
from agent_orchestrator.services.validation import sanitize_prompt, validate_form_fields
from agent_orchestrator.utils.json_utils import extract_json, json_compact
from agent_orchestrator.utils.logger import logger, preview


def build_user_prompt(agent: AgentConfig, request: AgentRequestData) -> str:
    """Composed form prompt (or the raw user prompt) with the modification block, sanitized.

    Raises:
        ValidationException: One or more fields violate their rules.
        EmptyPromptError: Nothing left to send.
    """
    errors = validate_form_fields(agent, request.form_values)
    if errors:
        raise ValidationException(errors=errors)

    prompt = compose_prompt(agent, request.form_values, request.language) or request.user_prompt
    prompt = apply_modification_block(prompt, request.annotations, request.previous_ai_response)
    return sanitize_prompt(prompt)


def normalize_content(content: str, output_format: str) -> str:
    """Return text as is, or the extracted JSON payload for structured formats.

    Raises:
        MalformedResponseError: A structured format was required but no JSON was found.
    """
    if output_format not in JSON_OUTPUT_FORMATS:
        return content
    payload = extract_json(content)
    if payload is None:
        raise MalformedResponseError("Failed to extract valid JSON from AI response")
    return json_compact(payload)


async def request_completion(
    agent: AgentConfig, request: AgentRequestData, ctx: BuilderContext, *, json_mode: bool
) -> tuple[str, ChatCompletion]:
    """Build the system and user messages, send one completion and parse it.

    Returns:
        The model that was called and the parsed completion
    """
    user_prompt = build_user_prompt(agent, request)
    body_params, extra_params = resolve_params(agent, request)

    system = await build_system_prompt(
        agent,
        request.form_values,
        body_params,
        ctx.base_url,
        additional_instructions=request.additional_system_prompt,
        style_guide=ctx.style_guide,
        preloader=ctx.preloader,
        preload_timeout=ctx.settings.preload_timeout,
    )

    payload: dict[str, Any] = {
        "model": agent.model or DEFAULT_CHAT_MODEL,
        "messages": [
            {"role": "system", "content": system.system_prompt},
            {"role": "user", "content": user_prompt},
        ],
    }
    if json_mode:
        payload["response_format"] = {"type": "json_object"}
    payload.update(without_keys(body_params, PROMPT_BODY_KEYS))
    if extra_params:
        payload["extra_body"] = extra_params

    logger.debug(
        f"Chat request: model={payload['model']} kind={agent.kind} json={json_mode} prompt={preview(user_prompt)}",
        preload=system.is_loading_preload,
    )

    result = await ctx.send(ctx.settings.llm_chat_url, json=payload, timeout=ctx.settings.chat_timeout)
    return payload["model"], parse_chat_completion(result.json())


async def priced_usage(ctx: BuilderContext, model: str, completion: ChatCompletion) -> TokenUsage:
    pricing = await ctx.model_cache.compute_pricing(model, completion.prompt_tokens, completion.completion_tokens)
    return TokenUsage(
        prompt_tokens=completion.prompt_tokens,
        completion_tokens=completion.completion_tokens,
        total_tokens=completion.total_tokens,
        pricing=pricing,
    )


async def build_chat(agent: AgentConfig, request: AgentRequestData, ctx: BuilderContext) -> AgentResponseData:
    """Run one chat completion for the agent.

    Args:
        agent: Validated agent definition
        request: Per-invocation payload
        ctx: Shared collaborators (client, settings, cache)

    Returns:
        Normalized response data (timing and agent metadata are added by the dispatcher)
    """
    output_format = agent.required_output_format
    model, completion = await request_completion(
        agent, request, ctx, json_mode=output_format in JSON_OUTPUT_FORMATS
    )
    response_text = normalize_content(completion.content, output_format)

    return AgentResponseData(
        response=response_text,
        format="json" if output_format in JSON_REPORTED_FORMATS else output_format,
        token_usage=await priced_usage(ctx, model, completion),
    )

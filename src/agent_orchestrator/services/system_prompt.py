"""
System Prompt Assembler.

Builds the system message from up to nine segments in a fixed order:

1. time context
2. agent system prompt
3. selected option descriptions
4. additional instructions
5. preloaded context
6. kind block (graph rules or image rules)
7. markdown rules     (string output only)
8. reference rules    (string output only)
9. mermaid rules      (string output only)

Segments are joined with a fixed divider and empty segments are dropped, so
the output never carries a dangling divider.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

from agent_orchestrator.core.constants import (
    ORGANIZATION_RAG_ROUTE,
    PRELOAD_TIMEOUT,
    SYSTEM_PROMPT_DIVIDER,
    TEXT_OUTPUT_FORMAT,
)
from agent_orchestrator.core.prompts import DEFAULT_STYLE_GUIDE, StyleGuide, format_time_context
from agent_orchestrator.integrations.preload import ContextPreloader
from agent_orchestrator.models.agent_models import AgentConfig, PreloadRoute, RenderField
from agent_orchestrator.services.prompt_composer import resolve_image_type
from agent_orchestrator.utils.logger import logger
from agent_orchestrator.utils.text_utils import camel_to_title

OPTION_DESCRIPTIONS_HEADING = "## Selected Option Descriptions"

#: Organization-wide reference data, preloaded for every agent
ORGANIZATION_RAG_PRELOAD = PreloadRoute(
    route=ORGANIZATION_RAG_ROUTE,
    title="Organization RAG",
    description="MANDATORY: Organization RAG data for context-aware AI processing",
    method="GET",
    json_path="data",
    query_parameters={"format": "toon"},
)


class Preloader(Protocol):
    async def preload(self, routes: list[PreloadRoute], base_url: str = "") -> str: ...


@dataclass(frozen=True)
class SystemPromptResult:
    system_prompt: str
    # True when preloading was attempted, whether or not it succeeded
    is_loading_preload: bool = False


@dataclass(frozen=True)
class OptionDescription:
    field_label: str
    option_label: str
    description: str

    def render(self) -> str:
        return f"**{self.field_label} ({self.option_label})**\n\n{self.description}"


# ============================================================================
# Option Descriptions
# ============================================================================


def _field_label(field: RenderField) -> str:
    return field.label or camel_to_title(field.key or "field")


def extract_option_descriptions(agent: AgentConfig, values: dict[str, Any] | None) -> list[OptionDescription]:
    """Resolve descriptions of the options selected in ``values``.

    Values may be option ids, option-like dicts or lists of either.
    """
    if not values:
        return []

    found: list[OptionDescription] = []
    for field in agent.render_components:
        if not field.options:
            continue
        value = field.lookup_value(values)
        if value is None:
            continue
        for raw in value if isinstance(value, list | tuple) else [value]:
            option = field.find_option(raw)
            if option is not None and option.description:
                found.append(OptionDescription(_field_label(field), option.display, option.description))
    return found


def merge_option_descriptions(*sources: list[OptionDescription]) -> list[OptionDescription]:
    """Merge description lists in order, keeping the first of each distinct description text."""
    seen: set[str] = set()
    merged: list[OptionDescription] = []
    for source in sources:
        for item in source:
            key = item.description.strip()
            if key in seen:
                continue
            seen.add(key)
            merged.append(item)
    return merged


def render_option_descriptions(items: list[OptionDescription]) -> str:
    if not items:
        return ""
    return f"{OPTION_DESCRIPTIONS_HEADING}\n\n" + "\n\n".join(item.render() for item in items)


# ============================================================================
# Preload Routes
# ============================================================================


def merge_preload_routes(agent: AgentConfig) -> list[PreloadRoute]:
    """Agent routes first, then the organization route unless already listed."""
    routes = list(agent.preload_routes)
    if not any(route.route == ORGANIZATION_RAG_ROUTE for route in routes):
        routes.append(ORGANIZATION_RAG_PRELOAD)
    return routes


async def _load_preload_block(preloader: Preloader, routes: list[PreloadRoute], base_url: str) -> str:
    try:
        return await preloader.preload(routes, base_url)
    except Exception as e:
        logger.warning(f"Context preload failed, continuing without it: {e}", exc_type=type(e).__name__)
        return ""


# ============================================================================
# Assembly
# ============================================================================


async def build_system_prompt(
    agent: AgentConfig,
    form_values: dict[str, Any] | None,
    body_params: dict[str, Any] | None,
    base_url: str | None = None,
    *,
    additional_instructions: str | None = None,
    style_guide: StyleGuide | None = None,
    preloader: Preloader | None = None,
    preload_timeout: float = PRELOAD_TIMEOUT,
    now: datetime | None = None,
) -> SystemPromptResult:
    """Assemble the system prompt for one request.

    Args:
        agent: Agent definition
        form_values: Submitted form values
        body_params: Provider body parameters (may also carry option selections)
        base_url: Base URL for relative preload routes; preloading is skipped without it
        additional_instructions: Extra caller-supplied system instructions
        style_guide: Rule block texts (defaults to the built-in guide)
        preloader: Context preloader (defaults to a fresh ContextPreloader)
        preload_timeout: Per-route deadline for the default preloader
        now: Current time, injectable for deterministic output

    Returns:
        SystemPromptResult with the prompt and whether preloading was attempted
    """
    form_values = form_values or {}
    body_params = body_params or {}
    guide = style_guide or DEFAULT_STYLE_GUIDE

    segments: list[str] = [
        format_time_context(now or datetime.now(UTC)),
        agent.system_prompt or "",
        render_option_descriptions(
            merge_option_descriptions(
                extract_option_descriptions(agent, form_values),
                extract_option_descriptions(agent, body_params),
            )
        ),
        additional_instructions or "",
    ]

    is_loading_preload = False
    preload_block = ""
    routes = merge_preload_routes(agent)
    if base_url and routes:
        if preloader is None:
            preloader = ContextPreloader(timeout=preload_timeout)
        is_loading_preload = True
        preload_block = await _load_preload_block(preloader, routes, base_url)
    segments.append(preload_block)

    if agent.kind == "graph-generation":
        segments.append(guide.graph_rules)
    elif agent.kind == "image-generation":
        segments.append(guide.image_rules(resolve_image_type(form_values, body_params)))

    if agent.required_output_format == TEXT_OUTPUT_FORMAT:
        segments.extend([guide.markdown_rules, guide.reference_rules, guide.mermaid_rules])

    system_prompt = SYSTEM_PROMPT_DIVIDER.join(s.strip() for s in segments if s and s.strip())
    return SystemPromptResult(system_prompt=system_prompt, is_loading_preload=is_loading_preload)

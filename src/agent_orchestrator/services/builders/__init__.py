"""Per-kind request builders.

Each builder turns an agent definition and request into one provider call and
returns normalized AgentResponseData. Builders raise AppException subclasses
for every failure; the dispatcher converts them into failure responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from agent_orchestrator.core.constants import Settings
from agent_orchestrator.core.prompts import DEFAULT_STYLE_GUIDE, StyleGuide
from agent_orchestrator.integrations.transport import TransportResult, call_with_retry, raise_for_provider_status
from agent_orchestrator.models.agent_models import AgentConfig, AgentRequestData
from agent_orchestrator.services.model_cache import ModelMetadataCache
from agent_orchestrator.services.prompt_composer import extract_section_params
from agent_orchestrator.services.system_prompt import Preloader

#: Body keys consumed by prompt building and never forwarded to providers
PROMPT_BODY_KEYS = frozenset({"prompt", "userPrompt"})


@dataclass
class BuilderContext:
    """Collaborators shared by every builder for one dispatch call."""

    client: httpx.AsyncClient
    settings: Settings
    model_cache: ModelMetadataCache
    base_url: str | None = None
    preloader: Preloader | None = None
    style_guide: StyleGuide = DEFAULT_STYLE_GUIDE

    def auth_headers(self) -> dict[str, str]:
        if not self.settings.llm_api_key:
            return {}
        return {"Authorization": f"Bearer {self.settings.llm_api_key}"}

    async def send(self, url: str, *, timeout: float, **kwargs: Any) -> TransportResult:
        """POST to a provider with auth, 429 retries and status classification."""
        result = await call_with_retry(
            self.client,
            url,
            method="POST",
            headers=self.auth_headers(),
            timeout=timeout,
            max_retries=self.settings.retry_max_attempts,
            initial_delay=self.settings.retry_initial_delay,
            **kwargs,
        )
        return raise_for_provider_status(result)


def resolve_params(agent: AgentConfig, request: AgentRequestData) -> tuple[dict[str, Any], dict[str, Any]]:
    """Provider body and extra_body: section-tagged form values overlaid by explicit request params."""
    section_body, section_extra = extract_section_params(agent, request.form_values)
    return {**section_body, **request.body}, {**section_extra, **request.extra_body}


def without_keys(params: dict[str, Any], keys: frozenset[str]) -> dict[str, Any]:
    return {key: value for key, value in params.items() if key not in keys}


__all__ = [
    "PROMPT_BODY_KEYS",
    "BuilderContext",
    "resolve_params",
    "without_keys",
]

"""
Uniform response envelope returned by every agent kind.
"""

from __future__ import annotations

from typing import Any

from agent_orchestrator.models.agent_models import AgentConfig, CamelModel
from agent_orchestrator.models.error_models import ErrorDetail


class ModelPricing(CamelModel):
    """Unit prices in USD per one million tokens."""

    input: float | None = None
    output: float | None = None


class ModelDescriptor(CamelModel):
    """Entry from the model listing endpoint."""

    id: str
    name: str | None = None
    pricing: ModelPricing | None = None


class PricingInfo(CamelModel):
    """Cost breakdown for one chat call."""

    input_price_per_1m: float
    output_price_per_1m: float
    input_cost: float
    output_cost: float
    total_cost: float
    model_id: str


class TokenUsage(CamelModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    # None means "unknown", never zero
    pricing: PricingInfo | None = None


class VideoUsage(CamelModel):
    """Video usage is billed by duration rather than tokens."""

    duration_seconds: float | None = None
    estimated_cost: dict[str, Any] | float | None = None


class Timing(CamelModel):
    """Wall-clock timing in milliseconds."""

    start_time: float
    end_time: float
    response_time: float
    duration: float


class AgentMeta(CamelModel):
    """Agent metadata echoed back with every successful response."""

    id: str | None = None
    label: str | None = None
    description: str | None = None
    required_output_format: str | None = None
    next_action: dict[str, Any] | None = None

    @classmethod
    def from_agent(cls, agent: AgentConfig) -> AgentMeta:
        return cls(
            id=agent.id,
            label=agent.label,
            description=agent.description,
            required_output_format=agent.required_output_format,
            next_action=agent.next_action,
        )


class AgentResponseData(CamelModel):
    """Normalized success payload.

    ``response`` is always a string: plain text, a JSON document, or a JSON
    stringified descriptor for image/video/transcript results.
    """

    response: str
    format: str
    token_usage: TokenUsage | None = None
    video_usage: VideoUsage | None = None
    timing: Timing | None = None
    agent: AgentMeta | None = None


class AgentResponse(CamelModel):
    """Result envelope. Failures never raise past the orchestrator entry point."""

    success: bool
    data: AgentResponseData | None = None
    error: str | None = None
    validation_errors: list[ErrorDetail] | None = None

    @classmethod
    def ok(cls, data: AgentResponseData) -> AgentResponse:
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str, validation_errors: list[ErrorDetail] | None = None) -> AgentResponse:
        return cls(success=False, error=error, validation_errors=validation_errors or None)

    def to_json(self, indent: int | None = None) -> str:
        """Convert to a camelCase JSON string. Unknown values stay null."""
        return self.model_dump_json(by_alias=True, indent=indent)


__all__ = [
    "AgentMeta",
    "AgentResponse",
    "AgentResponseData",
    "ModelDescriptor",
    "ModelPricing",
    "PricingInfo",
    "Timing",
    "TokenUsage",
    "VideoUsage",
]

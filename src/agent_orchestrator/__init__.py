"""
Agent Orchestrator - AI agent request orchestration core
========================================================

Turns a declarative agent definition plus a per-request payload into one
provider call (chat, image, video or voice transcription) and normalizes the
result into a uniform response envelope.

Key Features:
    - **Single Entry Point**: ``dispatch(agent, request, base_url)`` never raises
    - **Prompt Composition**: Deterministic user prompts from typed render fields
    - **System Prompt Assembly**: Fixed segment order with preloaded context
    - **Pricing**: Token-based cost from a TTL-cached model listing
    - **Error Classification**: Readable messages for gateway and provider errors
    - **Enterprise Logging**: Colored console plus JSON error logs with request IDs

Modules:
    core: Settings, constants, exceptions and default rule texts
    models: Pydantic models for agent configs, requests and responses
    services: Validation, prompt building, dispatch and per-kind builders
    integrations: Provider transport and context preloading
    utils: Logging, caching, metrics, HTTP client and text helpers

Example:
    from agent_orchestrator import AgentConfig, AgentRequestData, dispatch

    response = await dispatch(agent, AgentRequestData(form_values={"topic": "pricing"}))
    print(response.to_json(indent=2))
"""

from __future__ import annotations

from agent_orchestrator.models.agent_models import AgentConfig, AgentRequestData
from agent_orchestrator.models.response_models import AgentResponse
from agent_orchestrator.services.dispatcher import dispatch

__all__ = ["AgentConfig", "AgentRequestData", "AgentResponse", "dispatch"]

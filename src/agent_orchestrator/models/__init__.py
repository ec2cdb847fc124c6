"""
Models Module - Data Models and Type Definitions
=================================================

Pydantic v2 models for inbound agent definitions and requests, outbound
response envelopes, and error details. Inbound models accept camelCase keys
from the form layer as well as snake_case names.

Modules:
    agent_models: AgentConfig, render field variants, preload routes, requests
    response_models: AgentResponse envelope, token/video usage, pricing
    error_models: ErrorCode enum, ErrorDetail and fixed user-facing messages
"""

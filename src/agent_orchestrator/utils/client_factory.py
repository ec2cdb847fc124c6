"""
HTTP client factory utilities.
Centralizes httpx.AsyncClient creation with consistent configuration.
"""

from __future__ import annotations

import httpx

from agent_orchestrator.utils.http_logger import logging_event_hooks

# Per-phase limits. The overall per-kind deadline is enforced separately by
# the transport layer, so the read timeout only guards a stalled socket.
DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_READ_TIMEOUT = 600.0  # Video generation can hold a response for minutes
DEFAULT_WRITE_TIMEOUT = 30.0
DEFAULT_POOL_TIMEOUT = 30.0


def create_http_client(
    enable_logging: bool = False,
    read_timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an HTTP client for provider and collaborator calls.

    Args:
        enable_logging: Enable HTTP request/response logging
        read_timeout: Read timeout in seconds (default: 600s)
        transport: Optional transport override (e.g. httpx.MockTransport in tests)

    Returns:
        Configured httpx.AsyncClient
    """
    effective_read_timeout = read_timeout if read_timeout is not None else DEFAULT_READ_TIMEOUT
    timeout = httpx.Timeout(
        connect=DEFAULT_CONNECT_TIMEOUT,
        read=effective_read_timeout,
        write=DEFAULT_WRITE_TIMEOUT,
        pool=DEFAULT_POOL_TIMEOUT,
    )

    if enable_logging:
        return httpx.AsyncClient(timeout=timeout, transport=transport, event_hooks=logging_event_hooks())

    return httpx.AsyncClient(timeout=timeout, transport=transport)

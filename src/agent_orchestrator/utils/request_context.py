"""
Request-scoped context for agent invocations.

Provides a request ID and agent identity to every log line emitted while a
single orchestration call is in flight, without threading them through
function arguments.
"""

from __future__ import annotations

import secrets
import time

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

_request_context: ContextVar[RequestContext | None] = ContextVar("agent_request_context", default=None)

REQUEST_ID_PREFIX = "agt_"


@dataclass
class RequestContext:
    """Metadata for the orchestration call currently running."""

    request_id: str
    agent_id: str | None = None
    agent_kind: str | None = None
    start_time: float = field(default_factory=time.monotonic)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def elapsed_ms(self) -> float:
        """Get elapsed time since the call started in milliseconds."""
        return (time.monotonic() - self.start_time) * 1000

    def to_log_context(self) -> dict[str, Any]:
        """Get context dict for logging."""
        ctx: dict[str, Any] = {
            "request_id": self.request_id,
            "elapsed_ms": round(self.elapsed_ms, 2),
        }
        if self.agent_id:
            ctx["agent_id"] = self.agent_id
        if self.agent_kind:
            ctx["agent_kind"] = self.agent_kind
        ctx.update(self.extra)
        return ctx


def generate_request_id(prefix: str = REQUEST_ID_PREFIX) -> str:
    """Generate a unique request ID.

    Format: prefix + 16 hex characters (64 bits of entropy)
    """
    return f"{prefix}{secrets.token_hex(8)}"


def get_request_context() -> RequestContext | None:
    """Get the current request context, or None outside an orchestration call."""
    return _request_context.get()


def update_request_context(**kwargs: Any) -> None:
    """Update fields in the current request context.

    Unknown keys are stored in ``extra`` and logged with every line.
    """
    ctx = get_request_context()
    if ctx:
        for key, value in kwargs.items():
            if hasattr(ctx, key) and key != "extra":
                setattr(ctx, key, value)
            else:
                ctx.extra[key] = value


@contextmanager
def request_context(agent_id: str | None = None, agent_kind: str | None = None) -> Iterator[RequestContext]:
    """Install a fresh context for the duration of one orchestration call."""
    context = RequestContext(request_id=generate_request_id(), agent_id=agent_id, agent_kind=agent_kind)
    token = _request_context.set(context)
    try:
        yield context
    finally:
        _request_context.reset(token)


__all__ = [
    "REQUEST_ID_PREFIX",
    "RequestContext",
    "generate_request_id",
    "get_request_context",
    "request_context",
    "update_request_context",
]

"""
Prometheus metrics for the agent orchestrator.

Defines custom metrics; exposition is left to the host application.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# Use standard Prometheus naming conventions: namespace_subsystem_name_unit
NAMESPACE = "agentorch"


# ============================================================================
# Agent Request Metrics
# ============================================================================

agent_requests_total = Counter(
    f"{NAMESPACE}_agent_requests_total",
    "Total orchestration calls",
    ["kind", "outcome"],  # outcome: "success", "validation_error", "timeout", "provider_error", "error"
)

agent_request_duration_seconds = Histogram(
    f"{NAMESPACE}_agent_request_duration_seconds",
    "Wall-clock duration of orchestration calls",
    ["kind"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
)


# ============================================================================
# Provider Metrics
# ============================================================================

provider_errors_total = Counter(
    f"{NAMESPACE}_provider_errors_total",
    "Non-2xx provider responses",
    ["status_class"],  # "4xx", "5xx"
)

provider_retries_total = Counter(
    f"{NAMESPACE}_provider_retries_total",
    "Retries issued after HTTP 429",
)


# ============================================================================
# Cache and Preload Metrics
# ============================================================================

model_cache_refresh_total = Counter(
    f"{NAMESPACE}_model_cache_refresh_total",
    "Model metadata cache refreshes",
    ["outcome"],  # "success" or "failure"
)

preload_failures_total = Counter(
    f"{NAMESPACE}_preload_failures_total",
    "Context preload routes that failed to load",
)


def status_class(status: int) -> str:
    """Collapse an HTTP status into its class label."""
    return f"{status // 100}xx"

"""
Transport Layer - deadline-scoped provider calls and HTTP error classification.

Every call runs under ``asyncio.timeout()``; when the deadline fires the
in-flight request is cancelled and TransportTimeout is raised instead of a
generic transport failure. Non-2xx responses are turned into readable
messages without ever surfacing raw provider payloads.
"""

from __future__ import annotations

import asyncio
import re

from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from http import HTTPStatus
from typing import Any

import httpx

from agent_orchestrator.core.constants import (
    DEFAULT_RETRY_INITIAL_DELAY,
    DEFAULT_RETRY_MAX_ATTEMPTS,
    MAX_ERROR_BODY_LENGTH,
)
from agent_orchestrator.core.exceptions import ProviderHttpError, TransportTimeout
from agent_orchestrator.utils.json_utils import safe_json_loads
from agent_orchestrator.utils.logger import logger
from agent_orchestrator.utils.metrics import provider_errors_total, provider_retries_total, status_class

#: Fixed messages for statuses that usually come back as opaque gateway pages
STATUS_MESSAGES: dict[int, str] = {
    429: "Rate limit exceeded. Please wait a moment before trying again.",
    500: "The AI service encountered an internal error. Please try again later.",
    502: "The AI service is temporarily unavailable (502). Please try again in a few moments.",
    503: "The AI service is temporarily unavailable (503). Please try again in a few moments.",
    504: "The AI service is temporarily unavailable (504). Please try again in a few moments.",
}

_HTML_CODE_MESSAGE = re.compile(r"\b(\d{3})\s*:\s*(\S.*)")
_HTML_TITLE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_HTML_H1 = re.compile(r"<h1[^>]*>(.*?)</h1>", re.IGNORECASE | re.DOTALL)
_HTML_TAG = re.compile(r"<[^>]+>")


@dataclass
class TransportResult:
    """Raw outcome of one provider call."""

    ok: bool
    status: int
    text: str
    headers: dict[str, str] = field(default_factory=dict)
    reason: str = ""

    def json(self) -> Any | None:
        """Parsed body, or None when it is not valid JSON."""
        return safe_json_loads(self.text)


# ============================================================================
# Error Classification
# ============================================================================


def _looks_like_html(text: str, content_type: str) -> bool:
    if "html" in content_type:
        return True
    head = text.lstrip()[:100].lower()
    return head.startswith("<!doctype html") or head.startswith("<html")


def _strip_tags(fragment: str) -> str:
    return " ".join(_HTML_TAG.sub(" ", fragment).split())


def _cap(message: str) -> str:
    if len(message) <= MAX_ERROR_BODY_LENGTH:
        return message
    return message[: MAX_ERROR_BODY_LENGTH - 3].rstrip() + "..."


def _message_from_html(text: str) -> str | None:
    # Matched per text node so a "code: message" line never runs into the rest of the page
    for node in _HTML_TAG.split(text):
        line = " ".join(node.split())
        if match := _HTML_CODE_MESSAGE.search(line):
            return _cap(f"{match.group(1)}: {match.group(2).strip()}")
    for pattern in (_HTML_TITLE, _HTML_H1):
        if match := pattern.search(text):
            found = _strip_tags(match.group(1))
            if found:
                return _cap(found)
    return None


def _message_from_json(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str) and error["message"]:
        return error["message"]
    if isinstance(payload.get("message"), str) and payload["message"]:
        return payload["message"]
    if isinstance(error, str) and error:
        return error
    return None


def _generic_message(status: int, reason: str) -> str:
    if not reason:
        try:
            reason = HTTPStatus(status).phrase
        except ValueError:
            reason = "Unknown Error"
    return f"Request failed with status {status}: {reason}"


def classify_error(status: int, text: str, content_type: str = "", reason: str = "") -> str:
    """Turn a non-2xx response into a human-readable message.

    The fixed status table wins over the body. Otherwise HTML is scraped for a
    ``<code>: <message>`` line, a ``<title>`` or an ``<h1>``; JSON is read for
    ``error.message``, ``message`` or a string ``error``; short raw text is
    used as is and anything larger collapses to a generic status message.

    Args:
        status: HTTP status code
        text: Response body
        content_type: Response Content-Type header
        reason: HTTP reason phrase

    Returns:
        Message safe to show to end users
    """
    if status in STATUS_MESSAGES:
        return STATUS_MESSAGES[status]

    if text and _looks_like_html(text, content_type):
        return _message_from_html(text) or _generic_message(status, reason)

    if message := _message_from_json(safe_json_loads(text)):
        return message

    stripped = (text or "").strip()
    if stripped and len(stripped) <= MAX_ERROR_BODY_LENGTH:
        return stripped
    return _generic_message(status, reason)


def raise_for_provider_status(result: TransportResult) -> TransportResult:
    """Convert a non-2xx result into ProviderHttpError.

    Raises:
        ProviderHttpError: When ``result.ok`` is False.
    """
    if result.ok:
        return result

    provider_errors_total.labels(status_class=status_class(result.status)).inc()
    message = classify_error(result.status, result.text, result.headers.get("content-type", ""), result.reason)
    logger.warning(f"Provider returned HTTP {result.status}: {message}", status=result.status)
    raise ProviderHttpError(result.status, message)


# ============================================================================
# Calls
# ============================================================================


async def call(
    client: httpx.AsyncClient,
    url: str,
    *,
    method: str = "POST",
    headers: dict[str, str] | None = None,
    json: Any = None,
    data: dict[str, Any] | None = None,
    files: dict[str, Any] | None = None,
    timeout: float,
) -> TransportResult:
    """Send one request under a deadline.

    Args:
        client: Shared HTTP client
        url: Absolute endpoint URL
        method: HTTP method
        headers: Request headers (auth included by the caller)
        json: JSON body
        data: Form fields for multipart or urlencoded bodies
        files: Multipart file parts
        timeout: Deadline in seconds for the whole exchange

    Returns:
        TransportResult for any HTTP status

    Raises:
        TransportTimeout: The deadline fired before a response arrived.
    """
    try:
        async with asyncio.timeout(timeout):
            response = await client.request(method, url, headers=headers, json=json, data=data, files=files)
    except (TimeoutError, httpx.TimeoutException) as e:
        logger.warning(f"Provider call timed out after {timeout:.0f}s: {url}", url=url, timeout=timeout)
        raise TransportTimeout(url, timeout) from e

    return TransportResult(
        ok=response.is_success,
        status=response.status_code,
        text=response.text,
        headers={key.lower(): value for key, value in response.headers.items()},
        reason=response.reason_phrase,
    )


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP date)."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return max(0.0, (when - (now or datetime.now(UTC))).total_seconds())


async def call_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    max_retries: int = DEFAULT_RETRY_MAX_ATTEMPTS,
    initial_delay: float = DEFAULT_RETRY_INITIAL_DELAY,
    **kwargs: Any,
) -> TransportResult:
    """Like ``call``, retrying HTTP 429 with Retry-After or exponential backoff.

    Each attempt gets its own deadline. Other statuses are returned at once.
    """
    delay = initial_delay
    attempt = 0
    while True:
        result = await call(client, url, **kwargs)
        if result.status != 429 or attempt >= max_retries:
            return result

        attempt += 1
        wait = parse_retry_after(result.headers.get("retry-after"))
        if wait is None:
            wait = delay
            delay *= 2
        provider_retries_total.inc()
        logger.info(f"Rate limited (429), retry {attempt}/{max_retries} in {wait:.1f}s", attempt=attempt)
        await asyncio.sleep(wait)

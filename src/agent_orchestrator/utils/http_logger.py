"""
HTTP request/response logging for debugging provider calls.

Captures request payloads and response status using httpx event hooks.
Multipart uploads are summarized rather than dumped.
"""

from __future__ import annotations

import json

from typing import Any

import httpx

from agent_orchestrator.utils.logger import logger

SENSITIVE_HEADERS = ("authorization", "api-key", "x-api-key")

#: Request extension key holding the method and URL for response correlation
REQUEST_LOG_EXTENSION = "agent_orchestrator.http_log"


class HTTPLogger:
    """Logs HTTP requests and responses for debugging."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    async def log_request(self, request: httpx.Request) -> None:
        """Log outgoing HTTP request.

        Args:
            request: The httpx request object
        """
        if not self.enabled:
            return

        try:
            payload = self._decode_body(request)
            # Dropped together with the request whether or not a response arrives
            request.extensions[REQUEST_LOG_EXTENSION] = {"method": request.method, "url": str(request.url)}

            logger.info(
                f"HTTP Request: {request.method} {request.url}",
                http_request=True,
                method=request.method,
                url=str(request.url),
                headers=sanitize_headers(dict(request.headers)),
                payload=payload,
            )
            if isinstance(payload, dict) and payload:
                logger.debug(f"Request Payload:\n{json.dumps(payload, indent=2, default=str)}")

        except Exception as e:
            logger.error(f"Error logging HTTP request: {e}", exc_info=True)

    async def log_response(self, response: httpx.Response) -> None:
        """Log HTTP response status, correlated with its request.

        Args:
            response: The httpx response object
        """
        if not self.enabled:
            return

        try:
            request_data = response.request.extensions.get(REQUEST_LOG_EXTENSION, {})
            logger.info(
                f"HTTP Response: {response.status_code} {request_data.get('method', 'UNKNOWN')} "
                f"{request_data.get('url', 'UNKNOWN')}",
                http_response=True,
                status_code=response.status_code,
                content_type=response.headers.get("content-type"),
            )
        except Exception as e:
            logger.error(f"Error logging HTTP response: {e}", exc_info=True)

    @staticmethod
    def _decode_body(request: httpx.Request) -> dict[str, Any] | str:
        content_type = request.headers.get("content-type", "")
        if content_type.startswith("multipart/"):
            return f"<multipart body: {request.headers.get('content-length', '?')} bytes>"
        if not request.content:
            return {}
        try:
            body = json.loads(request.content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return f"<non-JSON body: {len(request.content)} bytes>"
        return body if isinstance(body, dict) else {"body": body}


def sanitize_headers(headers: dict[str, str]) -> dict[str, str]:
    """Remove sensitive data from headers.

    Args:
        headers: Original headers dictionary

    Returns:
        Sanitized headers with secrets reduced to their last 4 characters
    """
    sanitized = headers.copy()
    for actual_key, value in headers.items():
        if actual_key.lower() in SENSITIVE_HEADERS:
            sanitized[actual_key] = f"***{value[-4:]}" if len(value) > 4 else "***"
    return sanitized


def logging_event_hooks(enabled: bool = True) -> dict[str, list[Any]]:
    """Build httpx event hooks that log every request and response."""
    http_logger = HTTPLogger(enabled=enabled)
    return {
        "request": [http_logger.log_request],
        "response": [http_logger.log_response],
    }

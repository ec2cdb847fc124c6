"""
Exception hierarchy for the agent orchestrator.

Every category of failure maps to one AppException subclass carrying an
ErrorCode. The dispatcher turns these into AgentResponse failures; nothing
raised here ever escapes the public entry point.
"""

from __future__ import annotations

from typing import Any

from agent_orchestrator.models.error_models import ErrorCode, ErrorDetail, get_error_message


class AppException(Exception):
    """Base application exception with error code support.

    Example:
        raise AppException(
            code=ErrorCode.VALIDATION_ERROR,
            message="Invalid size",
            details={"size": size},
        )
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        self.cause = cause
        super().__init__(message)


class ConfigurationError(AppException):
    """Malformed agent configuration (bad kind, missing id or model)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(code=ErrorCode.INTERNAL_CONFIGURATION_ERROR, message=message, details=details)


class ValidationException(AppException):
    """Validation errors with field-level details."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: list[ErrorDetail] | None = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            details={"errors": [e.model_dump() for e in errors]} if errors else None,
        )
        self.errors = errors or []


class EmptyPromptError(AppException):
    """Prompt became empty after sanitization."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_EMPTY_PROMPT,
            message=get_error_message(ErrorCode.VALIDATION_EMPTY_PROMPT),
        )


class TransportTimeout(AppException):
    """Outbound call exceeded its deadline and was cancelled."""

    def __init__(self, url: str, timeout: float):
        super().__init__(
            code=ErrorCode.EXTERNAL_TIMEOUT,
            message=get_error_message(ErrorCode.EXTERNAL_TIMEOUT),
            details={"url": url, "timeout": timeout},
        )


class ProviderHttpError(AppException):
    """Non-2xx provider response, already classified into a readable message."""

    def __init__(self, status: int, message: str):
        code = ErrorCode.EXTERNAL_RATE_LIMITED if status == 429 else ErrorCode.EXTERNAL_SERVICE_ERROR
        super().__init__(code=code, message=message, details={"status": status})
        self.status = status


class MalformedResponseError(AppException):
    """2xx response that lacks an expected field or JSON payload."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(code=ErrorCode.EXTERNAL_MALFORMED_RESPONSE, message=message, details=details)


class PreloadFailure(AppException):
    """A context preload route failed. Logged, never returned to callers."""

    def __init__(self, route: str, message: str, cause: Exception | None = None):
        super().__init__(
            code=ErrorCode.EXTERNAL_PRELOAD_FAILED,
            message=message,
            details={"route": route},
            cause=cause,
        )
        self.route = route

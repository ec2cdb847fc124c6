"""
Error codes and error detail models for the agent orchestrator.

Every failure surfaced to callers carries a stable code from ErrorCode so that
logs, metrics and responses can be correlated by category.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Application-specific error codes for categorization."""

    # Validation errors (2xxx)
    VALIDATION_ERROR = "VAL_2001"
    VALIDATION_MISSING_FIELD = "VAL_2002"
    VALIDATION_INVALID_FORMAT = "VAL_2003"
    VALIDATION_CONSTRAINT_VIOLATION = "VAL_2004"
    VALIDATION_EMPTY_PROMPT = "VAL_2005"

    # File errors (5xxx)
    FILE_TOO_LARGE = "FILE_5002"
    FILE_INVALID_TYPE = "FILE_5003"

    # External service errors (7xxx)
    EXTERNAL_SERVICE_ERROR = "EXT_7001"
    EXTERNAL_TIMEOUT = "EXT_7002"
    EXTERNAL_RATE_LIMITED = "EXT_7003"
    EXTERNAL_MALFORMED_RESPONSE = "EXT_7004"
    EXTERNAL_PRELOAD_FAILED = "EXT_7005"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "INT_9001"
    INTERNAL_CONFIGURATION_ERROR = "INT_9002"
    INTERNAL_UNSUPPORTED_KIND = "INT_9003"
    INTERNAL_UNEXPECTED = "INT_9999"


class ErrorDetail(BaseModel):
    """Detailed information about a specific validation or sub-error."""

    field: str | None = None
    message: str
    code: str | None = None
    value: Any | None = Field(default=None, exclude=True)  # Never echoed back


# Fixed user-facing messages, keyed by code
ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.VALIDATION_ERROR: "Validation failed",
    ErrorCode.VALIDATION_EMPTY_PROMPT: "Prompt cannot be empty after sanitization",
    ErrorCode.EXTERNAL_TIMEOUT: "Request timeout. The service took too long to respond. Please try again.",
    ErrorCode.EXTERNAL_SERVICE_ERROR: "The AI service returned an error. Please try again later.",
    ErrorCode.EXTERNAL_RATE_LIMITED: "Rate limit exceeded. Please wait a moment before trying again.",
    ErrorCode.INTERNAL_CONFIGURATION_ERROR: "Invalid agent configuration",
    ErrorCode.INTERNAL_ERROR: "An unexpected error occurred. Please try again.",
    ErrorCode.INTERNAL_UNEXPECTED: "An unexpected error occurred. Please try again.",
}


def get_error_message(code: ErrorCode) -> str:
    """Get the default user-facing message for an error code."""
    return ERROR_MESSAGES.get(code, ERROR_MESSAGES[ErrorCode.INTERNAL_ERROR])

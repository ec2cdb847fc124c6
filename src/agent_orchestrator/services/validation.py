"""Validation and sanitization for agent configs and untrusted request input.

Config problems raise ConfigurationError before any network activity. Field
rule violations are accumulated across every field so the caller can report
all of them in one round trip.
"""

from __future__ import annotations

import re

from typing import Any

from agent_orchestrator.core.constants import (
    AGENT_KINDS,
    ALLOWED_FILE_MIME_PREFIXES,
    MAX_FILE_SIZE,
    MAX_PROMPT_LENGTH,
    VALID_IMAGE_OUTPUT_FORMATS,
    VALID_IMAGE_SIZES,
    VALID_VIDEO_DURATIONS,
    VALID_VIDEO_OUTPUT_FORMATS,
    VALID_VIDEO_SIZES,
)
from agent_orchestrator.core.exceptions import ConfigurationError, EmptyPromptError, ValidationException
from agent_orchestrator.models.agent_models import AgentConfig, FileAttachment, ValidationRules
from agent_orchestrator.models.error_models import ErrorCode, ErrorDetail

# NUL plus C0 controls except \t (0x09), \n (0x0A) and \r (0x0D), and DEL
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


# ============================================================================
# Agent Configuration
# ============================================================================


def check_agent_config(agent: AgentConfig) -> list[ErrorDetail]:
    """Collect structural problems with an agent definition."""
    errors: list[ErrorDetail] = []
    if not agent.id:
        errors.append(ErrorDetail(field="id", message="Agent id is required"))
    if not agent.kind:
        errors.append(ErrorDetail(field="kind", message="Agent kind is required"))
    elif agent.kind not in AGENT_KINDS:
        errors.append(ErrorDetail(field="kind", message=f"Unknown agent kind: {agent.kind}"))
    if agent.kind == "chat" and not agent.model:
        errors.append(ErrorDetail(field="model", message="Chat agents must declare a model"))
    return errors


def validate_agent_config(agent: AgentConfig) -> None:
    """Raise ConfigurationError when the agent definition is malformed.

    Raises:
        ConfigurationError: Missing id, kind outside the closed set, or a chat
            agent without a model.
    """
    errors = check_agent_config(agent)
    if errors:
        raise ConfigurationError(
            message=f"Invalid agent configuration: {'; '.join(e.message for e in errors)}",
            details={"errors": [e.model_dump() for e in errors]},
        )


# ============================================================================
# Form Fields
# ============================================================================


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, list | tuple | dict):
        return len(value) == 0
    return str(value).strip() == ""


def _item_label(item: Any) -> str:
    if isinstance(item, dict):
        return str(item.get("label") or item.get("value") or "").strip()
    return str(item).strip()


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def validate_value(value: Any, rules: ValidationRules) -> str | None:
    """Apply declarative rules to one submitted value.

    Returns:
        The message for the first failing rule, or None when the value passes.
    """
    if rules.required and _is_empty(value):
        return "This field is required"
    if _is_empty(value):
        return None

    length = len(value) if isinstance(value, list | tuple) else len(str(value))
    if rules.min_length and length < rules.min_length:
        return f"Minimum length is {rules.min_length}"
    if rules.max_length and length > rules.max_length:
        return f"Maximum length is {rules.max_length}"

    if rules.min is not None:
        number = _as_number(value)
        if number is None or number < rules.min:
            return f"Minimum value is {rules.min:g}"
    if rules.max is not None:
        number = _as_number(value)
        if number is None or number > rules.max:
            return f"Maximum value is {rules.max:g}"

    if rules.pattern:
        try:
            pattern = re.compile(rules.pattern)
        except re.error:
            # An unparseable pattern is an authoring mistake; do not block input
            return None
        items = value if isinstance(value, list | tuple) else [value]
        for item in items:
            label = _item_label(item)
            if label and not pattern.search(label):
                return "Invalid format"

    return None


def validate_form_fields(agent: AgentConfig, form_values: dict[str, Any]) -> list[ErrorDetail]:
    """Validate every non-routed field and accumulate all failures.

    Args:
        agent: Agent definition with render fields
        form_values: Submitted values keyed by field name or id

    Returns:
        One ErrorDetail per invalid field, empty when everything passes
    """
    errors: list[ErrorDetail] = []
    for field in agent.render_components:
        if field.is_routed or field.validation is None:
            continue
        message = validate_value(field.lookup_value(form_values), field.validation)
        if message:
            errors.append(
                ErrorDetail(
                    field=field.name or field.id or "unknown",
                    message=message,
                    code=ErrorCode.VALIDATION_CONSTRAINT_VIOLATION.value,
                )
            )
    return errors


# ============================================================================
# Prompt Sanitization
# ============================================================================


def sanitize_prompt(prompt: str | None) -> str:
    """Trim, strip control characters and cap prompt length.

    Raises:
        EmptyPromptError: If nothing is left after sanitization.
    """
    if not prompt:
        raise EmptyPromptError()
    cleaned = _CONTROL_CHARS.sub("", prompt).strip()
    if len(cleaned) > MAX_PROMPT_LENGTH:
        cleaned = cleaned[:MAX_PROMPT_LENGTH].rstrip()
    if not cleaned:
        raise EmptyPromptError()
    return cleaned


# ============================================================================
# Provider Parameters
# ============================================================================


def _reject(field: str, message: str, code: ErrorCode = ErrorCode.VALIDATION_INVALID_FORMAT) -> ValidationException:
    return ValidationException(message=message, errors=[ErrorDetail(field=field, message=message, code=code.value)])


def validate_image_size(size: Any) -> str:
    """Ensure the requested image size is on the allow-list."""
    if not isinstance(size, str) or size not in VALID_IMAGE_SIZES:
        raise _reject("size", f"Invalid size. Must be one of: {', '.join(VALID_IMAGE_SIZES)}")
    return size


def validate_image_output_format(output_format: Any) -> str:
    """Ensure the image output format is "url" or "png"."""
    if output_format not in VALID_IMAGE_OUTPUT_FORMATS:
        raise _reject(
            "output_format",
            f'Output format must be either "url" or "png". Received: {output_format}',
        )
    return str(output_format)


def validate_video_size(size: Any) -> str:
    """Ensure the requested video resolution is on the allow-list."""
    if not isinstance(size, str) or size not in VALID_VIDEO_SIZES:
        raise _reject("size", f"Invalid video size. Must be one of: {', '.join(VALID_VIDEO_SIZES)}")
    return size


def validate_video_duration(seconds: Any) -> int:
    """Ensure the requested clip length is one of the supported durations."""
    number = _as_number(seconds)
    if number is None or not number.is_integer() or int(number) not in VALID_VIDEO_DURATIONS:
        allowed = ", ".join(str(d) for d in VALID_VIDEO_DURATIONS)
        raise _reject("seconds", f"Invalid video duration. Must be one of: {allowed} seconds")
    return int(number)


def validate_video_output_format(output_format: Any) -> str:
    """Ensure the video output format is on the allow-list."""
    if output_format not in VALID_VIDEO_OUTPUT_FORMATS:
        allowed = ", ".join(f'"{f}"' for f in VALID_VIDEO_OUTPUT_FORMATS)
        raise _reject("output_format", f"Output format must be one of {allowed}. Received: {output_format}")
    return str(output_format)


def validate_file(file: FileAttachment) -> FileAttachment:
    """Check upload size and MIME type.

    Raises:
        ValidationException: File is empty, too large, or of a disallowed type.
    """
    if file.size == 0:
        raise _reject("file", "File is empty")
    if file.size > MAX_FILE_SIZE:
        limit_mb = MAX_FILE_SIZE // (1024 * 1024)
        raise _reject("file", f"File size exceeds maximum allowed size of {limit_mb}MB", ErrorCode.FILE_TOO_LARGE)
    if not file.content_type.startswith(ALLOWED_FILE_MIME_PREFIXES):
        raise _reject("file", f"Unsupported file type: {file.content_type}", ErrorCode.FILE_INVALID_TYPE)
    return file

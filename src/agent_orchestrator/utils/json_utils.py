"""Centralized JSON serialization and extraction utilities."""

from __future__ import annotations

import json
import re

from collections.abc import Callable
from functools import partial
from typing import Any

# Compact JSON serialization (no spaces) with fallback to str for non-serializable types.
# Example: json_compact({"key": "value"}) -> '{"key":"value"}'
json_compact: Callable[..., str] = partial(json.dumps, separators=(",", ":"), default=str, ensure_ascii=False)

# Pretty-printed JSON with 2-space indentation.
# Use for prompt context blocks and stringified response descriptors.
json_pretty: Callable[..., str] = partial(json.dumps, indent=2, default=str, ensure_ascii=False)

_FENCED_JSON = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL | re.IGNORECASE)


def safe_json_loads(text: str | bytes | None) -> Any | None:
    """Parse JSON, returning None instead of raising on invalid input."""
    if not text:
        return None
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


def _balanced_span(text: str, start: int) -> str | None:
    """Return the bracket-balanced substring starting at ``start``, honoring strings."""
    opener = text[start]
    closer = "}" if opener == "{" else "]"
    depth = 0
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def extract_json(text: str | None) -> Any | None:
    """Extract a JSON object or array embedded in model output.

    Tries, in order: the whole text, fenced code blocks, then balanced
    ``{...}`` spans and finally ``[...]`` spans, each from left to right.

    Args:
        text: Raw model output, possibly prose around a JSON payload

    Returns:
        The parsed dict or list, or None when nothing usable is found
    """
    if not text or not text.strip():
        return None

    direct = safe_json_loads(text.strip())
    if isinstance(direct, dict | list):
        return direct

    for match in _FENCED_JSON.finditer(text):
        fenced = safe_json_loads(match.group(1).strip())
        if isinstance(fenced, dict | list):
            return fenced

    # Objects first so citation markers like "[1]" in prose never win
    for opener in "{[":
        for index, char in enumerate(text):
            if char != opener:
                continue
            span = _balanced_span(text, index)
            if span is None:
                continue
            parsed = safe_json_loads(span)
            if isinstance(parsed, dict | list):
                return parsed

    return None

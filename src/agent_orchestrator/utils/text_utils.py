"""Text helpers shared by the prompt composer and context preloader.

TOON is the compact tabular list format used to present arrays inside prompt
text: a ``name[count]{field,...}:`` header followed by one indented row per
item with comma-separated values.
"""

from __future__ import annotations

import re

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_SEPARATORS = re.compile(r"[_\-\s]+")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def camel_to_title(name: str) -> str:
    """Convert a camelCase, snake_case or kebab-case name to Title Case.

    Example:
        >>> camel_to_title("targetAudience")
        'Target Audience'
    """
    spaced = _SEPARATORS.sub(" ", _CAMEL_BOUNDARY.sub(" ", name)).strip()
    return " ".join(word[:1].upper() + word[1:] for word in spaced.split(" ") if word)


def clean_text(value: Any) -> str:
    """Stringify and strip control characters (keeps newlines and tabs)."""
    if value is None:
        return ""
    return _CONTROL_CHARS.sub("", str(value)).strip()


def _toon_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list | tuple):
        return "|".join(_toon_value(v) for v in value)
    text = clean_text(value).replace("\n", " ")
    if "," in text or '"' in text:
        text = '"' + text.replace('"', '""') + '"'
    return text


def format_to_toon(name: str, items: Sequence[Any], fields: Sequence[str]) -> str:
    """Render a list of records as a TOON block.

    Args:
        name: Collection name used in the header
        items: Records (mappings) or scalar values
        fields: Columns to emit, in order

    Returns:
        The TOON text, or an empty string when there is nothing to render
    """
    if not items or not fields:
        return ""

    header = f"{name}[{len(items)}]{{{','.join(fields)}}}:"
    rows = []
    for item in items:
        if isinstance(item, Mapping):
            rows.append("  " + ",".join(_toon_value(item.get(field)) for field in fields))
        else:
            rows.append("  " + _toon_value(item))
    return "\n".join([header, *rows])


def format_labels_to_toon(name: str, labels: Iterable[str]) -> str:
    """Render selected option or list labels as a single-column TOON block."""
    return format_to_toon(name, [{"label": label} for label in labels], ["label"])

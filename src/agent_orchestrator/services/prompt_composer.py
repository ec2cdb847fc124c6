"""
Prompt Composer - turns structured form values into one user prompt.

Rendering is pure: identical inputs always produce byte-identical text. Only
the system prompt assembler injects time-dependent content.
"""

from __future__ import annotations

import re

from typing import Any, assert_never

from agent_orchestrator.core.constants import (
    DEFAULT_FIELD_ORDER,
    DEFAULT_IMAGE_TYPE,
    DEFAULT_LANGUAGE,
    LANGUAGE_FIELD_NAMES,
    PROMPT_PART_SEPARATOR,
)
from agent_orchestrator.models.agent_models import (
    AgentConfig,
    FieldOption,
    ListField,
    MultiOptionField,
    RenderField,
    SchemaAnnotation,
    SelectField,
    TextField,
)
from agent_orchestrator.utils.text_utils import camel_to_title, format_labels_to_toon

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "fa": "Persian (Farsi)",
    "ar": "Arabic",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "tr": "Turkish",
    "hi": "Hindi",
    "nl": "Dutch",
    "pl": "Polish",
    "sv": "Swedish",
    "da": "Danish",
    "fi": "Finnish",
    "no": "Norwegian",
    "cs": "Czech",
    "hu": "Hungarian",
    "ro": "Romanian",
    "bg": "Bulgarian",
    "hr": "Croatian",
    "sk": "Slovak",
    "sl": "Slovenian",
    "et": "Estonian",
    "lv": "Latvian",
    "lt": "Lithuanian",
}

#: Abbreviations that stay in English whatever the output language
ENGLISH_ABBREVIATIONS = (
    "API, JSON, HTTP, CSS, HTML, SQL, UUID, ID, URL, SEO, CRM, UX, UI, SDK, IDE, CLI, GMP, GLP, GDP"
)

LANGUAGE_DIRECTIVE_TEMPLATE = """IMPORTANT OUTPUT LANGUAGE REQUIREMENT:
All output must be in {name} ({code}), including titles, headings, body text and every user-facing string.

Keep the following in English:
- Technical abbreviations and acronyms ({abbreviations})
- Programming keywords, syntax and specification names
- Internationally recognized brand and product names

Write natural, fluent {name} while preserving these English terms."""

MODIFICATION_BLOCK_TEMPLATE = """---

## MODIFY EXISTING SCHEMA(S)

Update the following schema(s) with the requested modifications. Apply ONLY the specified changes and keep everything else exactly the same.

Requested Modifications:

{modifications}

Previous Schema(s):
```json
{previous}
```

---

IMPORTANT: Apply only the specified changes and preserve every other aspect of the schema(s). Output the complete updated schema(s) in the same shape (single object or array)."""

_USER_PROMPT_PREFIX = re.compile(r"^User\s+Prompt:\s*", re.IGNORECASE)
_USER_PROMPT_KEYS = frozenset({"userprompt", "user-prompt", "user_prompt", "user prompt"})


# ============================================================================
# Field Rendering
# ============================================================================


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, list | tuple | dict):
        return len(value) == 0
    return False


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list | tuple):
        return list(value)
    return [value]


def _option_label(field: RenderField, raw: Any) -> str:
    option = field.find_option(raw)
    if option is not None:
        return option.display
    if isinstance(raw, dict):
        return str(raw.get("label") or raw.get("value") or raw.get("id") or "")
    return str(raw)


def _display_label(field: RenderField) -> str:
    """Explicit label when set, otherwise the field key in Title Case."""
    if field.label:
        return field.label
    return camel_to_title(field.key or "field")


def _render_labels_block(field: RenderField, labels: list[str]) -> str | None:
    labels = [label for label in labels if label]
    if not labels:
        return None
    toon = format_labels_to_toon(field.key or "field", labels)
    return f"{_display_label(field)}:\n{toon}"


def _render_select(field: SelectField, value: Any) -> str:
    raw = _as_list(value)[0]
    option: FieldOption | None = field.find_option(raw)
    if option is None:
        return f"{_display_label(field)}: {_option_label(field, raw)}"
    text = option.display
    if option.description:
        text = f"{text}\n\n{option.description}"
    return f"{_display_label(field)}: {text}"


def _render_scalar(field: TextField, value: Any) -> str:
    if isinstance(value, list | tuple):
        text = ", ".join(_option_label(field, item) for item in value)
    elif isinstance(value, dict):
        text = _option_label(field, value)
    elif isinstance(value, bool):
        text = "Yes" if value else "No"
    else:
        text = str(value)

    if field.key.lower() in _USER_PROMPT_KEYS:
        text = _USER_PROMPT_PREFIX.sub("", text).strip()
    return f"{_display_label(field)}: {text}"


def render_field(field: RenderField, value: Any) -> str | None:
    """Map one render-field variant and its value to a prompt fragment.

    Returns:
        The fragment, or None when the value renders to nothing.
    """
    if _is_empty(value):
        return None
    if isinstance(field, MultiOptionField | ListField):
        return _render_labels_block(field, [_option_label(field, item) for item in _as_list(value)])
    if isinstance(field, SelectField):
        return _render_select(field, value)
    if isinstance(field, TextField):
        return _render_scalar(field, value)
    assert_never(field)


def _is_prompt_field(field: RenderField) -> bool:
    if field.is_routed or field.section in ("body", "extra"):
        return False
    return "language" not in field.key.lower()


# ============================================================================
# Language Directive
# ============================================================================


def resolve_language(form_values: dict[str, Any], override: str | None = None) -> str | None:
    """Find the requested output language code, if any."""
    if override and override.strip():
        return override.strip()
    for name in LANGUAGE_FIELD_NAMES:
        value = form_values.get(name)
        if isinstance(value, list) and value:
            value = value[0]
        if isinstance(value, dict):
            value = value.get("id") or value.get("value")
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code.lower(), code)


def build_language_directive(code: str) -> str:
    """Directive asking the model to answer in the given language."""
    return LANGUAGE_DIRECTIVE_TEMPLATE.format(
        name=language_name(code),
        code=code.upper(),
        abbreviations=ENGLISH_ABBREVIATIONS,
    )


# ============================================================================
# Public API
# ============================================================================


def compose_prompt(agent: AgentConfig, form_values: dict[str, Any], language: str | None = None) -> str:
    """Build the visible user prompt from form values.

    Fields routed elsewhere (remote options, body/extra sections, language
    selectors) are skipped. The language directive, when present, is always
    the last part.

    Args:
        agent: Agent definition with render fields
        form_values: Submitted values keyed by field name or id
        language: Explicit language code overriding any language field

    Returns:
        The composed prompt, possibly empty
    """
    fields = sorted(
        (f for f in agent.render_components if _is_prompt_field(f)),
        key=lambda f: f.order if f.order is not None else DEFAULT_FIELD_ORDER,
    )

    parts = []
    for field in fields:
        fragment = render_field(field, field.lookup_value(form_values))
        if fragment:
            parts.append(fragment)

    code = resolve_language(form_values, language)
    if code and code.lower() != DEFAULT_LANGUAGE:
        parts.append(build_language_directive(code))

    return PROMPT_PART_SEPARATOR.join(parts)


def extract_section_params(agent: AgentConfig, form_values: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split section-tagged form values into provider ``body`` and ``extra_body`` params.

    Returns:
        (body, extra) keyed by field name, empty values omitted
    """
    body: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for field in agent.render_components:
        if field.section is None:
            continue
        value = field.lookup_value(form_values)
        if _is_empty(value):
            continue
        target = body if field.section == "body" else extra
        target[field.key] = value
    return body, extra


def resolve_image_type(form_values: dict[str, Any], body_params: dict[str, Any]) -> str:
    """Requested image sub-style from the body or form, defaulting to standard."""
    for source in (body_params, form_values):
        value = source.get("imageType")
        if isinstance(value, dict):
            value = value.get("id") or value.get("value")
        if isinstance(value, str) and value.strip() and value.strip() != "none":
            return value.strip()
    return DEFAULT_IMAGE_TYPE


def build_modification_block(annotations: list[SchemaAnnotation], previous_response: str) -> str:
    """Render the "modify existing output" block for annotation-driven edits."""
    sections = []
    for group in annotations:
        changes = "\n".join(f"- {item.label}" for item in group.annotations)
        sections.append(f"{group.schema_name}\n\n{changes}" if changes else group.schema_name)
    return MODIFICATION_BLOCK_TEMPLATE.format(
        modifications=PROMPT_PART_SEPARATOR.join(sections),
        previous=previous_response,
    )


def apply_modification_block(
    prompt: str,
    annotations: list[SchemaAnnotation] | None,
    previous_response: str | None,
) -> str:
    """Append the modification block as the final segment when both inputs are present."""
    if not annotations or not previous_response:
        return prompt
    block = build_modification_block(annotations, previous_response)
    return f"{prompt}{PROMPT_PART_SEPARATOR}{block}" if prompt else block

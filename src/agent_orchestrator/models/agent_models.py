"""
Agent configuration and request models.

Inbound payloads arrive with camelCase keys from the form layer; every model
accepts both the camelCase alias and the snake_case field name.

Render fields are a closed tagged union keyed on the ``component`` kind, so
prompt rendering can branch on the variant class instead of raw strings.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag
from pydantic.alias_generators import to_camel

# Component kinds grouped by how their values render into prompt text
SELECT_COMPONENTS = frozenset({"select"})
MULTI_OPTION_COMPONENTS = frozenset({"checkbox-list", "radio", "toggle-group", "multi-select"})
LIST_COMPONENTS = frozenset({"tag-input", "list-input"})


class CamelModel(BaseModel):
    """Base model accepting camelCase aliases and snake_case names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class FieldOption(CamelModel):
    """A selectable option declared on a render field."""

    id: str | None = None
    value: str | None = None
    label: str | None = None
    description: str | None = None
    color: str | None = None
    icon: str | None = None

    @property
    def key(self) -> str | None:
        """Identifier used to match submitted values against this option."""
        return self.id or self.value

    @property
    def display(self) -> str:
        return self.label or self.value or self.id or ""


class ValidationRules(CamelModel):
    """Declarative validation rules for a render field."""

    required: bool = False
    min_length: int | None = None
    max_length: int | None = None
    min: float | None = None
    max: float | None = None
    pattern: str | None = None


class _RenderFieldBase(CamelModel):
    name: str | None = None
    id: str | None = None
    component: str = "text"
    label: str | None = None
    order: int | None = None
    section: Literal["body", "extra"] | None = Field(default=None, alias="sectionId")
    route: str | None = None
    options: list[FieldOption] = Field(default_factory=list)
    validation: ValidationRules | None = None
    multiple: bool = False

    @property
    def key(self) -> str:
        """Key under which this field's value is submitted."""
        return self.name or self.id or ""

    @property
    def is_routed(self) -> bool:
        """Fields with a route load their options remotely and skip local rules."""
        return bool(self.route)

    def lookup_value(self, values: dict[str, Any]) -> Any:
        """Find this field's submitted value by name, then by id."""
        if self.name and self.name in values:
            return values[self.name]
        if self.id and self.id in values:
            return values[self.id]
        return None

    def find_option(self, raw: Any) -> FieldOption | None:
        """Resolve a submitted value (id string or option-like dict) to a declared option."""
        if isinstance(raw, FieldOption):
            return raw
        if isinstance(raw, dict):
            candidate = raw.get("id") or raw.get("value")
            matched = self._match_option(candidate)
            if matched is not None:
                return matched
            return FieldOption.model_validate(raw) if raw.get("label") or raw.get("description") else None
        return self._match_option(raw)

    def _match_option(self, candidate: Any) -> FieldOption | None:
        if candidate is None:
            return None
        text = str(candidate)
        for option in self.options:
            if text in (option.id, option.value):
                return option
        return None


class TextField(_RenderFieldBase):
    """Scalar input rendered as ``Label: value``."""


class SelectField(_RenderFieldBase):
    """Single-value option picker."""


class MultiOptionField(_RenderFieldBase):
    """Option picker holding several selected options."""


class ListField(_RenderFieldBase):
    """Free-form list of items (tags, list entries)."""


def _render_field_tag(value: Any) -> str:
    component = value.get("component") if isinstance(value, dict) else getattr(value, "component", None)
    if component in SELECT_COMPONENTS:
        multiple = value.get("multiple") if isinstance(value, dict) else getattr(value, "multiple", False)
        return "multi" if multiple else "select"
    if component in MULTI_OPTION_COMPONENTS:
        return "multi"
    if component in LIST_COMPONENTS:
        return "list"
    return "text"


RenderField = Annotated[
    Annotated[TextField, Tag("text")]
    | Annotated[SelectField, Tag("select")]
    | Annotated[MultiOptionField, Tag("multi")]
    | Annotated[ListField, Tag("list")],
    Discriminator(_render_field_tag),
]


class PreloadRoute(CamelModel):
    """External context source fetched before composing the system prompt."""

    route: str
    title: str
    description: str = ""
    method: Literal["GET", "POST"] = "GET"
    json_path: str | None = None
    query_parameters: dict[str, Any] = Field(default_factory=dict)
    body: dict[str, Any] | None = None
    output_format: Literal["json", "string", "toon"] = "json"
    included_fields: list[str] = Field(default_factory=list)


class AgentConfig(CamelModel):
    """Immutable per-agent definition.

    ``id`` and ``kind`` are optional at the model level so that malformed
    definitions reach the validator and fail as configuration errors instead
    of raising at parse time.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True)

    id: str | None = None
    kind: str | None = Field(default=None, alias="agentType")
    model: str | None = None
    label: str | None = None
    description: str | None = None
    required_output_format: str = "string"
    render_components: list[RenderField] = Field(default_factory=list)
    system_prompt: str | None = None
    preload_routes: list[PreloadRoute] = Field(default_factory=list)
    next_action: dict[str, Any] | None = None


class AnnotationItem(CamelModel):
    label: str


class SchemaAnnotation(CamelModel):
    """Requested modifications grouped under one schema/output name."""

    schema_name: str
    annotations: list[AnnotationItem] = Field(default_factory=list)


class FileAttachment(BaseModel):
    """Binary upload attached to a request (reference image/video, audio)."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


class AgentRequestData(CamelModel):
    """Per-invocation payload. Never persisted."""

    user_prompt: str = ""
    form_values: dict[str, Any] = Field(default_factory=dict)
    file: FileAttachment | None = None
    previous_ai_response: str | None = None
    annotations: list[SchemaAnnotation] = Field(default_factory=list)
    body: dict[str, Any] = Field(default_factory=dict)
    extra_body: dict[str, Any] = Field(default_factory=dict)
    additional_system_prompt: str | None = None
    language: str | None = None

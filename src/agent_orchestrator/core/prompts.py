"""
System prompt rule blocks for the agent orchestrator.

The texts here are defaults only. Callers can supply their own StyleGuide to
override any block; the assembler fixes where each block goes and when it is
included, never its wording.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType

#: strftime format used in the time-context preamble
TIME_CONTEXT_FORMAT = "%A, %B %d, %Y at %H:%M:%S UTC"

TIME_CONTEXT_TEMPLATE = """Current date and time: {now}.
Treat this as "now" when interpreting relative dates such as today, yesterday, last week or next quarter. Do not ask the user for the current date."""

GENERAL_MARKDOWN_OUTPUT_RULES = """## MARKDOWN OUTPUT RULES

### Structure
- Use a clear heading hierarchy: H1 for the title, H2 for sections, H3/H4 for subsections
- Give every major section at least two paragraphs of substantive content
- Prefer comprehensive, actionable analysis over short summaries

### Formatting
- Blockquotes (>) for warnings and critical notes
- Ordered lists for sequential steps, unordered lists for unordered points
- Task lists (- [ ]) for follow-up actions
- A divider (***) only between unrelated subjects
- Tables always carry a header row and a separator row
- Never wrap output in ```markdown blocks; use ```text for literal examples

### Language
Review grammar, tense consistency and word choice before answering. Prefer active voice and precise terms."""

REFERENCE_RULES = """## REFERENCES AND SOURCE CITATION RULES

Add a References section ONLY when you used source material: preloaded context data, RAG results, search results, regulations or papers. Otherwise omit it.

- Place it last, preceded by a single *** divider
- Format it as a table with the columns Source Title | Source Host | Source URL | Description
- Cite inline where a source is used: [Source Title](Source URL) - Source Host
- Use only real source data from the context above. Never invent titles or URLs; write "Source information not available" instead
- Include every preloaded context source you relied on"""

MERMAID_RULES = """## MERMAID DIAGRAM RULES

Pick the diagram type that fits: flowchart (processes, decisions), stateDiagram-v2 (state machines), mindmap (hierarchies), timeline (chronology), journey (user experience).

- Never use parentheses inside labels or node names; use underscores instead. The only exception is the flowchart shape syntax ([Start]) and ([End])
- Edge labels with |Label| are valid in flowcharts only. In stateDiagram-v2 write State1 --> State2 : Label
- stateDiagram-v2 uses [*] for start and end states and no spaces in state names
- timeline diagrams always declare a title
- Put each statement on its own line and wrap diagrams in ```mermaid blocks
- Cover alternative and error paths, not only the happy path"""

GRAPH_GENERATION_RULES = """## GRAPH GENERATION RULES

You produce structured graphs for analysis and decision making (root cause analysis, process maps, dependency graphs).

Return a single JSON object with:
- "nodes": array of {"id", "label", "type", "description"}; ids are unique kebab-case strings
- "edges": array of {"id", "source", "target", "label"}; source and target reference existing node ids
- Every node must be reachable from at least one root node
- Prefer 8-40 nodes; group related concepts instead of emitting one node per sentence
- Do not include commentary outside the JSON object"""

GENERAL_IMAGE_PROMPT = """## IMAGE GENERATION RULES

- Render any text in the image in English, spelled correctly and legibly, even when the request is in another language
- Show numbers and units exactly as given; never invent statistics
- Keep the composition clean with a clear focal point and balanced whitespace
- Avoid logos, watermarks or brand marks unless the request asks for them"""

IMAGE_TYPE_PROMPTS: Mapping[str, str] = MappingProxyType(
    {
        "infographic": "Style: infographic. Organize information into labeled sections with icons, charts and a clear reading order.",
        "creative": "Style: creative illustration. Bold colors, expressive composition, artistic interpretation of the subject.",
        "sketch": "Style: hand-drawn pencil sketch on paper, visible strokes, minimal shading.",
        "iconic": "Style: flat icon. Simple geometric shapes, limited palette, centered on a plain background.",
        "editorial": "Style: editorial magazine illustration, conceptual metaphor, refined typography space.",
        "comic-book": "Style: comic book panel with ink outlines, halftone shading and speech bubbles where text is needed.",
        "blueprint": "Style: technical blueprint, white line art on blue grid paper with dimension annotations.",
        "isometric": "Style: isometric 3D illustration with consistent 30-degree angles and soft shadows.",
        "portrait": "Style: professional portrait, shallow depth of field, natural lighting.",
        "cinematic": "Style: cinematic still, wide aspect framing, dramatic lighting and color grading.",
        "mindmap": "Style: mind map with a central topic and radiating labeled branches.",
        "timeline": "Style: horizontal timeline with dated milestones in chronological order.",
        "dashboard": "Style: analytics dashboard mockup with KPI cards, charts and a consistent grid.",
    }
)


def format_time_context(now: datetime) -> str:
    """Render the baseline time-context preamble for a given instant."""
    return TIME_CONTEXT_TEMPLATE.format(now=now.astimezone(UTC).strftime(TIME_CONTEXT_FORMAT))


@dataclass(frozen=True)
class StyleGuide:
    """Externally supplied rule blocks used by the system prompt assembler."""

    markdown_rules: str = GENERAL_MARKDOWN_OUTPUT_RULES
    reference_rules: str = REFERENCE_RULES
    mermaid_rules: str = MERMAID_RULES
    graph_rules: str = GRAPH_GENERATION_RULES
    general_image_prompt: str = GENERAL_IMAGE_PROMPT
    image_type_prompts: Mapping[str, str] = field(default_factory=lambda: IMAGE_TYPE_PROMPTS)

    def image_rules(self, image_type: str | None) -> str:
        """General image rules plus the sub-style block, without repeating the general preamble."""
        parts = [self.general_image_prompt]
        if image_type and image_type not in ("none", "standard"):
            specific = self.image_type_prompts.get(image_type) or self.image_type_prompts.get(image_type.lower(), "")
            if specific.startswith(self.general_image_prompt):
                specific = specific[len(self.general_image_prompt) :].strip()
            if specific:
                parts.append(specific)
        return "\n\n".join(part for part in parts if part)

    def image_type_prompt(self, image_type: str | None) -> str:
        """Sub-style text prepended to the user's image prompt (empty for standard)."""
        if not image_type or image_type in ("none", "standard"):
            return ""
        return self.image_type_prompts.get(image_type) or self.image_type_prompts.get(image_type.lower(), "")


DEFAULT_STYLE_GUIDE = StyleGuide()

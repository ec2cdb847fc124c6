"""
Response Normalizer - explicit provider response-shape parsers.

Each parser recognizes exactly one payload shape and returns None when the
shape does not match. ``first_success`` tries them in a fixed priority order,
which keeps the fallback chain visible and testable.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from pydantic import BaseModel

from agent_orchestrator.core.exceptions import MalformedResponseError

T = TypeVar("T")

Parser = Callable[[Any], T | None]


def first_success(parsers: Sequence[Parser[T]], payload: Any) -> T | None:
    """Return the result of the first parser that matches ``payload``."""
    for parser in parsers:
        result = parser(payload)
        if result is not None:
            return result
    return None


def _first_item(value: Any) -> dict[str, Any] | None:
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return value[0]
    return None


# ============================================================================
# Chat
# ============================================================================


class ChatCompletion(BaseModel):
    content: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


def parse_chat_completion(payload: Any) -> ChatCompletion:
    """Read ``choices[0].message.content`` and ``usage`` from a completion.

    Raises:
        MalformedResponseError: No content in the response.
    """
    choice = _first_item(payload.get("choices")) if isinstance(payload, dict) else None
    message = choice.get("message") if choice else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content:
        raise MalformedResponseError("No response content from AI")

    usage = payload.get("usage") if isinstance(payload.get("usage"), dict) else {}
    prompt_tokens = int(usage.get("prompt_tokens") or 0)
    completion_tokens = int(usage.get("completion_tokens") or 0)
    return ChatCompletion(
        content=content,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=int(usage.get("total_tokens") or prompt_tokens + completion_tokens),
    )


# ============================================================================
# Image
# ============================================================================


class ImageResult(BaseModel):
    url: str | None = None
    b64_json: str | None = None
    revised_prompt: str | None = None
    mime_type: str | None = None


def _image_from_record(record: Any) -> ImageResult | None:
    if not isinstance(record, dict):
        return None
    url = record.get("url")
    b64 = record.get("b64_json")
    if not url and not b64:
        return None
    return ImageResult(
        url=url,
        b64_json=b64,
        revised_prompt=record.get("revised_prompt"),
        mime_type=record.get("mime_type"),
    )


def parse_openai_image(payload: Any) -> ImageResult | None:
    """OpenAI style: ``{"data": [{"url" | "b64_json", "revised_prompt"}]}``."""
    if not isinstance(payload, dict):
        return None
    return _image_from_record(_first_item(payload.get("data")))


def parse_gemini_image(payload: Any) -> ImageResult | None:
    """Gemini style: ``candidates[0].content.parts[0].inlineData``."""
    if not isinstance(payload, dict):
        return None
    candidate = _first_item(payload.get("candidates"))
    content = candidate.get("content") if candidate else None
    part = _first_item(content.get("parts")) if isinstance(content, dict) else None
    inline = part.get("inlineData") if part else None
    if not isinstance(inline, dict) or not inline.get("data"):
        return None
    return ImageResult(b64_json=inline["data"], mime_type=inline.get("mimeType"))


def parse_wrapped_image(payload: Any) -> ImageResult | None:
    """Single image object under an ``image`` key."""
    if not isinstance(payload, dict):
        return None
    return _image_from_record(payload.get("image"))


def parse_direct_image(payload: Any) -> ImageResult | None:
    """``url``/``b64_json`` at the top level."""
    return _image_from_record(payload)


IMAGE_PARSERS: tuple[Parser[ImageResult], ...] = (
    parse_openai_image,
    parse_gemini_image,
    parse_wrapped_image,
    parse_direct_image,
)


def parse_image_response(payload: Any) -> ImageResult:
    """Normalize any supported image payload.

    Raises:
        MalformedResponseError: The body reports an error or matches no shape.
    """
    if isinstance(payload, dict) and payload.get("error"):
        error = payload["error"]
        detail = error.get("message") if isinstance(error, dict) else error
        raise MalformedResponseError(f"Image generation API error: {detail}")

    result = first_success(IMAGE_PARSERS, payload)
    if result is None:
        raise MalformedResponseError("No image data in response.")
    return result


# ============================================================================
# Video
# ============================================================================


class VideoJob(BaseModel):
    """Video job descriptor passed through from the provider."""

    video_id: str
    status: str | None = None
    url: str | None = None
    file_path: str | None = None
    duration: float | None = None
    size: str | None = None
    model: str | None = None
    progress: float | None = None
    error: Any = None
    usage: dict[str, Any] | None = None
    estimated_cost: Any = None


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _video_from_record(record: Any) -> VideoJob | None:
    if not isinstance(record, dict):
        return None
    video_id = record.get("id") or record.get("video_id")
    if not video_id:
        return None
    duration = record.get("duration", record.get("seconds"))
    return VideoJob(
        video_id=str(video_id),
        status=record.get("status"),
        url=record.get("url"),
        file_path=record.get("file_path"),
        duration=_as_float(duration),
        size=record.get("size"),
        model=record.get("model"),
        progress=_as_float(record.get("progress")),
        error=record.get("error"),
        usage=record.get("usage") if isinstance(record.get("usage"), dict) else None,
        estimated_cost=record.get("estimated_cost"),
    )


def parse_list_video(payload: Any) -> VideoJob | None:
    if not isinstance(payload, dict):
        return None
    return _video_from_record(_first_item(payload.get("data")))


def parse_wrapped_video(payload: Any) -> VideoJob | None:
    if not isinstance(payload, dict):
        return None
    return _video_from_record(payload.get("video"))


def parse_direct_video(payload: Any) -> VideoJob | None:
    return _video_from_record(payload)


VIDEO_PARSERS: tuple[Parser[VideoJob], ...] = (parse_list_video, parse_wrapped_video, parse_direct_video)


def parse_video_response(payload: Any) -> VideoJob:
    """Normalize a video job payload.

    Raises:
        MalformedResponseError: No job id anywhere in the response.
    """
    result = first_success(VIDEO_PARSERS, payload)
    if result is None:
        raise MalformedResponseError("No video ID found in response.")
    return result


# ============================================================================
# Transcription
# ============================================================================


def parse_transcription(payload: Any) -> str:
    """Transcript text from ``{"text": ...}``.

    Raises:
        MalformedResponseError: No transcript text.
    """
    text = payload.get("text") if isinstance(payload, dict) else None
    if not isinstance(text, str):
        raise MalformedResponseError("No transcription text in response")
    return text

"""Voice transcription builder: a thin multipart pass-through."""

from __future__ import annotations

from typing import Any

from agent_orchestrator.core.constants import DEFAULT_VOICE_MODEL
from agent_orchestrator.core.exceptions import ValidationException
from agent_orchestrator.models.agent_models import AgentConfig, AgentRequestData
from agent_orchestrator.models.error_models import ErrorCode, ErrorDetail
from agent_orchestrator.models.response_models import AgentResponseData
from agent_orchestrator.services.builders import BuilderContext
from agent_orchestrator.services.response_parsers import parse_transcription
from agent_orchestrator.services.validation import validate_file


async def build_voice(agent: AgentConfig, request: AgentRequestData, ctx: BuilderContext) -> AgentResponseData:
    """Transcribe the attached audio file."""
    if request.file is None:
        raise ValidationException(
            message="An audio file is required for transcription",
            errors=[
                ErrorDetail(
                    field="file",
                    message="This field is required",
                    code=ErrorCode.VALIDATION_MISSING_FIELD.value,
                )
            ],
        )
    validate_file(request.file)

    form: dict[str, Any] = {"model": request.body.get("model") or agent.model or DEFAULT_VOICE_MODEL}
    language = request.language or request.body.get("language")
    if language:
        form["language"] = str(language)

    files = {"file": (request.file.filename, request.file.content, request.file.content_type)}
    result = await ctx.send(ctx.settings.llm_transcribe_url, data=form, files=files, timeout=ctx.settings.voice_timeout)

    return AgentResponseData(response=parse_transcription(result.json()), format="string")

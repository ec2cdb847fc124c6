"""End-to-end tests for the agent dispatcher.

Every scenario goes through dispatch() with a mocked provider, checking both
the outbound request and the AgentResponse envelope.
"""

from __future__ import annotations

import json
from unittest.mock import patch

import httpx
import pytest

from agent_orchestrator.models.agent_models import AgentConfig, AgentRequestData, FileAttachment
from agent_orchestrator.models.error_models import ErrorCode, get_error_message
from agent_orchestrator.models.response_models import ModelDescriptor, ModelPricing
from agent_orchestrator.services import dispatcher
from agent_orchestrator.services.dispatcher import dispatch
from agent_orchestrator.services.model_cache import ModelMetadataCache


def _agent(**data: object) -> AgentConfig:
    return AgentConfig.model_validate({"id": "agent-1", **data})


@pytest.fixture
def priced_model_cache(fake_clock) -> ModelMetadataCache:
    async def fetch() -> list[ModelDescriptor]:
        return [ModelDescriptor(id="gpt-4o-mini", pricing=ModelPricing(input=0.15, output=0.6))]

    return ModelMetadataCache(fetch, clock=fake_clock)


class TestDispatchChat:
    """Chat scenarios through dispatch()."""

    @pytest.mark.asyncio
    async def test_language_directive_is_last(
        self, settings, chat_agent, mock_http, chat_completion, empty_model_cache
    ) -> None:
        """Test a French request ends the user prompt with the language directive."""
        client, transport = mock_http(lambda request: httpx.Response(200, json=chat_completion("Bonjour.")))
        request = AgentRequestData(form_values={"topic": "AI", "language": "fr"})

        async with client:
            result = await dispatch(chat_agent, request, client=client, cache=empty_model_cache)

        user_message = json.loads(transport.requests[0].content)["messages"][1]["content"]
        assert user_message.startswith("Topic: AI")
        assert user_message.endswith("Write natural, fluent French while preserving these English terms.")
        assert "All output must be in French (FR)" in user_message
        assert result.success is True
        assert result.data.response == "Bonjour."
        assert result.data.format == "string"

    @pytest.mark.asyncio
    async def test_json_extracted(self, settings, mock_http, chat_completion, empty_model_cache) -> None:
        """Test JSON agents return the extracted document."""
        client, _ = mock_http(
            lambda request: httpx.Response(200, json=chat_completion('Here you go:\n```json\n{"items": [1]}\n```'))
        )
        agent = _agent(agentType="chat", model="gpt-4o", requiredOutputFormat="json")

        async with client:
            result = await dispatch(agent, AgentRequestData(user_prompt="list"), client=client, cache=empty_model_cache)

        assert result.success is True
        assert json.loads(result.data.response) == {"items": [1]}
        assert result.data.format == "json"

    @pytest.mark.asyncio
    async def test_json_extraction_failure(self, settings, mock_http, chat_completion, empty_model_cache) -> None:
        """Test JSON agents fail cleanly when the model returns prose."""
        client, _ = mock_http(lambda request: httpx.Response(200, json=chat_completion("No JSON here, sorry.")))
        agent = _agent(agentType="chat", model="gpt-4o", requiredOutputFormat="json")

        async with client:
            result = await dispatch(agent, AgentRequestData(user_prompt="list"), client=client, cache=empty_model_cache)

        assert result.success is False
        assert result.error == "Failed to extract valid JSON from AI response"
        assert result.data is None

    @pytest.mark.asyncio
    async def test_pricing_known_and_unknown(
        self, settings, chat_agent, mock_http, chat_completion, empty_model_cache, priced_model_cache
    ) -> None:
        """Test pricing is computed for listed models and null otherwise."""
        client, _ = mock_http(lambda request: httpx.Response(200, json=chat_completion("ok")))
        request = AgentRequestData(user_prompt="hi")

        async with client:
            unknown = await dispatch(chat_agent, request, client=client, cache=empty_model_cache)
            known = await dispatch(chat_agent, request, client=client, cache=priced_model_cache)

        assert unknown.data.token_usage.pricing is None
        assert '"pricing":null' in unknown.to_json()
        pricing = known.data.token_usage.pricing
        assert pricing.total_cost == 0.000045
        assert pricing.model_id == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_modification_block_is_final(
        self, settings, chat_agent, mock_http, chat_completion, empty_model_cache
    ) -> None:
        """Test annotation edits come after the composed prompt and language directive."""
        client, transport = mock_http(lambda request: httpx.Response(200, json=chat_completion("Revised.")))
        request = AgentRequestData.model_validate(
            {
                "formValues": {"topic": "AI", "language": "de"},
                "previousAiResponse": "Old brief.",
                "annotations": [{"schemaName": "Brief", "annotations": [{"label": "Shorten the intro"}]}],
            }
        )

        async with client:
            result = await dispatch(chat_agent, request, client=client, cache=empty_model_cache)

        user_message = json.loads(transport.requests[0].content)["messages"][1]["content"]
        assert result.success is True
        assert user_message.index("German") < user_message.index("- Shorten the intro")
        assert "Previous Schema(s):\n```json\nOld brief.\n```" in user_message

    @pytest.mark.asyncio
    async def test_timing_and_agent_meta(
        self, settings, chat_agent, mock_http, chat_completion, empty_model_cache
    ) -> None:
        """Test successful responses carry timing and the agent's metadata."""
        client, _ = mock_http(lambda request: httpx.Response(200, json=chat_completion("ok")))

        async with client:
            result = await dispatch(
                chat_agent, AgentRequestData(user_prompt="hi"), client=client, cache=empty_model_cache
            )

        timing = result.data.timing
        assert timing.duration >= 0
        assert timing.end_time >= timing.start_time
        assert result.data.agent.id == "writer"
        assert result.data.agent.label == "Writer"
        assert result.data.agent.required_output_format == "string"

    @pytest.mark.asyncio
    async def test_model_listing_failure_keeps_response(self, settings, chat_agent, mock_http, chat_completion) -> None:
        """Test a broken model listing only drops pricing from a successful call."""

        async def broken_listing() -> list[ModelDescriptor]:
            raise httpx.InvalidURL("Invalid non-printable ASCII character in URL")

        client, _ = mock_http(lambda request: httpx.Response(200, json=chat_completion("ok")))
        cache = ModelMetadataCache(broken_listing)

        async with client:
            result = await dispatch(chat_agent, AgentRequestData(user_prompt="hi"), client=client, cache=cache)

        assert result.success is True
        assert result.data.response == "ok"
        assert result.data.token_usage.pricing is None

    @pytest.mark.asyncio
    async def test_graph_agent(self, settings, mock_http, chat_completion, empty_model_cache) -> None:
        """Test graph agents return a graph document in JSON mode."""
        graph = {"nodes": [{"id": "a", "schemaId": "cause", "incomplete": False, "payload": {}}], "edges": []}
        client, transport = mock_http(lambda request: httpx.Response(200, json=chat_completion(json.dumps(graph))))
        agent = _agent(agentType="graph-generation", model="gpt-4o", requiredOutputFormat="string")

        async with client:
            result = await dispatch(agent, AgentRequestData(user_prompt="map"), client=client, cache=empty_model_cache)

        assert json.loads(transport.requests[0].content)["response_format"] == {"type": "json_object"}
        assert result.success is True
        assert result.data.format == "graph"
        assert json.loads(result.data.response)["graph"]["nodes"][0]["payload"]["nodeTypeId"] == "cause"
        assert result.data.agent.required_output_format == "string"


class TestDispatchMedia:
    """Image, video and voice scenarios through dispatch()."""

    @pytest.mark.asyncio
    async def test_invalid_image_size(self, settings, mock_http, empty_model_cache) -> None:
        """Test an invalid size fails with field errors and no network call."""
        client, transport = mock_http(lambda request: httpx.Response(200, json={"data": [{"url": "x"}]}))
        agent = _agent(agentType="image-generation")
        request = AgentRequestData(user_prompt="a cat", body={"size": "999x999"})

        async with client:
            result = await dispatch(agent, request, client=client, cache=empty_model_cache)

        assert transport.requests == []
        assert result.success is False
        assert result.error == "Invalid size. Must be one of: 1024x1024, 1024x1792, 1792x1024"
        assert result.validation_errors[0].field == "size"
        assert '"validationErrors":[' in result.to_json()

    @pytest.mark.asyncio
    async def test_video_with_reference_is_queued(self, settings, mock_http, empty_model_cache) -> None:
        """Test a multipart video submission returns the queued job descriptor."""
        client, transport = mock_http(
            lambda request: httpx.Response(200, json={"id": "video_9", "status": "queued", "seconds": "4"})
        )
        agent = _agent(agentType="video-generation", label="Director")
        request = AgentRequestData(
            user_prompt="animate",
            body={"seconds": 4},
            file=FileAttachment(filename="ref.png", content=b"png", content_type="image/png"),
        )

        async with client:
            result = await dispatch(agent, request, client=client, cache=empty_model_cache)

        assert transport.requests[0].headers["content-type"].startswith("multipart/form-data")
        job = json.loads(result.data.response)
        assert result.success is True
        assert result.data.format == "video"
        assert job["status"] == "queued"
        assert job["url"] is None

    @pytest.mark.asyncio
    async def test_voice_without_file(self, settings, mock_http, empty_model_cache) -> None:
        """Test transcription without audio is a validation failure."""
        client, _ = mock_http(lambda request: httpx.Response(200, json={"text": "x"}))

        async with client:
            result = await dispatch(
                _agent(agentType="voice-transcription"), AgentRequestData(), client=client, cache=empty_model_cache
            )

        assert result.success is False
        assert result.error == "An audio file is required for transcription"
        assert result.validation_errors[0].field == "file"


class TestDispatchFailures:
    """Failure conversion in dispatch()."""

    @pytest.mark.asyncio
    async def test_unsupported_kind(self, settings, mock_http, empty_model_cache) -> None:
        """Test valid kinds without a builder are reported."""
        client, transport = mock_http(lambda request: httpx.Response(200))

        async with client:
            result = await dispatch(
                _agent(agentType="search"), AgentRequestData(user_prompt="q"), client=client, cache=empty_model_cache
            )

        assert result.success is False
        assert result.error == "Unsupported agent kind: search"
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_invalid_configuration(self, settings, mock_http, empty_model_cache) -> None:
        """Test malformed agents fail before any builder runs."""
        client, transport = mock_http(lambda request: httpx.Response(200))

        async with client:
            result = await dispatch(
                _agent(agentType="telepathy"), AgentRequestData(user_prompt="q"), client=client, cache=empty_model_cache
            )

        assert result.success is False
        assert result.error.startswith("Invalid agent configuration: ")
        assert "telepathy" in result.error
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_service_unavailable(self, settings, chat_agent, mock_http, empty_model_cache) -> None:
        """Test a 503 maps to the fixed user-facing message."""
        client, _ = mock_http(lambda request: httpx.Response(503, text="upstream overloaded"))

        async with client:
            result = await dispatch(
                chat_agent, AgentRequestData(user_prompt="hi"), client=client, cache=empty_model_cache
            )

        assert result.success is False
        assert result.error == "The AI service is temporarily unavailable (503). Please try again in a few moments."

    @pytest.mark.asyncio
    async def test_unexpected_error(self, settings, chat_agent, empty_model_cache) -> None:
        """Test non-application errors collapse to the generic message."""

        async def exploding(agent, request, ctx):
            raise RuntimeError("boom")

        async with httpx.AsyncClient() as client:
            with patch.dict(dispatcher.BUILDERS, {"chat": exploding}):
                result = await dispatch(
                    chat_agent, AgentRequestData(user_prompt="hi"), client=client, cache=empty_model_cache
                )

        assert result.success is False
        assert result.error == get_error_message(ErrorCode.INTERNAL_UNEXPECTED)

    @pytest.mark.asyncio
    async def test_unexpected_error_in_debug(self, settings, chat_agent, empty_model_cache) -> None:
        """Test debug mode appends the underlying error."""

        async def exploding(agent, request, ctx):
            raise RuntimeError("boom")

        debug_settings = settings.model_copy(update={"debug": True})
        async with httpx.AsyncClient() as client:
            with (
                patch.dict(dispatcher.BUILDERS, {"chat": exploding}),
                patch("agent_orchestrator.services.dispatcher.get_settings", return_value=debug_settings),
            ):
                result = await dispatch(
                    chat_agent, AgentRequestData(user_prompt="hi"), client=client, cache=empty_model_cache
                )

        assert result.error == f"{get_error_message(ErrorCode.INTERNAL_UNEXPECTED)} (boom)"

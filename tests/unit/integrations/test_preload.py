"""Tests for context preloading.

Covers URL building, path extraction, field filtering, section formatting
and the concurrent preloader with its success-only cache.
"""

from __future__ import annotations

import json

import httpx
import pytest

from agent_orchestrator.integrations.preload import (
    PRELOAD_HEADING,
    SCHEMA_TOON_FIELDS,
    ContextPreloader,
    PreloadResult,
    build_full_url,
    build_url_with_query,
    entity_name_from_route,
    extract_data_by_path,
    filter_fields,
    format_route_result,
    included_fields_for,
)
from agent_orchestrator.models.agent_models import PreloadRoute
from agent_orchestrator.utils.cache import TTLCache

BASE_URL = "https://app.test"


def _route(**overrides: object) -> PreloadRoute:
    data: dict = {"route": "/api/schemas", "title": "Schemas", "description": "Available schemas"}
    data.update(overrides)
    return PreloadRoute.model_validate(data)


class TestUrlHelpers:
    """Tests for URL construction."""

    def test_query_merged_and_overridden(self) -> None:
        """Test configured parameters are merged over existing ones."""
        assert build_url_with_query("/api/x?a=1&b=2", {"b": 3, "c": "z"}) == "/api/x?a=1&b=3&c=z"

    def test_no_query_params(self) -> None:
        """Test the route is returned unchanged without parameters."""
        assert build_url_with_query("/api/x", {}) == "/api/x"

    def test_full_url_for_get(self) -> None:
        """Test GET routes carry their query parameters."""
        route = _route(queryParameters={"format": "toon"})

        assert build_full_url(route, BASE_URL + "/") == "https://app.test/api/schemas?format=toon"

    def test_full_url_for_post_ignores_query(self) -> None:
        """Test POST routes send parameters in the body instead."""
        route = _route(method="POST", queryParameters={"format": "toon"})

        assert build_full_url(route, BASE_URL) == "https://app.test/api/schemas"

    def test_absolute_route(self) -> None:
        """Test absolute routes ignore the base URL."""
        assert build_full_url(_route(route="https://other.test/x"), BASE_URL) == "https://other.test/x"

    def test_relative_route_without_slash(self) -> None:
        """Test a leading slash is added when missing."""
        assert build_full_url(_route(route="api/x"), BASE_URL) == "https://app.test/api/x"


class TestDataHelpers:
    """Tests for path extraction and filtering."""

    def test_extract_nested_path(self) -> None:
        """Test dict keys and list indexes are walked."""
        data = {"data": {"items": [{"id": "a"}, {"id": "b"}]}}

        assert extract_data_by_path(data, "data.items.1.id") == "b"
        assert extract_data_by_path(data, None) is data

    def test_extract_missing_path(self) -> None:
        """Test a missing segment yields None."""
        assert extract_data_by_path({"data": []}, "data.0") is None
        assert extract_data_by_path({"data": {}}, "data.items") is None

    def test_included_fields(self) -> None:
        """Test explicit fields win and TOON schema listings get defaults."""
        assert included_fields_for(_route(includedFields=["id"])) == ["id"]
        assert included_fields_for(_route(outputFormat="toon")) == SCHEMA_TOON_FIELDS
        assert included_fields_for(_route(route="/api/users", outputFormat="toon")) is None
        assert included_fields_for(_route()) is None

    def test_filter_fields(self) -> None:
        """Test only listed keys are kept on each record."""
        data = [{"id": 1, "name": "a", "secret": "x"}, "scalar"]

        assert filter_fields(data, ["id", "name"]) == [{"id": 1, "name": "a"}, "scalar"]
        assert filter_fields({"id": 1, "secret": "x"}, ["id"]) == {"id": 1}
        assert filter_fields(data, None) is data

    def test_entity_name(self) -> None:
        """Test the TOON collection name comes from the last path segment."""
        assert entity_name_from_route("/api/schemas?x=1") == "schemas"
        assert entity_name_from_route("/") == "items"


class TestFormatRouteResult:
    """Tests for format_route_result."""

    def _result(self, data: object = None, success: bool = True, error: str | None = None) -> PreloadResult:
        return PreloadResult(
            route="/api/schemas",
            title="Schemas",
            description="Available schemas",
            success=success,
            data=data,
            error=error,
        )

    def test_json_section(self) -> None:
        """Test JSON output is pretty-printed in a json fence."""
        section = format_route_result(self._result([{"id": "s1"}]), _route())

        assert section == (
            "## Schemas\nAvailable schemas\n\nData from /api/schemas:\n```json\n"
            + json.dumps([{"id": "s1"}], indent=2)
            + "\n```\n"
        )

    def test_toon_section(self) -> None:
        """Test TOON output uses a text fence and the schema default columns."""
        data = [{"id": "s1", "description": "Sales", "plural_name": "sales", "internal": True}]

        section = format_route_result(self._result(data), _route(outputFormat="toon"))

        assert "```text\nschemas[1]{id,description,plural_name}:\n  s1,Sales,sales\n```" in section

    def test_toon_text_passthrough(self) -> None:
        """Test pre-rendered TOON text is used as is."""
        section = format_route_result(self._result("rows[0]{}:"), _route(outputFormat="toon"))

        assert "```text\nrows[0]{}:\n```" in section

    def test_string_section(self) -> None:
        """Test string output uses a bare fence."""
        section = format_route_result(self._result("plain notes"), _route(outputFormat="string"))

        assert section.endswith("Data from /api/schemas:\n```\nplain notes\n```\n")

    def test_failure_section(self) -> None:
        """Test failures render a warning instead of data."""
        section = format_route_result(self._result(success=False, error="HTTP 500: Internal Server Error"), _route())

        assert section == (
            "## Schemas\nAvailable schemas\n\n"
            "⚠️ Failed to load data from /api/schemas: HTTP 500: Internal Server Error\n"
        )

    def test_empty_data_is_failure(self) -> None:
        """Test an empty payload is reported like a failure."""
        assert "⚠️ Failed to load data" in format_route_result(self._result([]), _route())


class TestContextPreloader:
    """Tests for ContextPreloader."""

    @pytest.mark.asyncio
    async def test_preload_mixes_success_and_failure(self, mock_http, fake_clock) -> None:
        """Test a failed route renders a warning without aborting the batch."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/schemas":
                return httpx.Response(200, json={"data": [{"id": "s1"}]})
            return httpx.Response(500)

        client, _ = mock_http(handler)
        preloader = ContextPreloader(client=client, cache=TTLCache(clock=fake_clock))
        routes = [_route(jsonPath="data"), _route(route="/api/broken", title="Broken")]

        async with client:
            block = await preloader.preload(routes, BASE_URL)

        assert block.startswith(f"\n\n{PRELOAD_HEADING}\n\n## Schemas")
        assert '"id": "s1"' in block
        assert "⚠️ Failed to load data from /api/broken: HTTP 500: Internal Server Error" in block
        assert block.index("## Schemas") < block.index("## Broken")

    @pytest.mark.asyncio
    async def test_unexpected_route_error_is_contained(self, mock_http, fake_clock) -> None:
        """Test a non-HTTP error in one route only fails that route's section."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/broken":
                raise RuntimeError("proxy misconfigured")
            return httpx.Response(200, json=[{"id": "s1"}])

        client, _ = mock_http(handler)
        preloader = ContextPreloader(client=client, cache=TTLCache(clock=fake_clock))
        routes = [_route(), _route(route="/api/broken", title="Broken")]

        async with client:
            block = await preloader.preload(routes, BASE_URL)

        assert '"id": "s1"' in block
        assert "⚠️ Failed to load data from /api/broken: proxy misconfigured" in block

    @pytest.mark.asyncio
    async def test_cache_error_is_contained(self, mock_http, fake_clock) -> None:
        """Test a failing cache lookup becomes a failed section instead of aborting the batch."""

        class FlakyCache(TTLCache):
            async def get(self, key: str) -> PreloadResult | None:
                if "/api/broken" in key:
                    raise OSError("cache backend unavailable")
                return await super().get(key)

        client, transport = mock_http(lambda request: httpx.Response(200, json=[{"id": "s1"}]))
        preloader = ContextPreloader(client=client, cache=FlakyCache(clock=fake_clock))
        routes = [_route(), _route(route="/api/broken", title="Broken")]

        async with client:
            block = await preloader.preload(routes, BASE_URL)

        assert [request.url.path for request in transport.requests] == ["/api/schemas"]
        assert '"id": "s1"' in block
        assert "⚠️ Failed to load data from /api/broken: cache backend unavailable" in block

    @pytest.mark.asyncio
    async def test_only_successes_cached(self, mock_http, fake_clock) -> None:
        """Test successful routes are reused and failed routes are retried."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/schemas":
                return httpx.Response(200, json=[{"id": "s1"}])
            return httpx.Response(503)

        client, transport = mock_http(handler)
        preloader = ContextPreloader(client=client, cache=TTLCache(clock=fake_clock))
        routes = [_route(), _route(route="/api/broken", title="Broken")]

        async with client:
            await preloader.preload(routes, BASE_URL)
            await preloader.preload(routes, BASE_URL)

        paths = [request.url.path for request in transport.requests]
        assert paths.count("/api/schemas") == 1
        assert paths.count("/api/broken") == 2

    @pytest.mark.asyncio
    async def test_cache_expires(self, mock_http, fake_clock) -> None:
        """Test cached results are refetched after their TTL."""
        client, transport = mock_http(lambda request: httpx.Response(200, json=[{"id": "s1"}]))
        preloader = ContextPreloader(client=client, cache=TTLCache(default_ttl=300, clock=fake_clock))

        async with client:
            await preloader.preload([_route()], BASE_URL)
            fake_clock.advance(301)
            await preloader.preload([_route()], BASE_URL)

        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_post_route_sends_body(self, mock_http, fake_clock) -> None:
        """Test POST routes send their JSON body."""
        client, transport = mock_http(lambda request: httpx.Response(200, json={"ok": True}))
        preloader = ContextPreloader(client=client, cache=TTLCache(clock=fake_clock))

        async with client:
            await preloader.preload([_route(method="POST", body={"q": "sales"})], BASE_URL)

        request = transport.requests[0]
        assert request.method == "POST"
        assert json.loads(request.content) == {"q": "sales"}

    @pytest.mark.asyncio
    async def test_toon_text_response(self, mock_http, fake_clock) -> None:
        """Test a plain-text TOON response is embedded verbatim."""
        client, transport = mock_http(
            lambda request: httpx.Response(200, text="org[1]{name}:\n  Acme", headers={"content-type": "text/plain"})
        )
        preloader = ContextPreloader(client=client, cache=TTLCache(clock=fake_clock))
        route = _route(route="/api/organization-rag", outputFormat="toon", queryParameters={"format": "toon"})

        async with client:
            block = await preloader.preload([route], BASE_URL)

        assert str(transport.requests[0].url) == "https://app.test/api/organization-rag?format=toon"
        assert "```text\norg[1]{name}:\n  Acme\n```" in block

    @pytest.mark.asyncio
    async def test_invalid_json_is_failure(self, mock_http, fake_clock) -> None:
        """Test a JSON content type with an unparseable body fails the route."""
        client, _ = mock_http(
            lambda request: httpx.Response(200, text="{broken", headers={"content-type": "application/json"})
        )
        preloader = ContextPreloader(client=client, cache=TTLCache(clock=fake_clock))

        async with client:
            result = await preloader.fetch_route(_route(), BASE_URL)

        assert result.success is False
        assert result.error == "Invalid JSON response"

    @pytest.mark.asyncio
    async def test_no_routes(self) -> None:
        """Test nothing is rendered without routes."""
        assert await ContextPreloader(cache=TTLCache()).preload([], BASE_URL) == ""

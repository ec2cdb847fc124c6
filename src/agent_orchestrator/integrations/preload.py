"""
Context Preloader - fetches external context sources before prompt assembly.

All routes are fetched concurrently. Successful results are cached for a few
minutes; a failed route renders a warning section instead of its data and
never aborts the batch.
"""

from __future__ import annotations

import asyncio

from typing import Any
from urllib.parse import parse_qsl, urlencode

import httpx

from pydantic import BaseModel

from agent_orchestrator.core.constants import PRELOAD_CACHE_TTL, PRELOAD_TIMEOUT
from agent_orchestrator.core.exceptions import PreloadFailure
from agent_orchestrator.models.agent_models import PreloadRoute
from agent_orchestrator.utils.cache import TTLCache
from agent_orchestrator.utils.client_factory import create_http_client
from agent_orchestrator.utils.json_utils import json_pretty
from agent_orchestrator.utils.logger import logger
from agent_orchestrator.utils.metrics import preload_failures_total
from agent_orchestrator.utils.text_utils import clean_text, format_to_toon

PRELOAD_HEADING = "## Preloaded Context Data"

#: Columns used for TOON output of schema listings when none are configured
SCHEMA_TOON_FIELDS = ["id", "description", "plural_name"]


class PreloadResult(BaseModel):
    """Outcome of fetching a single preload route."""

    route: str
    title: str
    description: str = ""
    success: bool
    data: Any = None
    error: str | None = None


# ============================================================================
# URL and Data Helpers
# ============================================================================


def build_url_with_query(route: str, query_params: dict[str, Any] | None) -> str:
    """Merge query parameters into a route, overriding existing keys."""
    if not query_params:
        return route

    path, _, existing = route.partition("?")
    params = dict(parse_qsl(existing, keep_blank_values=True))
    params.update({key: str(value) for key, value in query_params.items()})
    query = urlencode(params)
    return f"{path}?{query}" if query else path


def build_full_url(route: PreloadRoute, base_url: str) -> str:
    """Absolute URL for a route, adding query parameters for GET requests."""
    path = route.route
    if route.method == "GET" and route.query_parameters:
        path = build_url_with_query(path, route.query_parameters)
    if path.startswith("http"):
        return path
    return f"{base_url.rstrip('/')}{path if path.startswith('/') else '/' + path}"


def extract_data_by_path(data: Any, json_path: str | None) -> Any:
    """Walk a dot-separated path through dicts (and list indexes).

    Returns:
        The value at the path, or None when any segment is missing
    """
    if not json_path:
        return data

    current = data
    for segment in json_path.split("."):
        if isinstance(current, dict) and segment in current:
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            return None
    return current


def included_fields_for(route: PreloadRoute) -> list[str] | None:
    """Explicit field filter, or the schema default for TOON schema listings."""
    if route.included_fields:
        return route.included_fields
    if route.output_format == "toon" and "schemas" in route.route:
        return SCHEMA_TOON_FIELDS
    return None


def filter_fields(data: Any, included_fields: list[str] | None) -> Any:
    """Keep only the listed keys on each record."""
    if not included_fields:
        return data
    if isinstance(data, list):
        return [
            {key: item[key] for key in included_fields if key in item} if isinstance(item, dict) else item
            for item in data
        ]
    if isinstance(data, dict):
        return {key: data[key] for key in included_fields if key in data}
    return data


def entity_name_from_route(route: str) -> str:
    """Collection name for TOON headers, e.g. ``/api/schemas?x=1`` -> ``schemas``."""
    last = route.strip("/").split("/")[-1]
    return clean_text(last.split("?")[0]) or "items"


def format_data_as_toon(data: Any, route: str, fields: list[str] | None) -> str:
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list) or not data:
        return ""
    if not fields:
        fields = list(data[0].keys()) if isinstance(data[0], dict) else []
    return format_to_toon(entity_name_from_route(route), data, fields)


def format_route_result(result: PreloadResult, route: PreloadRoute) -> str:
    """Render one preload result as a markdown section."""
    header = f"## {clean_text(result.title)}\n{clean_text(result.description)}\n\n"

    if not result.success or result.data in (None, "", [], {}):
        error = clean_text(result.error or "Unknown error")
        return f"{header}⚠️ Failed to load data from {result.route}: {error}\n"

    if route.output_format == "toon":
        if isinstance(result.data, str):
            body = result.data
        else:
            fields = included_fields_for(route)
            body = format_data_as_toon(filter_fields(result.data, fields), result.route, fields)
        return f"{header}Data from {result.route}:\n```text\n{body}\n```\n"

    data = filter_fields(result.data, route.included_fields or None)
    if route.output_format == "string":
        body = clean_text(data if isinstance(data, str) else json_pretty(data))
        return f"{header}Data from {result.route}:\n```\n{body}\n```\n"

    return f"{header}Data from {result.route}:\n```json\n{json_pretty(data)}\n```\n"


# ============================================================================
# Preloader
# ============================================================================

_preload_cache: TTLCache | None = None


def get_preload_cache() -> TTLCache:
    """Process-wide cache of successful preload results, shared by default preloaders."""
    global _preload_cache
    if _preload_cache is None:
        _preload_cache = TTLCache(max_size=256, default_ttl=PRELOAD_CACHE_TTL)
    return _preload_cache


def reset_preload_cache() -> None:
    """Discard the shared preload cache. Intended for tests."""
    global _preload_cache
    _preload_cache = None



class ContextPreloader:
    """Fetches preload routes concurrently and formats them for the system prompt.

    Usage:
        preloader = ContextPreloader()
        block = await preloader.preload(agent.preload_routes, "https://app.example.com")
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        cache: TTLCache | None = None,
        timeout: float = PRELOAD_TIMEOUT,
    ) -> None:
        self._client = client
        self._cache = cache if cache is not None else get_preload_cache()
        self._timeout = timeout

    @staticmethod
    def cache_key(route: PreloadRoute, base_url: str) -> str:
        return f"{route.method}:{build_full_url(route, base_url)}:{route.json_path or ''}"

    async def fetch_route(self, route: PreloadRoute, base_url: str) -> PreloadResult:
        """Fetch a single route. Failures are returned, not raised."""
        try:
            data = await self._request(route, base_url)
        except PreloadFailure as e:
            return self._failed(route, e.message)
        except (httpx.HTTPError, TimeoutError) as e:
            return self._failed(route, str(e) or type(e).__name__)
        except Exception as e:
            # Reported in the route's own section like any other failure
            logger.error(f"Unexpected preload error: {route.route}", exc_info=True, route=route.route)
            return self._failed(route, str(e) or type(e).__name__)

        return PreloadResult(
            route=route.route,
            title=route.title,
            description=route.description,
            success=True,
            data=data,
        )

    async def _request(self, route: PreloadRoute, base_url: str) -> Any:
        url = build_full_url(route, base_url)
        kwargs: dict[str, Any] = {"headers": {"Content-Type": "application/json"}}
        if route.method == "POST" and route.body is not None:
            kwargs["json"] = route.body

        async with asyncio.timeout(self._timeout):
            if self._client is not None:
                response = await self._client.request(route.method, url, **kwargs)
            else:
                async with create_http_client() as client:
                    response = await client.request(route.method, url, **kwargs)

        if not response.is_success:
            raise PreloadFailure(route.route, f"HTTP {response.status_code}: {response.reason_phrase}")

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type or "text/json" in content_type:
            try:
                return extract_data_by_path(response.json(), route.json_path)
            except ValueError as e:
                raise PreloadFailure(route.route, "Invalid JSON response", cause=e) from e

        text = response.text
        if route.output_format == "toon":
            return text
        try:
            return extract_data_by_path(response.json(), route.json_path)
        except ValueError:
            return text

    def _failed(self, route: PreloadRoute, error: str) -> PreloadResult:
        preload_failures_total.inc()
        logger.warning(f"Preload route failed: {route.route} - {error}", route=route.route)
        return PreloadResult(
            route=route.route,
            title=route.title,
            description=route.description,
            success=False,
            error=error,
        )

    async def _load(self, route: PreloadRoute, base_url: str) -> PreloadResult:
        key = self.cache_key(route, base_url)
        cached = await self._cache.get(key)
        if cached is not None:
            return cached

        result = await self.fetch_route(route, base_url)
        if result.success:
            await self._cache.set(key, result)
        return result

    async def preload(self, routes: list[PreloadRoute], base_url: str = "") -> str:
        """Fetch every route and render the "Preloaded Context Data" block.

        Args:
            routes: Routes in the order their sections should appear
            base_url: Prefix for relative routes

        Returns:
            The formatted block, or an empty string when there are no routes
        """
        if not routes:
            return ""

        outcomes = await asyncio.gather(*(self._load(route, base_url) for route in routes), return_exceptions=True)
        results: list[PreloadResult] = []
        for outcome, route in zip(outcomes, routes, strict=True):
            if isinstance(outcome, Exception):
                outcome = self._failed(route, str(outcome) or type(outcome).__name__)
            elif isinstance(outcome, BaseException):
                raise outcome
            results.append(outcome)
        sections = [format_route_result(result, route) for result, route in zip(results, routes, strict=True)]
        logger.debug(
            f"Preloaded {sum(r.success for r in results)}/{len(results)} context routes",
            routes=len(results),
        )
        return f"\n\n{PRELOAD_HEADING}\n\n" + "\n".join(sections) + "\n"

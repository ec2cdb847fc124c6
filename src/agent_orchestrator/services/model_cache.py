"""
Model Metadata Cache - cached model listing and per-call pricing.

The model list is the only process-wide mutable state in the orchestrator.
It is refreshed single-flight and always replaced wholesale, so concurrent
readers see either the previous snapshot or the new one.
"""

from __future__ import annotations

import asyncio
import time

from collections.abc import Awaitable, Callable
from decimal import ROUND_HALF_UP, Decimal

import httpx

from pydantic import ValidationError

from agent_orchestrator.core.constants import MODELS_CACHE_TTL, MODELS_FETCH_TIMEOUT, get_settings
from agent_orchestrator.models.response_models import ModelDescriptor, PricingInfo
from agent_orchestrator.utils.cache import Clock
from agent_orchestrator.utils.client_factory import create_http_client
from agent_orchestrator.utils.logger import logger
from agent_orchestrator.utils.metrics import model_cache_refresh_total

ModelFetcher = Callable[[], Awaitable[list[ModelDescriptor]]]

MODELS_ENDPOINT = "/api/ai-models"
TOKENS_PER_UNIT = Decimal(1_000_000)
PRICE_QUANTUM = Decimal("0.000001")


class ModelListError(Exception):
    """The model listing endpoint returned something unusable."""


def _cost(tokens: int, price_per_1m: float) -> Decimal:
    return (Decimal(tokens) / TOKENS_PER_UNIT * Decimal(str(price_per_1m))).quantize(
        PRICE_QUANTUM, rounding=ROUND_HALF_UP
    )


def http_model_fetcher(
    base_url: str,
    client: httpx.AsyncClient | None = None,
    timeout: float = MODELS_FETCH_TIMEOUT,
) -> ModelFetcher:
    """Build a fetcher for ``GET {base_url}/api/ai-models``.

    The endpoint returns ``{"success": true, "data": [...]}``. The whole GET
    must finish within ``timeout`` seconds.
    """
    url = f"{base_url.rstrip('/')}{MODELS_ENDPOINT}"

    async def get() -> httpx.Response:
        if client is not None:
            return await client.get(url)
        async with create_http_client() as owned:
            return await owned.get(url)

    async def fetch() -> list[ModelDescriptor]:
        async with asyncio.timeout(timeout):
            response = await get()

        if not response.is_success:
            raise ModelListError(f"HTTP {response.status_code}: {response.reason_phrase}")
        try:
            payload = response.json()
        except ValueError as e:
            raise ModelListError("Model listing is not valid JSON") from e
        if not isinstance(payload, dict) or not payload.get("success") or not isinstance(payload.get("data"), list):
            raise ModelListError("Model listing has no data array")
        try:
            return [ModelDescriptor.model_validate(item) for item in payload["data"]]
        except ValidationError as e:
            raise ModelListError("Model listing entries are malformed") from e

    return fetch


class ModelMetadataCache:
    """Cached model list with TTL and deterministic, injectable time.

    A failed refresh stores an empty list with a fresh timestamp, so the next
    attempt happens only after the TTL elapses.

    Usage:
        cache = ModelMetadataCache(base_url="https://app.example.com")
        pricing = await cache.compute_pricing("gpt-4o-mini", 1200, 300)
    """

    def __init__(
        self,
        fetcher: ModelFetcher | None = None,
        *,
        base_url: str | None = None,
        ttl: float = MODELS_CACHE_TTL,
        fetch_timeout: float = MODELS_FETCH_TIMEOUT,
        clock: Clock = time.monotonic,
    ) -> None:
        if fetcher is None and base_url:
            fetcher = http_model_fetcher(base_url, timeout=fetch_timeout)
        self._fetcher = fetcher
        self._ttl = ttl
        self._clock = clock
        self._models: list[ModelDescriptor] | None = None
        self._fetched_at: float = 0.0
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        return self._models is not None and (self._clock() - self._fetched_at) < self._ttl

    async def get_models(self) -> list[ModelDescriptor]:
        """Return the cached model list, refreshing it when absent or expired."""
        if self._is_fresh():
            return self._models or []

        async with self._lock:
            # Another caller may have refreshed while we waited
            if self._is_fresh():
                return self._models or []
            self._models = await self._refresh()
            self._fetched_at = self._clock()
            return self._models

    async def _refresh(self) -> list[ModelDescriptor]:
        if self._fetcher is None:
            logger.debug("No model listing source configured; pricing unavailable")
            return []
        try:
            models = await self._fetcher()
        except Exception as e:
            # Pricing is optional; any listing failure degrades to "unknown"
            model_cache_refresh_total.labels(outcome="failure").inc()
            logger.warning(f"Model list refresh failed: {e}", exc_type=type(e).__name__)
            return []

        model_cache_refresh_total.labels(outcome="success").inc()
        logger.debug(f"Model list refreshed: {len(models)} models")
        return list(models)

    async def find_model(self, model_id: str) -> ModelDescriptor | None:
        for model in await self.get_models():
            if model.id == model_id:
                return model
        return None

    async def compute_pricing(
        self,
        model_id: str,
        prompt_tokens: int,
        completion_tokens: int,
    ) -> PricingInfo | None:
        """Price one call from token counts.

        Returns:
            PricingInfo, or None when the model or either unit price is unknown.
            None means "unknown", never zero.
        """
        model = await self.find_model(model_id)
        if model is None or model.pricing is None:
            return None
        if model.pricing.input is None or model.pricing.output is None:
            return None

        input_cost = _cost(prompt_tokens, model.pricing.input)
        output_cost = _cost(completion_tokens, model.pricing.output)
        return PricingInfo(
            input_price_per_1m=model.pricing.input,
            output_price_per_1m=model.pricing.output,
            input_cost=float(input_cost),
            output_cost=float(output_cost),
            total_cost=float(input_cost + output_cost),
            model_id=model_id,
        )

    def invalidate(self) -> None:
        """Drop the snapshot so the next read refetches."""
        self._models = None
        self._fetched_at = 0.0


# ============================================================================
# Process Default
# ============================================================================

_default_caches: dict[str | None, ModelMetadataCache] = {}


def get_model_cache(base_url: str | None = None) -> ModelMetadataCache:
    """Process-wide cache for one base URL (the configured APP_BASE_URL when omitted).

    Each distinct base URL gets its own cache, created on first use.
    """
    settings = get_settings()
    key = (base_url or settings.app_base_url or "").rstrip("/") or None
    if key not in _default_caches:
        _default_caches[key] = ModelMetadataCache(
            base_url=key,
            ttl=settings.models_cache_ttl,
            fetch_timeout=settings.models_fetch_timeout,
        )
    return _default_caches[key]


def reset_model_cache() -> None:
    """Discard the process-wide caches. Intended for tests."""
    _default_caches.clear()

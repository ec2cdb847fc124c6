"""In-memory TTL cache.

Simple LRU cache with TTL expiration. Used to reuse successful context
preload results across requests. Suitable for single-process deployments.
"""

from __future__ import annotations

import asyncio
import time

from collections import OrderedDict
from collections.abc import Callable
from typing import Any

Clock = Callable[[], float]


class TTLCache:
    """Simple in-memory cache with TTL and max size.

    Safe for concurrent asyncio tasks (uses asyncio.Lock). The clock is
    injectable so expiry can be tested without sleeping.
    """

    def __init__(self, max_size: int = 1000, default_ttl: float = 60.0, clock: Clock = time.monotonic) -> None:
        """Initialize cache.

        Args:
            max_size: Maximum number of entries (LRU eviction when exceeded)
            default_ttl: Default time-to-live in seconds
            clock: Monotonic time source in seconds
        """
        self._cache: OrderedDict[str, tuple[Any, float]] = OrderedDict()
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._clock = clock
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> Any | None:
        """Get value from cache if not expired."""
        async with self._lock:
            if key not in self._cache:
                self._misses += 1
                return None

            value, expires_at = self._cache[key]
            if self._clock() > expires_at:
                del self._cache[key]
                self._misses += 1
                return None

            self._cache.move_to_end(key)
            self._hits += 1
            return value

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Set value in cache with TTL."""
        ttl = ttl if ttl is not None else self._default_ttl
        expires_at = self._clock() + ttl

        async with self._lock:
            if key in self._cache:
                del self._cache[key]

            while len(self._cache) >= self._max_size:
                self._cache.popitem(last=False)

            self._cache[key] = (value, expires_at)

    async def clear(self) -> None:
        """Clear all entries."""
        async with self._lock:
            self._cache.clear()

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        total = self._hits + self._misses
        hit_rate = self._hits / total if total > 0 else 0.0
        return {
            "size": len(self._cache),
            "max_size": self._max_size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": f"{hit_rate:.1%}",
        }

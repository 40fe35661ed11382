"""
Caching and concurrency wrappers around a candle source.

The snapshot engine itself holds no state. Repeated fetches of the same
candles within a short TTL are served from memory, and the number of
in-flight fetches is bounded by a semaphore.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from collections.abc import Callable
from typing import Any

from core.entities import Candle
from core.zones.confirmation import LtfWindow
from infra.feeds.base import CandleSource

__all__ = ["canonical_key", "TTLCache", "ConcurrencyLimiter", "CachingCandleSource"]

logger = logging.getLogger(__name__)


def canonical_key(name: str, params: dict[str, Any]) -> str:
    """Cache key independent of parameter order.

    ``canonical_key("klines", {"b": 1, "a": 2}) == canonical_key("klines", {"a": 2, "b": 1})``
    """
    payload = json.dumps(params, sort_keys=True, default=str, separators=(",", ":"))
    digest = hashlib.md5(payload.encode()).hexdigest()[:16]
    return f"{name}|{digest}"


class TTLCache:
    """In-memory cache whose entries expire ``ttl`` seconds after being stored."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is not None and self._clock() - entry[0] < self.ttl:
            self.hits += 1
            return entry[1]
        if entry is not None:
            del self._entries[key]
        self.misses += 1
        return None

    def set(self, key: str, value: Any) -> None:
        if self.ttl <= 0:
            return
        now = self._clock()
        self.purge_expired(now)
        self._entries[key] = (now, value)

    def purge_expired(self, now: float | None = None) -> int:
        """Drop every expired entry; returns how many were removed."""
        now = self._clock() if now is None else now
        expired = [k for k, (stored, _) in self._entries.items() if now - stored >= self.ttl]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def get_cache_stats(self) -> dict[str, Any]:
        return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}


class ConcurrencyLimiter:
    """Bounds concurrent awaits with an ``asyncio.Semaphore``."""

    def __init__(self, max_concurrency: int = 4) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self.in_flight = 0

    async def __aenter__(self) -> ConcurrencyLimiter:
        await self._semaphore.acquire()
        self.in_flight += 1
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.in_flight -= 1
        self._semaphore.release()


class CachingCandleSource:
    """Candle source decorator adding a TTL cache and a concurrency limit.

    Only successful, non-empty results are cached; errors always propagate.
    """

    def __init__(
        self,
        source: CandleSource,
        cache: TTLCache | None = None,
        limiter: ConcurrencyLimiter | None = None,
    ) -> None:
        self.source = source
        self.cache = cache or TTLCache(ttl=10.0)
        self.limiter = limiter or ConcurrencyLimiter()
        self.logger = logging.getLogger(self.__class__.__name__)

    async def fetch_candles(self, symbol: str, interval: str, limit: int) -> list[Candle]:
        key = canonical_key("klines", {"symbol": symbol, "interval": interval, "limit": limit})
        cached = self.cache.get(key)
        if cached is not None:
            self.logger.debug("Cache hit for %s %s limit=%d", symbol, interval, limit)
            return cached

        async with self.limiter:
            candles = await self.source.fetch_candles(symbol, interval, limit)
        if candles:
            self.cache.set(key, candles)
        return candles

    async def fetch_window(self, symbol: str, interval: str, window: LtfWindow) -> list[Candle]:
        """Windowed fetch for LTF confirmation, passed through when supported."""
        fetch = getattr(self.source, "fetch_window", None)
        key = canonical_key(
            "klines_window",
            {
                "symbol": symbol,
                "interval": interval,
                "start": window.start.isoformat(),
                "end": window.end.isoformat(),
                "limit": window.limit,
            },
        )
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        async with self.limiter:
            if fetch is not None:
                candles = await fetch(symbol, interval, window)
            else:
                candles = await self.source.fetch_candles(symbol, interval, window.limit)
        if candles:
            self.cache.set(key, candles)
        return candles

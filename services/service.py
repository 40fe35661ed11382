"""
Market snapshot service.

Validates requests, fetches candles from a candle source, applies learned
overrides and runs the snapshot engine. Batch requests run symbol by symbol;
a failing symbol yields an error entry in its slot without aborting the rest.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from core.entities import Candle
from core.timeframe import fetch_interval
from core.zones.confirmation import LtfWindow
from infra.feeds.base import CandleSource
from infra.feeds.binance import BinanceKlinesFeed, FeedSettings
from infra.feeds.exceptions import FeedError, sanitize_error
from services.features import log_features
from services.middleware import CachingCandleSource, ConcurrencyLimiter, TTLCache
from services.models import BatchSnapshotRequest, SnapshotRequest
from services.overrides import OverrideStore
from services.snapshot import compute_snapshot

__all__ = ["NO_CANDLES", "MarketSnapshotService"]

NO_CANDLES = "no_candles"


class MarketSnapshotService:
    """Entry point for single and batch snapshot requests."""

    def __init__(
        self,
        source: CandleSource,
        overrides: OverrideStore | None = None,
        ltf_enabled: bool = True,
    ) -> None:
        """Initialize service.

        Args:
            source: Candle source used for primary and lower-timeframe fetches
            overrides: Learned override store; None disables overrides
            ltf_enabled: Whether to fetch lower-timeframe candles for HOBs
        """
        self.source = source
        self.overrides = overrides
        self.ltf_enabled = ltf_enabled
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_settings(
        cls,
        settings: FeedSettings | None = None,
        overrides_dir: str | Path | None = None,
    ) -> MarketSnapshotService:
        """Service backed by the Binance feed with caching and a concurrency limit."""
        settings = settings or FeedSettings()
        source = CachingCandleSource(
            BinanceKlinesFeed(settings),
            cache=TTLCache(ttl=settings.cache_ttl_seconds),
            limiter=ConcurrencyLimiter(settings.snapshot_concurrency),
        )
        store = OverrideStore(overrides_dir) if overrides_dir else None
        return cls(source, overrides=store)

    async def close(self) -> None:
        """Close the underlying feed session, if it has one."""
        source = getattr(self.source, "source", self.source)
        close = getattr(source, "close", None)
        if close is not None:
            await close()

    async def fetch_lower_timeframe(
        self, symbol: str, interval: str, window: LtfWindow
    ) -> Sequence[Candle]:
        fetch_window = getattr(self.source, "fetch_window", None)
        if fetch_window is not None:
            return await fetch_window(symbol, interval, window)
        return await self.source.fetch_candles(symbol, interval, window.limit)

    async def analyze(self, candles: Sequence[Candle], request: SnapshotRequest) -> dict[str, Any]:
        """Snapshot document for already-fetched candles."""
        if not candles:
            return {"symbol": request.symbol, "error": NO_CANDLES}
        if self.overrides is not None:
            request = self.overrides.apply(request)

        fetcher = self.fetch_lower_timeframe if self.ltf_enabled else None
        snapshot = await compute_snapshot(candles, request, fetcher)
        log_features(snapshot)
        return snapshot.to_dict()

    async def snapshot(self, request: SnapshotRequest | dict[str, Any]) -> dict[str, Any]:
        """Compute one snapshot.

        Raises:
            pydantic.ValidationError: If the request is malformed (before any fetch)
            FeedError: If the candle source fails; the message is sanitized
        """
        if not isinstance(request, SnapshotRequest):
            request = SnapshotRequest.model_validate(request)

        interval = fetch_interval(request.interval)
        try:
            candles = await self.source.fetch_candles(request.symbol, interval, request.limit)
        except FeedError as e:
            raise FeedError(sanitize_error(e), request.symbol) from e

        if not candles:
            self.logger.info("No candles for %s %s", request.symbol, interval)
            return {"symbol": request.symbol, "error": NO_CANDLES}

        return await self.analyze(candles, request)

    async def snapshots(
        self, request: BatchSnapshotRequest | dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Compute snapshots for several symbols, in request order.

        Raises:
            pydantic.ValidationError: If the batch request is malformed
        """
        if not isinstance(request, BatchSnapshotRequest):
            request = BatchSnapshotRequest.model_validate(request)

        results: list[dict[str, Any]] = []
        for symbol in request.symbols:
            try:
                results.append(await self.snapshot(request.for_symbol(symbol)))
            except Exception as e:
                self.logger.warning("Snapshot failed for %s: %s", symbol, sanitize_error(e))
                results.append({"symbol": symbol, "error": sanitize_error(e)})
        return results

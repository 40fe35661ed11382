"""
Binance spot klines feed.

Fetches closed candles from the public ``/api/v3/klines`` endpoint. No
credentials are needed; requests are rate limited and retried with
exponential backoff on throttling, server errors and connection failures.
"""

from __future__ import annotations

import asyncio
import json
import logging
import ssl
import time
from collections.abc import Sequence
from typing import Any

import aiohttp
import certifi
from pydantic_settings import BaseSettings

from core.entities import Candle, from_epoch_ms, to_epoch_ms
from core.zones.confirmation import LtfWindow

from .exceptions import FeedError

__all__ = ["FeedSettings", "BinanceKlinesFeed", "parse_kline"]

logger = logging.getLogger(__name__)

MAINNET_URL = "https://api.binance.com"
TESTNET_URL = "https://testnet.binance.vision"
KLINES_ENDPOINT = "/api/v3/klines"
MAX_KLINES = 1000
RETRY_STATUSES = (429, 500, 502, 503, 504)


class FeedSettings(BaseSettings):
    """Feed and service configuration loaded from environment variables.

    Configuration options:
    - binance_base_url: explicit REST base URL, overrides the testnet switch
    - binance_cache_ttl: candle cache lifetime in milliseconds
    - snapshot_concurrency: maximum in-flight candle fetches
    """

    binance_base_url: str = ""
    binance_testnet: bool = False
    binance_cache_ttl: int = 10_000
    snapshot_concurrency: int = 4
    binance_rest_timeout: int = 10
    binance_max_retries: int = 3
    binance_retry_backoff: float = 1.0

    model_config = {"env_file": ".env", "case_sensitive": False, "extra": "ignore"}

    def model_post_init(self, __context: Any) -> None:
        """Validate numeric limits."""
        if self.snapshot_concurrency < 1:
            raise ValueError("SNAPSHOT_CONCURRENCY must be at least 1")
        if self.binance_cache_ttl < 0:
            raise ValueError("BINANCE_CACHE_TTL must not be negative")
        if self.binance_max_retries < 0:
            raise ValueError("BINANCE_MAX_RETRIES must not be negative")

    @property
    def base_url(self) -> str:
        if self.binance_base_url:
            return self.binance_base_url.rstrip("/")
        return TESTNET_URL if self.binance_testnet else MAINNET_URL

    @property
    def cache_ttl_seconds(self) -> float:
        return self.binance_cache_ttl / 1000


def parse_kline(row: Sequence[Any]) -> Candle:
    """Convert a kline array ``[open_time, open, high, low, close, volume, ...]``."""
    try:
        return Candle(
            ts=from_epoch_ms(int(row[0])),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
        )
    except (IndexError, TypeError, ValueError) as e:
        raise FeedError(f"Malformed kline row: {e}") from e


class BinanceKlinesFeed:
    """Candle source backed by the Binance spot REST API.

    Usable as an async context manager; the HTTP session is created lazily
    and shared by every request.
    """

    def __init__(self, config: FeedSettings | None = None) -> None:
        """Initialize feed.

        Args:
            config: Feed configuration (loads from env if None)
        """
        self.config = config or FeedSettings()
        self.base_url = self.config.base_url
        self.logger = logging.getLogger(self.__class__.__name__)
        self._session: aiohttp.ClientSession | None = None

        # Rate limiting
        self._last_request_time = 0.0
        self._min_request_interval = 0.05

    async def __aenter__(self) -> BinanceKlinesFeed:
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure HTTP session is initialized."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.binance_rest_timeout)

            # Create SSL context with certifi certificates
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            ssl_context.check_hostname = True
            ssl_context.verify_mode = ssl.CERT_REQUIRED

            connector = aiohttp.TCPConnector(ssl=ssl_context)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"User-Agent": "MarketStructure/1.0"},
                connector=connector,
            )

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def _rate_limit(self) -> None:
        """Apply rate limiting to prevent API abuse."""
        current_time = time.time()
        time_since_last = current_time - self._last_request_time

        if time_since_last < self._min_request_interval:
            await asyncio.sleep(self._min_request_interval - time_since_last)

        self._last_request_time = time.time()

    async def _request(
        self,
        endpoint: str,
        params: dict[str, Any],
        retry_count: int = 0,
    ) -> Any:
        """Make a public GET request with retry logic.

        Args:
            endpoint: API endpoint path
            params: Query parameters
            retry_count: Current retry attempt

        Returns:
            Parsed JSON response

        Raises:
            FeedError: If request fails after all retries
        """
        await self._ensure_session()
        await self._rate_limit()

        url = f"{self.base_url}{endpoint}"
        try:
            assert self._session is not None
            async with self._session.get(url, params=params) as response:
                response_text = await response.text()

                if response.status == 200:
                    try:
                        return json.loads(response_text)
                    except json.JSONDecodeError as e:
                        raise FeedError(f"Invalid JSON response: {e}") from e

                try:
                    error_data = json.loads(response_text)
                    error_msg = error_data.get("msg", f"HTTP {response.status}")
                except (json.JSONDecodeError, AttributeError):
                    error_msg = f"HTTP {response.status}: {response_text[:200]}"

                if response.status in RETRY_STATUSES and retry_count < self.config.binance_max_retries:
                    self.logger.warning(
                        "Klines request throttled or failed (HTTP %s), retrying", response.status
                    )
                    await self._backoff_sleep(retry_count)
                    return await self._request(endpoint, params, retry_count + 1)

                raise FeedError(f"API request failed: {error_msg}", params.get("symbol"))

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            # asyncio.TimeoutError carries no message
            reason = str(e) or e.__class__.__name__
            if retry_count < self.config.binance_max_retries:
                self.logger.warning("Request failed, retrying: %s", reason)
                await self._backoff_sleep(retry_count)
                return await self._request(endpoint, params, retry_count + 1)
            raise FeedError(f"HTTP request failed: {reason}", params.get("symbol")) from e

    async def _backoff_sleep(self, retry_count: int) -> None:
        """Sleep with exponential backoff."""
        await asyncio.sleep(self.config.binance_retry_backoff * (2**retry_count))

    async def fetch_candles(self, symbol: str, interval: str, limit: int) -> list[Candle]:
        """Most recent ``limit`` candles for ``symbol`` at a native interval."""
        params = {"symbol": symbol, "interval": interval, "limit": min(limit, MAX_KLINES)}
        rows = await self._request(KLINES_ENDPOINT, params)
        if not isinstance(rows, list):
            raise FeedError("Unexpected klines payload", symbol)
        return [parse_kline(row) for row in rows]

    async def fetch_window(self, symbol: str, interval: str, window: LtfWindow) -> list[Candle]:
        """Candles starting at ``window.start``, for lower-timeframe confirmation."""
        params = {
            "symbol": symbol,
            "interval": interval,
            "startTime": to_epoch_ms(window.start),
            "endTime": to_epoch_ms(window.end),
            "limit": min(window.limit, MAX_KLINES),
        }
        rows = await self._request(KLINES_ENDPOINT, params)
        if not isinstance(rows, list):
            raise FeedError("Unexpected klines payload", symbol)
        return [parse_kline(row) for row in rows]

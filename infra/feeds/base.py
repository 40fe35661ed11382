from __future__ import annotations

from typing import Protocol

from core.entities import Candle


class CandleSource(Protocol):
    """Async provider of closed candles, oldest first."""

    async def fetch_candles(self, symbol: str, interval: str, limit: int) -> list[Candle]: ...

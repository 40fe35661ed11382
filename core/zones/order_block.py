"""Order block selection.

Three passes, each only running when the previous one produced nothing:

1. BOS-aligned: after a break up, the most recent bearish candle followed by
   upward momentum (or any such candle, since the break itself confirms the
   move) becomes the bullish block. Mirrored for a break down.
2. Displacement: a close-to-close move over the last few candles larger than
   ``0.8 x ATR`` selects the most recent opposite-bodied candle.
3. Pivot: the nearest bullish-bodied candle before the latest high pivot
   becomes a bearish block; failing that, the nearest bearish-bodied candle
   before the latest low pivot becomes a bullish block.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from core.detectors._utils import log_detection_skip
from core.detectors.manager import StructureState
from core.detectors.pivot import last_pivot
from core.entities import Candle, Direction
from core.indicators.atr import MIN_RANGE

__all__ = ["OrderBlock", "OrderBlockSource", "detect_order_blocks"]

logger = logging.getLogger(__name__)

OrderBlockSource = Literal["bos", "displacement", "pivot"]

DISPLACEMENT_WINDOW = 5
DISPLACEMENT_ATR_MULT = 0.8
PIVOT_SEARCH = 10
MAX_LOOKBACK = 60


@dataclass(frozen=True, slots=True)
class OrderBlock:
    """Last opposite-bodied candle before a displacement."""

    kind: Direction
    index: int
    open: float
    high: float
    low: float
    close: float
    source: OrderBlockSource

    @classmethod
    def from_candle(
        cls, kind: Direction, index: int, candle: Candle, source: OrderBlockSource
    ) -> OrderBlock:
        return cls(kind, index, candle.open, candle.high, candle.low, candle.close, source)

    @property
    def body_low(self) -> float:
        return min(self.open, self.close)

    @property
    def body_high(self) -> float:
        return max(self.open, self.close)

    @property
    def body_mid(self) -> float:
        return (self.open + self.close) / 2

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind,
            "index": self.index,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "source": self.source,
        }


def detect_order_blocks(state: StructureState) -> list[OrderBlock]:
    """Select at most one order block per direction for the window."""
    candles = state.candles
    n = len(candles)
    if n < 2:
        log_detection_skip("OrderBlock", "window too short", f"n={n}")
        return []

    lookback = min(n - 1, MAX_LOOKBACK)
    blocks = _from_bos(candles, state.bos, lookback)
    if not blocks:
        blocks = _from_displacement(candles, state.atr, lookback)
    if not blocks:
        blocks = _from_pivots(state)

    if blocks:
        logger.debug("Order block selected: %s", blocks[0])
    return blocks


def _from_bos(candles, bos, lookback: int) -> list[OrderBlock]:
    n = len(candles)
    if bos is None:
        return []

    last_close = candles[-1].close
    prev_high = max(c.high for c in candles[:-1])
    prev_low = min(c.low for c in candles[:-1])

    for i in range(n - 3, n - lookback - 1, -1):
        c = candles[i]
        if bos == "up" and c.is_bearish:
            up_momentum = candles[i + 1].close > c.close and candles[i + 2].close >= candles[i + 1].close
            if up_momentum or last_close > prev_high:
                return [OrderBlock.from_candle("bull", i, c, "bos")]
        elif bos == "down" and c.is_bullish:
            down_momentum = candles[i + 1].close < c.close and candles[i + 2].close <= candles[i + 1].close
            if down_momentum or last_close < prev_low:
                return [OrderBlock.from_candle("bear", i, c, "bos")]
    return []


def _from_displacement(candles, atr_value: float | None, lookback: int) -> list[OrderBlock]:
    n = len(candles)
    window = min(DISPLACEMENT_WINDOW, n - 1)
    move = candles[-1].close - candles[-1 - window].close

    last = candles[-1]
    base = atr_value if atr_value is not None else max(MIN_RANGE, last.high - last.low)
    threshold = base * DISPLACEMENT_ATR_MULT

    if move > threshold:
        kind: Direction = "bull"
    elif -move > threshold:
        kind = "bear"
    else:
        return []

    for i in range(n - 2, max(1, n - 1 - lookback) - 1, -1):
        c = candles[i]
        if (kind == "bull" and c.is_bearish) or (kind == "bear" and c.is_bullish):
            return [OrderBlock.from_candle(kind, i, c, "displacement")]
    return []


def _from_pivots(state: StructureState) -> list[OrderBlock]:
    candles = state.candles

    high = last_pivot(state.pivots, "high")
    if high is not None:
        for i in range(high.index - 1, max(0, high.index - PIVOT_SEARCH) - 1, -1):
            if candles[i].is_bullish:
                return [OrderBlock.from_candle("bear", i, candles[i], "pivot")]

    low = last_pivot(state.pivots, "low")
    if low is not None:
        for i in range(low.index - 1, max(0, low.index - PIVOT_SEARCH) - 1, -1):
            if candles[i].is_bearish:
                return [OrderBlock.from_candle("bull", i, candles[i], "pivot")]
    return []

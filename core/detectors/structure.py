"""Break of structure, trend classification and swing failure patterns."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from core.detectors.pivot import Pivot, last_pivot
from core.entities import Candle

__all__ = [
    "BreakDirection",
    "SfpEvent",
    "SwingFailure",
    "detect_bos",
    "classify_trend",
    "detect_sfp",
    "sweep_tolerance",
]

BreakDirection = Literal["up", "down"]


@dataclass(frozen=True, slots=True)
class SfpEvent:
    kind: Literal["bullish", "bearish"]
    index: int
    level: float


@dataclass(frozen=True, slots=True)
class SwingFailure:
    bullish: bool = False
    bearish: bool = False
    last: SfpEvent | None = None

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {"bullish": self.bullish, "bearish": self.bearish}
        if self.last is not None:
            result["last"] = {
                "kind": self.last.kind,
                "index": self.last.index,
                "level": self.last.level,
            }
        return result


def detect_bos(candles: Sequence[Candle]) -> BreakDirection | None:
    """Last close against the full visible range, excluding the last candle.

    This is a simple structural break, not a rolling window.
    """
    if len(candles) < 2:
        return None
    last_close = candles[-1].close
    prev_high = max(c.high for c in candles[:-1])
    prev_low = min(c.low for c in candles[:-1])
    if last_close > prev_high:
        return "up"
    if last_close < prev_low:
        return "down"
    return None


def classify_trend(sma_fast: float | None, sma_slow: float | None) -> BreakDirection | None:
    if sma_fast is None or sma_slow is None:
        return None
    return "up" if sma_fast > sma_slow else "down"


def sweep_tolerance(candles: Sequence[Candle], atr_value: float | None) -> float:
    """Price tolerance for sweeps and clustering: 10% ATR, else 0.1% of last close."""
    if atr_value:
        return atr_value * 0.1
    return candles[-1].close * 0.001


def detect_sfp(
    candles: Sequence[Candle],
    pivots: Sequence[Pivot],
    tolerance: float,
    window: int = 10,
) -> SwingFailure:
    """Find the earliest swing failure in the last ``window`` candles.

    A bearish SFP wicks above the latest high pivot by more than
    ``tolerance`` and closes back below it; a bullish SFP is the mirror
    against the latest low pivot.
    """
    n = len(candles)
    high_pivot = last_pivot(pivots, "high")
    low_pivot = last_pivot(pivots, "low")
    check_range = min(n - 1, window)

    for i in range(n - check_range, n):
        c = candles[i]
        if high_pivot and c.high > high_pivot.price + tolerance and c.close < high_pivot.price:
            return SwingFailure(bearish=True, last=SfpEvent("bearish", i, high_pivot.price))
        if low_pivot and c.low < low_pivot.price - tolerance and c.close > low_pivot.price:
            return SwingFailure(bullish=True, last=SfpEvent("bullish", i, low_pivot.price))
    return SwingFailure()

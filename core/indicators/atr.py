from __future__ import annotations

from collections.abc import Sequence

from core.entities import Candle
from core.indicators.series import rma

__all__ = ["true_ranges", "atr", "range_fallback"]

# Floor for ATR-normalised ratios when no ATR or range is available
MIN_RANGE = 1e-8


def true_ranges(candles: Sequence[Candle]) -> list[float]:
    """True Range per candle.

    True Range is defined as:
        max(high - low, abs(high - prev_close), abs(low - prev_close))

    The first candle has no previous close, so its True Range is simply
    ``high - low``.
    """
    ranges: list[float] = []
    prev_close: float | None = None
    for candle in candles:
        if prev_close is None:
            ranges.append(candle.high - candle.low)
        else:
            ranges.append(
                max(
                    candle.high - candle.low,
                    abs(candle.high - prev_close),
                    abs(candle.low - prev_close),
                )
            )
        prev_close = candle.close
    return ranges


def atr(candles: Sequence[Candle], period: int = 14) -> float | None:
    """Average True Range smoothed with Wilder's running average.

    Args:
        candles: Candle window, oldest first.
        period: Smoothing period. Typically 14.

    Returns:
        The ATR at the last candle, or None if fewer than ``period`` candles.
    """
    return rma(true_ranges(candles), period)


def range_fallback(candles: Sequence[Candle], atr_value: float | None) -> float:
    """ATR if available, else the last candle's range, floored at ``MIN_RANGE``."""
    if atr_value is not None:
        return atr_value
    last = candles[-1]
    return max(MIN_RANGE, last.high - last.low)

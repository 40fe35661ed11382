"""Moving-average primitives over fixed-length numeric sequences.

All functions return ``None`` when the sequence is shorter than the period,
so callers can degrade gracefully on short candle windows.
"""

from __future__ import annotations

from collections.abc import Sequence

__all__ = ["sma", "ema", "rma"]


def sma(values: Sequence[float], period: int) -> float | None:
    """Simple moving average of the last ``period`` values."""
    if period <= 0 or len(values) < period:
        return None
    return sum(values[-period:]) / period


def ema(values: Sequence[float], period: int) -> float | None:
    """Exponential moving average over the whole sequence.

    Seeded with the first value and updated with ``k = 2 / (period + 1)``.
    """
    if period <= 0 or len(values) < period:
        return None
    mult = 2 / (period + 1)
    value = values[0]
    for price in values[1:]:
        value = (price - value) * mult + value
    return value


def rma(values: Sequence[float], period: int) -> float | None:
    """Wilder's running moving average.

    Seed is the simple average of the first ``period`` values, followed by
    exponential updates with ``alpha = 1 / period``.
    """
    if period <= 0 or len(values) < period:
        return None
    value = sum(values[:period]) / period
    alpha = 1 / period
    for item in values[period:]:
        value = alpha * item + (1 - alpha) * value
    return value

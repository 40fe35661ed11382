"""Interval tables for snapshot analysis.

Maps exchange interval codes ("1m" ... "2w") to durations, lower-timeframe
companions and reliability weights.
"""

from __future__ import annotations

from datetime import timedelta
from typing import NamedTuple

__all__ = [
    "Timeframe",
    "TIMEFRAMES",
    "SUPPORTED_INTERVALS",
    "INTERVAL_ALIASES",
    "LOWER_TIMEFRAME",
    "fetch_interval",
    "is_synthetic",
    "interval_duration",
    "lower_timeframe",
    "timeframe_weight",
]


class Timeframe(NamedTuple):
    """Interval code with its length and scoring weight."""

    code: str
    minutes: int
    weight: float

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.minutes)

    def __str__(self) -> str:
        return f"{self.code}({self.minutes} min)"


# Weights grow with interval size: higher-timeframe structure is more reliable.
TIMEFRAMES: dict[str, Timeframe] = {
    tf.code: tf
    for tf in (
        Timeframe("1m", 1, 0.5),
        Timeframe("3m", 3, 0.6),
        Timeframe("5m", 5, 0.7),
        Timeframe("15m", 15, 0.8),
        Timeframe("30m", 30, 0.9),
        Timeframe("1h", 60, 1.0),
        Timeframe("2h", 120, 1.05),
        Timeframe("4h", 240, 1.1),
        Timeframe("6h", 360, 1.12),
        Timeframe("8h", 480, 1.14),
        Timeframe("12h", 720, 1.16),
        Timeframe("1d", 1440, 1.2),
        Timeframe("2d", 2880, 1.25),
        Timeframe("4d", 5760, 1.3),
        Timeframe("1w", 10080, 1.35),
        Timeframe("2w", 20160, 1.4),
    )
}

SUPPORTED_INTERVALS: tuple[str, ...] = tuple(TIMEFRAMES)

# Synthetic multiples the exchange does not serve natively. Candles are
# fetched at the base interval and NOT resampled, so a "2d" snapshot
# analyses daily bars.
INTERVAL_ALIASES: dict[str, str] = {"2d": "1d", "4d": "1d", "2w": "1w"}

LOWER_TIMEFRAME: dict[str, str] = {
    "2w": "1d",
    "1w": "4h",
    "4d": "1h",
    "2d": "30m",
    "1d": "1h",
    "12h": "1h",
    "8h": "30m",
    "6h": "30m",
    "4h": "30m",
    "2h": "15m",
    "1h": "15m",
    "30m": "5m",
    "15m": "5m",
    "5m": "1m",
}


def fetch_interval(interval: str) -> str:
    """Interval actually requested from the candle source."""
    return INTERVAL_ALIASES.get(interval, interval)


def is_synthetic(interval: str) -> bool:
    return interval in INTERVAL_ALIASES


def interval_duration(interval: str) -> timedelta:
    """Nominal duration of one bar; unknown codes default to one hour."""
    tf = TIMEFRAMES.get(interval)
    return tf.duration if tf else timedelta(hours=1)


def lower_timeframe(interval: str) -> str | None:
    return LOWER_TIMEFRAME.get(interval)


def timeframe_weight(interval: str) -> float:
    tf = TIMEFRAMES.get(interval)
    return tf.weight if tf else 1.0

"""UTC session anchors: daily/weekly open and previous-day range."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta

from core.entities import Candle

__all__ = ["SessionLevels", "session_levels", "utc_day_start"]


@dataclass(frozen=True, slots=True)
class SessionLevels:
    daily_open: float | None
    weekly_open: float | None
    prev_day_high: float | None
    prev_day_low: float | None

    def to_dict(self) -> dict[str, float | None]:
        return asdict(self)


def utc_day_start(ts: datetime) -> datetime:
    """Midnight UTC of the calendar day containing ``ts``."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    ts = ts.astimezone(UTC)
    return datetime(ts.year, ts.month, ts.day, tzinfo=UTC)


def session_levels(candles: Sequence[Candle]) -> SessionLevels:
    """Compute session anchors relative to the last candle's UTC day.

    Weeks start on Monday. The daily/weekly open is the open of the first
    candle at or after the boundary; the previous-day high/low span candles
    strictly within the prior UTC calendar day.
    """
    if not candles:
        return SessionLevels(None, None, None, None)

    today_start = utc_day_start(candles[-1].ts)
    yesterday_start = today_start - timedelta(days=1)
    week_start = today_start - timedelta(days=today_start.weekday())

    daily_open: float | None = None
    weekly_open: float | None = None
    prev_high: float | None = None
    prev_low: float | None = None

    for candle in candles:
        day = utc_day_start(candle.ts)
        if daily_open is None and day >= today_start:
            daily_open = candle.open
        if weekly_open is None and day >= week_start:
            weekly_open = candle.open
        if yesterday_start <= day < today_start:
            prev_high = candle.high if prev_high is None else max(prev_high, candle.high)
            prev_low = candle.low if prev_low is None else min(prev_low, candle.low)

    return SessionLevels(daily_open, weekly_open, prev_high, prev_low)

"""Lower-timeframe confirmation of hidden order block revisits.

The candles around a revisit are fetched through an injected async callable,
so scoring stays testable without a network feed.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime

from core.entities import Candle, Direction
from core.timeframe import interval_duration, lower_timeframe
from core.zones.hidden import LtfConfirmations

__all__ = [
    "LTF_LIMIT",
    "MIN_LTF_CANDLES",
    "LtfWindow",
    "LowerTimeframeFetcher",
    "evaluate_ltf_window",
    "confirm_on_lower_timeframe",
]

logger = logging.getLogger(__name__)

LTF_LIMIT = 300
MIN_LTF_CANDLES = 5
WINDOW_BARS = 3


@dataclass(frozen=True, slots=True)
class LtfWindow:
    """Time range of interest for a lower-timeframe fetch."""

    start: datetime
    end: datetime
    limit: int = LTF_LIMIT


LowerTimeframeFetcher = Callable[[str, str, LtfWindow], Awaitable[Sequence[Candle]]]


def evaluate_ltf_window(
    candles: Sequence[Candle], kind: Direction, base_atr: float
) -> LtfConfirmations:
    """Evaluate BOS, ChoCh, SFP and FVG mitigation inside a revisit window.

    The first third of the window (at least one candle) defines the
    pre-revisit range that later candles must break or sweep.
    """
    if len(candles) < MIN_LTF_CANDLES:
        return LtfConfirmations()

    highs = [c.high for c in candles]
    lows = [c.low for c in candles]
    closes = [c.close for c in candles]

    pre_n = max(1, len(candles) // 3)
    pre_high = max(highs[:pre_n])
    pre_low = min(lows[:pre_n])

    if kind == "bull":
        bos = max(closes) > pre_high
        initial_opposite = closes[1] - closes[0] < 0
    else:
        bos = min(closes) < pre_low
        initial_opposite = closes[1] - closes[0] > 0
    choch = initial_opposite and bos

    tol = base_atr * 0.1
    sfp = False
    for i in range(2, len(candles)):
        if kind == "bear" and highs[i] > pre_high + tol and closes[i] < pre_high:
            sfp = True
            break
        if kind == "bull" and lows[i] < pre_low - tol and closes[i] > pre_low:
            sfp = True
            break

    fvg_mitigation = False
    for i in range(2, len(candles) - 1):
        if lows[i] > highs[i - 2]:
            filled = min(lows[i + 1 :]) <= highs[i - 2]
        elif highs[i] < lows[i - 2]:
            filled = max(highs[i + 1 :]) >= lows[i - 2]
        else:
            continue
        if filled:
            fvg_mitigation = True
            break

    return LtfConfirmations(bos=bos, choch=choch, sfp=sfp, fvg_mitigation=fvg_mitigation)


async def confirm_on_lower_timeframe(
    fetch: LowerTimeframeFetcher | None,
    symbol: str,
    interval: str,
    revisit_ts: datetime,
    kind: Direction,
    base_atr: float,
) -> LtfConfirmations:
    """Fetch lower-timeframe candles after a revisit and evaluate them.

    Any failure is logged and reported as "no confirmation" so one bad
    fetch never aborts the snapshot.
    """
    ltf_interval = lower_timeframe(interval)
    if fetch is None or ltf_interval is None:
        return LtfConfirmations()

    window = LtfWindow(start=revisit_ts, end=revisit_ts + WINDOW_BARS * interval_duration(interval))
    try:
        candles = await fetch(symbol, ltf_interval, window)
        subset = [c for c in candles if window.start <= c.ts <= window.end]
        return evaluate_ltf_window(subset, kind, base_atr)
    except Exception as e:
        logger.warning(
            "LTF confirmation failed for %s %s->%s at %s: %s",
            symbol,
            interval,
            ltf_interval,
            revisit_ts.isoformat(),
            e,
        )
        return LtfConfirmations()

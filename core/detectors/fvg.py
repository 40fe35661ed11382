"""Fair value gap detection.

A bullish gap exists at ``i`` when ``low[i] > high[i-2]``; a bearish gap
when ``high[i] < low[i-2]``. Only the most recent ``lookback + 2`` candles
are scanned.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from core.detectors._utils import log_detection_skip
from core.entities import Candle, Direction

__all__ = ["FairValueGap", "detect_fvgs", "has_fvg_near"]


@dataclass(frozen=True, slots=True)
class FairValueGap:
    """3-candle imbalance; ``origin_index`` is the first candle of the triple."""

    kind: Direction
    lower: float
    upper: float
    origin_index: int

    @property
    def size(self) -> float:
        return self.upper - self.lower

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind,
            "lower": self.lower,
            "upper": self.upper,
            "origin_index": self.origin_index,
        }


def detect_fvgs(candles: Sequence[Candle], lookback: int = 60) -> list[FairValueGap]:
    """Scan the tail of the window for fair value gaps.

    Args:
        candles: Candle window, oldest first.
        lookback: Number of recent bars to scan (plus the 2-bar formation).

    Returns:
        Gaps ordered by formation index.
    """
    n = len(candles)
    if n < 3:
        log_detection_skip("FVG", "window too short", f"n={n}")
        return []

    gaps: list[FairValueGap] = []
    for i in range(max(2, n - (lookback + 2)), n):
        first, last = candles[i - 2], candles[i]
        if last.low > first.high:
            gaps.append(FairValueGap("bull", first.high, last.low, i - 2))
        if last.high < first.low:
            gaps.append(FairValueGap("bear", last.high, first.low, i - 2))
    return gaps


def has_fvg_near(
    gaps: Sequence[FairValueGap],
    kind: Direction,
    index: int,
    before: int = 2,
    after: int = 4,
) -> bool:
    """True if a same-direction gap originates within ``[index-before, index+after]``."""
    return any(
        g.kind == kind and index - before <= g.origin_index <= index + after
        for g in gaps
    )

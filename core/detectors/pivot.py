"""Swing pivot detection over a candle window."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from core.entities import Candle

__all__ = ["Pivot", "PivotKind", "detect_pivots", "last_pivot"]

PivotKind = Literal["high", "low"]


@dataclass(frozen=True, slots=True)
class Pivot:
    """Strict 3-candle swing point."""

    index: int
    kind: PivotKind
    price: float

    def to_dict(self) -> dict[str, object]:
        return {"index": self.index, "kind": self.kind, "price": self.price}


def detect_pivots(candles: Sequence[Candle]) -> list[Pivot]:
    """Detect swing highs and lows in a single pass.

    A high pivot at ``i`` requires ``high[i]`` to be strictly greater than
    both neighbours; a low pivot is the mirror. Only interior candles can be
    pivots, so windows shorter than 3 candles yield nothing.

    Returns:
        Pivots ordered by index (high before low on the same candle).
    """
    pivots: list[Pivot] = []
    for i in range(1, len(candles) - 1):
        prev, curr, nxt = candles[i - 1], candles[i], candles[i + 1]
        if curr.high > prev.high and curr.high > nxt.high:
            pivots.append(Pivot(i, "high", curr.high))
        if curr.low < prev.low and curr.low < nxt.low:
            pivots.append(Pivot(i, "low", curr.low))
    return pivots


def last_pivot(pivots: Sequence[Pivot], kind: PivotKind) -> Pivot | None:
    """Most recent pivot of the given kind."""
    for pivot in reversed(pivots):
        if pivot.kind == kind:
            return pivot
    return None

"""Liquidity zone clustering of pivot prices."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from core.detectors.pivot import Pivot

__all__ = ["LiquidityZone", "LiquidityZones", "cluster_levels", "detect_liquidity_zones"]


@dataclass(slots=True)
class LiquidityZone:
    """Cluster of same-side pivot prices around a running weighted average."""

    level: float
    count: int = 1
    member_indices: list[int] = field(default_factory=list)

    def absorb(self, index: int, price: float) -> None:
        self.level = (self.level * self.count + price) / (self.count + 1)
        self.count += 1
        self.member_indices.append(index)

    def to_dict(self) -> dict[str, object]:
        return {
            "level": self.level,
            "count": self.count,
            "member_indices": list(self.member_indices),
        }


@dataclass(frozen=True, slots=True)
class LiquidityZones:
    highs: list[LiquidityZone]
    lows: list[LiquidityZone]

    def to_dict(self) -> dict[str, list[dict[str, object]]]:
        return {
            "highs": [z.to_dict() for z in self.highs],
            "lows": [z.to_dict() for z in self.lows],
        }


def cluster_levels(
    points: Sequence[tuple[int, float]],
    tolerance: float,
    min_count: int = 2,
) -> list[LiquidityZone]:
    """Merge price-sorted points into zones within ``tolerance`` of the running level.

    Args:
        points: ``(index, price)`` pairs.
        tolerance: Maximum distance to the current zone level.
        min_count: Minimum members for a zone to be reported.
    """
    zones: list[LiquidityZone] = []
    for index, price in sorted(points, key=lambda p: p[1]):
        current = zones[-1] if zones else None
        if current is not None and abs(price - current.level) <= tolerance:
            current.absorb(index, price)
        else:
            zones.append(LiquidityZone(level=price, member_indices=[index]))
    return [z for z in zones if z.count >= min_count]


def detect_liquidity_zones(pivots: Sequence[Pivot], tolerance: float) -> LiquidityZones:
    """Cluster pivot highs and pivot lows separately."""
    highs = [(p.index, p.price) for p in pivots if p.kind == "high"]
    lows = [(p.index, p.price) for p in pivots if p.kind == "low"]
    return LiquidityZones(
        highs=cluster_levels(highs, tolerance),
        lows=cluster_levels(lows, tolerance),
    )

from __future__ import annotations

from collections.abc import Sequence

from core.entities import Candle

__all__ = ["vwap", "volume_percentile"]


def vwap(candles: Sequence[Candle]) -> float | None:
    """Volume-weighted typical price over the entire window.

    Not session-bounded: every supplied candle contributes. Returns None when
    the window carries no volume.
    """
    tp_vol_sum = 0.0
    vol_sum = 0.0
    for c in candles:
        typical = (c.high + c.low + c.close) / 3
        volume = c.volume or 0.0
        tp_vol_sum += typical * volume
        vol_sum += volume
    if vol_sum <= 0:
        return None
    return tp_vol_sum / vol_sum


def volume_percentile(candles: Sequence[Candle], fraction: float = 0.75) -> float:
    """Volume at ``sorted[floor(n * fraction)]`` (nearest-rank, no interpolation)."""
    if not candles:
        return 0.0
    volumes = sorted(c.volume for c in candles)
    idx = min(len(volumes) - 1, int(len(volumes) * fraction))
    return volumes[idx]

from __future__ import annotations

from collections.abc import Sequence

from core.indicators.series import rma

__all__ = ["RSI_PERIOD", "rsi"]

RSI_PERIOD = 14


def rsi(closes: Sequence[float], period: int = RSI_PERIOD) -> float | None:
    """Relative Strength Index with Wilder-smoothed gains and losses.

    Returns 100 when there are gains but no losses, 0 when there are no
    gains at all, and None when the window is too short.
    """
    deltas = [closes[i] - closes[i - 1] for i in range(1, len(closes))]
    gains = [d if d > 0 else 0.0 for d in deltas]
    losses = [-d if d < 0 else 0.0 for d in deltas]

    avg_gain = rma(gains, period)
    avg_loss = rma(losses, period)
    if avg_gain is None or avg_loss is None:
        return None

    if avg_gain == 0:
        return 0.0
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100 - 100 / (1 + rs)

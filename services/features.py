"""Feature summary of a snapshot, for logging and offline tuning."""

from __future__ import annotations

import logging
from typing import Any

from services.snapshot import Snapshot

__all__ = ["summarize_features", "log_features"]

logger = logging.getLogger(__name__)


def summarize_features(snapshot: Snapshot) -> dict[str, Any]:
    """Counts and aggregates describing one snapshot.

    HOB statistics cover the filtered blocks, i.e. what the caller sees.
    """
    state = snapshot.state
    hobs = snapshot.hidden_order_blocks
    scores = [h.quality_score for h in hobs]

    return {
        "symbol": snapshot.symbol,
        "interval": snapshot.interval,
        "close": state.last.close,
        "bos": state.bos,
        "trend": state.trend,
        "rsi": state.rsi,
        "atr": state.atr,
        "vwap_present": state.vwap is not None,
        "pivot_highs": sum(1 for p in state.pivots if p.kind == "high"),
        "pivot_lows": sum(1 for p in state.pivots if p.kind == "low"),
        "bull_fvgs": sum(1 for g in state.fvgs if g.kind == "bull"),
        "bear_fvgs": sum(1 for g in state.fvgs if g.kind == "bear"),
        "high_clusters": len(state.liquidity.highs),
        "low_clusters": len(state.liquidity.lows),
        "order_blocks": len(snapshot.order_blocks),
        "hidden_order_blocks": len(hobs),
        "very_strong_hobs": sum(1 for h in hobs if h.is_very_strong),
        "avg_hob_quality": sum(scores) / len(scores) if scores else 0.0,
        "max_hob_quality": max(scores, default=0.0),
        "sfp": state.sfp.to_dict(),
    }


def log_features(snapshot: Snapshot) -> dict[str, Any]:
    features = summarize_features(snapshot)
    logger.debug("Snapshot features %s %s: %s", snapshot.symbol, snapshot.interval, features)
    return features

"""
Snapshot assembly.

``compute_snapshot`` runs the full analysis over one candle window: structure
detection, order blocks, hidden order block tracking, lower-timeframe
confirmation and quality scoring, then applies the request's HOB filters.
Nothing is cached between calls; every index in the result refers to the
candles passed in.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from core.detectors.manager import DetectorConfig, StructureDetector, StructureState
from core.entities import Candle
from core.timeframe import fetch_interval, is_synthetic
from core.zones.confirmation import LowerTimeframeFetcher, confirm_on_lower_timeframe
from core.zones.hidden import HiddenOrderBlock, LtfConfirmations, track_hidden_order_blocks
from core.zones.order_block import OrderBlock, detect_order_blocks
from core.zones.quality import score_hidden_order_block
from services.models import SnapshotConfig, SnapshotRequest

__all__ = [
    "COMPACT_PIVOTS",
    "COMPACT_FVGS",
    "Snapshot",
    "compute_snapshot",
    "filter_hidden_order_blocks",
]

logger = logging.getLogger(__name__)

COMPACT_PIVOTS = 6
COMPACT_FVGS = 5


def filter_hidden_order_blocks(
    hobs: Iterable[HiddenOrderBlock], config: SnapshotConfig
) -> list[HiddenOrderBlock]:
    """Keep the blocks that pass every enabled filter.

    Pure and idempotent: filtering an already filtered list with the same
    config returns it unchanged.
    """
    kept = []
    for hob in hobs:
        ltf_ok = not config.require_ltf_confirmations or hob.ltf_confirmations.any()
        quality_ok = hob.quality_score >= config.min_quality
        invalidation_ok = not config.exclude_invalidated or not hob.invalidated
        mitigation_ok = not config.only_fully_mitigated or hob.fully_mitigated
        very_strong_ok = not config.only_very_strong or hob.is_very_strong
        if ltf_ok and quality_ok and invalidation_ok and mitigation_ok and very_strong_ok:
            kept.append(hob)
    return kept


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Result of one snapshot computation."""

    symbol: str
    interval: str
    state: StructureState
    order_blocks: list[OrderBlock]
    hidden_order_blocks: list[HiddenOrderBlock]
    unfiltered_hidden_order_blocks: list[HiddenOrderBlock]
    compact: bool = True

    @property
    def candles(self) -> Sequence[Candle]:
        return self.state.candles

    def latest(self) -> dict[str, Any]:
        last = self.state.last
        return {
            "close": last.close,
            "high": last.high,
            "low": last.low,
            "ts": last.to_dict()["ts"],
        }

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready document; trimmed when ``compact`` is set."""
        state = self.state
        pivots = state.pivots[-COMPACT_PIVOTS:] if self.compact else state.pivots
        fvgs = state.fvgs[-COMPACT_FVGS:] if self.compact else state.fvgs

        result: dict[str, Any] = {
            "symbol": self.symbol,
            "interval": self.interval,
        }
        if self.compact:
            result["latest"] = self.latest()
        else:
            result["candles"] = [c.to_dict() for c in self.candles]

        result.update(
            pivots=[p.to_dict() for p in pivots],
            bos=state.bos,
            fvg=[g.to_dict() for g in fvgs],
            trend=state.trend,
            sma50=state.sma_fast,
            sma200=state.sma_slow,
            atr=state.atr,
            rsi=state.rsi,
            order_blocks=[ob.to_dict() for ob in self.order_blocks],
            hidden_order_blocks=[h.to_dict() for h in self.hidden_order_blocks],
            liquidity_zones=state.liquidity.to_dict(),
            vwap=state.vwap,
            **state.session.to_dict(),
            sfp=state.sfp.to_dict(),
        )

        emas = {f"ema{period}": value for period, value in state.emas.items()}
        if self.compact:
            result.update(emas)
        else:
            result["emas"] = emas
        return result


def detector_config(config: SnapshotConfig) -> DetectorConfig:
    return DetectorConfig(
        atr_period=config.atr_period,
        fvg_lookback=config.fvg_lookback,
        ema_periods=list(config.emas),
    )


async def compute_snapshot(
    candles: Sequence[Candle],
    request: SnapshotRequest,
    fetch_lower_timeframe: LowerTimeframeFetcher | None = None,
) -> Snapshot:
    """Analyze ``candles`` and assemble the filtered snapshot.

    Args:
        candles: Candle window for ``request.symbol``, oldest first.
        request: Validated snapshot request.
        fetch_lower_timeframe: Async callable used for LTF confirmation.
            Without it every HOB reports no confirmations.

    Returns:
        Snapshot with hidden order blocks filtered per ``request``.

    Raises:
        ValueError: If ``candles`` is empty.
    """
    if not candles:
        raise ValueError(f"No candles to analyze for {request.symbol}")

    if is_synthetic(request.interval):
        logger.warning(
            "%s %s analyzed on %s candles without resampling",
            request.symbol,
            request.interval,
            fetch_interval(request.interval),
        )

    state = StructureDetector(detector_config(request)).analyze(candles)
    order_blocks = detect_order_blocks(state)
    tracked = track_hidden_order_blocks(candles, order_blocks)

    scored: list[HiddenOrderBlock] = []
    for hob in tracked:
        if hob.invalidated:
            ltf = LtfConfirmations()
        else:
            ltf = await confirm_on_lower_timeframe(
                fetch_lower_timeframe,
                request.symbol,
                request.interval,
                candles[hob.revisit_index].ts,
                hob.kind,
                state.base_atr,
            )
        scored.append(
            score_hidden_order_block(
                hob,
                state,
                request.interval,
                ltf,
                min_quality=request.min_quality,
                very_strong_min_quality=request.very_strong_min_quality,
            )
        )

    filtered = filter_hidden_order_blocks(scored, request)
    logger.debug(
        "%s %s: %d order blocks, %d hidden (%d after filters)",
        request.symbol,
        request.interval,
        len(order_blocks),
        len(scored),
        len(filtered),
    )
    return Snapshot(
        symbol=request.symbol,
        interval=request.interval,
        state=state,
        order_blocks=order_blocks,
        hidden_order_blocks=filtered,
        unfiltered_hidden_order_blocks=scored,
        compact=request.compact,
    )

"""Quality scoring and strength classification for hidden order blocks.

score = (0.35 displacement + 0.15 wick + 0.15 fvg + 0.15 liquidity
         + 0.10 vwap + 0.10 hvn) x timeframe_weight
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace

from core.detectors.fvg import has_fvg_near
from core.detectors.liquidity import LiquidityZones
from core.detectors.manager import StructureState
from core.entities import Candle, Direction
from core.indicators.atr import MIN_RANGE
from core.timeframe import timeframe_weight
from core.zones.hidden import HiddenOrderBlock, LtfConfirmations, QualityComponents, StrengthLabel
from core.zones.order_block import OrderBlock

__all__ = [
    "QualityWeights",
    "DEFAULT_WEIGHTS",
    "HTF_WEIGHT_THRESHOLD",
    "displacement_score",
    "wick_ratio",
    "liquidity_proximity",
    "vwap_confluence",
    "quality_components",
    "weighted_score",
    "score_hidden_order_block",
]

HTF_WEIGHT_THRESHOLD = 1.3
DISPLACEMENT_WINDOW = 5
VWAP_ATR_DISTANCE = 0.5


@dataclass(frozen=True, slots=True)
class QualityWeights:
    displacement: float = 0.35
    wick: float = 0.15
    fvg: float = 0.15
    liquidity: float = 0.15
    vwap: float = 0.10
    hvn: float = 0.10


DEFAULT_WEIGHTS = QualityWeights()


def displacement_score(candles: Sequence[Candle], index: int, base_atr: float) -> float:
    """Close-to-close move over up to 5 bars after the block, in ATRs, halved and capped at 1."""
    k = min(DISPLACEMENT_WINDOW, len(candles) - 1 - index)
    if k <= 0:
        return 0.0
    move = abs(candles[index + k].close - candles[index].close) / base_atr
    return min(1.0, move / 2)


def wick_ratio(block: OrderBlock, revisit: Candle) -> float:
    """Share of the revisit candle's range that pierced the body on the adverse side."""
    candle_range = max(MIN_RANGE, revisit.high - revisit.low)
    if block.kind == "bull":
        ratio = (block.body_low - revisit.low) / candle_range
    else:
        ratio = (revisit.high - block.body_high) / candle_range
    return max(0.0, min(1.0, ratio))


def liquidity_proximity(
    zones: LiquidityZones, kind: Direction, price: float, base_atr: float
) -> float:
    """1 at a same-side liquidity cluster, decaying to 0 one ATR away.

    Bullish blocks look at clusters of lows, bearish blocks at clusters of
    highs. No clusters scores 0.
    """
    levels = zones.lows if kind == "bull" else zones.highs
    if not levels:
        return 0.0
    distance = min(abs(price - z.level) for z in levels)
    return max(0.0, 1 - min(1.0, distance / base_atr))


def vwap_confluence(vwap_value: float | None, price: float, base_atr: float) -> bool:
    if vwap_value is None:
        return False
    return abs(price - vwap_value) / base_atr <= VWAP_ATR_DISTANCE


def quality_components(hob: HiddenOrderBlock, state: StructureState) -> QualityComponents:
    block = hob.block
    base_atr = state.base_atr
    return QualityComponents(
        displacement=displacement_score(state.candles, block.index, base_atr),
        wick_ratio=wick_ratio(block, state.candles[hob.revisit_index]),
        fvg_near=has_fvg_near(state.fvgs, block.kind, block.index),
        liquidity=liquidity_proximity(state.liquidity, block.kind, block.body_mid, base_atr),
        vwap=vwap_confluence(state.vwap, block.body_mid, base_atr),
        hvn=state.candles[block.index].volume >= state.volume_p75,
    )


def weighted_score(
    components: QualityComponents,
    tf_weight: float,
    weights: QualityWeights = DEFAULT_WEIGHTS,
) -> float:
    raw = (
        weights.displacement * components.displacement
        + weights.wick * components.wick_ratio
        + weights.fvg * float(components.fvg_near)
        + weights.liquidity * components.liquidity
        + weights.vwap * float(components.vwap)
        + weights.hvn * float(components.hvn)
    )
    return raw * tf_weight


def _very_strong_reasons(
    score: float,
    very_strong_min_quality: float,
    tf_weight: float,
    ltf: LtfConfirmations,
    components: QualityComponents,
    fully_mitigated: bool,
) -> list[str]:
    checks = [
        (score >= very_strong_min_quality, "quality>=threshold"),
        (tf_weight >= HTF_WEIGHT_THRESHOLD, "htf_weight_high"),
        (ltf.bos, "ltf_bos"),
        (ltf.choch, "ltf_choch"),
        (ltf.sfp, "ltf_sfp"),
        (ltf.fvg_mitigation, "ltf_fvg_mitigation"),
        (components.vwap, "vwap_confluence"),
        (components.hvn, "hvn_confluence"),
        (components.liquidity >= 0.5, "near_liquidity"),
        (components.fvg_near, "fvg_near"),
        (fully_mitigated, "fully_mitigated"),
    ]
    return [reason for ok, reason in checks if ok]


def score_hidden_order_block(
    hob: HiddenOrderBlock,
    state: StructureState,
    interval: str,
    ltf: LtfConfirmations,
    min_quality: float = 0.6,
    very_strong_min_quality: float = 0.75,
) -> HiddenOrderBlock:
    """Return a copy of ``hob`` with its score, label and confirmations filled in.

    The very-strong tier requires a valid block, a score at or above
    ``very_strong_min_quality``, a high-timeframe weight, at least two LTF
    confirmations and at least two confluence factors.
    """
    components = quality_components(hob, state)
    tf_weight = timeframe_weight(interval)
    score = weighted_score(components, tf_weight)

    is_very_strong = (
        not hob.invalidated
        and score >= very_strong_min_quality
        and tf_weight >= HTF_WEIGHT_THRESHOLD
        and ltf.count >= 2
        and components.confluence_count >= 2
    )
    quality_score = round(score, 3)

    label: StrengthLabel
    if is_very_strong:
        label = "very-strong"
    elif quality_score >= min_quality:
        label = "strong"
    else:
        label = "normal"

    reasons: tuple[str, ...] = ()
    if is_very_strong:
        reasons = tuple(
            _very_strong_reasons(
                score, very_strong_min_quality, tf_weight, ltf, components, hob.fully_mitigated
            )
        )

    return replace(
        hob,
        ltf_confirmations=ltf,
        quality_score=quality_score,
        components=components,
        timeframe_weight=tf_weight,
        strength_label=label,
        is_very_strong=is_very_strong,
        very_strong_reasons=reasons,
    )

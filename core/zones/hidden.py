"""Hidden order block tracking.

An order block becomes "hidden" once price revisits its body and either
wicks through it while closing back on the favorable side, or closes inside
the body. Closing through the body on the revisit, or on any later candle,
invalidates it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from core.entities import Candle, Direction
from core.zones.order_block import OrderBlock

__all__ = [
    "HiddenOrderBlock",
    "LtfConfirmations",
    "QualityComponents",
    "StrengthLabel",
    "find_revisit",
    "track_hidden_order_blocks",
]

logger = logging.getLogger(__name__)

StrengthLabel = Literal["normal", "strong", "very-strong"]


@dataclass(frozen=True, slots=True)
class LtfConfirmations:
    """Lower-timeframe reactions inside the revisit window."""

    bos: bool = False
    choch: bool = False
    sfp: bool = False
    fvg_mitigation: bool = False

    @property
    def count(self) -> int:
        return sum((self.bos, self.choch, self.sfp, self.fvg_mitigation))

    def any(self) -> bool:
        return self.count > 0

    def to_dict(self) -> dict[str, bool]:
        return {
            "bos": self.bos,
            "choch": self.choch,
            "sfp": self.sfp,
            "fvg_mitigation": self.fvg_mitigation,
        }


@dataclass(frozen=True, slots=True)
class QualityComponents:
    """Raw sub-scores behind a quality score."""

    displacement: float
    wick_ratio: float
    fvg_near: bool
    liquidity: float
    vwap: bool
    hvn: bool

    @property
    def confluence_count(self) -> int:
        return sum((self.vwap, self.hvn, self.liquidity >= 0.5, self.fvg_near))

    def to_dict(self) -> dict[str, float | bool]:
        return {
            "displacement": self.displacement,
            "wick_ratio": self.wick_ratio,
            "fvg_near": self.fvg_near,
            "liquidity": self.liquidity,
            "vwap": self.vwap,
            "hvn": self.hvn,
        }


@dataclass(frozen=True, slots=True)
class HiddenOrderBlock:
    """Order block plus its mitigation state and, once scored, its quality."""

    block: OrderBlock
    revisit_index: int
    wick_through: bool
    partial_close: bool
    core_untouched: bool
    invalidated: bool
    fully_mitigated: bool
    ltf_confirmations: LtfConfirmations = field(default_factory=LtfConfirmations)
    quality_score: float = 0.0
    components: QualityComponents | None = None
    timeframe_weight: float = 1.0
    strength_label: StrengthLabel = "normal"
    is_very_strong: bool = False
    very_strong_reasons: tuple[str, ...] = ()

    @property
    def kind(self) -> Direction:
        return self.block.kind

    @property
    def index(self) -> int:
        return self.block.index

    def to_dict(self) -> dict[str, object]:
        result = self.block.to_dict()
        result.update(
            revisit_index=self.revisit_index,
            wick_through=self.wick_through,
            partial_close=self.partial_close,
            core_untouched=self.core_untouched,
            invalidated=self.invalidated,
            fully_mitigated=self.fully_mitigated,
            ltf_confirmations=self.ltf_confirmations.to_dict(),
            quality_score=self.quality_score,
            components=self.components.to_dict() if self.components else None,
            timeframe_weight=self.timeframe_weight,
            strength_label=self.strength_label,
            is_very_strong=self.is_very_strong,
            very_strong_reasons=list(self.very_strong_reasons),
        )
        return result


def find_revisit(candles: Sequence[Candle], block: OrderBlock) -> int | None:
    """Index of the first later candle whose range touches the block body."""
    for i in range(block.index + 1, len(candles)):
        if candles[i].high >= block.body_low and candles[i].low <= block.body_high:
            return i
    return None


def _adverse_close(block: OrderBlock, close: float) -> bool:
    if block.kind == "bull":
        return close < block.body_low
    return close > block.body_high


def track_hidden_order_blocks(
    candles: Sequence[Candle], blocks: Sequence[OrderBlock]
) -> list[HiddenOrderBlock]:
    """Classify the revisit of each order block.

    Blocks never revisited are dropped, as are revisits that neither wick
    through nor close inside the body. Blocks closed through on the revisit
    are kept with ``invalidated`` set so callers can decide whether to show
    them.
    """
    hidden: list[HiddenOrderBlock] = []
    for block in blocks:
        rv = find_revisit(candles, block)
        if rv is None:
            continue

        c = candles[rv]
        invalidated = _adverse_close(block, c.close)
        if block.kind == "bull":
            wick_through = c.low < block.body_low and c.close >= block.body_low
        else:
            wick_through = c.high > block.body_high and c.close <= block.body_high
        partial_close = block.body_low <= c.close <= block.body_high

        if not invalidated and not (wick_through or partial_close):
            continue

        core_untouched = not invalidated
        fully_mitigated = False
        if not invalidated:
            for j in range(rv + 1, len(candles)):
                later = candles[j]
                if _adverse_close(block, later.close):
                    invalidated = True
                    break
                if block.kind == "bull" and later.body_low > block.body_high:
                    fully_mitigated = True
                if block.kind == "bear" and later.body_high < block.body_low:
                    fully_mitigated = True

        hidden.append(
            HiddenOrderBlock(
                block=block,
                revisit_index=rv,
                wick_through=wick_through,
                partial_close=partial_close,
                core_untouched=core_untouched,
                invalidated=invalidated,
                fully_mitigated=fully_mitigated and not invalidated,
            )
        )

    logger.debug("Tracked %d hidden order blocks from %d blocks", len(hidden), len(blocks))
    return hidden

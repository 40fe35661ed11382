"""Order block zones: selection, mitigation tracking, confirmation and scoring."""

from .confirmation import (
    LtfWindow,
    LowerTimeframeFetcher,
    confirm_on_lower_timeframe,
    evaluate_ltf_window,
)
from .hidden import (
    HiddenOrderBlock,
    LtfConfirmations,
    QualityComponents,
    find_revisit,
    track_hidden_order_blocks,
)
from .order_block import OrderBlock, detect_order_blocks
from .quality import quality_components, score_hidden_order_block, weighted_score

__all__ = [
    "OrderBlock",
    "detect_order_blocks",
    "HiddenOrderBlock",
    "LtfConfirmations",
    "QualityComponents",
    "find_revisit",
    "track_hidden_order_blocks",
    "LtfWindow",
    "LowerTimeframeFetcher",
    "confirm_on_lower_timeframe",
    "evaluate_ltf_window",
    "quality_components",
    "score_hidden_order_block",
    "weighted_score",
]

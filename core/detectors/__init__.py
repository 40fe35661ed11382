"""Market structure detectors: pivots, gaps, breaks, sweeps and liquidity."""

from ._utils import log_detection_skip, validate_candle_sequence
from .fvg import FairValueGap, detect_fvgs, has_fvg_near
from .liquidity import LiquidityZone, LiquidityZones, cluster_levels, detect_liquidity_zones
from .manager import DetectorConfig, StructureDetector, StructureState
from .pivot import Pivot, detect_pivots, last_pivot
from .structure import (
    SfpEvent,
    SwingFailure,
    classify_trend,
    detect_bos,
    detect_sfp,
    sweep_tolerance,
)

__all__ = [
    # Utilities
    "log_detection_skip",
    "validate_candle_sequence",
    # Pivots
    "Pivot",
    "detect_pivots",
    "last_pivot",
    # Fair value gaps
    "FairValueGap",
    "detect_fvgs",
    "has_fvg_near",
    # Structure
    "SfpEvent",
    "SwingFailure",
    "classify_trend",
    "detect_bos",
    "detect_sfp",
    "sweep_tolerance",
    # Liquidity
    "LiquidityZone",
    "LiquidityZones",
    "cluster_levels",
    "detect_liquidity_zones",
    # Manager
    "DetectorConfig",
    "StructureDetector",
    "StructureState",
]

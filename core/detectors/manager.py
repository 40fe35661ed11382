"""StructureDetector: one-pass structural analysis of a candle window.

Runs the pivot, FVG, BOS, trend, volatility, session, SFP and liquidity
detectors over the same candles and bundles the results for the zone
engines and the snapshot assembler.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from core.detectors._utils import validate_candle_sequence
from core.detectors.fvg import FairValueGap, detect_fvgs
from core.detectors.liquidity import LiquidityZones, detect_liquidity_zones
from core.detectors.pivot import Pivot, detect_pivots
from core.detectors.structure import (
    BreakDirection,
    SwingFailure,
    classify_trend,
    detect_bos,
    detect_sfp,
    sweep_tolerance,
)
from core.entities import Candle
from core.indicators.atr import atr, range_fallback
from core.indicators.rsi import RSI_PERIOD, rsi
from core.indicators.series import ema, sma
from core.indicators.session import SessionLevels, session_levels
from core.indicators.vwap import volume_percentile, vwap


@dataclass
class DetectorConfig:
    """Configuration for detector parameters."""

    atr_period: int = 14
    fvg_lookback: int = 60
    ema_periods: list[int] = field(default_factory=lambda: [20, 50, 200])

    # Trend SMAs
    sma_fast: int = 50
    sma_slow: int = 200

    rsi_period: int = RSI_PERIOD
    sfp_window: int = 10

    # Ordering policy
    out_of_order_policy: str = "warn"  # "warn" or "raise"


@dataclass(frozen=True, slots=True)
class StructureState:
    """Everything derived from a single candle window."""

    candles: Sequence[Candle]
    pivots: list[Pivot]
    bos: BreakDirection | None
    fvgs: list[FairValueGap]
    sma_fast: float | None
    sma_slow: float | None
    trend: BreakDirection | None
    emas: dict[int, float | None]
    atr: float | None
    rsi: float | None
    vwap: float | None
    session: SessionLevels
    tolerance: float
    sfp: SwingFailure
    liquidity: LiquidityZones
    volume_p75: float

    @property
    def base_atr(self) -> float:
        """ATR, or the last candle's range when ATR lacks history."""
        return range_fallback(self.candles, self.atr)

    @property
    def last(self) -> Candle:
        return self.candles[-1]


class StructureDetector:
    """Coordinates the structure detectors over one candle window."""

    def __init__(self, config: DetectorConfig | None = None):
        """Initialize detector with configuration.

        Args:
            config: Detector configuration. Uses defaults if None.
        """
        self.config = config or DetectorConfig()
        self.logger = logging.getLogger(self.__class__.__name__)

    def analyze(self, candles: Sequence[Candle]) -> StructureState:
        """Run every structure detector over ``candles``.

        Raises:
            ValueError: If ``candles`` is empty, or out of order under the
                "raise" policy.
        """
        if not candles:
            raise ValueError("Cannot analyze an empty candle window")

        if not validate_candle_sequence(candles, min_count=1):
            if self.config.out_of_order_policy == "raise":
                raise ValueError("Candles must be in strictly ascending time order")

        cfg = self.config
        closes = [c.close for c in candles]

        pivots = detect_pivots(candles)
        sma_fast = sma(closes, cfg.sma_fast)
        sma_slow = sma(closes, cfg.sma_slow)
        atr_value = atr(candles, cfg.atr_period)
        tolerance = sweep_tolerance(candles, atr_value)

        state = StructureState(
            candles=candles,
            pivots=pivots,
            bos=detect_bos(candles),
            fvgs=detect_fvgs(candles, cfg.fvg_lookback),
            sma_fast=sma_fast,
            sma_slow=sma_slow,
            trend=classify_trend(sma_fast, sma_slow),
            emas={period: ema(closes, period) for period in cfg.ema_periods},
            atr=atr_value,
            rsi=rsi(closes, cfg.rsi_period),
            vwap=vwap(candles),
            session=session_levels(candles),
            tolerance=tolerance,
            sfp=detect_sfp(candles, pivots, tolerance, cfg.sfp_window),
            liquidity=detect_liquidity_zones(pivots, tolerance),
            volume_p75=volume_percentile(candles, 0.75),
        )

        self.logger.debug(
            "Analyzed %d candles: %d pivots, %d FVGs, bos=%s, trend=%s",
            len(candles),
            len(pivots),
            len(state.fvgs),
            state.bos,
            state.trend,
        )
        return state

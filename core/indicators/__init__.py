from .atr import atr, range_fallback, true_ranges
from .rsi import RSI_PERIOD, rsi
from .series import ema, rma, sma
from .session import SessionLevels, session_levels, utc_day_start
from .vwap import volume_percentile, vwap

__all__ = [
    "sma",
    "ema",
    "rma",
    "atr",
    "true_ranges",
    "range_fallback",
    "rsi",
    "RSI_PERIOD",
    "vwap",
    "volume_percentile",
    "SessionLevels",
    "session_levels",
    "utc_day_start",
]

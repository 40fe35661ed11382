"""Candle feeds for snapshot analysis."""

from .base import CandleSource
from .binance import BinanceKlinesFeed, FeedSettings, parse_kline
from .exceptions import FeedError, sanitize_error

__all__ = [
    "CandleSource",
    "BinanceKlinesFeed",
    "FeedSettings",
    "parse_kline",
    "FeedError",
    "sanitize_error",
]

"""
Request models for market snapshots.

Pydantic models validate every request before any candle is fetched, so
malformed input never reaches the feed or the engine.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field, field_validator

from core.timeframe import SUPPORTED_INTERVALS

__all__ = [
    "SYMBOL_PATTERN",
    "SnapshotConfig",
    "SnapshotRequest",
    "BatchSnapshotRequest",
    "normalize_symbol",
    "check_interval",
]

SYMBOL_PATTERN = re.compile(r"^[A-Z0-9]{5,20}$")


def normalize_symbol(value: Any) -> str:
    """Upper-case and validate a trading symbol (e.g. ``btcusdt`` -> ``BTCUSDT``)."""
    if not isinstance(value, str):
        raise ValueError("symbol must be a string")
    symbol = value.strip().upper()
    if not SYMBOL_PATTERN.match(symbol):
        raise ValueError(f"Invalid symbol: {value!r}. Expected 5-20 letters or digits")
    return symbol


def check_interval(value: str) -> str:
    if value not in SUPPORTED_INTERVALS:
        raise ValueError(f"Invalid interval: {value}. Valid: {list(SUPPORTED_INTERVALS)}")
    return value


class SnapshotConfig(BaseModel):
    """Analysis and filter parameters shared by single and batch requests."""

    limit: int = Field(default=150, ge=1, le=1000, description="Number of candles to fetch")
    compact: bool = Field(default=True, description="Return trimmed summary")
    emas: list[int] = Field(
        default_factory=lambda: [20, 50, 200], description="EMA periods to compute"
    )
    atr_period: int = Field(default=14, ge=1, description="ATR smoothing period")
    fvg_lookback: int = Field(default=60, ge=0, description="Bars scanned for FVGs")

    # Hidden order block filters
    min_quality: float = Field(default=0.6, ge=0, description="Minimum HOB quality score")
    require_ltf_confirmations: bool = Field(
        default=False, description="Require at least one lower-timeframe confirmation"
    )
    exclude_invalidated: bool = Field(default=True, description="Hide invalidated HOBs")
    only_fully_mitigated: bool = Field(
        default=False, description="Only return fully mitigated HOBs"
    )
    very_strong_min_quality: float = Field(
        default=0.75, ge=0, description="Quality threshold for the very-strong tier"
    )
    only_very_strong: bool = Field(default=False, description="Only return very-strong HOBs")

    @field_validator("emas")
    @classmethod
    def validate_emas(cls, v: list[int]) -> list[int]:
        for period in v:
            if period <= 0:
                raise ValueError(f"EMA periods must be positive, got {period}")
        return v


class SnapshotRequest(SnapshotConfig):
    """Snapshot of one symbol at one interval."""

    symbol: str = Field(description="Trading symbol (e.g., BTCUSDT)")
    interval: str = Field(description="Candle interval (e.g., 1h, 4h, 1d, 2d)")

    @field_validator("symbol", mode="before")
    @classmethod
    def validate_symbol(cls, v: Any) -> str:
        return normalize_symbol(v)

    @field_validator("interval")
    @classmethod
    def validate_interval(cls, v: str) -> str:
        return check_interval(v)


class BatchSnapshotRequest(SnapshotConfig):
    """Snapshots of several symbols sharing one interval and configuration."""

    symbols: list[str] = Field(min_length=1, description="Trading symbols, in result order")
    interval: str = Field(description="Candle interval shared by all symbols")

    @field_validator("symbols", mode="before")
    @classmethod
    def validate_symbols(cls, v: Any) -> list[str]:
        if not isinstance(v, list | tuple):
            raise ValueError("symbols must be a list")
        return [normalize_symbol(s) for s in v]

    @field_validator("interval")
    @classmethod
    def validate_interval(cls, v: str) -> str:
        return check_interval(v)

    def for_symbol(self, symbol: str) -> SnapshotRequest:
        """Single-symbol request carrying this batch's configuration.

        Fields the caller set explicitly stay marked as explicitly set.
        """
        explicit = self.model_fields_set - {"symbols"}
        data = self.model_dump(include=explicit | {"interval"})
        return SnapshotRequest(symbol=symbol, **data)

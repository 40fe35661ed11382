"""
Learned per-interval filter overrides.

An offline tuning loop writes ``iteration-<n>.json`` files into an overrides
directory. The lexicographically last file is authoritative. Its values
replace request defaults for HOB filter fields the caller left unset.

File layout::

    {
      "iteration": 3,
      "created_at": 1718000000000,
      "overrides": {
        "default": {"4h": {"min_quality": 0.7}},
        "symbols": {"BTCUSDT": {"1d": {"require_ltf_confirmations": true}}}
      }
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from services.models import SnapshotRequest

__all__ = ["TimeframeOverrides", "OverrideTable", "LearnedOverrides", "OverrideStore"]

FILE_PREFIX = "iteration-"


class TimeframeOverrides(BaseModel):
    """Filter values learned for one interval. Unset values are ignored."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    min_quality: float | None = Field(default=None, ge=0, alias="minQuality")
    very_strong_min_quality: float | None = Field(
        default=None, ge=0, alias="veryStrongMinQuality"
    )
    require_ltf_confirmations: bool | None = Field(
        default=None, alias="requireLTFConfirmations"
    )
    exclude_invalidated: bool | None = Field(default=None, alias="excludeInvalidated")
    only_fully_mitigated: bool | None = Field(default=None, alias="onlyFullyMitigated")

    def as_updates(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class OverrideTable(BaseModel):
    default: dict[str, TimeframeOverrides] = Field(default_factory=dict)
    symbols: dict[str, dict[str, TimeframeOverrides]] = Field(default_factory=dict)


class LearnedOverrides(BaseModel):
    """One tuning iteration's output."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    iteration: int = 0
    created_at: int | None = Field(default=None, alias="createdAt")
    overrides: OverrideTable = Field(default_factory=OverrideTable)

    def lookup(self, symbol: str, interval: str) -> TimeframeOverrides:
        """Symbol-specific entry if present, else the interval default."""
        symbol_map = self.overrides.symbols.get(symbol, {})
        if interval in symbol_map:
            return symbol_map[interval]
        return self.overrides.default.get(interval, TimeframeOverrides())


class OverrideStore:
    """Reads the latest learned overrides from a directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.logger = logging.getLogger(self.__class__.__name__)

    def latest_file(self) -> Path | None:
        if not self.directory.is_dir():
            return None
        files = sorted(
            p for p in self.directory.iterdir()
            if p.name.startswith(FILE_PREFIX) and p.suffix == ".json"
        )
        return files[-1] if files else None

    def load_latest(self) -> LearnedOverrides | None:
        """Latest overrides, or None when absent or unreadable."""
        path = self.latest_file()
        if path is None:
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return LearnedOverrides.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            self.logger.warning("Ignoring unreadable overrides file %s: %s", path, e)
            return None

    def for_request(self, symbol: str, interval: str) -> dict[str, Any]:
        learned = self.load_latest()
        if learned is None:
            return {}
        return learned.lookup(symbol, interval).as_updates()

    def apply(self, request: SnapshotRequest) -> SnapshotRequest:
        """Fill unset filter fields of ``request`` from the latest overrides."""
        values = {
            key: value
            for key, value in self.for_request(request.symbol, request.interval).items()
            if key not in request.model_fields_set
        }
        if not values:
            return request
        self.logger.info(
            "Applying learned overrides to %s %s: %s", request.symbol, request.interval, values
        )
        return request.model_copy(update=values)

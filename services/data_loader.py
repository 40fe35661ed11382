"""
CSV candle loading for offline analysis.

Reads ``timestamp,open,high,low,close,volume`` files into candles and serves
them through the candle source protocol, so snapshots can be computed
without a network feed.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterator, Mapping
from datetime import UTC, datetime
from pathlib import Path

from core.entities import Candle, from_epoch_ms
from core.zones.confirmation import LtfWindow

__all__ = [
    "DEFAULT_COLUMNS",
    "parse_timestamp",
    "create_csv_candle_stream",
    "load_candles",
    "CsvCandleSource",
]

logger = logging.getLogger(__name__)

DEFAULT_COLUMNS = ("timestamp", "open", "high", "low", "close", "volume")


def parse_timestamp(raw: str) -> datetime:
    """Parse an epoch-millisecond or ISO-8601 style timestamp as UTC."""
    raw = raw.strip()
    if raw.isdigit():
        return from_epoch_ms(int(raw))

    try:
        ts = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        try:
            ts = datetime.strptime(raw, "%Y-%m-%d %H:%M:%S")
        except ValueError:
            ts = datetime.strptime(raw, "%Y-%m-%d")

    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def _validate_row(candle: Candle, line: int) -> None:
    if candle.high < candle.low:
        raise ValueError(f"High < Low at row {line}: H={candle.high}, L={candle.low}")
    if not (
        candle.low <= candle.open <= candle.high and candle.low <= candle.close <= candle.high
    ):
        raise ValueError(
            f"Invalid OHLC data at row {line}: O={candle.open}, H={candle.high}, "
            f"L={candle.low}, C={candle.close}"
        )


def create_csv_candle_stream(
    path: str | Path, columns: tuple[str, ...] = DEFAULT_COLUMNS
) -> Iterator[Candle]:
    """Stream candles from a CSV file without loading it whole.

    Args:
        path: Path to CSV file
        columns: Names of the timestamp, open, high, low, close and volume columns

    Yields:
        Validated candles in file order

    Raises:
        ValueError: If a column is missing or a row is malformed
    """
    date_col, o_col, h_col, l_col, c_col, v_col = columns

    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        missing = set(columns) - set(reader.fieldnames or [])
        if missing:
            raise ValueError(f"Missing required columns: {sorted(missing)}")

        for line, row in enumerate(reader, start=2):
            try:
                candle = Candle(
                    ts=parse_timestamp(row[date_col]),
                    open=float(row[o_col]),
                    high=float(row[h_col]),
                    low=float(row[l_col]),
                    close=float(row[c_col]),
                    volume=float(row[v_col] or 0.0),
                )
            except (TypeError, ValueError) as e:
                raise ValueError(f"Invalid row {line} in {path}: {e}") from e
            _validate_row(candle, line)
            yield candle


def load_candles(path: str | Path, columns: tuple[str, ...] = DEFAULT_COLUMNS) -> list[Candle]:
    """Load a CSV file into candles sorted by timestamp.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the data is malformed
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    candles = sorted(create_csv_candle_stream(path, columns), key=lambda c: c.ts)
    logger.info("Loaded %d candles from %s", len(candles), path)
    return candles


class CsvCandleSource:
    """Candle source serving pre-recorded CSV files.

    Files are looked up per ``(symbol, interval)`` pair first and per symbol
    second, and loaded once.
    """

    def __init__(self, files: Mapping[str | tuple[str, str], str | Path]) -> None:
        """Initialize source.

        Args:
            files: Maps ``symbol`` or ``(symbol, interval)`` to a CSV path
        """
        self.files = dict(files)
        self.logger = logging.getLogger(self.__class__.__name__)
        self._loaded: dict[Path, list[Candle]] = {}

    def _candles_for(self, symbol: str, interval: str) -> list[Candle]:
        path = self.files.get((symbol, interval)) or self.files.get(symbol)
        if path is None:
            self.logger.info("No CSV registered for %s %s", symbol, interval)
            return []
        path = Path(path)
        if path not in self._loaded:
            self._loaded[path] = load_candles(path)
        return self._loaded[path]

    async def fetch_candles(self, symbol: str, interval: str, limit: int) -> list[Candle]:
        return self._candles_for(symbol, interval)[-limit:]

    async def fetch_window(self, symbol: str, interval: str, window: LtfWindow) -> list[Candle]:
        candles = [
            c
            for c in self._candles_for(symbol, interval)
            if window.start <= c.ts <= window.end
        ]
        return candles[: window.limit]

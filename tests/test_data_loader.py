from datetime import UTC, datetime, timedelta

import pytest

from core.zones import LtfWindow
from services.data_loader import (
    CsvCandleSource,
    create_csv_candle_stream,
    load_candles,
    parse_timestamp,
)

HEADER = "timestamp,open,high,low,close,volume\n"


def write_csv(path, rows):
    path.write_text(HEADER + "".join(f"{row}\n" for row in rows))
    return path


class TestParseTimestamp:
    @pytest.mark.parametrize(
        "raw",
        [
            "1736121600000",
            "2025-01-06T00:00:00Z",
            "2025-01-06T01:00:00+01:00",
            "2025-01-06 00:00:00",
            "2025-01-06",
        ],
    )
    def test_formats(self, raw):
        assert parse_timestamp(raw) == datetime(2025, 1, 6, tzinfo=UTC)

    def test_garbage(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")


class TestLoadCandles:
    def test_sorted_by_time(self, tmp_path):
        path = write_csv(
            tmp_path / "btc.csv",
            [
                "2025-01-06 01:00:00,101,102,100,101.5,10",
                "2025-01-06 00:00:00,100,101,99,101,12",
            ],
        )
        candles = load_candles(path)
        assert [c.close for c in candles] == [101.0, 101.5]
        assert candles[0].volume == 12.0

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_candles(tmp_path / "absent.csv")

    def test_missing_column(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("timestamp,open,high,low,close\n2025-01-06,1,2,0.5,1.5\n")
        with pytest.raises(ValueError, match="Missing required columns"):
            load_candles(path)

    def test_inconsistent_ohlc(self, tmp_path):
        path = write_csv(tmp_path / "bad.csv", ["2025-01-06,100,99,98,100.5,1"])
        with pytest.raises(ValueError, match="Invalid OHLC"):
            list(create_csv_candle_stream(path))

    def test_non_numeric(self, tmp_path):
        path = write_csv(tmp_path / "bad.csv", ["2025-01-06,abc,101,99,100,1"])
        with pytest.raises(ValueError, match="Invalid row 2"):
            load_candles(path)

    def test_blank_volume_is_zero(self, tmp_path):
        path = write_csv(tmp_path / "btc.csv", ["2025-01-06,100,101,99,100.5,"])
        assert load_candles(path)[0].volume == 0.0


class TestCsvCandleSource:
    @pytest.fixture
    def csv_path(self, tmp_path):
        start = datetime(2025, 1, 6, tzinfo=UTC)
        rows = [
            f"{(start + timedelta(hours=i)).isoformat()},100,101,99,{100 + i * 0.1:.1f},5"
            for i in range(10)
        ]
        return write_csv(tmp_path / "btc.csv", rows)

    @pytest.mark.asyncio
    async def test_latest_candles(self, csv_path):
        source = CsvCandleSource({"BTCUSDT": csv_path})
        candles = await source.fetch_candles("BTCUSDT", "1h", 3)
        assert [c.close for c in candles] == [100.7, 100.8, 100.9]

    @pytest.mark.asyncio
    async def test_unknown_symbol(self, csv_path):
        source = CsvCandleSource({"BTCUSDT": csv_path})
        assert await source.fetch_candles("ETHUSDT", "1h", 3) == []

    @pytest.mark.asyncio
    async def test_interval_specific_file_wins(self, csv_path, tmp_path):
        other = write_csv(tmp_path / "btc_4h.csv", ["2025-01-06,1,2,0.5,1.5,1"])
        source = CsvCandleSource({"BTCUSDT": csv_path, ("BTCUSDT", "4h"): other})
        assert len(await source.fetch_candles("BTCUSDT", "4h", 100)) == 1
        assert len(await source.fetch_candles("BTCUSDT", "1h", 100)) == 10

    @pytest.mark.asyncio
    async def test_window(self, csv_path):
        source = CsvCandleSource({"BTCUSDT": csv_path})
        start = datetime(2025, 1, 6, 2, tzinfo=UTC)
        window = LtfWindow(start, start + timedelta(hours=3), limit=2)

        candles = await source.fetch_window("BTCUSDT", "1h", window)
        assert [c.ts for c in candles] == [start, start + timedelta(hours=1)]

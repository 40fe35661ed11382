import json
from datetime import timedelta

import pytest
from pydantic import ValidationError

from core.zones import LtfWindow
from infra.feeds.binance import FeedSettings
from infra.feeds.exceptions import FeedError
from services.middleware import CachingCandleSource
from services.models import BatchSnapshotRequest, SnapshotRequest
from services.overrides import OverrideStore
from services.service import NO_CANDLES, MarketSnapshotService
from tests.fixtures import (
    BASE_TIME,
    create_breakout_candles,
    create_flat_candles,
    create_invalidated_revisit_candles,
    create_mitigated_breakout_candles,
)


class FakeCandleSource:
    """In-memory candle source recording every fetch."""

    def __init__(self, candles=None, errors=None):
        self.candles = candles or {}
        self.errors = errors or {}
        self.calls = []

    async def fetch_candles(self, symbol, interval, limit):
        self.calls.append((symbol, interval, limit))
        if symbol in self.errors:
            raise self.errors[symbol]
        return self.candles.get(symbol, [])[-limit:]


class TestRequestModels:
    def test_symbol_is_normalized(self):
        request = SnapshotRequest(symbol=" btcusdt ", interval="4h")
        assert request.symbol == "BTCUSDT"
        assert request.limit == 150
        assert request.compact is True

    @pytest.mark.parametrize(
        "data",
        [
            {"symbol": "BTC", "interval": "1h"},
            {"symbol": "BTC-USDT", "interval": "1h"},
            {"symbol": "BTCUSDT", "interval": "7h"},
            {"symbol": "BTCUSDT", "interval": "1h", "limit": 0},
            {"symbol": "BTCUSDT", "interval": "1h", "limit": 1001},
            {"symbol": "BTCUSDT", "interval": "1h", "emas": [20, -5]},
            {"symbol": "BTCUSDT", "interval": "1h", "min_quality": -0.1},
        ],
    )
    def test_invalid_requests(self, data):
        with pytest.raises(ValidationError):
            SnapshotRequest(**data)

    def test_batch_needs_symbols(self):
        with pytest.raises(ValidationError):
            BatchSnapshotRequest(symbols=[], interval="1h")

    def test_for_symbol_keeps_explicit_fields(self):
        batch = BatchSnapshotRequest(symbols=["btcusdt"], interval="4h", min_quality=0.3)
        request = batch.for_symbol("BTCUSDT")

        assert request.interval == "4h"
        assert request.min_quality == 0.3
        assert "min_quality" in request.model_fields_set
        assert "exclude_invalidated" not in request.model_fields_set


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_single_snapshot(self):
        source = FakeCandleSource({"BTCUSDT": create_breakout_candles(150)})
        service = MarketSnapshotService(source)

        doc = await service.snapshot({"symbol": "btcusdt", "interval": "1h"})

        assert doc["symbol"] == "BTCUSDT"
        assert doc["bos"] == "up"
        assert source.calls == [("BTCUSDT", "1h", 150)]

    @pytest.mark.asyncio
    async def test_invalid_request_fails_before_fetch(self):
        source = FakeCandleSource()
        service = MarketSnapshotService(source)

        with pytest.raises(ValidationError):
            await service.snapshot({"symbol": "BTCUSDT", "interval": "7h"})
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_no_candles(self):
        service = MarketSnapshotService(FakeCandleSource())
        doc = await service.snapshot(SnapshotRequest(symbol="BTCUSDT", interval="1h"))
        assert doc == {"symbol": "BTCUSDT", "error": NO_CANDLES}

    @pytest.mark.asyncio
    async def test_synthetic_interval_fetches_base_interval(self):
        source = FakeCandleSource({"BTCUSDT": create_flat_candles(30)})
        doc = await MarketSnapshotService(source).snapshot(
            {"symbol": "BTCUSDT", "interval": "2d", "limit": 30}
        )
        assert source.calls == [("BTCUSDT", "1d", 30)]
        assert doc["interval"] == "2d"

    @pytest.mark.asyncio
    async def test_feed_error_is_sanitized(self):
        error = FeedError(
            "GET https://api.binance.com/api/v3/klines?symbol=BTCUSDT&signature=abc123 failed"
        )
        service = MarketSnapshotService(FakeCandleSource(errors={"BTCUSDT": error}))

        with pytest.raises(FeedError) as exc_info:
            await service.snapshot({"symbol": "BTCUSDT", "interval": "1h"})

        assert exc_info.value.symbol == "BTCUSDT"
        assert "abc123" not in str(exc_info.value)
        assert "https://api.binance.com/api/v3/klines failed" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_analyze_empty(self):
        service = MarketSnapshotService(FakeCandleSource())
        request = SnapshotRequest(symbol="BTCUSDT", interval="1h")
        assert await service.analyze([], request) == {"symbol": "BTCUSDT", "error": NO_CANDLES}


class TestBatch:
    @pytest.mark.asyncio
    async def test_missing_symbol_does_not_abort_batch(self):
        source = FakeCandleSource(
            {
                "BTCUSDT": create_breakout_candles(150),
                "SOLUSDT": create_flat_candles(50),
            }
        )
        service = MarketSnapshotService(source)

        docs = await service.snapshots(
            {"symbols": ["BTCUSDT", "ETHUSDT", "SOLUSDT"], "interval": "1h"}
        )

        assert [d["symbol"] for d in docs] == ["BTCUSDT", "ETHUSDT", "SOLUSDT"]
        assert docs[1] == {"symbol": "ETHUSDT", "error": NO_CANDLES}
        assert docs[0]["bos"] == "up"
        assert "error" not in docs[2]

    @pytest.mark.asyncio
    async def test_failure_becomes_sanitized_entry(self):
        source = FakeCandleSource(
            {"SOLUSDT": create_flat_candles(50)},
            errors={"BTCUSDT": RuntimeError("rejected api_key=SECRET123")},
        )
        docs = await MarketSnapshotService(source).snapshots(
            BatchSnapshotRequest(symbols=["BTCUSDT", "SOLUSDT"], interval="1h")
        )

        assert docs[0] == {"symbol": "BTCUSDT", "error": "rejected api_key=***"}
        assert docs[1]["symbol"] == "SOLUSDT"

    @pytest.mark.asyncio
    async def test_invalid_batch_raises(self):
        source = FakeCandleSource()
        with pytest.raises(ValidationError):
            await MarketSnapshotService(source).snapshots({"symbols": [], "interval": "1h"})
        assert source.calls == []


class TestOverridesAndLowerTimeframe:
    @pytest.mark.asyncio
    async def test_learned_overrides_apply(self, tmp_path):
        (tmp_path / "iteration-1.json").write_text(
            json.dumps(
                {
                    "overrides": {
                        "default": {"1h": {"minQuality": 0, "excludeInvalidated": False}}
                    }
                }
            )
        )
        source = FakeCandleSource({"BTCUSDT": create_invalidated_revisit_candles()})
        plain = MarketSnapshotService(source)
        learned = MarketSnapshotService(source, overrides=OverrideStore(tmp_path))
        request = {"symbol": "BTCUSDT", "interval": "1h"}

        assert (await plain.snapshot(request))["hidden_order_blocks"] == []
        [hob] = (await learned.snapshot(request))["hidden_order_blocks"]
        assert hob["invalidated"] is True

    @pytest.mark.asyncio
    async def test_lower_timeframe_prefers_window_fetch(self):
        class WindowedSource(FakeCandleSource):
            async def fetch_window(self, symbol, interval, window):
                self.calls.append(("window", symbol, interval))
                return []

        source = WindowedSource()
        service = MarketSnapshotService(source)
        window = LtfWindow(BASE_TIME, BASE_TIME + timedelta(hours=3))

        await service.fetch_lower_timeframe("BTCUSDT", "15m", window)
        assert source.calls == [("window", "BTCUSDT", "15m")]

    @pytest.mark.asyncio
    async def test_lower_timeframe_falls_back_to_latest(self):
        source = FakeCandleSource()
        window = LtfWindow(BASE_TIME, BASE_TIME + timedelta(hours=3))
        await MarketSnapshotService(source).fetch_lower_timeframe("BTCUSDT", "15m", window)
        assert source.calls == [("BTCUSDT", "15m", 300)]

    @pytest.mark.asyncio
    async def test_ltf_enabled_fetches_for_surviving_hob(self):
        source = FakeCandleSource({"BTCUSDT": create_mitigated_breakout_candles()})
        service = MarketSnapshotService(source)
        await service.snapshot({"symbol": "BTCUSDT", "interval": "1h", "min_quality": 0})
        assert source.calls == [("BTCUSDT", "1h", 150), ("BTCUSDT", "15m", 300)]

    @pytest.mark.asyncio
    async def test_ltf_disabled_skips_fetch(self):
        source = FakeCandleSource({"BTCUSDT": create_mitigated_breakout_candles()})
        service = MarketSnapshotService(source, ltf_enabled=False)
        await service.snapshot({"symbol": "BTCUSDT", "interval": "1h", "min_quality": 0})
        assert source.calls == [("BTCUSDT", "1h", 150)]


class TestFromSettings:
    @pytest.mark.asyncio
    async def test_wraps_feed_with_cache(self, tmp_path):
        settings = FeedSettings(binance_cache_ttl=2500, snapshot_concurrency=2)
        service = MarketSnapshotService.from_settings(settings, overrides_dir=tmp_path)

        assert isinstance(service.source, CachingCandleSource)
        assert service.source.cache.ttl == 2.5
        assert service.source.limiter.max_concurrency == 2
        assert isinstance(service.overrides, OverrideStore)
        await service.close()

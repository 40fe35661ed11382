import logging
from dataclasses import replace

import pytest
from hypothesis import given
from hypothesis import strategies as st

from core.detectors import StructureDetector
from core.zones import (
    LtfConfirmations,
    OrderBlock,
    score_hidden_order_block,
    track_hidden_order_blocks,
)
from services.models import SnapshotConfig, SnapshotRequest
from services.snapshot import (
    COMPACT_PIVOTS,
    compute_snapshot,
    filter_hidden_order_blocks,
)
from tests.fixtures import (
    create_breakout_candles,
    create_flat_candles,
    create_invalidated_revisit_candles,
    create_mitigated_breakout_candles,
    create_test_candles,
    create_wick_mitigation_candles,
)


def make_request(**kwargs) -> SnapshotRequest:
    return SnapshotRequest(symbol="BTCUSDT", interval=kwargs.pop("interval", "1h"), **kwargs)


def scored_hob():
    candles = create_wick_mitigation_candles()
    block = OrderBlock.from_candle("bull", 0, candles[0], "pivot")
    [hob] = track_hidden_order_blocks(candles, [block])
    state = StructureDetector().analyze(candles)
    return score_hidden_order_block(hob, state, "1h", LtfConfirmations())


hob_variants = st.builds(
    lambda quality, invalidated, mitigated, very_strong, ltf: replace(
        scored_hob(),
        quality_score=quality,
        invalidated=invalidated,
        fully_mitigated=mitigated and not invalidated,
        is_very_strong=very_strong,
        ltf_confirmations=LtfConfirmations(bos=ltf),
    ),
    st.floats(min_value=0, max_value=1.5),
    st.booleans(),
    st.booleans(),
    st.booleans(),
    st.booleans(),
)

filter_configs = st.builds(
    SnapshotConfig,
    min_quality=st.floats(min_value=0, max_value=1.5),
    require_ltf_confirmations=st.booleans(),
    exclude_invalidated=st.booleans(),
    only_fully_mitigated=st.booleans(),
    only_very_strong=st.booleans(),
)


class TestComputeSnapshot:
    @pytest.mark.asyncio
    async def test_empty_window_raises(self):
        with pytest.raises(ValueError):
            await compute_snapshot([], make_request())

    @pytest.mark.asyncio
    async def test_flat_market(self):
        doc = (await compute_snapshot(create_flat_candles(50), make_request())).to_dict()

        assert doc["symbol"] == "BTCUSDT"
        assert doc["interval"] == "1h"
        assert doc["bos"] is None
        assert doc["pivots"] == []
        assert doc["fvg"] == []
        assert doc["trend"] is None
        assert doc["order_blocks"] == []
        assert doc["hidden_order_blocks"] == []
        assert doc["liquidity_zones"] == {"highs": [], "lows": []}
        assert doc["sfp"] == {"bullish": False, "bearish": False}

    @pytest.mark.asyncio
    async def test_breakout(self):
        snapshot = await compute_snapshot(create_breakout_candles(150), make_request())
        doc = snapshot.to_dict()

        assert doc["bos"] == "up"
        assert [(ob["kind"], ob["index"]) for ob in doc["order_blocks"]] == [("bull", 147)]
        assert doc["hidden_order_blocks"] == []
        assert doc["latest"]["close"] == 103.0

    @pytest.mark.asyncio
    async def test_compact_document(self):
        candles = create_test_candles(100)
        compact = (await compute_snapshot(candles, make_request())).to_dict()
        full = (await compute_snapshot(candles, make_request(compact=False))).to_dict()

        assert "latest" in compact and "candles" not in compact
        assert {"ema20", "ema50", "ema200"} <= set(compact)
        assert "emas" not in compact
        assert len(compact["pivots"]) <= COMPACT_PIVOTS
        assert compact["pivots"] == full["pivots"][-COMPACT_PIVOTS:]

        assert len(full["candles"]) == 100
        assert set(full["emas"]) == {"ema20", "ema50", "ema200"}
        assert "latest" not in full

    @pytest.mark.asyncio
    async def test_session_and_indicator_keys(self):
        doc = (await compute_snapshot(create_test_candles(60), make_request())).to_dict()
        for key in (
            "sma50",
            "sma200",
            "atr",
            "rsi",
            "vwap",
            "daily_open",
            "weekly_open",
            "prev_day_high",
            "prev_day_low",
        ):
            assert key in doc
        assert doc["sma200"] is None

    @pytest.mark.asyncio
    async def test_invalidated_hob_hidden_by_default(self):
        candles = create_invalidated_revisit_candles()

        snapshot = await compute_snapshot(candles, make_request(min_quality=0))
        assert snapshot.hidden_order_blocks == []
        assert len(snapshot.unfiltered_hidden_order_blocks) == 1

        shown = await compute_snapshot(
            candles, make_request(min_quality=0, exclude_invalidated=False)
        )
        [hob] = shown.to_dict()["hidden_order_blocks"]
        assert hob["invalidated"] is True
        assert hob["fully_mitigated"] is False
        assert hob["is_very_strong"] is False

    @pytest.mark.asyncio
    async def test_lower_timeframe_fetcher_used_for_hobs(self):
        calls = []

        async def fetch(symbol, interval, window):
            calls.append((symbol, interval, window.start))
            return []

        candles = create_mitigated_breakout_candles()
        snapshot = await compute_snapshot(candles, make_request(min_quality=0), fetch)

        [hob] = snapshot.unfiltered_hidden_order_blocks
        assert hob.invalidated is False
        assert calls == [("BTCUSDT", "15m", candles[3].ts)]

    @pytest.mark.asyncio
    async def test_invalidated_hob_skips_lower_timeframe(self):
        calls = []

        async def fetch(symbol, interval, window):
            calls.append((symbol, interval))
            return []

        candles = create_invalidated_revisit_candles()
        snapshot = await compute_snapshot(candles, make_request(min_quality=0), fetch)

        [hob] = snapshot.unfiltered_hidden_order_blocks
        assert hob.invalidated is True
        assert hob.ltf_confirmations == LtfConfirmations()
        assert calls == []

    @pytest.mark.asyncio
    async def test_synthetic_interval_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="services.snapshot"):
            snapshot = await compute_snapshot(
                create_test_candles(30), make_request(interval="2d")
            )
        assert snapshot.interval == "2d"
        assert "without resampling" in caplog.text


class TestFilters:
    def test_defaults_drop_low_quality(self):
        hob = scored_hob()
        assert filter_hidden_order_blocks([hob], SnapshotConfig()) == []
        assert filter_hidden_order_blocks([hob], SnapshotConfig(min_quality=0.5)) == [hob]

    def test_only_very_strong(self):
        hob = replace(scored_hob(), quality_score=0.9)
        config = SnapshotConfig(only_very_strong=True)
        assert filter_hidden_order_blocks([hob], config) == []
        strong = replace(hob, is_very_strong=True)
        assert filter_hidden_order_blocks([strong], config) == [strong]

    def test_require_ltf_confirmations(self):
        hob = replace(scored_hob(), quality_score=0.9)
        config = SnapshotConfig(require_ltf_confirmations=True)
        assert filter_hidden_order_blocks([hob], config) == []
        confirmed = replace(hob, ltf_confirmations=LtfConfirmations(sfp=True))
        assert filter_hidden_order_blocks([confirmed], config) == [confirmed]

    @given(st.lists(hob_variants, max_size=8), filter_configs)
    def test_filter_is_idempotent(self, hobs, config):
        once = filter_hidden_order_blocks(hobs, config)
        assert filter_hidden_order_blocks(once, config) == once
        assert all(h in hobs for h in once)

    @given(st.lists(hob_variants, max_size=8), filter_configs)
    def test_stricter_config_returns_subset(self, hobs, config):
        stricter = config.model_copy(
            update={"exclude_invalidated": True, "only_fully_mitigated": True}
        )
        loose = filter_hidden_order_blocks(hobs, config)
        strict = filter_hidden_order_blocks(hobs, stricter)
        assert all(h in loose for h in strict)

from datetime import UTC, datetime, timedelta

from core.entities import Candle

BASE_TIME = datetime(2025, 1, 6, 0, 0, tzinfo=UTC)  # a Monday


def candles_from_ohlc(
    rows: list[tuple[float, ...]],
    start: datetime = BASE_TIME,
    step: timedelta = timedelta(hours=1),
) -> list[Candle]:
    """Build candles from ``(open, high, low, close[, volume])`` rows."""
    candles = []
    for i, row in enumerate(rows):
        o, h, l, c = row[:4]
        volume = row[4] if len(row) > 4 else 1000.0
        candles.append(
            Candle(ts=start + step * i, open=o, high=h, low=l, close=c, volume=volume)
        )
    return candles


def create_test_candles(count: int = 50, base_price: float = 100.0) -> list[Candle]:
    """Create synthetic hourly candles for testing."""
    candles = []
    current_price = base_price

    for i in range(count):
        price_change = (i % 3 - 1) * 0.5  # -0.5, 0, 0.5 pattern
        current_price += price_change

        open_price = current_price
        high_price = current_price + abs(price_change) + 0.2
        low_price = current_price - abs(price_change) - 0.1
        close_price = current_price + price_change * 0.5
        volume = 1000 + (i % 10) * 100

        candles.append(
            Candle(
                ts=BASE_TIME + timedelta(hours=i),
                open=open_price,
                high=high_price,
                low=low_price,
                close=close_price,
                volume=volume,
            )
        )
        current_price = close_price

    return candles


def create_flat_candles(count: int = 50, price: float = 100.0) -> list[Candle]:
    """Identical candles: no pivots, no gaps, no break."""
    return candles_from_ohlc([(price, price, price, price)] * count)


def create_trending_candles(count: int = 220, step: float = 0.5) -> list[Candle]:
    """Steadily rising (step > 0) or falling (step < 0) bullish/bearish candles."""
    rows = []
    price = 100.0
    for _ in range(count):
        close = price + step
        rows.append((price, max(price, close) + 0.1, min(price, close) - 0.1, close))
        price = close
    return candles_from_ohlc(rows)


def create_oscillating_candles(count: int = 100, price: float = 100.0) -> list[Candle]:
    """Closes alternate between ``price`` and ``price + 1``."""
    rows = []
    for i in range(count):
        close = price + (i % 2)
        open_ = price + ((i + 1) % 2)
        rows.append((open_, price + 1.2, price - 0.2, close))
    return candles_from_ohlc(rows)


def create_breakout_candles(count: int = 150) -> list[Candle]:
    """Range-bound candles followed by a breakout on the last candle.

    Candles ``0 .. count-3`` alternate bullish (even) and bearish (odd)
    inside ``[99, 101]``. The next candle is bullish inside the range and the
    last candle closes at 103, above every prior high.
    """
    rows: list[tuple[float, ...]] = []
    for i in range(count - 2):
        if i % 2 == 0:
            rows.append((99.8, 101.0, 99.0, 100.2))
        else:
            rows.append((100.2, 101.0, 99.0, 99.8))
    rows.append((100.0, 101.0, 99.9, 100.8))
    rows.append((100.8, 103.2, 100.7, 103.0))
    return candles_from_ohlc(rows)


def create_invalidated_revisit_candles() -> list[Candle]:
    """Bearish block at index 1 whose revisit (index 2) closes below its body.

    The last candle breaks above every prior high, so the block is selected
    by the break-of-structure pass.
    """
    return candles_from_ohlc(
        [
            (100.0, 100.6, 99.6, 100.4),
            (100.6, 100.8, 100.0, 100.3),
            (99.0, 100.5, 98.8, 99.8),
            (99.8, 100.2, 99.7, 100.1),
            (100.1, 100.7, 100.0, 100.6),
            (100.6, 101.5, 100.5, 101.3),
        ]
    )


def create_wick_mitigation_candles() -> list[Candle]:
    """Bull block (bearish candle) at index 0, wicked through at index 2, cleared at index 3."""
    return candles_from_ohlc(
        [
            (101.0, 101.5, 99.5, 100.0, 5000.0),
            (102.0, 103.0, 101.5, 102.5, 1000.0),
            (101.5, 102.0, 99.5, 101.2, 1000.0),
            (101.5, 103.0, 101.4, 102.5, 1000.0),
        ]
    )


def create_ltf_reaction_candles(start: datetime, step: timedelta = timedelta(minutes=15)) -> list[Candle]:
    """Six lower-timeframe candles showing BOS, ChoCh, SFP and FVG mitigation for a bull zone."""
    return candles_from_ohlc(
        [
            (100.0, 101.0, 99.0, 100.0),
            (100.0, 100.5, 98.5, 99.0),
            (99.0, 100.0, 98.2, 99.5),
            (99.5, 101.5, 99.4, 101.2),
            (101.2, 102.5, 100.6, 102.2),
            (102.2, 102.8, 99.9, 102.5),
        ],
        start=start,
        step=step,
    )


def create_mitigated_breakout_candles() -> list[Candle]:
    """Bull block at index 1, wicked through at index 3 and cleared before a breakout."""
    return candles_from_ohlc(
        [
            (100.5, 101.2, 100.3, 101.0),
            (101.0, 101.5, 99.5, 100.0),
            (102.0, 103.0, 101.5, 102.5),
            (101.5, 102.0, 99.5, 101.2),
            (101.5, 103.0, 101.4, 102.5),
            (102.5, 104.0, 102.4, 103.8),
        ]
    )


def create_ranging_candles(count: int = 50) -> list[Candle]:
    """Every high at 100.06 and every low at 99.98; closes alternate 100.00 / 100.04."""
    rows = []
    for i in range(count):
        if i % 2 == 0:
            rows.append((100.04, 100.06, 99.98, 100.0))
        else:
            rows.append((100.0, 100.06, 99.98, 100.04))
    return candles_from_ohlc(rows)

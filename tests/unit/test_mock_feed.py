import numpy as np
import pytest

from signal_engine.core.mock_feed import (
    CANDLE_INTERVAL_MS,
    base_price,
    generate_mock_candles,
    update_last_candle,
)
from signal_engine.core.models import InvalidParameter

NOW = 1_700_000_000_000


def test_generate_mock_candles_is_reproducible():
    first = generate_mock_candles("BTC/INR", 50, rng=np.random.default_rng(3), now_ms=NOW)
    second = generate_mock_candles("BTC/INR", 50, rng=np.random.default_rng(3), now_ms=NOW)
    assert first == second


def test_generate_mock_candles_timestamps():
    candles = generate_mock_candles("BTC/INR", 10, rng=np.random.default_rng(0), now_ms=NOW)
    assert len(candles) == 10
    assert candles[0].timestamp == NOW - 10 * CANDLE_INTERVAL_MS
    assert candles[-1].timestamp == NOW - CANDLE_INTERVAL_MS
    steps = {b.timestamp - a.timestamp for a, b in zip(candles, candles[1:])}
    assert steps == {CANDLE_INTERVAL_MS}


def test_generate_mock_candles_walks_from_previous_close():
    candles = generate_mock_candles("TCS.NSE", 30, rng=np.random.default_rng(5), now_ms=NOW)
    for i, (prev, cur) in enumerate(zip(candles, candles[1:]), start=1):
        trend = np.sin(i / 10) * prev.close * 0.02
        assert cur.open == pytest.approx(prev.close + trend)
        assert abs(cur.close - cur.open) <= prev.close * 0.02 + 1e-9


@pytest.mark.parametrize(
    "symbol,price",
    [("BTC/INR", 50000.0), ("ETH/INR", 180000.0), ("BNB/INR", 25000.0), ("TCS.NSE", 3500.0), ("RELIANCE.NSE", 2500.0)],
)
def test_base_price(symbol, price):
    assert base_price(symbol) == price


def test_generate_mock_candles_count():
    assert generate_mock_candles("BTC/INR", 0) == []
    with pytest.raises(InvalidParameter):
        generate_mock_candles("BTC/INR", -1)


def test_update_last_candle():
    rng = np.random.default_rng(9)
    candles = generate_mock_candles("ETH/INR", 20, rng=rng, now_ms=NOW)
    before = list(candles)
    updated = update_last_candle(candles, rng=rng)
    assert candles == before
    assert updated[:-1] == candles[:-1]
    last, new = candles[-1], updated[-1]
    assert new.timestamp == last.timestamp
    assert new.open == last.open
    assert abs(new.close - last.close) <= last.close * 0.005
    assert new.high >= max(last.high, new.close)
    assert new.low <= min(last.low, new.close)
    assert new.volume >= last.volume


def test_update_last_candle_empty():
    assert update_last_candle([]) == []

import itertools
import math

import numpy as np
import pytest

from signal_engine.core.mock_feed import generate_mock_candles
from signal_engine.core.models import Candle, IndicatorSnapshot, InvalidParameter, SignalKind, closes
from signal_engine.core.rules import (
    SignalConfig,
    compute_indicator_frame,
    evaluate_rules,
    generate_signal,
    signal_series,
)

NAN = float("nan")


def _snapshot(rsi, macd, signal_line, close=100.0, bb_upper=110.0, bb_lower=90.0):
    return IndicatorSnapshot(
        rsi=rsi, macd=macd, signal_line=signal_line, bb_upper=bb_upper, bb_lower=bb_lower, close=close
    )


def _flat_candles(prices, start=1_700_000_000_000, step=300_000):
    return [
        Candle(timestamp=start + i * step, open=p, high=p, low=p, close=p, volume=1.0)
        for i, p in enumerate(prices)
    ]


@pytest.mark.parametrize(
    "snapshot,expected",
    [
        (_snapshot(25, 1.0, 0.5, close=85.0), (SignalKind.BUY, 0.85)),
        (_snapshot(25, 1.0, 0.5, close=95.0), (SignalKind.BUY, 0.65)),
        (_snapshot(35, 1.0, 0.5), (SignalKind.BUY, 0.65)),
        (_snapshot(35, 0.5, 1.0), (SignalKind.HOLD, 0.0)),
        (_snapshot(75, 0.5, 1.0, close=115.0), (SignalKind.SELL, 0.85)),
        (_snapshot(75, 0.5, 1.0, close=105.0), (SignalKind.SELL, 0.65)),
        (_snapshot(65, 0.5, 1.0), (SignalKind.SELL, 0.65)),
        (_snapshot(65, 1.0, 0.5), (SignalKind.HOLD, 0.0)),
        (_snapshot(50, 1.0, 0.5), (SignalKind.HOLD, 0.0)),
        (_snapshot(40, 1.0, 0.5), (SignalKind.HOLD, 0.0)),
        (_snapshot(60, 0.5, 1.0), (SignalKind.HOLD, 0.0)),
        (_snapshot(25, 1.0, 1.0, close=85.0), (SignalKind.HOLD, 0.0)),
    ],
)
def test_decision_table(snapshot, expected):
    assert evaluate_rules(snapshot) == expected


@pytest.mark.parametrize("field", ["rsi", "macd", "signal_line", "bb_upper", "bb_lower", "close"])
def test_undefined_input_holds(field):
    values = dict(rsi=20.0, macd=1.0, signal_line=0.5, bb_upper=110.0, bb_lower=90.0, close=80.0)
    assert evaluate_rules(IndicatorSnapshot(**values)) == (SignalKind.BUY, 0.85)
    values[field] = NAN
    assert evaluate_rules(IndicatorSnapshot(**values)) == (SignalKind.HOLD, 0.0)


def test_decision_table_is_total():
    allowed = {SignalKind.BUY: {0.85, 0.65}, SignalKind.SELL: {0.85, 0.65}, SignalKind.HOLD: {0.0}}
    grid = itertools.product([0, 25, 30, 35, 40, 50, 60, 65, 70, 75, 100], [-1.0, 0.0, 1.0], [80.0, 100.0, 120.0])
    for rsi, macd, close in grid:
        kind, confidence = evaluate_rules(_snapshot(rsi, macd, 0.0, close=close))
        assert confidence in allowed[kind]


def test_signal_series_matches_evaluate_rules():
    candles = generate_mock_candles("BTC/INR", 200, rng=np.random.default_rng(42), now_ms=1_700_000_000_000)
    frame = compute_indicator_frame(closes(candles))
    signals = signal_series(
        frame["close"], frame["rsi"], frame["macd_line"], frame["signal_line"], frame["bb_upper"], frame["bb_lower"]
    )
    assert len(signals) == len(frame)
    for (_, row), (_, sig) in zip(frame.iterrows(), signals.iterrows()):
        kind, confidence = evaluate_rules(
            _snapshot(row["rsi"], row["macd_line"], row["signal_line"], row["close"], row["bb_upper"], row["bb_lower"])
        )
        assert sig["signal"] == kind.value
        assert sig["confidence"] == confidence
    # no signal can be defined before the MACD signal line is
    assert (signals["signal"].iloc[:33] == "hold").all()


def test_signal_series_applies_same_table_per_bar():
    grid = list(itertools.product([NAN, 25, 35, 50, 65, 75], [0.5, 1.0, NAN], [85.0, 100.0, 115.0]))
    rsi, macd, close = (np.array(col, dtype=float) for col in zip(*grid))
    n = len(grid)
    signals = signal_series(close, rsi, macd, np.full(n, 0.75), np.full(n, 110.0), np.full(n, 90.0))
    for (r, m, c), (_, sig) in zip(grid, signals.iterrows()):
        kind, confidence = evaluate_rules(_snapshot(r, m, 0.75, close=c))
        assert (sig["signal"], sig["confidence"]) == (kind.value, confidence)


def test_signal_series_rejects_mismatched_lengths():
    with pytest.raises(InvalidParameter):
        signal_series([1.0, 2.0], [50.0], [0.0, 0.0], [0.0, 0.0], [3.0, 3.0], [0.0, 0.0])


def test_generate_signal_monotonic_increase_holds():
    signal = generate_signal(_flat_candles(range(1, 31)))
    assert signal.kind is SignalKind.HOLD
    assert signal.confidence == 0.0
    assert signal.snapshot.rsi == 100.0
    assert math.isnan(signal.snapshot.signal_line)
    assert signal.to_dict()["indicators"]["signalLine"] is None


def test_generate_signal_accelerating_uptrend_holds():
    # RSI is 100 but the MACD line stays above its signal line
    signal = generate_signal(_flat_candles([float(i * i) for i in range(1, 61)]))
    assert signal.snapshot.rsi == 100.0
    assert signal.snapshot.macd > signal.snapshot.signal_line
    assert signal.kind is SignalKind.HOLD


def test_generate_signal_stalling_uptrend_sells():
    prices = [100 + 2.0 * i for i in range(40)] + [178 + 0.1 * i for i in range(1, 21)]
    signal = generate_signal(_flat_candles(prices))
    assert signal.snapshot.rsi == 100.0
    assert signal.kind is SignalKind.SELL
    assert signal.confidence in (0.85, 0.65)


def test_generate_signal_stalling_downtrend_buys():
    prices = [300 - 2.0 * i for i in range(40)] + [222 - 0.1 * i for i in range(1, 21)]
    signal = generate_signal(_flat_candles(prices))
    assert signal.snapshot.rsi == 0.0
    assert signal.kind is SignalKind.BUY
    assert signal.confidence in (0.85, 0.65)


def test_generate_signal_short_history_holds():
    candles = generate_mock_candles("ETH/INR", 20, rng=np.random.default_rng(1))
    signal = generate_signal(candles)
    assert signal.kind is SignalKind.HOLD
    assert signal.confidence == 0.0


def test_generate_signal_is_deterministic_and_leaves_input_alone():
    candles = generate_mock_candles("BTC/INR", 120, rng=np.random.default_rng(8))
    before = list(candles)
    assert generate_signal(candles) == generate_signal(candles)
    assert candles == before


def test_generate_signal_with_custom_config():
    config = SignalConfig(rsi_period=5, macd_fast=3, macd_slow=6, macd_signal=3, bb_period=5)
    assert config.min_history == 8
    candles = generate_mock_candles("BTC/INR", config.min_history, rng=np.random.default_rng(4))
    assert generate_signal(candles, config).snapshot.is_complete
    assert not generate_signal(candles[:-1], config).snapshot.is_complete


def test_generate_signal_rejects_bad_input():
    with pytest.raises(InvalidParameter):
        generate_signal([])
    candles = _flat_candles([1.0, 2.0, 3.0])
    with pytest.raises(InvalidParameter):
        generate_signal(list(reversed(candles)))


@pytest.mark.parametrize(
    "kwargs",
    [dict(rsi_period=0), dict(macd_fast=26, macd_slow=12), dict(bb_period=2.5), dict(bb_std_dev=-1.0),
     dict(bb_std_dev=float("nan")), dict(bb_std_dev=float("inf"))],
)
def test_signal_config_validation(kwargs):
    with pytest.raises(InvalidParameter):
        SignalConfig(**kwargs)


def test_default_min_history():
    assert SignalConfig().min_history == 34

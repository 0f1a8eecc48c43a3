"""Core of the signal engine.

This package computes technical indicators over a chronological price
series, turns the latest indicator values into a buy/sell/hold signal,
and provides the candle feeds (Binance and a simulated random walk)
the engine is usually driven from.  Indicator and signal functions are
side-effect free and deterministic when given the same inputs.
"""

from .models import (
    Candle,
    IndicatorSnapshot,
    InvalidParameter,
    Signal,
    SignalKind,
    candles_to_frame,
    closes,
    series_to_list,
)
from .indicators import (
    compute_sma,
    compute_ema,
    compute_rsi,
    compute_macd,
    compute_bollinger,
)
from .rules import (
    SignalConfig,
    compute_indicator_frame,
    evaluate_rules,
    generate_signal,
    signal_series,
)
from .mock_feed import AVAILABLE_SYMBOLS, generate_mock_candles, update_last_candle
from .ohlc_fetcher import fetch_candles

__all__ = [
    "Candle",
    "IndicatorSnapshot",
    "InvalidParameter",
    "Signal",
    "SignalKind",
    "candles_to_frame",
    "closes",
    "series_to_list",
    "compute_sma",
    "compute_ema",
    "compute_rsi",
    "compute_macd",
    "compute_bollinger",
    "SignalConfig",
    "compute_indicator_frame",
    "evaluate_rules",
    "generate_signal",
    "signal_series",
    "AVAILABLE_SYMBOLS",
    "generate_mock_candles",
    "update_last_candle",
    "fetch_candles",
]

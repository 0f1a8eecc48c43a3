"""Technical indicators over a chronological price series.

SMA, EMA, RSI, MACD and Bollinger Bands, each a pure function of its
input.  Every output is aligned index-for-index with the prices; slots
whose lookback window has not filled yet hold ``NaN`` rather than zero
so that consumers can tell "not enough history" apart from a value.

Prices may be given as any one-dimensional sequence of numbers.  A
``pd.Series`` keeps its index on the way out.
"""

from __future__ import annotations

import math
from typing import Sequence, Union

import numpy as np
import pandas as pd
from numpy.lib.stride_tricks import sliding_window_view

from .models import InvalidParameter

Prices = Union[Sequence[float], np.ndarray, pd.Series]


def _as_prices(prices: Prices) -> pd.Series:
    index = prices.index if isinstance(prices, pd.Series) else None
    try:
        values = np.asarray(prices, dtype=float)
    except (TypeError, ValueError):
        raise InvalidParameter("prices must be numeric") from None
    if values.ndim != 1:
        raise InvalidParameter("prices must be one-dimensional")
    if values.size == 0:
        raise InvalidParameter("prices must not be empty")
    if not np.isfinite(values).all():
        raise InvalidParameter("prices must be finite numbers")
    return pd.Series(values.copy(), index=index, dtype=float)


def _check_period(period: int, name: str = "period") -> int:
    if isinstance(period, bool) or not isinstance(period, (int, np.integer)):
        raise InvalidParameter(f"{name} must be an integer, got {period!r}")
    if period <= 0:
        raise InvalidParameter(f"{name} must be positive, got {period}")
    return int(period)


def _window_sums(values: np.ndarray, period: int) -> np.ndarray:
    """
    Sum of each trailing window of ``period`` values, NaN before the
    first full window.  Windows are summed independently so a value
    leaving the window leaves no rounding residue behind.
    """
    out = np.full(values.size, np.nan)
    if values.size >= period:
        out[period - 1:] = sliding_window_view(values, period).sum(axis=1)
    return out


def _window_variance(values: np.ndarray, period: int, means: np.ndarray) -> np.ndarray:
    """Population variance of each trailing window around ``means``."""
    out = np.full(values.size, np.nan)
    if values.size >= period:
        windows = sliding_window_view(values, period)
        centred = windows - means[period - 1:, None]
        out[period - 1:] = (centred ** 2).sum(axis=1) / period
    return out


def _sma_values(values: np.ndarray, period: int) -> np.ndarray:
    return _window_sums(values, period) / period


def _ema_values(values: np.ndarray, period: int) -> np.ndarray:
    out = np.full(values.size, np.nan)
    if values.size < period:
        return out
    k = 2.0 / (period + 1)
    prev = _sma_values(values, period)[period - 1]
    out[period - 1] = prev
    for i in range(period, values.size):
        prev = (values[i] - prev) * k + prev
        out[i] = prev
    return out


def compute_sma(prices: Prices, period: int) -> pd.Series:
    """
    Simple moving average: mean of the trailing ``period`` prices.
    The first ``period - 1`` entries are NaN.
    """
    period = _check_period(period)
    series = _as_prices(prices)
    return pd.Series(_sma_values(series.to_numpy(), period), index=series.index)


def compute_ema(prices: Prices, period: int) -> pd.Series:
    """
    Exponential moving average with multiplier ``2 / (period + 1)``.

    The first defined value sits at index ``period - 1`` and equals the
    SMA of the first ``period`` prices; earlier entries are NaN.
    """
    period = _check_period(period)
    series = _as_prices(prices)
    return pd.Series(_ema_values(series.to_numpy(), period), index=series.index)


def compute_rsi(prices: Prices, period: int = 14) -> pd.Series:
    """
    Relative Strength Index from plain rolling means of gains and losses.

    Entry ``i`` averages the ``period`` price changes ending at ``i``
    (no Wilder smoothing), so the first ``period`` entries are NaN.  A
    window without any loss yields exactly 100, flat windows included.
    """
    period = _check_period(period)
    series = _as_prices(prices)
    values = series.to_numpy()
    out = np.full(values.size, np.nan)
    if values.size > period:
        delta = np.diff(values)
        gain_sum = _window_sums(np.where(delta > 0, delta, 0.0), period)
        loss_sum = _window_sums(np.where(delta < 0, -delta, 0.0), period)
        with np.errstate(divide="ignore", invalid="ignore"):
            rs = (gain_sum / period) / (loss_sum / period)
            rsi = 100.0 - 100.0 / (1.0 + rs)
        out[1:] = np.where(loss_sum == 0, 100.0, rsi)
    return pd.Series(out, index=series.index)


def compute_macd(
    prices: Prices, fast: int = 12, slow: int = 26, signal: int = 9
) -> pd.DataFrame:
    """
    Moving Average Convergence Divergence.

    Returns a DataFrame with columns ``macd_line`` (fast EMA minus slow
    EMA), ``signal_line`` and ``histogram``.  The signal EMA is seeded
    from the defined part of the MACD line only and then padded back
    with NaN to the full length; the histogram is NaN wherever either
    line is.
    """
    fast = _check_period(fast, "fast")
    slow = _check_period(slow, "slow")
    signal = _check_period(signal, "signal")
    if fast >= slow:
        raise InvalidParameter(f"fast period ({fast}) must be shorter than slow period ({slow})")
    series = _as_prices(prices)
    values = series.to_numpy()

    macd_line = _ema_values(values, fast) - _ema_values(values, slow)
    signal_line = np.full(values.size, np.nan)
    defined = np.flatnonzero(~np.isnan(macd_line))
    if defined.size:
        first = defined[0]
        signal_line[first:] = _ema_values(macd_line[first:], signal)
    histogram = macd_line - signal_line

    return pd.DataFrame(
        {"macd_line": macd_line, "signal_line": signal_line, "histogram": histogram},
        index=series.index,
    )


def compute_bollinger(
    prices: Prices, period: int = 20, std_dev: float = 2.0
) -> pd.DataFrame:
    """
    Bollinger Bands: columns ``middle`` (the SMA), ``upper`` and
    ``lower`` at ``std_dev`` population standard deviations of the same
    trailing window.
    """
    period = _check_period(period)
    if isinstance(std_dev, bool) or not isinstance(std_dev, (int, float, np.number)):
        raise InvalidParameter(f"std_dev must be a number, got {std_dev!r}")
    if not math.isfinite(std_dev) or std_dev < 0:
        raise InvalidParameter(f"std_dev must be a non-negative finite number, got {std_dev}")
    series = _as_prices(prices)
    values = series.to_numpy()

    middle = _sma_values(values, period)
    std = np.sqrt(_window_variance(values, period, middle))
    return pd.DataFrame(
        {"middle": middle, "upper": middle + std_dev * std, "lower": middle - std_dev * std},
        index=series.index,
    )

"""
Turn indicator values into a buy/sell/hold signal.

The decision table combines RSI, the MACD line against its signal line
and the close against the Bollinger Bands.  Rules are evaluated in
order and the first match wins:

====  =====================================================  ====  ==========
 #    condition                                              kind  confidence
====  =====================================================  ====  ==========
 1    RSI < 30 and MACD > signal and close < lower band      buy   0.85
 2    RSI < 40 and MACD > signal                             buy   0.65
 3    RSI > 70 and MACD < signal and close > upper band      sell  0.85
 4    RSI > 60 and MACD < signal                             sell  0.65
 -    otherwise                                              hold  0.0
====  =====================================================  ====  ==========

An undefined (NaN) input never satisfies a comparison: the result is
hold with zero confidence until every indicator has enough history.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .indicators import Prices, compute_bollinger, compute_macd, compute_rsi
from .models import Candle, IndicatorSnapshot, InvalidParameter, Signal, SignalKind, closes

Rule = Tuple[SignalKind, float, Callable[[Any], Any]]

# Predicates combine with "&": they are applied to an IndicatorSnapshot
# of floats and, per bar, to a namespace of aligned numpy arrays.
RULES: Tuple[Rule, ...] = (
    (SignalKind.BUY, 0.85, lambda s: (s.rsi < 30) & (s.macd > s.signal_line) & (s.close < s.bb_lower)),
    (SignalKind.BUY, 0.65, lambda s: (s.rsi < 40) & (s.macd > s.signal_line)),
    (SignalKind.SELL, 0.85, lambda s: (s.rsi > 70) & (s.macd < s.signal_line) & (s.close > s.bb_upper)),
    (SignalKind.SELL, 0.65, lambda s: (s.rsi > 60) & (s.macd < s.signal_line)),
)
HOLD_CONFIDENCE = 0.0


@dataclass(frozen=True)
class SignalConfig:
    """Indicator parameters used by the signal generator."""

    rsi_period: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    bb_period: int = 20
    bb_std_dev: float = 2.0

    def __post_init__(self) -> None:
        for name in ("rsi_period", "macd_fast", "macd_slow", "macd_signal", "bb_period"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidParameter(f"{name} must be a positive integer, got {value!r}")
        if self.macd_fast >= self.macd_slow:
            raise InvalidParameter("macd_fast must be shorter than macd_slow")
        if not math.isfinite(self.bb_std_dev) or self.bb_std_dev < 0:
            raise InvalidParameter(f"bb_std_dev must be finite and non-negative, got {self.bb_std_dev!r}")

    @property
    def min_history(self) -> int:
        """Candles needed before every input of the decision table is defined."""
        return max(self.rsi_period + 1, self.macd_slow + self.macd_signal - 1, self.bb_period)


def evaluate_rules(snapshot: IndicatorSnapshot) -> Tuple[SignalKind, float]:
    """Apply the decision table to one set of indicator values."""
    if not snapshot.is_complete:
        return SignalKind.HOLD, HOLD_CONFIDENCE
    for kind, confidence, matches in RULES:
        if matches(snapshot):
            return kind, confidence
    return SignalKind.HOLD, HOLD_CONFIDENCE


def compute_indicator_frame(prices: Prices, config: SignalConfig = SignalConfig()) -> pd.DataFrame:
    """
    Compute every series the decision table consumes, aligned with
    ``prices``: close, rsi, macd_line, signal_line, histogram,
    bb_middle, bb_upper and bb_lower.
    """
    rsi = compute_rsi(prices, config.rsi_period)
    macd = compute_macd(prices, config.macd_fast, config.macd_slow, config.macd_signal)
    bb = compute_bollinger(prices, config.bb_period, config.bb_std_dev)
    columns = {"close": np.asarray(prices, dtype=float), "rsi": rsi.to_numpy()}
    columns.update((name, macd[name].to_numpy()) for name in macd.columns)
    columns.update((f"bb_{name}", bb[name].to_numpy()) for name in bb.columns)
    return pd.DataFrame(columns, index=rsi.index)


def generate_signal(candles: Sequence[Candle], config: Optional[SignalConfig] = None) -> Signal:
    """
    Evaluate the decision table on the latest candle.

    The indicators are recomputed over the whole candle history on every
    call; nothing is cached between calls.
    """
    candles = list(candles)
    if not candles:
        raise InvalidParameter("at least one candle is required")
    config = config or SignalConfig()
    last = compute_indicator_frame(closes(candles), config).iloc[-1]
    snapshot = IndicatorSnapshot(
        rsi=float(last["rsi"]),
        macd=float(last["macd_line"]),
        signal_line=float(last["signal_line"]),
        bb_upper=float(last["bb_upper"]),
        bb_lower=float(last["bb_lower"]),
        close=float(last["close"]),
    )
    kind, confidence = evaluate_rules(snapshot)
    return Signal(kind=kind, confidence=confidence, snapshot=snapshot)


def signal_series(
    close: Prices,
    rsi: Prices,
    macd_line: Prices,
    signal_line: Prices,
    bb_upper: Prices,
    bb_lower: Prices,
) -> pd.DataFrame:
    """
    Apply the decision table at every bar.  Returns a DataFrame with a
    ``signal`` column (buy/sell/hold) and a ``confidence`` column,
    indexed like ``close``.
    """
    columns: List[np.ndarray] = [
        np.asarray(s, dtype=float) for s in (close, rsi, macd_line, signal_line, bb_upper, bb_lower)
    ]
    if len({c.shape for c in columns}) != 1 or columns[0].ndim != 1:
        raise InvalidParameter("all series must be one-dimensional and of equal length")
    c, r, m, s, upper, lower = columns
    complete = ~np.isnan(np.vstack(columns)).any(axis=0)

    bars = SimpleNamespace(close=c, rsi=r, macd=m, signal_line=s, bb_upper=upper, bb_lower=lower)
    conditions = [complete & matches(bars) for _, _, matches in RULES]
    kinds = np.select(conditions, [kind.value for kind, _, _ in RULES], default=SignalKind.HOLD.value)
    confidence = np.select(conditions, [conf for _, conf, _ in RULES], default=HOLD_CONFIDENCE)
    index = close.index if isinstance(close, pd.Series) else None
    return pd.DataFrame({"signal": kinds, "confidence": confidence}, index=index)

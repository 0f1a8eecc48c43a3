"""Value types exchanged between the feed, the engine and its consumers.

Candles come from a feed, indicator series are plain ``pd.Series`` of
floats aligned with the closes (``NaN`` marks positions where the
lookback window has not filled yet) and a :class:`Signal` is the final
buy/sell/hold verdict together with the indicator values it was taken
from.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

OHLCV_COLUMNS = ["open", "high", "low", "close", "volume"]


class InvalidParameter(ValueError):
    """Raised for caller errors: bad periods, empty or malformed input."""


def _is_undefined(value: Optional[float]) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def _nullable(value: Optional[float]) -> Optional[float]:
    """Map the NaN marker to ``None`` so it serialises as ``null``."""
    return None if _is_undefined(value) else float(value)


@dataclass(frozen=True)
class Candle:
    timestamp: int  # epoch millis
    open: float
    high: float
    low: float
    close: float
    volume: float

    def __post_init__(self) -> None:
        values = (self.open, self.high, self.low, self.close, self.volume)
        if not all(math.isfinite(v) for v in values):
            raise InvalidParameter(f"candle at {self.timestamp} has non-finite values")
        if not (self.low <= min(self.open, self.close) <= max(self.open, self.close) <= self.high):
            raise InvalidParameter(
                f"candle at {self.timestamp} violates low <= open/close <= high"
            )
        if self.volume < 0:
            raise InvalidParameter(f"candle at {self.timestamp} has negative volume")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Candle":
        try:
            return cls(
                timestamp=int(data["timestamp"]),
                open=float(data["open"]),
                high=float(data["high"]),
                low=float(data["low"]),
                close=float(data["close"]),
                volume=float(data["volume"]),
            )
        except KeyError as e:
            raise InvalidParameter(f"candle is missing field {e.args[0]!r}") from None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


def _check_chronological(candles: Sequence[Candle]) -> None:
    for prev, cur in zip(candles, candles[1:]):
        if cur.timestamp < prev.timestamp:
            raise InvalidParameter(
                f"candles out of order: {cur.timestamp} follows {prev.timestamp}"
            )


def closes(candles: Sequence[Candle]) -> pd.Series:
    """Return the price series (closes, oldest first) of ``candles``."""
    _check_chronological(candles)
    return pd.Series([c.close for c in candles], dtype=float)


def candles_to_frame(candles: Iterable[Candle]) -> pd.DataFrame:
    """Build an OHLCV frame indexed by UTC ``date`` from ``candles``."""
    candles = list(candles)
    _check_chronological(candles)
    df = pd.DataFrame([c.to_dict() for c in candles], columns=["timestamp", *OHLCV_COLUMNS])
    df["date"] = pd.to_datetime(df["timestamp"], unit="ms", utc=True)
    df = df.set_index("date")
    return df[OHLCV_COLUMNS].astype(float)


class SignalKind(str, Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Latest indicator values a signal was derived from.

    Any field may be ``NaN`` when the history was too short for that
    indicator.
    """

    rsi: float
    macd: float
    signal_line: float
    bb_upper: float
    bb_lower: float
    close: float

    @property
    def is_complete(self) -> bool:
        return not any(
            _is_undefined(v)
            for v in (self.rsi, self.macd, self.signal_line, self.bb_upper, self.bb_lower, self.close)
        )

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {
            "rsi": _nullable(self.rsi),
            "macd": _nullable(self.macd),
            "signalLine": _nullable(self.signal_line),
            "bbUpper": _nullable(self.bb_upper),
            "bbLower": _nullable(self.bb_lower),
        }


@dataclass(frozen=True)
class Signal:
    kind: SignalKind
    confidence: float
    snapshot: IndicatorSnapshot

    def is_actionable(self, threshold: float = 0.7) -> bool:
        return self.kind is not SignalKind.HOLD and self.confidence > threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signal": self.kind.value,
            "confidence": self.confidence,
            "indicators": self.snapshot.to_dict(),
        }


def series_to_list(series: pd.Series) -> List[Optional[float]]:
    """Serialise an indicator series with ``None`` in undefined slots."""
    return [_nullable(float(v)) for v in series.tolist()]

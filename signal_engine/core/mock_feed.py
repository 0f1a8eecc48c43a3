"""Simulated candle feed for demos and offline runs.

Candles follow a sine-shaped trend with random noise around a
per-symbol base price, one candle every five minutes ending at ``now``.
Pass a seeded ``numpy.random.Generator`` for reproducible output.
"""
from __future__ import annotations

import time
from typing import Dict, List, Optional, Sequence

import numpy as np

from .models import Candle, InvalidParameter

CANDLE_INTERVAL_MS = 5 * 60 * 1000
DEFAULT_BASE_PRICE = 50000.0

AVAILABLE_SYMBOLS: List[Dict[str, str]] = [
    {"symbol": "BTC/INR", "name": "Bitcoin", "type": "crypto"},
    {"symbol": "ETH/INR", "name": "Ethereum", "type": "crypto"},
    {"symbol": "BNB/INR", "name": "Binance Coin", "type": "crypto"},
    {"symbol": "TCS.NSE", "name": "TCS", "type": "stock"},
    {"symbol": "RELIANCE.NSE", "name": "Reliance", "type": "stock"},
    {"symbol": "USD/INR", "name": "US Dollar", "type": "forex"},
]

# first matching fragment wins, in order
_BASE_PRICES = (
    ("RELIANCE", 2500.0),
    ("TCS", 3500.0),
    ("BNB", 25000.0),
    ("ETH", 180000.0),
)


def base_price(symbol: str) -> float:
    for fragment, price in _BASE_PRICES:
        if fragment in symbol.upper():
            return price
    return DEFAULT_BASE_PRICE


def generate_mock_candles(
    symbol: str,
    count: int = 100,
    rng: Optional[np.random.Generator] = None,
    now_ms: Optional[int] = None,
) -> List[Candle]:
    """
    Generate ``count`` chronological candles for ``symbol``.  Each candle
    opens on a sine trend around the previous close and closes within
    +/-2% of its open; high and low extend up to a further 1%.
    """
    if count < 0:
        raise InvalidParameter("count must not be negative")
    rng = rng or np.random.default_rng()
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    price = base_price(symbol)
    candles: List[Candle] = []
    for i in range(count):
        volatility = price * 0.02
        trend = np.sin(i / 10) * volatility
        open_ = price + trend
        close = open_ + (rng.random() - 0.5) * volatility * 2
        high = max(open_, close) + rng.random() * volatility * 0.5
        low = min(open_, close) - rng.random() * volatility * 0.5
        candles.append(
            Candle(
                timestamp=now_ms - (count - i) * CANDLE_INTERVAL_MS,
                open=float(open_),
                high=float(high),
                low=float(low),
                close=float(close),
                volume=float(rng.random() * 1_000_000 + 500_000),
            )
        )
        price = close
    return candles


def update_last_candle(
    candles: Sequence[Candle], rng: Optional[np.random.Generator] = None
) -> List[Candle]:
    """
    Return a copy of ``candles`` whose last candle has ticked: the close
    moves by up to +/-0.5%, high/low widen to include it and volume grows.
    """
    updated = list(candles)
    if not updated:
        return updated
    rng = rng or np.random.default_rng()
    last = updated[-1]
    new_close = last.close + (rng.random() - 0.5) * last.close * 0.01
    updated[-1] = Candle(
        timestamp=last.timestamp,
        open=last.open,
        high=float(max(last.high, new_close)),
        low=float(min(last.low, new_close)),
        close=float(new_close),
        volume=float(last.volume + rng.random() * 10_000),
    )
    return updated

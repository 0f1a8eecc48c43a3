"""Environment-driven settings for the signal feeder and API.

Environment variables:

* MQTT_BROKER / MQTT_PORT: where signals are published (localhost:1883)
* SYMBOLS: comma-separated symbols to evaluate (default: BTC/INR)
* FETCH_INTERVAL: seconds between evaluation cycles (default: 10)
* FEED: ``mock`` (random-walk demo candles) or ``binance``
* CANDLE_INTERVAL: Binance-style candle interval (default: 5m)
* HISTORY_SIZE: candles kept in the rolling buffer (default: 100)
* NOTIFY_CONFIDENCE: signals above this confidence are announced (0.7)
* RSI_PERIOD, MACD_FAST, MACD_SLOW, MACD_SIGNAL, BB_PERIOD, BB_STD_DEV:
  indicator parameters handed to the signal generator
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from .core.rules import SignalConfig
from .env import env, env_float, env_int

FEEDS = ("mock", "binance")


@dataclass(frozen=True)
class Settings:
    mqtt_broker: str = "localhost"
    mqtt_port: int = 1883
    symbols: Tuple[str, ...] = ("BTC/INR",)
    fetch_interval: float = 10.0
    feed: str = "mock"
    candle_interval: str = "5m"
    history_size: int = 100
    notify_confidence: float = 0.7
    signal: SignalConfig = field(default_factory=SignalConfig)


def load_settings() -> Settings:
    """Read :class:`Settings` from the process environment."""
    symbols = tuple(s.strip() for s in (env("SYMBOLS", "BTC/INR") or "").split(",") if s.strip())
    if not symbols:
        raise ValueError("SYMBOLS must name at least one symbol")
    feed = (env("FEED", "mock") or "mock").lower()
    if feed not in FEEDS:
        raise ValueError(f"FEED must be one of {FEEDS}, got {feed!r}")
    history_size = env_int("HISTORY_SIZE", 100)
    if history_size <= 0:
        raise ValueError("HISTORY_SIZE must be positive")

    signal = SignalConfig(
        rsi_period=env_int("RSI_PERIOD", 14),
        macd_fast=env_int("MACD_FAST", 12),
        macd_slow=env_int("MACD_SLOW", 26),
        macd_signal=env_int("MACD_SIGNAL", 9),
        bb_period=env_int("BB_PERIOD", 20),
        bb_std_dev=env_float("BB_STD_DEV", 2.0),
    )
    return Settings(
        mqtt_broker=env("MQTT_BROKER", "localhost") or "localhost",
        mqtt_port=env_int("MQTT_PORT", 1883),
        symbols=symbols,
        fetch_interval=env_float("FETCH_INTERVAL", 10.0),
        feed=feed,
        candle_interval=env("CANDLE_INTERVAL", "5m") or "5m",
        history_size=history_size,
        notify_confidence=env_float("NOTIFY_CONFIDENCE", 0.7),
        signal=signal,
    )

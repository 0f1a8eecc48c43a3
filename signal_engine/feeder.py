"""
Signal feeder.

This service keeps a rolling buffer of candles per symbol, evaluates the
trading signal on every cycle and publishes it to the MQTT broker on
topics of the form ``crypto/<symbol>/signal``, where ``symbol`` is the
configured symbol lower-cased with separators removed (``BTC/INR`` ->
``btcinr``).  Candles come from the simulated feed by default or from
Binance when ``FEED=binance``.  See :mod:`signal_engine.config` for the
environment variables.

High-confidence signals are additionally logged at WARNING level as
notifications.  A symbol whose cycle fails is logged and skipped; the
next cycle tries again.
"""
from __future__ import annotations

import asyncio
import json
import re
import threading
import time
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Deque, Dict, Iterable, List, Mapping, Optional, Tuple

import httpx
import numpy as np
import paho.mqtt.client as mqtt

from .config import Settings, load_settings
from .core.mock_feed import generate_mock_candles, update_last_candle
from .core.models import Candle, InvalidParameter, Signal
from .core.ohlc_fetcher import fetch_candles, interval_to_ms
from .core.rules import generate_signal
from .log import get_logger

logger = get_logger("signal_feeder")


class CandleBuffer:
    """
    Bounded, chronologically ordered candle history shared between the
    feed that appends to it and the evaluator that reads it.  Readers get
    an immutable snapshot so the engine never sees a half-applied update.
    """

    def __init__(self, maxlen: int):
        if maxlen <= 0:
            raise InvalidParameter("maxlen must be positive")
        self._candles: Deque[Candle] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._candles)

    def last_timestamp(self) -> Optional[int]:
        with self._lock:
            return self._candles[-1].timestamp if self._candles else None

    def extend(self, candles: Iterable[Candle]) -> None:
        """
        Append newer candles.  A candle with the same timestamp as the
        newest one replaces it (the bucket is still forming); older
        candles are ignored.
        """
        with self._lock:
            for candle in candles:
                if self._candles:
                    last = self._candles[-1].timestamp
                    if candle.timestamp < last:
                        continue
                    if candle.timestamp == last:
                        self._candles[-1] = candle
                        continue
                self._candles.append(candle)

    def replace_all(self, candles: Iterable[Candle]) -> None:
        with self._lock:
            self._candles.clear()
            self._candles.extend(candles)

    def snapshot(self) -> Tuple[Candle, ...]:
        with self._lock:
            return tuple(self._candles)


class MockFeed:
    """Seed each buffer with simulated history, then tick the last candle."""

    def __init__(self, history_size: int, rng: Optional[np.random.Generator] = None):
        self.history_size = history_size
        self.rng = rng or np.random.default_rng()

    def refresh(self, symbol: str, buffer: CandleBuffer) -> None:
        candles = buffer.snapshot()
        if not candles:
            buffer.replace_all(generate_mock_candles(symbol, self.history_size, rng=self.rng))
        else:
            buffer.replace_all(update_last_candle(candles, rng=self.rng))


class BinanceFeed:
    """Pull candles newer than the buffer's last one from Binance."""

    def __init__(
        self,
        interval: str,
        history_size: int,
        fetch: Callable[..., Awaitable[List[Candle]]] = fetch_candles,
    ):
        interval_ms = interval_to_ms(interval)
        if not interval_ms:
            raise ValueError(f"unsupported candle interval {interval!r}")
        self.interval = interval
        self.interval_ms = interval_ms
        self.history_size = history_size
        self._fetch = fetch

    def refresh(self, symbol: str, buffer: CandleBuffer) -> None:
        now = datetime.now(timezone.utc)
        last = buffer.last_timestamp()
        if last is None:
            start = now - timedelta(milliseconds=self.interval_ms * self.history_size)
        else:
            # refetch the newest bucket, it may still have been forming
            start = datetime.fromtimestamp(last / 1000, tz=timezone.utc)
        buffer.extend(asyncio.run(self._fetch(symbol, self.interval, start, now)))


def topic_for(symbol: str) -> str:
    return f"crypto/{re.sub(r'[^a-z0-9]', '', symbol.lower())}/signal"


def signal_payload(symbol: str, signal: Signal, candles: Tuple[Candle, ...]) -> Dict:
    payload = {"symbol": symbol, **signal.to_dict()}
    payload["price"] = candles[-1].close
    payload["ts"] = datetime.now(timezone.utc).isoformat()
    return payload


def run_once(
    client: mqtt.Client,
    feed,
    buffers: Mapping[str, CandleBuffer],
    settings: Settings,
) -> Dict[str, Signal]:
    """
    Refresh, evaluate and publish every symbol once.  Returns the
    signals that were published, keyed by symbol.
    """
    published: Dict[str, Signal] = {}
    for symbol, buffer in buffers.items():
        try:
            feed.refresh(symbol, buffer)
            candles = buffer.snapshot()
            signal = generate_signal(candles, settings.signal)
        except (InvalidParameter, RuntimeError, httpx.HTTPError) as e:
            logger.error("Skipping %s this cycle: %s", symbol, e)
            continue
        payload = signal_payload(symbol, signal, candles)
        topic = topic_for(symbol)
        client.publish(topic, json.dumps(payload))
        logger.debug("Published %s to %s", payload, topic)
        if signal.is_actionable(settings.notify_confidence):
            logger.warning(
                "%s signal for %s - confidence %.0f%%",
                signal.kind.value.upper(),
                symbol,
                signal.confidence * 100,
            )
        published[symbol] = signal
    return published


def build_feed(settings: Settings):
    if settings.feed == "binance":
        return BinanceFeed(settings.candle_interval, settings.history_size)
    return MockFeed(settings.history_size)


def main():
    settings = load_settings()
    client = mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=f"signal-feeder-{int(time.time())}",
    )
    client.connect(settings.mqtt_broker, settings.mqtt_port)
    client.loop_start()
    logger.info("Connected to MQTT broker at %s:%s", settings.mqtt_broker, settings.mqtt_port)
    feed = build_feed(settings)
    buffers = {symbol: CandleBuffer(settings.history_size) for symbol in settings.symbols}
    try:
        while True:
            run_once(client, feed, buffers, settings)
            time.sleep(settings.fetch_interval)
    finally:
        client.loop_stop()
        client.disconnect()


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass

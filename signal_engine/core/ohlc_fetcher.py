# core/ohlc_fetcher.py
"""Fetch historical candles from the public Binance klines endpoint.

Requests are unauthenticated and paginated 1000 candles at a time.
Rate limiting (429) and server errors (5xx) are retried with
exponential backoff; an unknown symbol or interval (400/404) yields an
empty list.  Candles are returned oldest first with epoch-millis
timestamps.
"""
from __future__ import annotations

import asyncio
import datetime as dt
from typing import Dict, List, Optional

import httpx

from ..env import env, env_float, env_int
from ..log import get_logger
from .models import Candle

logger = get_logger("ohlc_fetcher")

# ──────────────────────────────────────────────────────────────────────────────
# Binance config (via env)
# ──────────────────────────────────────────────────────────────────────────────

BINANCE_BASE_URL = (env("BINANCE_BASE_URL", "https://api.binance.com") or "").rstrip("/")
BINANCE_MAX_RETRIES = env_int("BINANCE_MAX_RETRIES", 3)
BINANCE_BACKOFF_BASE_SECS = env_float("BINANCE_BACKOFF_BASE_SECS", 1.5)
PAGE_LIMIT = 1000
PAGE_DELAY_SECS = 0.12

# ──────────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────────

_STABLE_QUOTES = {"USD", "USDT", "USDC", "DAI", "BUSD", "TUSD"}

_NAME_TO_BINANCE_BASE: Dict[str, str] = {
    "bitcoin": "BTC",
    "ethereum": "ETH",
    "litecoin": "LTC",
    "dogecoin": "DOGE",
    "cardano": "ADA",
    "solana": "SOL",
    "ripple": "XRP",
    "polkadot": "DOT",
    "tron": "TRX",
}


def _to_ms(ts: dt.datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=dt.timezone.utc)
    return int(ts.timestamp() * 1000)


def interval_to_ms(interval: str) -> Optional[int]:
    interval = interval.lower()
    unit = interval[-1:]
    try:
        n = int(interval[:-1])
    except ValueError:
        return None
    mult = {"m": 60_000, "h": 3_600_000, "d": 86_400_000, "w": 7 * 86_400_000}.get(unit)
    return None if mult is None or n <= 0 else n * mult


def to_binance_symbol(symbol: str, vs_currency: str = "USDT") -> Optional[str]:
    """
    Map ``BTC/USDT``, ``btc-usdt``, ``BTCUSDT`` or a coin name such as
    ``bitcoin`` to a Binance pair.  Returns None when no mapping exists.
    """
    s = symbol.strip()
    if "/" in s or "-" in s:
        base, _, quote = s.replace("-", "/").partition("/")
        if not base or not quote:
            return None
        quote = quote.upper()
        return f"{base.upper()}{'USDT' if quote == 'USD' else quote}"
    if len(s) >= 6 and s.isalnum() and s == s.upper():
        return s  # already a pair like BTCUSDT
    base = _NAME_TO_BINANCE_BASE.get(s.lower())
    if not base:
        return None
    quote = vs_currency.upper()
    return f"{base}{'USDT' if quote in _STABLE_QUOTES else quote}"


def _row_to_candle(row: List) -> Candle:
    return Candle(
        timestamp=int(row[0]),
        open=float(row[1]),
        high=float(row[2]),
        low=float(row[3]),
        close=float(row[4]),
        volume=float(row[5]),
    )

# ──────────────────────────────────────────────────────────────────────────────
# Binance
# ──────────────────────────────────────────────────────────────────────────────

async def _get_klines(client: httpx.AsyncClient, params: dict) -> Optional[List[List]]:
    """One klines page, or None when Binance rejects the symbol/interval."""
    url = f"{BINANCE_BASE_URL}/api/v3/klines"
    for attempt in range(1, BINANCE_MAX_RETRIES + 1):
        resp = await client.get(url, params=params, timeout=30.0)
        status = resp.status_code

        if status in (400, 404):
            logger.debug("Binance fetch aborted (%s) for %s@%s", status, params["symbol"], params["interval"])
            return None
        if status == 429 or 500 <= status < 600:
            if attempt == BINANCE_MAX_RETRIES:
                raise RuntimeError(f"Binance error {status}: {resp.text or 'rate limited/temporary error'}")
            delay = BINANCE_BACKOFF_BASE_SECS * (2 ** (attempt - 1))
            logger.warning("Binance %s on attempt %s (backoff %.2fs)", status, attempt, delay)
            await asyncio.sleep(delay)
            continue
        if status >= 400:
            raise RuntimeError(f"Binance error {status}: {resp.text}")

        return resp.json()

    raise RuntimeError("Binance request failed after retries.")


async def fetch_candles(
    symbol: str,
    interval: str,
    start: dt.datetime,
    end: dt.datetime,
    vs_currency: str = "USDT",
    client: Optional[httpx.AsyncClient] = None,
) -> List[Candle]:
    """
    Fetch every candle of ``symbol`` opening within ``[start, end]``.

    ``client`` may be supplied to reuse a connection pool; otherwise a
    client is opened and closed around the call.
    """
    binance_symbol = to_binance_symbol(symbol, vs_currency)
    interval_ms = interval_to_ms(interval)
    if not binance_symbol or not interval_ms:
        logger.debug("No Binance mapping for %s@%s", symbol, interval)
        return []

    start_ts = _to_ms(start)
    end_ts = _to_ms(end)
    if start_ts >= end_ts:
        return []

    rows: List[List] = []
    step = interval_ms * PAGE_LIMIT
    owns_client = client is None
    client = client or httpx.AsyncClient()
    try:
        cur_start = start_ts
        while cur_start <= end_ts:
            cur_end = min(cur_start + step - 1, end_ts)
            page = await _get_klines(
                client,
                {
                    "symbol": binance_symbol,
                    "interval": interval,
                    "startTime": cur_start,
                    "endTime": cur_end,
                    "limit": PAGE_LIMIT,
                },
            )
            if page is None:
                return []
            if not page:
                break
            rows.extend(page)

            next_start = int(page[-1][0]) + interval_ms
            if next_start <= cur_start:
                break
            cur_start = next_start
            await asyncio.sleep(PAGE_DELAY_SECS)
    finally:
        if owns_client:
            await client.aclose()

    candles = [_row_to_candle(row) for row in rows if start_ts <= int(row[0]) <= end_ts]
    logger.info("Fetched %d candles for %s@%s", len(candles), binance_symbol, interval)
    return candles

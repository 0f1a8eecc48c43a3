"""
FastAPI application exposing endpoints for candle data, indicator
computation and signal generation.  The API is stateless: every request
carries (or fetches) the full price history it is evaluated on.

Undefined indicator positions (insufficient history) are returned as
``null`` so they can never be mistaken for zero.
"""
from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional

import httpx
import numpy as np
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field, model_validator

from ..core import (
    AVAILABLE_SYMBOLS,
    Candle,
    InvalidParameter,
    SignalConfig,
    candles_to_frame,
    compute_bollinger,
    compute_ema,
    compute_indicator_frame,
    compute_macd,
    compute_rsi,
    compute_sma,
    fetch_candles,
    generate_mock_candles,
    generate_signal,
    series_to_list,
    signal_series,
)
from ..log import get_logger

logger = get_logger("indicator_api")
app = FastAPI(title="Indicator & Signal API")


# ----------------------------------------------------------------------
# Models
# ----------------------------------------------------------------------
class CandleModel(BaseModel):
    timestamp: int = Field(..., description="Bucket open time, epoch millis")
    open: float
    high: float
    low: float
    close: float
    volume: float

    @classmethod
    def from_candle(cls, candle: Candle) -> "CandleModel":
        return cls(**candle.to_dict())

    def to_candle(self) -> Candle:
        return Candle.from_dict(self.model_dump())


class IndicatorRequest(BaseModel):
    prices: List[float] = Field(..., description="Closing prices, oldest first")
    indicators: List[str] = Field(
        ..., description="Indicators: sma20, ema50, rsi14, macd, bollinger"
    )


class SignalConfigModel(BaseModel):
    rsi_period: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    bb_period: int = 20
    bb_std_dev: float = 2.0

    def to_config(self) -> SignalConfig:
        return SignalConfig(**self.model_dump())


class SignalRequest(BaseModel):
    """
    Request payload for signal evaluation: the candle history, oldest
    first, and optionally non-default indicator parameters.
    """
    candles: List[CandleModel] = Field(..., description="Chronological candles")
    config: Optional[SignalConfigModel] = None

    @model_validator(mode="after")
    def _validate_candles(self):
        if not self.candles:
            raise ValueError("at least one candle is required")
        return self


def _as_utc(ts: dt.datetime) -> dt.datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=dt.timezone.utc)
    return ts.astimezone(dt.timezone.utc)


def _parse_request(req: SignalRequest):
    try:
        candles = [c.to_candle() for c in req.candles]
        config = req.config.to_config() if req.config else SignalConfig()
    except InvalidParameter as e:
        raise HTTPException(status_code=400, detail=str(e))
    return candles, config


# ----------------------------------------------------------------------
# Endpoints
# ----------------------------------------------------------------------
@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/data/symbols")
async def list_symbols() -> List[Dict[str, str]]:
    return AVAILABLE_SYMBOLS


@app.get("/data/ohlc", response_model=List[CandleModel])
async def get_ohlc(
    symbol: str = Query(..., description="Trading pair, e.g. BTCUSDT"),
    interval: str = Query("4h", description="Interval: 1m, 5m, 1h, 4h, 1d…"),
    start: dt.datetime = Query(...),
    end: dt.datetime = Query(...),
) -> List[CandleModel]:
    """Return Binance candles for the given range."""
    start, end = _as_utc(start), _as_utc(end)
    if start >= end:
        raise HTTPException(status_code=400, detail="`start` must be before `end`")
    try:
        candles = await fetch_candles(symbol, interval, start, end)
    except (RuntimeError, httpx.HTTPError) as e:
        raise HTTPException(status_code=502, detail=str(e))
    if not candles:
        raise HTTPException(404, detail="No data found")
    return [CandleModel.from_candle(c) for c in candles]


@app.get("/data/mock", response_model=List[CandleModel])
async def get_mock_candles(
    symbol: str = Query("BTC/INR", description="Symbol, e.g. BTC/INR"),
    count: int = Query(100, ge=1, le=5000),
    seed: Optional[int] = Query(None, description="Seed for reproducible candles"),
) -> List[CandleModel]:
    """Return simulated candles for demos."""
    rng = np.random.default_rng(seed)
    return [CandleModel.from_candle(c) for c in generate_mock_candles(symbol, count, rng=rng)]


@app.post("/indicators/compute")
async def compute_indicators(req: IndicatorRequest):
    if not req.indicators:
        raise HTTPException(400, detail="No indicators requested")
    result: Dict[str, Any] = {}
    try:
        for ind in req.indicators:
            key = ind.lower()
            if key == "macd":
                macd_df = compute_macd(req.prices)
                result[key] = {col: series_to_list(macd_df[col]) for col in macd_df.columns}
            elif key == "bollinger":
                bb_df = compute_bollinger(req.prices)
                result[key] = {col: series_to_list(bb_df[col]) for col in bb_df.columns}
            elif key.startswith("sma") and key[3:].isdigit():
                result[key] = series_to_list(compute_sma(req.prices, int(key[3:])))
            elif key.startswith("ema") and key[3:].isdigit():
                result[key] = series_to_list(compute_ema(req.prices, int(key[3:])))
            elif key == "rsi" or (key.startswith("rsi") and key[3:].isdigit()):
                window = int(key[3:]) if len(key) > 3 else 14
                result[key] = series_to_list(compute_rsi(req.prices, window))
            else:
                raise HTTPException(400, detail=f"Unknown indicator {ind}")
    except InvalidParameter as e:
        raise HTTPException(400, detail=str(e))
    return result


@app.post("/signal/generate")
async def run_signal(req: SignalRequest):
    """Evaluate the buy/sell/hold signal on the latest candle."""
    candles, config = _parse_request(req)
    try:
        signal = generate_signal(candles, config)
    except InvalidParameter as e:
        raise HTTPException(400, detail=str(e))
    logger.info(
        "Signal %s (confidence %.2f) over %d candles",
        signal.kind.value,
        signal.confidence,
        len(candles),
    )
    return signal.to_dict()


@app.post("/signal/series")
async def run_signal_series(req: SignalRequest):
    """
    Evaluate the decision table at every candle, returning the signal
    feed together with the indicator series it was derived from.
    """
    candles, config = _parse_request(req)
    try:
        frame = compute_indicator_frame(candles_to_frame(candles)["close"], config)
    except InvalidParameter as e:
        raise HTTPException(400, detail=str(e))
    signals = signal_series(
        frame["close"],
        frame["rsi"],
        frame["macd_line"],
        frame["signal_line"],
        frame["bb_upper"],
        frame["bb_lower"],
    )
    return {
        "timestamps": [c.timestamp for c in candles],
        "signal": signals["signal"].tolist(),
        "confidence": signals["confidence"].tolist(),
        "indicators": {col: series_to_list(frame[col]) for col in frame.columns if col != "close"},
    }

"""Indicator configuration models."""

from __future__ import annotations

from pydantic import BaseModel


class IndicatorConfig(BaseModel):
    """Indicator periods and warm-up requirements."""

    rsi_period: int = 14
    rsi_history_length: int = 20

    ema_fast_period: int = 9
    ema_slow_period: int = 21

    atr_period: int = 14

    # ADX needs a long history before Wilder smoothing settles
    adx_period: int = 14
    adx_min_candles: int = 200

    vwma_fast_period: int = 10
    vwma_slow_period: int = 20

    macd_fast_period: int = 12
    macd_slow_period: int = 26
    macd_signal_period: int = 9

    # Trading-day boundary used by the session VWAP
    session_timezone: str = "Asia/Kolkata"

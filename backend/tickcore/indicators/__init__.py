"""Technical indicators (pure math, no I/O)."""

from tickcore.indicators.indicators import (
    ema,
    sma,
    rsi,
    atr,
    adx,
    macd,
    vwap,
    vwma,
    true_range,
    session_day,
    IndicatorCalculator,
)

__all__ = [
    "ema",
    "sma",
    "rsi",
    "atr",
    "adx",
    "macd",
    "vwap",
    "vwma",
    "true_range",
    "session_day",
    "IndicatorCalculator",
]

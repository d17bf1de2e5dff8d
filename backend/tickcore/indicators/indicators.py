"""Technical indicators for signal evaluation.

All series functions take plain sequences of floats and return a list of
the same length, with NaN where the indicator has no value yet (warm-up,
zero volume, flat range). ``IndicatorCalculator`` turns the latest values
into ``None``-for-missing dicts for the snapshot cache.
"""

import math
from datetime import datetime
from typing import Sequence
from zoneinfo import ZoneInfo

import numpy as np

from tickcore.models.config import IndicatorConfig
from tickcore.models.fast import Candle


def _to_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def _nan_list(n: int) -> list[float]:
    return [math.nan] * n


def ema(values: Sequence[float], period: int) -> list[float]:
    """
    Calculate Exponential Moving Average.

    ema_t = price * k + ema_{t-1} * (1 - k), k = 2 / (period + 1), seeded
    with the simple average of the first ``period`` values.

    Args:
        values: Sequence of price values
        period: EMA period

    Returns:
        List of EMA values (same length as input, NaN for initial values)
    """
    n = len(values)
    if n < period or period <= 0:
        return _nan_list(n)

    arr = _to_array(values)
    k = 2.0 / (period + 1)

    result = np.full(n, np.nan)
    result[period - 1] = np.mean(arr[:period])
    for i in range(period, n):
        result[i] = arr[i] * k + result[i - 1] * (1 - k)

    return result.tolist()


def sma(values: Sequence[float], period: int) -> list[float]:
    """Calculate Simple Moving Average."""
    n = len(values)
    if n < period or period <= 0:
        return _nan_list(n)

    arr = _to_array(values)
    result = np.full(n, np.nan)
    csum = np.cumsum(np.insert(arr, 0, 0.0))
    result[period - 1:] = (csum[period:] - csum[:-period]) / period
    return result.tolist()


def rsi(values: Sequence[float], period: int = 14) -> list[float]:
    """
    Calculate Relative Strength Index with Wilder's smoothing.

    The first value appears at index ``period`` (needs period + 1 closes),
    seeded with the simple averages of the first ``period`` gains and
    losses. Result is always within [0, 100].

    Args:
        values: Sequence of close prices
        period: RSI period

    Returns:
        List of RSI values
    """
    n = len(values)
    if n < period + 1 or period <= 0:
        return _nan_list(n)

    arr = _to_array(values)
    deltas = np.diff(arr)
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    result = np.full(n, np.nan)
    avg_gain = float(np.mean(gains[:period]))
    avg_loss = float(np.mean(losses[:period]))
    result[period] = _rsi_from_averages(avg_gain, avg_loss)

    for i in range(period + 1, n):
        avg_gain = (avg_gain * (period - 1) + gains[i - 1]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i - 1]) / period
        result[i] = _rsi_from_averages(avg_gain, avg_loss)

    return result.tolist()


def _rsi_from_averages(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        # Flat series has no direction
        return 50.0 if avg_gain == 0 else 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def true_range(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
) -> list[float]:
    """
    Calculate True Range.

    TR = max(high - low, abs(high - prev_close), abs(low - prev_close))
    The first bar has no previous close, so TR = high - low.
    """
    n = len(highs)
    if n == 0:
        return []

    h = _to_array(highs)
    l = _to_array(lows)
    c = _to_array(closes)

    tr = h - l
    if n > 1:
        prev_close = c[:-1]
        tr[1:] = np.maximum.reduce([
            h[1:] - l[1:],
            np.abs(h[1:] - prev_close),
            np.abs(l[1:] - prev_close),
        ])
    return tr.tolist()


def atr(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> list[float]:
    """
    Calculate Average True Range (ATR) with Wilder's smoothing.

    Seeded with the mean of the first ``period`` true ranges.
    """
    tr = true_range(highs, lows, closes)
    n = len(tr)
    if n < period or period <= 0:
        return _nan_list(n)

    tr_arr = _to_array(tr)
    result = np.full(n, np.nan)
    result[period - 1] = np.mean(tr_arr[:period])

    for i in range(period, n):
        result[i] = (result[i - 1] * (period - 1) + tr_arr[i]) / period

    return result.tolist()


def vwap(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    volumes: Sequence[float],
    session_keys: Sequence | None = None,
) -> list[float]:
    """
    Calculate Volume Weighted Average Price (VWAP).

    Cumulative sum(typical_price * volume) / sum(volume). When
    ``session_keys`` is given, the accumulation restarts whenever the key
    changes (e.g. the trading day). Bars with zero cumulative volume have
    no value. Each value depends only on bars up to and including itself.

    Args:
        highs: Sequence of high prices
        lows: Sequence of low prices
        closes: Sequence of close prices
        volumes: Sequence of volumes
        session_keys: Optional per-bar session identifiers

    Returns:
        List of VWAP values
    """
    n = len(closes)
    result = _nan_list(n)
    cum_vol = 0.0
    cum_pv = 0.0
    prev_key = None

    for i in range(n):
        if session_keys is not None:
            key = session_keys[i]
            if i > 0 and key != prev_key:
                cum_vol = 0.0
                cum_pv = 0.0
            prev_key = key

        volume = volumes[i]
        if volume > 0:
            tp = (highs[i] + lows[i] + closes[i]) / 3
            cum_vol += volume
            cum_pv += tp * volume

        if cum_vol > 0:
            result[i] = cum_pv / cum_vol

    return result


def vwma(
    closes: Sequence[float],
    volumes: Sequence[float],
    period: int,
) -> list[float]:
    """
    Calculate Volume Weighted Moving Average over a sliding window.

    VWMA = sum(close * volume) / sum(volume) over the last ``period`` bars;
    a window with zero total volume has no value.
    """
    n = len(closes)
    if n < period or period <= 0:
        return _nan_list(n)

    c = _to_array(closes)
    v = np.clip(_to_array(volumes), 0.0, None)
    pv_sum = np.cumsum(np.insert(c * v, 0, 0.0))
    v_sum = np.cumsum(np.insert(v, 0, 0.0))

    window_pv = pv_sum[period:] - pv_sum[:-period]
    window_v = v_sum[period:] - v_sum[:-period]

    result = np.full(n, np.nan)
    with np.errstate(divide="ignore", invalid="ignore"):
        result[period - 1:] = np.where(window_v > 0, window_pv / window_v, np.nan)
    return result.tolist()


def adx(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> tuple[list[float], list[float], list[float]]:
    """
    Calculate ADX, +DI and -DI with Wilder's smoothing.

    +DM/-DM and TR are Wilder-summed over ``period`` bars, giving +DI and
    -DI from index ``period``; ADX is the Wilder average of DX and first
    appears at index ``2 * period - 1``.

    Returns:
        Tuple of (adx, plus_di, minus_di) lists
    """
    n = len(highs)
    adx_out = np.full(n, np.nan)
    plus_out = np.full(n, np.nan)
    minus_out = np.full(n, np.nan)
    if n < 2 * period or period <= 0:
        return adx_out.tolist(), plus_out.tolist(), minus_out.tolist()

    h = _to_array(highs)
    l = _to_array(lows)
    tr = _to_array(true_range(highs, lows, closes))

    up = h[1:] - h[:-1]
    down = l[:-1] - l[1:]
    plus_dm = np.where((up > down) & (up > 0), up, 0.0)
    minus_dm = np.where((down > up) & (down > 0), down, 0.0)

    # Index i in the *_dm arrays corresponds to bar i + 1
    s_tr = float(np.sum(tr[1:period + 1]))
    s_plus = float(np.sum(plus_dm[:period]))
    s_minus = float(np.sum(minus_dm[:period]))

    dx = np.full(n, np.nan)
    for i in range(period, n):
        if i > period:
            s_tr = s_tr - s_tr / period + tr[i]
            s_plus = s_plus - s_plus / period + plus_dm[i - 1]
            s_minus = s_minus - s_minus / period + minus_dm[i - 1]

        if s_tr > 0:
            pdi = 100.0 * s_plus / s_tr
            mdi = 100.0 * s_minus / s_tr
        else:
            pdi = mdi = 0.0
        plus_out[i] = pdi
        minus_out[i] = mdi
        di_sum = pdi + mdi
        dx[i] = 100.0 * abs(pdi - mdi) / di_sum if di_sum > 0 else 0.0

    first = 2 * period - 1
    adx_out[first] = np.mean(dx[period:first + 1])
    for i in range(first + 1, n):
        adx_out[i] = (adx_out[i - 1] * (period - 1) + dx[i]) / period

    return adx_out.tolist(), plus_out.tolist(), minus_out.tolist()


def macd(
    closes: Sequence[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> tuple[list[float], list[float], list[float]]:
    """
    Calculate MACD, its signal line and histogram.

    MACD = EMA(fast) - EMA(slow); signal = EMA(signal_period) of MACD;
    histogram = MACD - signal. Nothing is emitted until
    ``slow_period + signal_period - 1`` closes exist.

    Returns:
        Tuple of (macd, signal, histogram) lists
    """
    n = len(closes)
    if n < slow_period + signal_period - 1:
        return _nan_list(n), _nan_list(n), _nan_list(n)

    fast = _to_array(ema(closes, fast_period))
    slow = _to_array(ema(closes, slow_period))
    line = fast - slow

    start = slow_period - 1
    signal = np.full(n, np.nan)
    signal[start:] = ema(line[start:].tolist(), signal_period)

    ready = ~np.isnan(signal)
    line = np.where(ready, line, np.nan)
    hist = np.where(ready, line - signal, np.nan)
    return line.tolist(), signal.tolist(), hist.tolist()


def session_day(timestamp: float, tz: ZoneInfo) -> str:
    """Trading-day key (YYYY-MM-DD) for a Unix timestamp in a timezone."""
    return datetime.fromtimestamp(timestamp, tz=tz).date().isoformat()


def _latest(values: list[float]) -> float | None:
    """Last value of a series, or None if it is missing."""
    if not values:
        return None
    value = values[-1]
    return value if math.isfinite(value) else None


# =============================================================================
# IndicatorCalculator class
# =============================================================================

class IndicatorCalculator:
    """Calculator for the live and fresh indicator paths."""

    def __init__(self, config: IndicatorConfig | None = None):
        self.config = config or IndicatorConfig()
        self._tz = ZoneInfo(self.config.session_timezone)

    def calculate_live(self, candles: Sequence[Candle]) -> dict:
        """
        Calculate tick-derived indicators from closed + open candles.

        Args:
            candles: Candle sequence, oldest first

        Returns:
            Dict with rsi, rsi_history, ema9, ema21, atr, atr_percent
            (None where not computable)
        """
        cfg = self.config
        closes = [c.close for c in candles]
        highs = [c.high for c in candles]
        lows = [c.low for c in candles]

        rsi_values = [v for v in rsi(closes, cfg.rsi_period) if math.isfinite(v)]
        atr_value = _latest(atr(highs, lows, closes, cfg.atr_period))

        atr_percent = None
        if atr_value is not None and closes and closes[-1] > 0:
            atr_percent = atr_value / closes[-1] * 100

        return {
            "rsi": rsi_values[-1] if rsi_values else None,
            "rsi_history": rsi_values[-cfg.rsi_history_length:],
            "ema9": _latest(ema(closes, cfg.ema_fast_period)),
            "ema21": _latest(ema(closes, cfg.ema_slow_period)),
            "atr": atr_value,
            "atr_percent": atr_percent,
        }

    def calculate_fresh(self, candles: Sequence[Candle], now: float | None = None) -> dict:
        """
        Calculate indicators from refetched historical candles.

        VWAP is restricted to the trading day of ``now`` (or of the last
        candle when ``now`` is not given). ADX needs at least
        ``adx_min_candles`` candles.

        Args:
            candles: Historical candles, oldest first
            now: Current Unix timestamp for the trading-day boundary

        Returns:
            Dict with vwap, vwma10, vwma20, adx, plus_di, minus_di, macd,
            macd_signal, macd_histogram (None where not computable)
        """
        cfg = self.config
        result = {
            "vwap": None,
            "vwma10": None,
            "vwma20": None,
            "adx": None,
            "plus_di": None,
            "minus_di": None,
            "macd": None,
            "macd_signal": None,
            "macd_histogram": None,
        }
        if not candles:
            return result

        closes = [c.close for c in candles]
        volumes = [c.volume for c in candles]

        ref_time = now if now is not None else candles[-1].open_time
        today = session_day(ref_time, self._tz)
        todays = [c for c in candles if session_day(c.open_time, self._tz) == today]
        if todays:
            result["vwap"] = _latest(vwap(
                [c.high for c in todays],
                [c.low for c in todays],
                [c.close for c in todays],
                [c.volume for c in todays],
            ))

        result["vwma10"] = _latest(vwma(closes, volumes, cfg.vwma_fast_period))
        result["vwma20"] = _latest(vwma(closes, volumes, cfg.vwma_slow_period))

        if len(candles) >= cfg.adx_min_candles:
            adx_values, plus_di, minus_di = adx(
                [c.high for c in candles],
                [c.low for c in candles],
                closes,
                cfg.adx_period,
            )
            result["adx"] = _latest(adx_values)
            result["plus_di"] = _latest(plus_di)
            result["minus_di"] = _latest(minus_di)

        line, signal, hist = macd(
            closes,
            cfg.macd_fast_period,
            cfg.macd_slow_period,
            cfg.macd_signal_period,
        )
        result["macd"] = _latest(line)
        result["macd_signal"] = _latest(signal)
        result["macd_histogram"] = _latest(hist)

        return result

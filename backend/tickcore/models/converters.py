"""Converters between wire payloads and hot path models.

Inbound payloads use camelCase keys and epoch milliseconds. Hot path
models use snake_case attributes and Unix seconds. Validation happens
here so that the aggregator only ever sees well-formed ticks and candles.
"""

import math
from datetime import datetime, timezone
from typing import Any, Mapping

from tickcore.models.fast import Candle, Tick
from tickcore.models.snapshot import IndicatorSnapshot


class MalformedTickError(ValueError):
    """Raised when an inbound tick payload cannot be converted."""


class InvalidCandleError(ValueError):
    """Raised when a candle violates the OHLC invariant."""


# =============================================================================
# Timestamp conversion helpers
# =============================================================================

def millis_to_timestamp(ms: float) -> float:
    """Convert epoch milliseconds to Unix seconds."""
    return ms / 1000.0


def timestamp_to_millis(ts: float) -> int:
    """Convert Unix seconds to epoch milliseconds."""
    return int(round(ts * 1000))


def timestamp_to_datetime(ts: float) -> datetime:
    """Convert Unix timestamp to UTC datetime."""
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def _parse_time(value: Any) -> float:
    """Parse an epoch-millis number or an ISO-8601 string to Unix seconds."""
    if isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.timestamp()
    if isinstance(value, datetime):
        return value.timestamp()
    return millis_to_timestamp(float(value))


def _finite(value: Any) -> float | None:
    """Return value as a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


# =============================================================================
# Tick conversions
# =============================================================================

def tick_from_payload(payload: Mapping[str, Any]) -> Tick:
    """Convert an inbound tick record to a Tick.

    Args:
        payload: ``{instrumentId, lastPrice, cumulativeVolume, timestamp,
            dayOpen?, prevClose?}`` with ``timestamp`` in epoch millis

    Returns:
        Tick dataclass

    Raises:
        MalformedTickError: If a required field is missing or invalid
    """
    instrument_id = payload.get("instrumentId")
    if not instrument_id:
        raise MalformedTickError(f"missing instrumentId: {payload!r}")

    price = _finite(payload.get("lastPrice"))
    if price is None or price <= 0:
        raise MalformedTickError(
            f"invalid lastPrice for {instrument_id}: {payload.get('lastPrice')!r}"
        )

    raw_ts = payload.get("timestamp")
    if raw_ts is None:
        raise MalformedTickError(f"missing timestamp for {instrument_id}")
    try:
        timestamp = _parse_time(raw_ts)
    except (TypeError, ValueError) as e:
        raise MalformedTickError(
            f"invalid timestamp for {instrument_id}: {raw_ts!r}"
        ) from e
    if not math.isfinite(timestamp):
        raise MalformedTickError(f"invalid timestamp for {instrument_id}: {raw_ts!r}")

    # Volume is optional; a negative cumulative volume is meaningless
    volume = _finite(payload.get("cumulativeVolume"))
    if volume is not None and volume < 0:
        volume = None

    return Tick(
        instrument_id=str(instrument_id),
        price=price,
        cumulative_volume=volume,
        timestamp=timestamp,
        day_open=_finite(payload.get("dayOpen")),
        prev_close=_finite(payload.get("prevClose")),
    )


# =============================================================================
# Candle conversions
# =============================================================================

def validate_candle(candle: Candle) -> Candle:
    """Return the candle if it satisfies the OHLC invariant.

    Raises:
        InvalidCandleError: If high < low, open/close outside the range,
            or volume is negative
    """
    if not candle.is_consistent():
        raise InvalidCandleError(
            f"inconsistent candle for {candle.instrument_id} at {candle.open_time}: "
            f"O={candle.open} H={candle.high} L={candle.low} C={candle.close} "
            f"V={candle.volume}"
        )
    return candle


def candle_from_payload(instrument_id: str, payload: Mapping[str, Any] | list) -> Candle:
    """Convert a historical candle record to a Candle.

    Accepts either a mapping (``date``/``timestamp``/``openTime`` plus
    ``open``, ``high``, ``low``, ``close``, ``volume``) or a positional
    row ``[time, open, high, low, close, volume]``.

    Raises:
        InvalidCandleError: If a field is missing, not finite, or the
            candle violates the OHLC invariant
    """
    if isinstance(payload, (list, tuple)):
        if len(payload) < 5:
            raise InvalidCandleError(f"short candle row for {instrument_id}: {payload!r}")
        raw_time, o, h, l, c = payload[:5]
        v = payload[5] if len(payload) > 5 else 0
    else:
        raw_time = payload.get("date", payload.get("timestamp", payload.get("openTime")))
        o, h, l, c = (payload.get(k) for k in ("open", "high", "low", "close"))
        v = payload.get("volume", 0)

    values = [_finite(x) for x in (o, h, l, c)]
    if any(x is None for x in values) or raw_time is None:
        raise InvalidCandleError(f"incomplete candle for {instrument_id}: {payload!r}")
    try:
        open_time = _parse_time(raw_time)
    except (TypeError, ValueError) as e:
        raise InvalidCandleError(f"invalid candle time for {instrument_id}: {raw_time!r}") from e

    volume = _finite(v)
    return validate_candle(
        Candle(
            instrument_id=instrument_id,
            open_time=open_time,
            open=values[0],
            high=values[1],
            low=values[2],
            close=values[3],
            volume=volume if volume is not None else 0.0,
        )
    )


# =============================================================================
# Snapshot conversions
# =============================================================================

# Outbound snapshot keys
_SNAPSHOT_KEYS = {
    "rsi": "rsi",
    "rsi_history": "rsiHistory",
    "ema9": "ema9",
    "ema21": "ema21",
    "vwap": "vwap",
    "vwma10": "vwma10",
    "vwma20": "vwma20",
    "adx": "adx",
    "plus_di": "plusDI",
    "minus_di": "minusDI",
    "macd": "macd",
    "macd_signal": "macdSignal",
    "macd_histogram": "macdHistogram",
    "atr": "atr",
    "atr_percent": "atrPercent",
    "ltp": "ltp",
    "day_gap_percent": "dayGapPercent",
}


def snapshot_to_payload(snapshot: IndicatorSnapshot) -> dict:
    """Convert a snapshot to its outbound camelCase representation."""
    data = snapshot.to_dict()
    payload = {wire: data[name] for name, wire in _SNAPSHOT_KEYS.items()}
    payload["timestamp"] = (
        timestamp_to_millis(snapshot.timestamp) if snapshot.timestamp is not None else None
    )
    return payload

"""Indicator snapshot model.

A snapshot is an immutable view of the last known good value of every
indicator field for one instrument. ``None`` means the field has never
been computed.
"""

from dataclasses import asdict, dataclass, fields


@dataclass(frozen=True, slots=True)
class IndicatorSnapshot:
    """Latest indicator values for one instrument."""

    instrument_id: str
    rsi: float | None = None
    rsi_history: tuple[float, ...] = ()
    ema9: float | None = None
    ema21: float | None = None
    vwap: float | None = None
    vwma10: float | None = None
    vwma20: float | None = None
    adx: float | None = None
    plus_di: float | None = None
    minus_di: float | None = None
    macd: float | None = None
    macd_signal: float | None = None
    macd_histogram: float | None = None
    atr: float | None = None
    atr_percent: float | None = None
    ltp: float | None = None
    day_gap_percent: float | None = None
    timestamp: float | None = None  # Unix timestamp of the last update

    def to_dict(self) -> dict:
        """Plain dict (snake_case keys, rsi_history as list)."""
        data = asdict(self)
        data["rsi_history"] = list(self.rsi_history)
        return data


# Indicator fields written through SnapshotCache.set_if_valid
SNAPSHOT_FIELDS: frozenset[str] = frozenset(
    f.name for f in fields(IndicatorSnapshot) if f.name != "instrument_id"
)

# Fields produced by the live (tick-built candles) path
LIVE_FIELDS = ("rsi", "rsi_history", "ema9", "ema21", "atr", "atr_percent")

# Fields produced by the fresh (historical refetch) path
FRESH_FIELDS = (
    "vwap",
    "vwma10",
    "vwma20",
    "adx",
    "plus_di",
    "minus_di",
    "macd",
    "macd_signal",
    "macd_histogram",
)

"""Data models."""

from tickcore.models.fast import Candle, InstrumentState, Tick
from tickcore.models.snapshot import (
    IndicatorSnapshot,
    SNAPSHOT_FIELDS,
    LIVE_FIELDS,
    FRESH_FIELDS,
)
from tickcore.models.decision import (
    CooldownEntry,
    OrderResult,
    Side,
    TradeDecision,
)
from tickcore.models.config import IndicatorConfig
from tickcore.models.converters import (
    InvalidCandleError,
    MalformedTickError,
    candle_from_payload,
    millis_to_timestamp,
    snapshot_to_payload,
    tick_from_payload,
    timestamp_to_datetime,
    timestamp_to_millis,
    validate_candle,
)

__all__ = [
    # Hot path (dataclass)
    "Candle",
    "InstrumentState",
    "Tick",
    "IndicatorSnapshot",
    "SNAPSHOT_FIELDS",
    "LIVE_FIELDS",
    "FRESH_FIELDS",
    "CooldownEntry",
    # Cold path (Pydantic)
    "OrderResult",
    "Side",
    "TradeDecision",
    "IndicatorConfig",
    # Converters
    "InvalidCandleError",
    "MalformedTickError",
    "candle_from_payload",
    "millis_to_timestamp",
    "snapshot_to_payload",
    "tick_from_payload",
    "timestamp_to_datetime",
    "timestamp_to_millis",
    "validate_candle",
]

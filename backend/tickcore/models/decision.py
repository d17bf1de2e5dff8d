"""Trading decision models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class Side(str, Enum):
    """Order side."""

    BUY = "BUY"
    SELL = "SELL"


class TradeDecision(BaseModel):
    """A decision that passed the gate and was handed to the order collaborator."""

    instrument_id: str
    side: Side
    price: float
    reason_code: str
    reasons: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class OrderResult(BaseModel):
    """Result returned by the order collaborator."""

    order_id: str
    status: str = "placed"


@dataclass(slots=True)
class CooldownEntry:
    """Last accepted decision for an instrument.

    Never swept: expiry is evaluated on each gate check.
    """

    instrument_id: str
    last_order_timestamp: float
    last_order_side: Side

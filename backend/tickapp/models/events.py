"""Outbound event envelopes.

Events are serialized with camelCase keys:

    {type: "indicator_snapshot", instrumentId, snapshot, buySignal, sellSignal, timestamp}
    {type: "trade_decision", instrumentId, side, price, reasons, timestamp}
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from tickcore.models import IndicatorSnapshot, TradeDecision, snapshot_to_payload
from tickcore.strategy import Evaluation


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        """Dict with wire (camelCase) keys."""
        return self.model_dump(by_alias=True, mode="json")


class SnapshotEvent(_Event):
    """Latest snapshot for an instrument and whether it currently signals."""

    type: Literal["indicator_snapshot"] = "indicator_snapshot"
    instrument_id: str = Field(alias="instrumentId")
    snapshot: dict[str, Any]
    buy_signal: bool = Field(alias="buySignal")
    sell_signal: bool = Field(alias="sellSignal")
    timestamp: datetime = Field(default_factory=_utcnow)

    @classmethod
    def build(cls, snapshot: IndicatorSnapshot, evaluation: Evaluation) -> SnapshotEvent:
        return cls(
            instrument_id=snapshot.instrument_id,
            snapshot=snapshot_to_payload(snapshot),
            buy_signal=evaluation.buy,
            sell_signal=evaluation.sell,
        )


class DecisionEvent(_Event):
    """A decision admitted by the gate."""

    type: Literal["trade_decision"] = "trade_decision"
    instrument_id: str = Field(alias="instrumentId")
    side: str
    price: float
    reasons: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utcnow)

    @classmethod
    def build(cls, decision: TradeDecision) -> DecisionEvent:
        return cls(
            instrument_id=decision.instrument_id,
            side=decision.side.value,
            price=decision.price,
            reasons=decision.reasons,
            timestamp=decision.timestamp,
        )

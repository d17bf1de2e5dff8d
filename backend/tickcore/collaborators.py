"""Protocols for the external collaborators the engine talks to.

Implementations live in ``tickapp.clients``; tests pass in-memory fakes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Protocol, runtime_checkable

from tickcore.models import Candle, OrderResult, Side

# Candle widths the historical collaborator can serve
CandleInterval = Literal["1m", "5m", "15m", "60m"]

INTERVAL_SECONDS: dict[str, int] = {
    "1m": 60,
    "5m": 300,
    "15m": 900,
    "60m": 3600,
}


@runtime_checkable
class CandleFetcher(Protocol):
    """Source of historical candles."""

    async def fetch_candles(
        self,
        instrument_id: str,
        interval: CandleInterval,
        start: datetime,
        end: datetime,
    ) -> list[Candle]:
        """Fetch candles in ``[start, end]``, oldest first."""
        ...


@runtime_checkable
class OrderSubmitter(Protocol):
    """Places orders with a broker."""

    async def submit(self, instrument_id: str, side: Side, price: float) -> OrderResult:
        """Submit an order. Raises on broker failure."""
        ...

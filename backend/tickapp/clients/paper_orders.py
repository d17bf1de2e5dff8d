"""Simulated order placement."""

import itertools
import logging

from tickcore.models import OrderResult, Side, TradeDecision

logger = logging.getLogger(__name__)


class PaperOrderClient:
    """Order collaborator that records orders instead of sending them.

    Implements ``OrderSubmitter``. Each call gets a sequential id of the
    form ``PAPER-000001``.
    """

    def __init__(self, quantity: int = 1):
        self.quantity = quantity
        self.orders: list[TradeDecision] = []
        self._ids = itertools.count(1)

    async def submit(self, instrument_id: str, side: Side, price: float) -> OrderResult:
        order_id = f"PAPER-{next(self._ids):06d}"
        self.orders.append(
            TradeDecision(
                instrument_id=instrument_id,
                side=side,
                price=price,
                reason_code=order_id,
            )
        )
        logger.info(
            f"[PAPER] {side.value} {self.quantity} x {instrument_id} @ {price} -> {order_id}"
        )
        return OrderResult(order_id=order_id, status="simulated")

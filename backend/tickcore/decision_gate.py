"""Decision gate: per-instrument cooldowns plus a global single-flight lock.

An instrument moves IDLE -> LOCKED on an accepted decision. Two windows
start at that moment:

- ``cooldown_seconds``: no decision of either side for the instrument
- ``same_side_cooldown_seconds``: no decision of the side that just fired

The same-side window defaults to ``cooldown_seconds``, in which case the
instrument simply returns to IDLE once that window has elapsed. At most one
order submission is in flight across all instruments; a decision that
arrives while another is submitting is rejected, not queued.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from tickcore.collaborators import OrderSubmitter
from tickcore.models import CooldownEntry, OrderResult, Side, TradeDecision, timestamp_to_datetime

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 300


class GateStatus(str, Enum):
    """Outcome of a gate check."""

    ACCEPTED = "accepted"
    COOLDOWN = "cooldown"  # instrument traded within a cooldown window
    BUSY = "busy"  # another submission holds the global lock


@dataclass(slots=True)
class GateResult:
    """Result of ``DecisionGate.submit``."""

    status: GateStatus
    decision: TradeDecision | None = None
    order: OrderResult | None = None
    error: str | None = None  # submit failure, decision still accepted
    cooldown_remaining: float = 0.0

    @property
    def accepted(self) -> bool:
        return self.status == GateStatus.ACCEPTED


class DecisionGate:
    """Admits at most one decision per instrument per cooldown window.

    Usage:
        gate = DecisionGate(submitter=PaperOrderClient())
        result = await gate.submit("256265", Side.BUY, 101.5, ["ema9_above_ema21"])
        if result.accepted:
            ...
    """

    def __init__(
        self,
        submitter: OrderSubmitter,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
        same_side_cooldown_seconds: float | None = None,
    ):
        """Initialize the gate.

        Args:
            submitter: Order collaborator
            cooldown_seconds: Minimum spacing between accepted decisions
                for the same instrument, whichever side
            clock: Returns the current Unix timestamp
            same_side_cooldown_seconds: Minimum spacing between accepted
                decisions of the same side for the same instrument
                (defaults to ``cooldown_seconds``)
        """
        self._submitter = submitter
        self.cooldown_seconds = cooldown_seconds
        self.same_side_cooldown_seconds = (
            cooldown_seconds if same_side_cooldown_seconds is None else same_side_cooldown_seconds
        )
        self._clock = clock
        self._cooldowns: dict[str, CooldownEntry] = {}
        self._lock = asyncio.Lock()

    @property
    def in_flight(self) -> bool:
        """True while an order submission holds the global lock."""
        return self._lock.locked()

    def cooldown_remaining(
        self,
        instrument_id: str,
        now: float | None = None,
        side: Side | None = None,
    ) -> float:
        """Seconds until the instrument may trade ``side`` again (0 if idle).

        Without a side, this is the wait before the side that last fired
        may fire again.
        """
        entry = self._cooldowns.get(instrument_id)
        if entry is None:
            return 0.0
        now = self._clock() if now is None else now
        elapsed = now - entry.last_order_timestamp
        remaining = self.cooldown_seconds - elapsed
        if side is None or side == entry.last_order_side:
            remaining = max(remaining, self.same_side_cooldown_seconds - elapsed)
        return max(0.0, remaining)

    def cooldowns(self) -> list[CooldownEntry]:
        """All cooldown entries, including expired ones."""
        return list(self._cooldowns.values())

    def reset(self, instrument_id: str | None = None) -> None:
        """Forget cooldowns for one instrument, or all if None."""
        if instrument_id is not None:
            self._cooldowns.pop(instrument_id, None)
        else:
            self._cooldowns.clear()

    async def submit(
        self,
        instrument_id: str,
        side: Side,
        price: float,
        reasons: list[str] | None = None,
        reason_code: str = "",
    ) -> GateResult:
        """Gate a decision and, if admitted, hand it to the order collaborator.

        The cooldown check, the lock check and the lock acquisition happen
        without yielding to the event loop, so two concurrent callers can
        never both be admitted.

        Returns:
            GateResult; ``accepted`` is True even if the submit call failed
        """
        now = self._clock()
        remaining = self.cooldown_remaining(instrument_id, now, side)
        if remaining > 0:
            logger.debug(
                f"Gate rejected {side.value} {instrument_id}: cooldown {remaining:.0f}s left"
            )
            return GateResult(status=GateStatus.COOLDOWN, cooldown_remaining=remaining)

        if self._lock.locked():
            logger.debug(f"Gate rejected {side.value} {instrument_id}: submission in flight")
            return GateResult(status=GateStatus.BUSY)

        # Uncontended acquire completes without suspending
        await self._lock.acquire()
        try:
            self._cooldowns[instrument_id] = CooldownEntry(
                instrument_id=instrument_id,
                last_order_timestamp=now,
                last_order_side=side,
            )
            decision = TradeDecision(
                instrument_id=instrument_id,
                side=side,
                price=price,
                reason_code=reason_code,
                reasons=list(reasons or []),
                timestamp=timestamp_to_datetime(now),
            )
            logger.info(f"Decision accepted: {side.value} {instrument_id} @ {price} ({reason_code})")

            try:
                order = await self._submitter.submit(instrument_id, side, price)
            except Exception as e:
                logger.error(f"Order submit failed for {instrument_id} {side.value}: {e}")
                return GateResult(status=GateStatus.ACCEPTED, decision=decision, error=str(e))

            logger.info(f"Order placed for {instrument_id}: {order.order_id} ({order.status})")
            return GateResult(status=GateStatus.ACCEPTED, decision=decision, order=order)
        finally:
            self._lock.release()

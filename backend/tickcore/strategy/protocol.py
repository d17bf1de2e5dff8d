"""Signal evaluator protocol.

This module provides:
- Evaluation: Standard return type from evaluating a snapshot
- SignalEvaluator: Runtime-checkable Protocol that evaluators must satisfy
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from tickcore.models import IndicatorSnapshot, Side


# ---------------------------------------------------------------------------
# Evaluation: standard return value from evaluate
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Evaluation:
    """Result of evaluating a snapshot.

    Attributes:
        buy: True if every BUY sub-condition passed.
        sell: True if every SELL sub-condition passed.
        buy_conditions: Each BUY sub-condition by name.
        sell_conditions: Each SELL sub-condition by name.
        reason_code: Short identifier of the evaluator that produced this.
    """

    buy: bool = False
    sell: bool = False
    buy_conditions: dict[str, bool] = field(default_factory=dict)
    sell_conditions: dict[str, bool] = field(default_factory=dict)
    reason_code: str = ""

    @property
    def side(self) -> Side | None:
        """Side to act on, or None. Conflicting BUY and SELL cancel out."""
        if self.buy and not self.sell:
            return Side.BUY
        if self.sell and not self.buy:
            return Side.SELL
        return None

    def reasons(self, side: Side) -> list[str]:
        """Names of the sub-conditions that passed for ``side``."""
        conditions = self.buy_conditions if side == Side.BUY else self.sell_conditions
        return [name for name, passed in conditions.items() if passed]

    def failed(self, side: Side) -> list[str]:
        """Names of the sub-conditions that failed for ``side``."""
        conditions = self.buy_conditions if side == Side.BUY else self.sell_conditions
        return [name for name, passed in conditions.items() if not passed]


# ---------------------------------------------------------------------------
# SignalEvaluator Protocol
# ---------------------------------------------------------------------------
@runtime_checkable
class SignalEvaluator(Protocol):
    """Protocol that all signal evaluators must implement.

    Evaluators are pure: the same snapshot always yields the same
    evaluation, and they never mutate the snapshot.
    """

    @property
    def name(self) -> str:
        """Unique evaluator identifier (e.g., 'momentum_band')."""
        ...

    @property
    def required_fields(self) -> list[str]:
        """Snapshot fields this evaluator reads."""
        ...

    def evaluate(self, snapshot: IndicatorSnapshot) -> Evaluation:
        """Evaluate BUY/SELL eligibility for a snapshot."""
        ...

"""Signal evaluator plugin system.

Public API:
- SignalEvaluator: Protocol that all evaluators must implement
- Evaluation: Standard return type from evaluating a snapshot
- register_evaluator: Decorator to register an evaluator class
- create_evaluator: Factory function to instantiate evaluators by name
- list_evaluators: Discover all registered evaluators
- get_evaluator_class: Get evaluator class by name without instantiating
- build_evaluator: Create an evaluator from a name and a raw params dict

Importing this package auto-registers all built-in evaluators.
"""

from typing import Any

from tickcore.strategy.protocol import Evaluation, SignalEvaluator
from tickcore.strategy.registry import (
    register_evaluator,
    create_evaluator,
    list_evaluators,
    get_evaluator_class,
)

# Import built-in evaluators to trigger auto-registration
import tickcore.strategy.momentum_band  # noqa: F401
import tickcore.strategy.trend_follow  # noqa: F401

from tickcore.strategy.momentum_band import MomentumBandConfig, MomentumBandEvaluator
from tickcore.strategy.trend_follow import TrendFollowConfig, TrendFollowEvaluator

_CONFIG_MODELS = {
    "momentum_band": MomentumBandConfig,
    "trend_follow": TrendFollowConfig,
}


def build_evaluator(name: str, params: dict[str, Any] | None = None):
    """Create an evaluator by name, validating ``params`` into its config model.

    Raises:
        KeyError: If no evaluator is registered under ``name``.
        pydantic.ValidationError: If ``params`` do not fit the config model.
    """
    config_model = _CONFIG_MODELS.get(name)
    if config_model is None:
        return create_evaluator(name)
    return create_evaluator(name, config=config_model(**(params or {})))


__all__ = [
    "Evaluation",
    "SignalEvaluator",
    "register_evaluator",
    "create_evaluator",
    "list_evaluators",
    "get_evaluator_class",
    "build_evaluator",
    "MomentumBandConfig",
    "MomentumBandEvaluator",
    "TrendFollowConfig",
    "TrendFollowEvaluator",
]

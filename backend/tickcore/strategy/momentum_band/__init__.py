"""Momentum band evaluator package.

Importing this package registers MomentumBandEvaluator via the
@register_evaluator decorator.
"""

from tickcore.strategy.momentum_band.evaluator import MomentumBandEvaluator
from tickcore.strategy.momentum_band.models import MomentumBandConfig, MOMENTUM_BAND_NAME

__all__ = [
    "MomentumBandEvaluator",
    "MomentumBandConfig",
    "MOMENTUM_BAND_NAME",
]

"""Trend follow evaluator package."""

from tickcore.strategy.trend_follow.evaluator import TrendFollowEvaluator
from tickcore.strategy.trend_follow.models import TrendFollowConfig, TREND_FOLLOW_NAME

__all__ = [
    "TrendFollowEvaluator",
    "TrendFollowConfig",
    "TREND_FOLLOW_NAME",
]

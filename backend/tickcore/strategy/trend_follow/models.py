"""Trend follow evaluator configuration."""

from pydantic import BaseModel

TREND_FOLLOW_NAME = "trend_follow"


class TrendFollowConfig(BaseModel):
    """Thresholds for the trend follow evaluator."""

    # RSI must sit inside this neutral band (exclusive)
    rsi_floor: float = 30.0
    rsi_ceiling: float = 70.0

    # Optional price filter; None disables it
    max_price: float | None = None

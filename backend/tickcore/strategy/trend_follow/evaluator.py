"""Trend follow evaluator.

Simple trend-following check on the live snapshot:
- EMA9 above EMA21 and LTP above VWAP -> BUY
- EMA9 below EMA21 and LTP below VWAP -> SELL
- Both require RSI inside a neutral band, so entries happen before
  the move is extended.
"""

from tickcore.models import IndicatorSnapshot
from tickcore.strategy.protocol import Evaluation
from tickcore.strategy.registry import register_evaluator
from tickcore.strategy.trend_follow.models import TrendFollowConfig, TREND_FOLLOW_NAME


@register_evaluator(TREND_FOLLOW_NAME)
class TrendFollowEvaluator:
    """EMA/VWAP trend follower with an RSI neutral-band filter."""

    def __init__(self, config: TrendFollowConfig | None = None):
        self.config = config or TrendFollowConfig()

    @property
    def name(self) -> str:
        return TREND_FOLLOW_NAME

    @property
    def required_fields(self) -> list[str]:
        return ["rsi", "ema9", "ema21", "vwap", "ltp"]

    def evaluate(self, snapshot: IndicatorSnapshot) -> Evaluation:
        s = snapshot
        cfg = self.config
        complete = all(
            v is not None for v in (s.rsi, s.ema9, s.ema21, s.vwap, s.ltp)
        )
        if not complete:
            return Evaluation(
                buy_conditions=dict.fromkeys(
                    ("ema9_above_ema21", "ltp_above_vwap", "rsi_neutral", "price_within_limit"),
                    False,
                ),
                sell_conditions=dict.fromkeys(
                    ("ema9_below_ema21", "ltp_below_vwap", "rsi_neutral", "price_within_limit"),
                    False,
                ),
                reason_code=TREND_FOLLOW_NAME,
            )

        rsi_neutral = cfg.rsi_floor < s.rsi < cfg.rsi_ceiling
        within_limit = cfg.max_price is None or s.ltp < cfg.max_price

        buy_conditions = {
            "ema9_above_ema21": s.ema9 > s.ema21,
            "ltp_above_vwap": s.ltp > s.vwap,
            "rsi_neutral": rsi_neutral,
            "price_within_limit": within_limit,
        }
        sell_conditions = {
            "ema9_below_ema21": s.ema9 < s.ema21,
            "ltp_below_vwap": s.ltp < s.vwap,
            "rsi_neutral": rsi_neutral,
            "price_within_limit": within_limit,
        }
        return Evaluation(
            buy=all(buy_conditions.values()),
            sell=all(sell_conditions.values()),
            buy_conditions=buy_conditions,
            sell_conditions=sell_conditions,
            reason_code=TREND_FOLLOW_NAME,
        )

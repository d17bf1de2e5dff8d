"""Momentum band evaluator.

Fires BUY when RSI has just entered the upper momentum band without
having been overbought recently, price averages sit above VWAP in
trend order, and volatility, trend strength and MACD all agree.
SELL mirrors it around the lower band.

This module is pure business logic with no I/O dependencies.
"""

import logging
from collections.abc import Callable

from tickcore.models import IndicatorSnapshot
from tickcore.strategy.momentum_band.models import MomentumBandConfig, MOMENTUM_BAND_NAME
from tickcore.strategy.protocol import Evaluation
from tickcore.strategy.registry import register_evaluator

logger = logging.getLogger(__name__)


def _gt(a: float | None, b: float | None) -> bool:
    """a > b, False when either side is missing."""
    return a is not None and b is not None and a > b


def _prior_samples(history: tuple[float, ...], lookback: int) -> tuple[float, ...] | None:
    """The ``lookback`` RSI samples before the current one, or None if too few."""
    if len(history) < lookback + 1:
        return None
    return history[-(lookback + 1):-1]


@register_evaluator(MOMENTUM_BAND_NAME)
class MomentumBandEvaluator:
    """Eleven-condition BUY/SELL evaluator.

    BUY:
    - buy_rsi_floor < RSI < buy_rsi_ceiling
    - none of the prior ``rsi_lookback`` RSI samples above buy_rsi_ceiling
    - EMA9 > VWAP, EMA21 > VWAP, EMA9 > EMA21
    - ATR% > min_atr_percent, ADX > min_adx, +DI > -DI
    - MACD > signal, histogram > 0

    SELL: the mirror image around the lower band.
    """

    def __init__(self, config: MomentumBandConfig | None = None):
        self.config = config or MomentumBandConfig()

    @property
    def name(self) -> str:
        return MOMENTUM_BAND_NAME

    @property
    def required_fields(self) -> list[str]:
        return [
            "rsi",
            "rsi_history",
            "ema9",
            "ema21",
            "vwap",
            "atr_percent",
            "adx",
            "plus_di",
            "minus_di",
            "macd",
            "macd_signal",
            "macd_histogram",
        ]

    def evaluate(self, snapshot: IndicatorSnapshot) -> Evaluation:
        buy_conditions = self.buy_conditions(snapshot)
        sell_conditions = self.sell_conditions(snapshot)
        return Evaluation(
            buy=all(buy_conditions.values()),
            sell=all(sell_conditions.values()),
            buy_conditions=buy_conditions,
            sell_conditions=sell_conditions,
            reason_code=MOMENTUM_BAND_NAME,
        )

    def buy_conditions(self, s: IndicatorSnapshot) -> dict[str, bool]:
        cfg = self.config
        return {
            "rsi_above_band_floor": _gt(s.rsi, cfg.buy_rsi_floor),
            "rsi_below_band_ceiling": _gt(cfg.buy_rsi_ceiling, s.rsi),
            "rsi_not_recently_overbought": self._lookback_clear(
                s, lambda v: v <= cfg.buy_rsi_ceiling
            ),
            "ema9_above_vwap": _gt(s.ema9, s.vwap),
            "ema21_above_vwap": _gt(s.ema21, s.vwap),
            "ema9_above_ema21": _gt(s.ema9, s.ema21),
            "atr_percent_above_min": _gt(s.atr_percent, cfg.min_atr_percent),
            "adx_above_min": _gt(s.adx, cfg.min_adx),
            "plus_di_above_minus_di": _gt(s.plus_di, s.minus_di),
            "macd_above_signal": _gt(s.macd, s.macd_signal),
            "macd_histogram_positive": _gt(s.macd_histogram, 0.0),
        }

    def sell_conditions(self, s: IndicatorSnapshot) -> dict[str, bool]:
        cfg = self.config
        return {
            "rsi_below_band_ceiling": _gt(cfg.sell_rsi_ceiling, s.rsi),
            "rsi_above_band_floor": _gt(s.rsi, cfg.sell_rsi_floor),
            "rsi_not_recently_oversold": self._lookback_clear(
                s, lambda v: v >= cfg.sell_rsi_floor
            ),
            "ema9_below_vwap": _gt(s.vwap, s.ema9),
            "ema21_below_vwap": _gt(s.vwap, s.ema21),
            "ema9_below_ema21": _gt(s.ema21, s.ema9),
            "atr_percent_above_min": _gt(s.atr_percent, cfg.min_atr_percent),
            "adx_above_min": _gt(s.adx, cfg.min_adx),
            "minus_di_above_plus_di": _gt(s.minus_di, s.plus_di),
            "macd_below_signal": _gt(s.macd_signal, s.macd),
            "macd_histogram_negative": _gt(0.0, s.macd_histogram),
        }

    def _lookback_clear(
        self, s: IndicatorSnapshot, inside: Callable[[float], bool]
    ) -> bool:
        prior = _prior_samples(s.rsi_history, self.config.rsi_lookback)
        if prior is None:
            return False
        return all(inside(v) for v in prior)

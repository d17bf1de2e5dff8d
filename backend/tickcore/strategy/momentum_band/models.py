"""Momentum band evaluator configuration."""

from pydantic import BaseModel

MOMENTUM_BAND_NAME = "momentum_band"


class MomentumBandConfig(BaseModel):
    """Thresholds for the momentum band evaluator."""

    # BUY: RSI inside (buy_rsi_floor, buy_rsi_ceiling)
    buy_rsi_floor: float = 68.0
    buy_rsi_ceiling: float = 80.0

    # SELL: RSI inside (sell_rsi_floor, sell_rsi_ceiling)
    sell_rsi_floor: float = 20.0
    sell_rsi_ceiling: float = 32.0

    # Prior RSI samples (excluding the current) that must stay inside the band
    rsi_lookback: int = 10

    min_atr_percent: float = 0.05
    min_adx: float = 20.0

"""Application configuration."""

from functools import lru_cache
from typing import Any

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tickcore.models import IndicatorConfig
from tickcore.strategy.momentum_band import MOMENTUM_BAND_NAME, MomentumBandConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Instruments subscribed at startup
    instruments: list[str] = []

    # Candles
    candle_interval_seconds: int = 60
    max_candles: int = 500
    # Ticks further ahead of the engine clock are dropped (0 disables)
    max_tick_lead_seconds: float = 3600.0

    # Indicator periods
    rsi_period: int = 14
    rsi_history_length: int = 20
    ema_fast_period: int = 9
    ema_slow_period: int = 21
    atr_period: int = 14
    adx_period: int = 14
    adx_min_candles: int = 200
    vwma_fast_period: int = 10
    vwma_slow_period: int = 20
    macd_fast_period: int = 12
    macd_slow_period: int = 26
    macd_signal_period: int = 9
    session_timezone: str = "Asia/Kolkata"

    # Fresh path (periodic historical refetch)
    fresh_refresh_seconds: float = 60.0
    fresh_lookback_days: int = 15
    fresh_interval: str = "1m"
    fresh_fetch_concurrency: int = 4
    warmup_on_subscribe: bool = True

    # Strategy
    strategy: str = "momentum_band"
    strategy_params: dict[str, Any] = {}

    # Decision gate
    cooldown_seconds: float = 300.0
    # Repeat of the same side; None means cooldown_seconds
    same_side_cooldown_seconds: float | None = None

    # Instruments without a tick for this long are reported as stale
    stale_after_seconds: float = 120.0

    # Historical data API
    history_base_url: str = "https://api.kite.trade"
    history_api_key: str = ""

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    @model_validator(mode="after")
    def _validate(self):
        if self.strategy == MOMENTUM_BAND_NAME:
            lookback = MomentumBandConfig(**self.strategy_params).rsi_lookback
            if self.rsi_history_length < lookback + 1:
                raise ValueError(
                    f"rsi_history_length ({self.rsi_history_length}) must be at least "
                    f"rsi_lookback + 1 ({lookback + 1}) for strategy '{self.strategy}'"
                )
        return self

    def indicator_config(self) -> IndicatorConfig:
        """Indicator periods as the core config model."""
        return IndicatorConfig(
            rsi_period=self.rsi_period,
            rsi_history_length=self.rsi_history_length,
            ema_fast_period=self.ema_fast_period,
            ema_slow_period=self.ema_slow_period,
            atr_period=self.atr_period,
            adx_period=self.adx_period,
            adx_min_candles=self.adx_min_candles,
            vwma_fast_period=self.vwma_fast_period,
            vwma_slow_period=self.vwma_slow_period,
            macd_fast_period=self.macd_fast_period,
            macd_slow_period=self.macd_slow_period,
            macd_signal_period=self.macd_signal_period,
            session_timezone=self.session_timezone,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

"""Tests for signal evaluators and the evaluator registry."""

from dataclasses import replace

import pytest

from tickcore.models import IndicatorSnapshot, Side
from tickcore.strategy import (
    Evaluation,
    MomentumBandConfig,
    MomentumBandEvaluator,
    SignalEvaluator,
    TrendFollowConfig,
    TrendFollowEvaluator,
    build_evaluator,
    create_evaluator,
    get_evaluator_class,
    list_evaluators,
    register_evaluator,
)


def buy_snapshot(**overrides) -> IndicatorSnapshot:
    """Snapshot that satisfies every BUY condition."""
    snapshot = IndicatorSnapshot(
        instrument_id="256265",
        rsi=72.0,
        rsi_history=tuple([70.0] * 10 + [72.0]),
        ema9=105.0,
        ema21=104.0,
        vwap=103.0,
        atr_percent=0.2,
        adx=25.0,
        plus_di=30.0,
        minus_di=15.0,
        macd=1.2,
        macd_signal=1.0,
        macd_histogram=0.2,
        ltp=105.5,
    )
    return replace(snapshot, **overrides)


def sell_snapshot(**overrides) -> IndicatorSnapshot:
    """Snapshot that satisfies every SELL condition."""
    snapshot = IndicatorSnapshot(
        instrument_id="256265",
        rsi=28.0,
        rsi_history=tuple([30.0] * 10 + [28.0]),
        ema9=97.0,
        ema21=98.0,
        vwap=99.0,
        atr_percent=0.2,
        adx=25.0,
        plus_di=12.0,
        minus_di=30.0,
        macd=-1.2,
        macd_signal=-1.0,
        macd_histogram=-0.2,
        ltp=96.5,
    )
    return replace(snapshot, **overrides)


class TestMomentumBandBuy:
    def test_all_conditions_pass(self):
        evaluation = MomentumBandEvaluator().evaluate(buy_snapshot())

        assert evaluation.buy is True
        assert evaluation.sell is False
        assert evaluation.side == Side.BUY
        assert len(evaluation.buy_conditions) == 11
        assert all(evaluation.buy_conditions.values())
        assert evaluation.reasons(Side.BUY) == list(evaluation.buy_conditions)
        assert evaluation.reason_code == "momentum_band"

    @pytest.mark.parametrize(
        "overrides, failed",
        [
            ({"rsi": 68.0}, "rsi_above_band_floor"),
            ({"rsi": 80.0}, "rsi_below_band_ceiling"),
            ({"rsi_history": tuple([70.0] * 9 + [85.0, 72.0])}, "rsi_not_recently_overbought"),
            ({"rsi_history": tuple([70.0] * 9 + [72.0])}, "rsi_not_recently_overbought"),
            ({"vwap": 104.5}, "ema21_above_vwap"),
            ({"ema9": 103.5, "ema21": 103.8}, "ema9_above_ema21"),
            ({"atr_percent": 0.05}, "atr_percent_above_min"),
            ({"adx": 20.0}, "adx_above_min"),
            ({"plus_di": 15.0}, "plus_di_above_minus_di"),
            ({"macd": 0.9}, "macd_above_signal"),
            ({"macd_histogram": 0.0}, "macd_histogram_positive"),
        ],
    )
    def test_each_condition_blocks_buy(self, overrides, failed):
        evaluation = MomentumBandEvaluator().evaluate(buy_snapshot(**overrides))

        assert evaluation.buy is False
        assert failed in evaluation.failed(Side.BUY)

    def test_overbought_sample_before_lookback_window_ignored(self):
        """Only the 10 samples before the current one are checked."""
        history = tuple([90.0] + [70.0] * 10 + [72.0])
        evaluation = MomentumBandEvaluator().evaluate(buy_snapshot(rsi_history=history))

        assert evaluation.buy is True

    @pytest.mark.parametrize(
        "field",
        ["rsi", "ema9", "ema21", "vwap", "atr_percent", "adx", "plus_di", "minus_di",
         "macd", "macd_signal", "macd_histogram"],
    )
    def test_missing_field_blocks_buy(self, field):
        evaluation = MomentumBandEvaluator().evaluate(buy_snapshot(**{field: None}))

        assert evaluation.buy is False
        assert evaluation.sell is False

    def test_empty_snapshot(self):
        evaluation = MomentumBandEvaluator().evaluate(IndicatorSnapshot(instrument_id="x"))

        assert not any(evaluation.buy_conditions.values())
        assert not any(evaluation.sell_conditions.values())
        assert evaluation.side is None


class TestMomentumBandSell:
    def test_all_conditions_pass(self):
        evaluation = MomentumBandEvaluator().evaluate(sell_snapshot())

        assert evaluation.sell is True
        assert evaluation.buy is False
        assert evaluation.side == Side.SELL
        assert len(evaluation.sell_conditions) == 11

    @pytest.mark.parametrize(
        "overrides, failed",
        [
            ({"rsi": 32.0}, "rsi_below_band_ceiling"),
            ({"rsi": 20.0}, "rsi_above_band_floor"),
            ({"rsi_history": tuple([30.0] * 9 + [15.0, 28.0])}, "rsi_not_recently_oversold"),
            ({"vwap": 96.0}, "ema9_below_vwap"),
            ({"ema9": 98.5}, "ema9_below_ema21"),
            ({"minus_di": 10.0}, "minus_di_above_plus_di"),
            ({"macd": -0.9}, "macd_below_signal"),
            ({"macd_histogram": 0.1}, "macd_histogram_negative"),
        ],
    )
    def test_each_condition_blocks_sell(self, overrides, failed):
        evaluation = MomentumBandEvaluator().evaluate(sell_snapshot(**overrides))

        assert evaluation.sell is False
        assert failed in evaluation.failed(Side.SELL)


class TestMomentumBandConfig:
    def test_custom_thresholds(self):
        evaluator = MomentumBandEvaluator(MomentumBandConfig(min_adx=30.0))

        assert evaluator.evaluate(buy_snapshot()).buy is False
        assert evaluator.evaluate(buy_snapshot(adx=31.0)).buy is True

    def test_pure(self):
        snapshot = buy_snapshot()
        evaluator = MomentumBandEvaluator()

        assert evaluator.evaluate(snapshot) == evaluator.evaluate(snapshot)
        assert snapshot == buy_snapshot()


class TestTrendFollow:
    def test_buy(self):
        snapshot = IndicatorSnapshot(
            instrument_id="256265", rsi=55.0, ema9=101.0, ema21=100.0, vwap=100.5, ltp=101.2
        )
        evaluation = TrendFollowEvaluator().evaluate(snapshot)

        assert evaluation.side == Side.BUY

    def test_sell(self):
        snapshot = IndicatorSnapshot(
            instrument_id="256265", rsi=45.0, ema9=99.0, ema21=100.0, vwap=99.5, ltp=98.9
        )
        assert TrendFollowEvaluator().evaluate(snapshot).side == Side.SELL

    def test_extended_rsi_blocks(self):
        snapshot = IndicatorSnapshot(
            instrument_id="256265", rsi=75.0, ema9=101.0, ema21=100.0, vwap=100.5, ltp=101.2
        )
        assert TrendFollowEvaluator().evaluate(snapshot).buy is False

    def test_price_limit(self):
        snapshot = IndicatorSnapshot(
            instrument_id="256265", rsi=55.0, ema9=101.0, ema21=100.0, vwap=100.5, ltp=101.2
        )
        evaluator = TrendFollowEvaluator(TrendFollowConfig(max_price=100.0))

        assert evaluator.evaluate(snapshot).buy is False

    def test_missing_fields(self):
        evaluation = TrendFollowEvaluator().evaluate(IndicatorSnapshot(instrument_id="x"))

        assert evaluation.side is None
        assert not any(evaluation.buy_conditions.values())


class TestRegistry:
    def test_builtins_registered(self):
        names = list_evaluators()

        assert "momentum_band" in names
        assert "trend_follow" in names
        assert get_evaluator_class("momentum_band") is MomentumBandEvaluator

    def test_create_by_name(self):
        evaluator = create_evaluator("trend_follow")

        assert isinstance(evaluator, TrendFollowEvaluator)
        assert isinstance(evaluator, SignalEvaluator)

    def test_unknown_name(self):
        with pytest.raises(KeyError):
            create_evaluator("does_not_exist")

    def test_duplicate_registration(self):
        with pytest.raises(ValueError):
            @register_evaluator("momentum_band")
            class Duplicate:
                pass

    def test_build_with_params(self):
        evaluator = build_evaluator("momentum_band", {"min_adx": 35.0})

        assert evaluator.config.min_adx == 35.0
        assert evaluator.config.buy_rsi_floor == 68.0

    def test_conflicting_sides_cancel(self):
        evaluation = Evaluation(buy=True, sell=True)
        assert evaluation.side is None

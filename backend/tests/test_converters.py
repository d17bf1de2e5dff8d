"""Tests for wire payload converters."""

import math

import pytest

from tickcore.models import (
    Candle,
    IndicatorSnapshot,
    InvalidCandleError,
    MalformedTickError,
    candle_from_payload,
    millis_to_timestamp,
    snapshot_to_payload,
    tick_from_payload,
    timestamp_to_millis,
    validate_candle,
)


class TestTickFromPayload:
    def test_valid(self):
        tick = tick_from_payload({
            "instrumentId": "256265",
            "lastPrice": 21450.5,
            "cumulativeVolume": 120000,
            "timestamp": 1_704_168_000_500,
            "dayOpen": 21400.0,
            "prevClose": 21300.0,
        })

        assert tick.instrument_id == "256265"
        assert tick.price == 21450.5
        assert tick.cumulative_volume == 120000.0
        assert tick.timestamp == pytest.approx(1_704_168_000.5)
        assert tick.day_open == 21400.0
        assert tick.prev_close == 21300.0

    def test_numeric_instrument_id_becomes_string(self):
        tick = tick_from_payload({"instrumentId": 256265, "lastPrice": 1.0, "timestamp": 0})
        assert tick.instrument_id == "256265"

    def test_iso_timestamp(self):
        tick = tick_from_payload({
            "instrumentId": "A",
            "lastPrice": 1.0,
            "timestamp": "2024-01-02T04:00:00Z",
        })
        assert tick.timestamp == 1_704_168_000.0

    @pytest.mark.parametrize(
        "payload",
        [
            {"lastPrice": 1.0, "timestamp": 0},
            {"instrumentId": "A", "timestamp": 0},
            {"instrumentId": "A", "lastPrice": 0, "timestamp": 0},
            {"instrumentId": "A", "lastPrice": "abc", "timestamp": 0},
            {"instrumentId": "A", "lastPrice": math.nan, "timestamp": 0},
            {"instrumentId": "A", "lastPrice": 1.0},
            {"instrumentId": "A", "lastPrice": 1.0, "timestamp": "not a time"},
        ],
    )
    def test_malformed(self, payload):
        with pytest.raises(MalformedTickError):
            tick_from_payload(payload)

    def test_negative_volume_dropped(self):
        tick = tick_from_payload({
            "instrumentId": "A",
            "lastPrice": 1.0,
            "cumulativeVolume": -5,
            "timestamp": 0,
        })
        assert tick.cumulative_volume is None


class TestCandleFromPayload:
    def test_row(self):
        candle = candle_from_payload(
            "256265", ["2024-01-02T09:30:00+05:30", 100, 102, 99, 101, 5000]
        )

        assert candle.open_time == 1_704_168_000.0
        assert (candle.open, candle.high, candle.low, candle.close) == (100, 102, 99, 101)
        assert candle.volume == 5000

    def test_mapping(self):
        candle = candle_from_payload("256265", {
            "timestamp": 1_704_168_000_000,
            "open": 100,
            "high": 102,
            "low": 99,
            "close": 101,
        })

        assert candle.open_time == 1_704_168_000.0
        assert candle.volume == 0.0

    @pytest.mark.parametrize(
        "row",
        [
            ["2024-01-02T09:30:00+05:30", 100, 98, 99, 101, 10],
            ["2024-01-02T09:30:00+05:30", 100, 102, 99, 103, 10],
            ["2024-01-02T09:30:00+05:30", 100, 102, 99, 101, -1],
            ["2024-01-02T09:30:00+05:30", 100, 102],
            [None, 100, 102, 99, 101, 10],
            ["garbage", 100, 102, 99, 101, 10],
        ],
    )
    def test_invalid(self, row):
        with pytest.raises(InvalidCandleError):
            candle_from_payload("256265", row)

    def test_validate_candle(self):
        good = Candle(instrument_id="A", open_time=0, open=1, high=2, low=0.5, close=1.5)
        assert validate_candle(good) is good


class TestSnapshotToPayload:
    def test_camel_case_keys(self):
        snapshot = IndicatorSnapshot(
            instrument_id="256265",
            rsi=55.0,
            rsi_history=(50.0, 55.0),
            plus_di=20.0,
            minus_di=10.0,
            macd_signal=0.5,
            atr_percent=0.3,
            timestamp=1_704_168_000.25,
        )

        payload = snapshot_to_payload(snapshot)

        assert payload["rsi"] == 55.0
        assert payload["rsiHistory"] == [50.0, 55.0]
        assert payload["plusDI"] == 20.0
        assert payload["minusDI"] == 10.0
        assert payload["macdSignal"] == 0.5
        assert payload["atrPercent"] == 0.3
        assert payload["vwap"] is None
        assert payload["timestamp"] == 1_704_168_000_250

    def test_timestamp_helpers(self):
        assert millis_to_timestamp(1500) == 1.5
        assert timestamp_to_millis(1.5) == 1500

"""Tests for the candle aggregator."""

import pytest

from tickcore.candle_aggregator import CandleAggregator
from tickcore.models import Candle, Tick

# 2023-11-14 22:14:00 UTC, a minute boundary
T = 1_700_000_040.0


def make_tick(
    instrument_id: str = "256265",
    price: float = 100.0,
    cumulative_volume: float | None = 1000.0,
    timestamp: float = T,
    day_open: float | None = None,
    prev_close: float | None = None,
) -> Tick:
    """Helper to create a tick."""
    return Tick(
        instrument_id=instrument_id,
        price=price,
        cumulative_volume=cumulative_volume,
        timestamp=timestamp,
        day_open=day_open,
        prev_close=prev_close,
    )


def make_candle(
    open_time: float,
    close: float = 100.0,
    high: float | None = None,
    low: float | None = None,
    volume: float = 10.0,
    instrument_id: str = "256265",
) -> Candle:
    """Helper to create a candle."""
    return Candle(
        instrument_id=instrument_id,
        open_time=open_time,
        open=close,
        high=high if high is not None else close + 1,
        low=low if low is not None else close - 1,
        close=close,
        volume=volume,
    )


class TestIngest:
    """Tests for folding ticks into candles."""

    def test_first_tick_opens_candle(self):
        """First tick opens a candle with OHLC = price and zero volume."""
        aggregator = CandleAggregator()

        result = aggregator.ingest(make_tick(price=100.0, timestamp=T + 5))

        assert result.accepted is True
        assert result.candle_sealed is False
        state = aggregator.get_state("256265")
        assert state.current.open_time == T
        assert state.current.open == state.current.high == 100.0
        assert state.current.low == state.current.close == 100.0
        assert state.current.volume == 0.0
        assert state.current.tick_count == 1
        assert state.volume_baseline == 1000.0
        assert state.last_tick_timestamp == T + 5

    def test_same_bucket_updates_ohlc_and_volume(self):
        """Ticks in the same bucket update high/low/close and add volume deltas."""
        aggregator = CandleAggregator()

        aggregator.ingest(make_tick(price=100.0, cumulative_volume=1000, timestamp=T))
        aggregator.ingest(make_tick(price=102.0, cumulative_volume=1050, timestamp=T + 10))
        aggregator.ingest(make_tick(price=99.0, cumulative_volume=1080, timestamp=T + 20))
        aggregator.ingest(make_tick(price=101.0, cumulative_volume=1100, timestamp=T + 30))

        candle = aggregator.get_state("256265").current
        assert candle.open == 100.0
        assert candle.high == 102.0
        assert candle.low == 99.0
        assert candle.close == 101.0
        assert candle.volume == 100.0
        assert candle.tick_count == 4

    def test_seals_candle_on_new_bucket(self):
        """A tick at T+61s seals the candle for [T, T+60) and opens the next."""
        aggregator = CandleAggregator()

        aggregator.ingest(make_tick(price=100.0, cumulative_volume=1000, timestamp=T))
        aggregator.ingest(make_tick(price=103.0, cumulative_volume=1040, timestamp=T + 30))
        result = aggregator.ingest(make_tick(price=104.0, cumulative_volume=1060, timestamp=T + 61))

        assert result.candle_sealed is True
        assert result.sealed.open_time == T
        assert result.sealed.close == 103.0
        assert result.sealed.volume == 40.0

        state = aggregator.get_state("256265")
        assert len(state.history) == 1
        assert state.current.open_time == T + 60
        assert state.current.open == 104.0
        assert state.current.volume == 0.0
        assert state.volume_baseline == 1060.0

    def test_cumulative_volume_never_goes_backwards(self):
        """A lower cumulative volume contributes nothing and keeps the baseline."""
        aggregator = CandleAggregator()

        aggregator.ingest(make_tick(cumulative_volume=1000, timestamp=T))
        aggregator.ingest(make_tick(cumulative_volume=1050, timestamp=T + 10))
        aggregator.ingest(make_tick(cumulative_volume=1020, timestamp=T + 20))
        aggregator.ingest(make_tick(cumulative_volume=1060, timestamp=T + 30))

        state = aggregator.get_state("256265")
        assert state.current.volume == 60.0
        assert state.volume_baseline == 1060.0

    def test_missing_volume_updates_price_only(self):
        """Ticks without cumulative volume still move the price."""
        aggregator = CandleAggregator()

        aggregator.ingest(make_tick(price=100.0, cumulative_volume=None, timestamp=T))
        aggregator.ingest(make_tick(price=105.0, cumulative_volume=None, timestamp=T + 10))

        candle = aggregator.get_state("256265").current
        assert candle.high == 105.0
        assert candle.volume == 0.0

    def test_stale_tick_ignored(self):
        """A tick older than the open candle does not mutate sealed candles."""
        aggregator = CandleAggregator()

        aggregator.ingest(make_tick(price=100.0, timestamp=T))
        aggregator.ingest(make_tick(price=101.0, timestamp=T + 61))
        sealed_before = aggregator.get_state("256265").history[0]
        sealed_close = sealed_before.close

        result = aggregator.ingest(make_tick(price=150.0, timestamp=T + 30))

        assert result.accepted is False
        state = aggregator.get_state("256265")
        assert state.history[0].close == sealed_close
        assert state.current.high == 101.0
        assert state.last_tick_timestamp == T + 61

    def test_history_bounded(self):
        """Sealed history keeps only the newest max_candles, oldest dropped first."""
        aggregator = CandleAggregator(max_candles=3)

        for i in range(6):
            aggregator.ingest(make_tick(price=100.0 + i, timestamp=T + 60 * i))

        state = aggregator.get_state("256265")
        assert len(state.history) == 3
        assert [c.close for c in state.history] == [102.0, 103.0, 104.0]
        assert state.current.close == 105.0

    def test_instruments_are_independent(self):
        """Each instrument has its own open candle."""
        aggregator = CandleAggregator()

        aggregator.ingest(make_tick(instrument_id="A", price=10.0, timestamp=T))
        aggregator.ingest(make_tick(instrument_id="B", price=20.0, timestamp=T + 61))

        assert aggregator.get_state("A").current.close == 10.0
        assert aggregator.get_state("B").current.close == 20.0
        assert sorted(aggregator.instruments()) == ["A", "B"]

    def test_day_open_and_prev_close_captured(self):
        """Ticks that carry day open / previous close update the state."""
        aggregator = CandleAggregator()

        aggregator.ingest(make_tick(timestamp=T, day_open=105.0, prev_close=100.0))
        aggregator.ingest(make_tick(timestamp=T + 5))

        state = aggregator.get_state("256265")
        assert state.day_open == 105.0
        assert state.prev_close == 100.0
        assert state.day_gap_percent == pytest.approx(5.0)


class TestPrefill:
    """Tests for warm-up prefill."""

    def test_prefill_sorts_and_bounds(self):
        aggregator = CandleAggregator(max_candles=3)
        candles = [make_candle(T - 60 * i, close=100.0 + i) for i in range(1, 6)]

        added = aggregator.prefill("256265", candles)

        state = aggregator.get_state("256265")
        assert added == 5
        assert len(state.history) == 3
        opens = [c.open_time for c in state.history]
        assert opens == sorted(opens)
        assert opens[-1] == T - 60

    def test_prefill_skips_candles_at_or_after_open_candle(self):
        aggregator = CandleAggregator()
        aggregator.ingest(make_tick(timestamp=T))

        added = aggregator.prefill(
            "256265",
            [make_candle(T - 60), make_candle(T), make_candle(T + 60)],
        )

        assert added == 1
        assert [c.open_time for c in aggregator.get_state("256265").history] == [T - 60]

    def test_prefill_rejects_invalid_and_duplicate_candles(self):
        aggregator = CandleAggregator()
        bad = Candle(
            instrument_id="256265",
            open_time=T - 120,
            open=100.0,
            high=99.0,
            low=101.0,
            close=100.0,
        )

        added = aggregator.prefill("256265", [make_candle(T - 60), make_candle(T - 60), bad])

        assert added == 1

    def test_tick_in_prefilled_bucket_reopens_candle(self):
        """A warm-up that includes the unfinished bucket never duplicates it."""
        aggregator = CandleAggregator()
        aggregator.prefill(
            "256265",
            [make_candle(T - 120), make_candle(T - 60), make_candle(T, close=100.0)],
        )

        first = aggregator.ingest(make_tick(price=102.0, cumulative_volume=1000.0, timestamp=T + 10))
        aggregator.ingest(make_tick(price=101.0, cumulative_volume=1005.0, timestamp=T + 20))

        state = aggregator.get_state("256265")
        assert first.accepted is True
        assert first.candle_sealed is False
        assert [c.open_time for c in state.history] == [T - 120, T - 60]
        assert state.current.open_time == T
        assert state.current.open == 100.0
        assert state.current.high == 102.0
        assert state.current.close == 101.0
        assert state.current.volume == 15.0

        result = aggregator.ingest(make_tick(price=103.0, cumulative_volume=1010.0, timestamp=T + 70))

        assert result.sealed.open_time == T
        opens = [c.open_time for c in state.history]
        assert opens == [T - 120, T - 60, T]
        assert len(set(opens)) == len(opens)

    def test_tick_older_than_prefilled_history_is_stale(self):
        aggregator = CandleAggregator()
        aggregator.prefill("256265", [make_candle(T - 60), make_candle(T)])

        result = aggregator.ingest(make_tick(price=150.0, timestamp=T - 30))

        state = aggregator.get_state("256265")
        assert result.accepted is False
        assert state.current is None
        assert [c.close for c in state.history] == [100.0, 100.0]

    def test_reset(self):
        aggregator = CandleAggregator()
        aggregator.ingest(make_tick(instrument_id="A", timestamp=T))
        aggregator.ingest(make_tick(instrument_id="B", timestamp=T))

        aggregator.reset("A")
        assert aggregator.get_state("A") is None
        assert aggregator.get_state("B") is not None

        aggregator.reset()
        assert aggregator.instruments() == []

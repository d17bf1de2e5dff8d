"""Candle aggregator for building 1-minute candles from live ticks.

Aggregation rules:
- Bucket = tick timestamp truncated to the interval boundary
- Same bucket as the open candle: update high/low/close and add the
  cumulative volume delta (clamped to >= 0)
- Newer bucket: seal the open candle into history and open a new one,
  using the tick's cumulative volume as the new baseline
- Older bucket: stale tick, ignored (sealed candles are never mutated)

With no open candle (after a warm-up), ticks are compared against the newest
prefilled candle instead. A tick in that same bucket reopens it, since
historical data fetched mid-interval includes the unfinished candle.
"""

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Iterator

from tickcore.models import Candle, InstrumentState, Tick, InvalidCandleError, validate_candle

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60


@dataclass(slots=True)
class IngestResult:
    """Result of ingesting a tick."""

    accepted: bool
    sealed: Candle | None = None  # Candle sealed by this tick, if any

    @property
    def candle_sealed(self) -> bool:
        return self.sealed is not None


class CandleAggregator:
    """Folds ticks into fixed-width OHLCV candles per instrument.

    Not safe for concurrent mutation of the same instrument; callers
    serialize ingestion per instrument.

    Usage:
        aggregator = CandleAggregator(max_candles=500)
        result = aggregator.ingest(tick)
        if result.candle_sealed:
            recompute(aggregator.get_state(tick.instrument_id).candles())
    """

    def __init__(
        self,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
        max_candles: int = 500,
    ):
        """Initialize the aggregator.

        Args:
            interval_seconds: Candle width in seconds
            max_candles: Maximum sealed candles kept per instrument
        """
        self.interval_seconds = interval_seconds
        self.max_candles = max_candles

        # Per-instrument rolling state: {instrument_id: InstrumentState}
        self._states: dict[str, InstrumentState] = {}

        logger.info(
            f"CandleAggregator initialized: interval={interval_seconds}s, "
            f"max_candles={max_candles}"
        )

    def bucket_start(self, timestamp: float) -> float:
        """Get the bucket start timestamp for a tick timestamp."""
        return float((int(timestamp) // self.interval_seconds) * self.interval_seconds)

    def ensure_state(self, instrument_id: str) -> InstrumentState:
        """Get or create the state for an instrument."""
        state = self._states.get(instrument_id)
        if state is None:
            state = InstrumentState(instrument_id=instrument_id, max_candles=self.max_candles)
            self._states[instrument_id] = state
        return state

    def get_state(self, instrument_id: str) -> InstrumentState | None:
        return self._states.get(instrument_id)

    def states(self) -> Iterator[InstrumentState]:
        return iter(list(self._states.values()))

    def instruments(self) -> list[str]:
        return list(self._states.keys())

    def ingest(self, tick: Tick) -> IngestResult:
        """Fold a tick into its instrument's open candle.

        Args:
            tick: A validated tick

        Returns:
            IngestResult with ``sealed`` set when this tick closed a candle
        """
        state = self.ensure_state(tick.instrument_id)
        bucket = self.bucket_start(tick.timestamp)
        current = state.current
        newest = current if current is not None else (state.history[-1] if state.history else None)

        if newest is not None and bucket < newest.open_time:
            logger.debug(
                f"Stale tick for {tick.instrument_id}: bucket {bucket} < "
                f"newest candle {newest.open_time}"
            )
            return IngestResult(accepted=False)

        sealed = None
        if current is not None and bucket == current.open_time:
            current.apply_price(tick.price)
            self._add_volume(state, tick.cumulative_volume)
        elif current is None and newest is not None and bucket == newest.open_time:
            # Reopen the prefilled candle for this bucket
            state.current = replace(state.history.pop())
            state.current.apply_price(tick.price)
            state.volume_baseline = tick.cumulative_volume
            logger.debug(f"Reopened prefilled candle for {tick.instrument_id} at {bucket}")
        else:
            sealed = state.seal_current()
            state.current = Candle(
                instrument_id=tick.instrument_id,
                open_time=bucket,
                open=tick.price,
                high=tick.price,
                low=tick.price,
                close=tick.price,
                volume=0.0,
                tick_count=1,
            )
            state.volume_baseline = tick.cumulative_volume
            if sealed is not None:
                logger.debug(
                    f"Sealed candle for {tick.instrument_id} at {sealed.open_time}: "
                    f"C={sealed.close} V={sealed.volume} ({sealed.tick_count} ticks) - "
                    f"history: {len(state.history)} candles"
                )

        state.last_tick_timestamp = tick.timestamp
        if tick.day_open is not None:
            state.day_open = tick.day_open
        if tick.prev_close is not None:
            state.prev_close = tick.prev_close

        return IngestResult(accepted=True, sealed=sealed)

    @staticmethod
    def _add_volume(state: InstrumentState, cumulative_volume: float | None) -> None:
        """Add the cumulative volume delta to the open candle.

        The baseline only moves forward, so resent or out-of-order
        cumulative volumes contribute nothing.
        """
        if cumulative_volume is None:
            return
        if state.volume_baseline is None:
            state.volume_baseline = cumulative_volume
            return
        delta = cumulative_volume - state.volume_baseline
        if delta > 0:
            state.current.volume += delta
            state.volume_baseline = cumulative_volume

    def prefill(self, instrument_id: str, candles: Iterable[Candle]) -> int:
        """Merge historical candles into an instrument's sealed history.

        Only candles older than the open candle are merged; candles that
        violate the OHLC invariant are rejected. Existing sealed candles
        win over historical ones for the same bucket.

        Args:
            instrument_id: Instrument to warm up
            candles: Historical candles (any order)

        Returns:
            Number of candles added
        """
        state = self.ensure_state(instrument_id)
        cutoff = state.current.open_time if state.current is not None else None
        known = {c.open_time for c in state.history}

        added: list[Candle] = []
        rejected = 0
        for candle in candles:
            try:
                validate_candle(candle)
            except InvalidCandleError as e:
                rejected += 1
                logger.warning(f"Rejected historical candle: {e}")
                continue
            if cutoff is not None and candle.open_time >= cutoff:
                continue
            if candle.open_time in known:
                continue
            known.add(candle.open_time)
            added.append(candle)

        if added:
            merged = sorted([*state.history, *added], key=lambda c: c.open_time)
            state.history = merged[-self.max_candles:]

        logger.info(
            f"Prefilled {instrument_id} with {len(added)} historical candles "
            f"({rejected} rejected, history: {len(state.history)})"
        )
        return len(added)

    def reset(self, instrument_id: str | None = None) -> None:
        """Reset candle state.

        Args:
            instrument_id: Reset only this instrument, or all if None
        """
        if instrument_id is not None:
            self._states.pop(instrument_id, None)
        else:
            self._states.clear()

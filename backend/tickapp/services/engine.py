"""Tick signal engine.

Owns every piece of per-instrument state and drives the two indicator paths:

Live path (tick loop):
1. Convert each raw tick payload, dropping malformed ones
2. Fold it into the instrument's open candle under the instrument lock
3. When a candle seals, recompute RSI/EMA/ATR from closed + open candles
4. Store the values in the snapshot cache and evaluate the instrument

Fresh path (refresh timer):
1. Every ``fresh_refresh_seconds``, refetch historical candles per instrument
2. Recompute VWAP/VWMA/ADX/MACD and store them in the snapshot cache
3. Evaluate the instrument again

Evaluations that fire BUY or SELL go through the decision gate in background
tasks, so tick ingestion never waits on the order collaborator.
"""

import asyncio
import inspect
import logging
import time
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from tickapp.config import Settings, get_settings
from tickapp.models import DecisionEvent, SnapshotEvent
from tickcore.candle_aggregator import CandleAggregator, IngestResult
from tickcore.collaborators import CandleFetcher, OrderSubmitter
from tickcore.decision_gate import DecisionGate, GateResult
from tickcore.indicators import IndicatorCalculator
from tickcore.models import (
    FRESH_FIELDS,
    LIVE_FIELDS,
    SNAPSHOT_FIELDS,
    Candle,
    IndicatorSnapshot,
    InvalidCandleError,
    MalformedTickError,
    Side,
    Tick,
    TradeDecision,
    tick_from_payload,
    validate_candle,
)
from tickcore.snapshot_cache import SnapshotCache
from tickcore.strategy import Evaluation, SignalEvaluator, build_evaluator

logger = logging.getLogger(__name__)

# Seconds to wait for in-flight order submissions on shutdown
SHUTDOWN_TIMEOUT = 10.0

# Accepted decisions kept for the status API
DECISION_HISTORY = 100

EventCallback = Callable[[dict[str, Any]], Awaitable[None] | None]


def _owned(values: dict[str, Any], owned_fields: Iterable[str]) -> dict[str, Any]:
    """Keep only the fields a path is allowed to write."""
    owned = set(owned_fields)
    return {k: v for k, v in values.items() if k in owned}


class TickFeed(Protocol):
    """Source of raw tick batches (see ``tickapp.clients.QueueTickFeed``)."""

    def batches(self) -> AsyncIterator[list[dict[str, Any]]]: ...

    def close(self) -> None: ...


class Engine:
    """Tick-to-decision pipeline for a set of instruments.

    Usage:
        engine = Engine(fetcher=HistoryRestClient(...), submitter=PaperOrderClient())
        engine.on_event(manager.broadcast_event)
        await engine.start(feed)
        ...
        await engine.stop()
    """

    def __init__(
        self,
        submitter: OrderSubmitter,
        fetcher: CandleFetcher | None = None,
        settings: Settings | None = None,
        evaluator: SignalEvaluator | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the engine.

        Args:
            submitter: Order collaborator
            fetcher: Historical collaborator; None disables warm-up and the
                fresh path
            settings: Settings (from environment if None)
            evaluator: Signal evaluator (built from ``settings.strategy`` if None)
            clock: Returns the current Unix timestamp
        """
        self.settings = settings or get_settings()
        self._fetcher = fetcher
        self._clock = clock

        self.aggregator = CandleAggregator(
            interval_seconds=self.settings.candle_interval_seconds,
            max_candles=self.settings.max_candles,
        )
        self.calculator = IndicatorCalculator(self.settings.indicator_config())
        self.cache = SnapshotCache()
        self.evaluator = evaluator or build_evaluator(
            self.settings.strategy, self.settings.strategy_params
        )
        unknown = set(self.evaluator.required_fields) - SNAPSHOT_FIELDS
        if unknown:
            raise ValueError(
                f"Evaluator {self.evaluator.name} requires unknown snapshot fields: "
                f"{sorted(unknown)}"
            )
        self.gate = DecisionGate(
            submitter=submitter,
            cooldown_seconds=self.settings.cooldown_seconds,
            clock=clock,
            same_side_cooldown_seconds=self.settings.same_side_cooldown_seconds,
        )

        # Empty means every instrument that sends ticks is accepted
        self._instruments: list[str] = list(dict.fromkeys(self.settings.instruments))
        self._locks: dict[str, asyncio.Lock] = {}

        self._event_callbacks: list[EventCallback] = []
        self._feed: TickFeed | None = None
        self._feed_task: asyncio.Task | None = None
        self._refresh_task: asyncio.Task | None = None
        self._submit_tasks: set[asyncio.Task] = set()
        self._fetch_semaphore = asyncio.Semaphore(max(1, self.settings.fresh_fetch_concurrency))
        self._running = False

        self.decisions: deque[TradeDecision] = deque(maxlen=DECISION_HISTORY)
        self.stats = {
            "ticks_received": 0,
            "ticks_dropped": 0,
            "candles_sealed": 0,
            "evaluations": 0,
            "decisions_accepted": 0,
            "decisions_rejected": 0,
            "refresh_cycles": 0,
            "fetch_failures": 0,
        }

        logger.info(
            f"Engine initialized: strategy={self.evaluator.name}, "
            f"instruments={len(self._instruments)}, "
            f"cooldown={self.settings.cooldown_seconds}s"
        )

    # =========================================================================
    # Callbacks
    # =========================================================================

    def on_event(self, callback: EventCallback) -> None:
        """Register a callback for outbound events (sync or async)."""
        self._event_callbacks.append(callback)

    async def _emit(self, payload: dict[str, Any]) -> None:
        for callback in self._event_callbacks:
            try:
                result = callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Event callback error ({payload.get('type')}): {e}")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def instruments(self) -> list[str]:
        """Subscribed instruments, or every instrument seen if none are configured."""
        return list(self._instruments) if self._instruments else self.aggregator.instruments()

    async def start(self, feed: TickFeed | None = None) -> None:
        """Warm up configured instruments and start the feed and refresh tasks."""
        if self._running:
            return
        self._running = True

        if self._instruments and self.settings.warmup_on_subscribe:
            await self._warm_up(self._instruments)

        if feed is not None:
            self._feed = feed
            self._feed_task = asyncio.create_task(self._consume_feed(feed))

        if self._fetcher is not None and self.settings.fresh_refresh_seconds > 0:
            self._refresh_task = asyncio.create_task(self._refresh_loop())

        logger.info("Engine started")

    async def stop(self) -> None:
        """Stop the feed, then the refresh timer, then wait for pending submits."""
        if not self._running:
            return
        self._running = False

        if self._feed is not None:
            self._feed.close()
        for task in (self._feed_task, self._refresh_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._feed_task = None
        self._refresh_task = None
        self._feed = None

        if self._submit_tasks:
            logger.info(f"Waiting for {len(self._submit_tasks)} pending order submission(s)")
            _, pending = await asyncio.wait(self._submit_tasks, timeout=SHUTDOWN_TIMEOUT)
            for task in pending:
                task.cancel()

        logger.info("Engine stopped")

    async def drain(self) -> list[GateResult]:
        """Wait for all pending order submissions and return their results."""
        results = []
        seen: set[asyncio.Task] = set()
        while pending := [t for t in self._submit_tasks if t not in seen]:
            seen.update(pending)
            done = await asyncio.gather(*pending, return_exceptions=True)
            results.extend(r for r in done if isinstance(r, GateResult))
        return results

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def set_instruments(self, instrument_ids: Iterable[str]) -> list[str]:
        """Replace the subscription list.

        All per-instrument state and cached snapshots are reset, then the
        new instruments are warmed up from the historical collaborator.
        Cooldowns are kept.

        Returns:
            The new subscription list
        """
        new = list(dict.fromkeys(i for i in instrument_ids if i))
        old = self.instruments

        self.aggregator.reset()
        self.cache.clear()
        self._locks.clear()
        self._instruments = new

        logger.info(f"Subscriptions replaced: {len(old)} -> {len(new)} instruments")

        if new and self.settings.warmup_on_subscribe:
            await self._warm_up(new)
        return list(new)

    async def _warm_up(self, instrument_ids: list[str]) -> None:
        """Prefill history and compute initial snapshots for instruments."""
        if self._fetcher is None:
            for instrument_id in instrument_ids:
                self.aggregator.ensure_state(instrument_id)
            return
        await asyncio.gather(*(self._warm_up_one(i) for i in instrument_ids))

    async def _warm_up_one(self, instrument_id: str) -> None:
        candles = await self._fetch(instrument_id)
        async with self._lock_for(instrument_id):
            self.aggregator.ensure_state(instrument_id)
            if not candles:
                return
            self.aggregator.prefill(instrument_id, candles)
            state = self.aggregator.get_state(instrument_id)
            self.cache.update(instrument_id, self._live_values(state.candles()))
            self._store_fresh(instrument_id, candles)

    # =========================================================================
    # Live path
    # =========================================================================

    def _lock_for(self, instrument_id: str) -> asyncio.Lock:
        lock = self._locks.get(instrument_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[instrument_id] = lock
        return lock

    def _accepts(self, instrument_id: str) -> bool:
        return not self._instruments or instrument_id in self._instruments

    def _live_values(self, candles: list[Candle]) -> dict[str, Any]:
        return _owned(self.calculator.calculate_live(candles), LIVE_FIELDS)

    async def _consume_feed(self, feed: TickFeed) -> None:
        try:
            async for batch in feed.batches():
                await self.process_batch(batch)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Tick feed failed: {e}")

    async def process_batch(self, payloads: Iterable[dict[str, Any]]) -> int:
        """Convert and ingest a batch of raw tick payloads in arrival order.

        Returns:
            Number of ticks accepted into a candle
        """
        accepted = 0
        for payload in payloads:
            self.stats["ticks_received"] += 1
            try:
                tick = tick_from_payload(payload)
            except MalformedTickError as e:
                self.stats["ticks_dropped"] += 1
                logger.warning(f"Dropped malformed tick: {e}")
                continue
            try:
                result = await self.process_tick(tick)
            except Exception as e:
                # Never let one instrument stop the batch
                self.stats["ticks_dropped"] += 1
                logger.error(f"Error processing tick for {tick.instrument_id}: {e}")
                continue
            if result.accepted:
                accepted += 1
            else:
                self.stats["ticks_dropped"] += 1
        return accepted

    async def process_tick(self, tick: Tick) -> IngestResult:
        """Ingest one validated tick and, on a sealed candle, run the live path."""
        instrument_id = tick.instrument_id
        if not self._accepts(instrument_id):
            logger.debug(f"Ignored tick for unsubscribed instrument {instrument_id}")
            return IngestResult(accepted=False)

        # A far-future tick would open a bucket that makes every later tick stale
        max_lead = self.settings.max_tick_lead_seconds
        if max_lead > 0 and tick.timestamp > self._clock() + max_lead:
            logger.warning(
                f"Dropped tick for {instrument_id}: timestamp {tick.timestamp} is more "
                f"than {max_lead:.0f}s ahead of the clock"
            )
            return IngestResult(accepted=False)

        async with self._lock_for(instrument_id):
            result = self.aggregator.ingest(tick)
            if not result.accepted:
                return result

            state = self.aggregator.get_state(instrument_id)
            self.cache.update(
                instrument_id,
                {"ltp": tick.price, "day_gap_percent": state.day_gap_percent},
            )
            if not result.candle_sealed:
                return result

            self.stats["candles_sealed"] += 1
            values = self._live_values(state.candles())
            self.cache.update(instrument_id, {**values, "timestamp": tick.timestamp})

        await self.evaluate(instrument_id)
        return result

    # =========================================================================
    # Fresh path
    # =========================================================================

    async def _fetch(self, instrument_id: str) -> list[Candle]:
        """Fetch the fresh-path lookback window, returning [] on failure."""
        end = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        start = end - timedelta(days=self.settings.fresh_lookback_days)
        async with self._fetch_semaphore:
            try:
                candles = await self._fetcher.fetch_candles(
                    instrument_id, self.settings.fresh_interval, start, end
                )
            except Exception as e:
                self.stats["fetch_failures"] += 1
                logger.warning(f"Historical fetch failed for {instrument_id}: {e}")
                return []

        valid = []
        for candle in candles:
            try:
                valid.append(validate_candle(candle))
            except InvalidCandleError as e:
                logger.warning(f"Rejected historical candle: {e}")
        return sorted(valid, key=lambda c: c.open_time)

    def _store_fresh(self, instrument_id: str, candles: list[Candle]) -> list[str]:
        values = _owned(self.calculator.calculate_fresh(candles, now=self._clock()), FRESH_FIELDS)
        stored = self.cache.update(instrument_id, values)
        if stored:
            self.cache.set_if_valid(instrument_id, "timestamp", self._clock())
        return stored

    async def refresh_instrument(self, instrument_id: str) -> list[str]:
        """Run the fresh path for one instrument.

        Returns:
            Names of the snapshot fields that were updated
        """
        if self._fetcher is None:
            return []
        candles = await self._fetch(instrument_id)
        if not candles:
            return []

        async with self._lock_for(instrument_id):
            if not self._accepts(instrument_id):
                return []
            stored = self._store_fresh(instrument_id, candles)

        logger.debug(f"Fresh refresh {instrument_id}: {len(candles)} candles, updated {stored}")
        await self.evaluate(instrument_id)
        return stored

    async def refresh_all(self) -> dict[str, list[str]]:
        """Run the fresh path for every instrument (bounded concurrency)."""
        instruments = self.instruments
        results = await asyncio.gather(
            *(self.refresh_instrument(i) for i in instruments),
            return_exceptions=True,
        )
        updated = {}
        for instrument_id, result in zip(instruments, results):
            if isinstance(result, BaseException):
                logger.error(f"Fresh refresh failed for {instrument_id}: {result}")
                continue
            updated[instrument_id] = result
        self.stats["refresh_cycles"] += 1
        return updated

    async def _refresh_loop(self) -> None:
        interval = self.settings.fresh_refresh_seconds
        while self._running:
            try:
                await self.refresh_all()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Fresh refresh cycle failed: {e}")
            await asyncio.sleep(interval)

    # =========================================================================
    # Evaluation and decisions
    # =========================================================================

    async def evaluate(self, instrument_id: str) -> Evaluation | None:
        """Evaluate the cached snapshot and schedule a submit if it fires."""
        snapshot = self.cache.get(instrument_id)
        try:
            evaluation = self.evaluator.evaluate(snapshot)
        except Exception as e:
            logger.error(f"Evaluator {self.evaluator.name} failed for {instrument_id}: {e}")
            return None
        self.stats["evaluations"] += 1

        await self._emit(SnapshotEvent.build(snapshot, evaluation).to_payload())

        side = evaluation.side
        if side is not None:
            if snapshot.ltp is None:
                logger.debug(f"{instrument_id}: {side.value} signal without a price, skipped")
            else:
                self._schedule_submit(instrument_id, side, snapshot, evaluation)
        return evaluation

    def _schedule_submit(
        self,
        instrument_id: str,
        side: Side,
        snapshot: IndicatorSnapshot,
        evaluation: Evaluation,
    ) -> None:
        task = asyncio.create_task(
            self._submit(instrument_id, side, snapshot.ltp, evaluation)
        )
        self._submit_tasks.add(task)
        task.add_done_callback(self._submit_tasks.discard)

    async def _submit(
        self,
        instrument_id: str,
        side: Side,
        price: float,
        evaluation: Evaluation,
    ) -> GateResult:
        result = await self.gate.submit(
            instrument_id,
            side,
            price,
            reasons=evaluation.reasons(side),
            reason_code=evaluation.reason_code,
        )
        if not result.accepted:
            self.stats["decisions_rejected"] += 1
            return result

        self.stats["decisions_accepted"] += 1
        self.decisions.append(result.decision)
        await self._emit(DecisionEvent.build(result.decision).to_payload())
        return result

    # =========================================================================
    # Queries
    # =========================================================================

    def snapshot(self, instrument_id: str) -> IndicatorSnapshot:
        return self.cache.get(instrument_id)

    def snapshots(self) -> list[IndicatorSnapshot]:
        return [self.cache.get(i) for i in self.instruments]

    def stale_instruments(self, now: float | None = None) -> list[str]:
        """Instruments with no tick within ``stale_after_seconds``."""
        now = self._clock() if now is None else now
        stale = []
        for instrument_id in self.instruments:
            state = self.aggregator.get_state(instrument_id)
            if state is None or state.is_stale(now, self.settings.stale_after_seconds):
                stale.append(instrument_id)
        return stale

    def missing_fields(self, instrument_id: str) -> list[str]:
        """Evaluator inputs not yet computed for an instrument."""
        snapshot = self.cache.get(instrument_id)
        missing = []
        for name in self.evaluator.required_fields:
            value = getattr(snapshot, name)
            if value is None or value == ():
                missing.append(name)
        return missing

    def status(self) -> dict[str, Any]:
        warming_up = {}
        for instrument_id in self.instruments:
            missing = self.missing_fields(instrument_id)
            if missing:
                warming_up[instrument_id] = missing
        return {
            "running": self._running,
            "strategy": self.evaluator.name,
            "instruments": self.instruments,
            "stale_instruments": self.stale_instruments(),
            "warming_up": warming_up,
            "order_in_flight": self.gate.in_flight,
            "pending_submits": len(self._submit_tasks),
            "stats": dict(self.stats),
        }

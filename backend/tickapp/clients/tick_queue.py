"""In-process tick feed backed by an asyncio queue."""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from typing import Any

logger = logging.getLogger(__name__)


class QueueTickFeed:
    """Feed that yields batches of raw tick payloads.

    Producers (the HTTP ingest route, a broker socket callback, tests)
    call ``publish``; the engine consumes ``batches()``. Payloads are
    passed through unvalidated; the engine converts and validates them.
    """

    def __init__(self, maxsize: int = 10000, max_batch: int = 500):
        self._queue: asyncio.Queue[list[dict[str, Any]] | None] = asyncio.Queue(maxsize=maxsize)
        self.max_batch = max_batch
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return self._queue.qsize()

    async def publish(self, ticks: Iterable[dict[str, Any]]) -> int:
        """Queue a batch of tick payloads.

        Returns:
            Number of ticks queued (0 if the feed is closed or the batch empty)
        """
        if self._closed:
            return 0
        batch = list(ticks)
        if not batch:
            return 0
        await self._queue.put(batch)
        return len(batch)

    def publish_nowait(self, ticks: Iterable[dict[str, Any]]) -> int:
        """Queue a batch without waiting; drops it if the queue is full."""
        if self._closed:
            return 0
        batch = list(ticks)
        if not batch:
            return 0
        try:
            self._queue.put_nowait(batch)
        except asyncio.QueueFull:
            logger.warning(f"Tick queue full, dropped batch of {len(batch)} ticks")
            return 0
        return len(batch)

    def close(self) -> None:
        """Stop the feed; ``batches()`` ends after draining queued batches."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            logger.warning("Tick queue full on close, consumer must be cancelled")

    async def batches(self) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield tick batches in arrival order until closed."""
        while True:
            batch = await self._queue.get()
            if batch is None:
                return
            # Coalesce whatever else is already waiting, up to max_batch
            while len(batch) < self.max_batch and not self._queue.empty():
                more = self._queue.get_nowait()
                if more is None:
                    yield batch
                    return
                batch.extend(more)
            yield batch

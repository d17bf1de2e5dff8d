"""Tests for the collaborator adapters."""

import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import orjson
import pytest

from tickapp.clients import HistoryRestClient, PaperOrderClient, QueueTickFeed, RateLimiter
from tickcore.collaborators import CandleFetcher, OrderSubmitter
from tickcore.models import Side

START = datetime(2024, 1, 2, 3, 45, tzinfo=timezone.utc)


def make_client(handler) -> HistoryRestClient:
    """Helper to create a client over a mock transport."""
    return HistoryRestClient(
        base_url="https://history.test",
        api_key="key:token",
        transport=httpx.MockTransport(handler),
        rate_limiter=RateLimiter(calls_per_second=1000),
    )


def candles_response(rows: list) -> httpx.Response:
    return httpx.Response(
        200,
        content=orjson.dumps({"status": "success", "data": {"candles": rows}}),
        headers={"content-type": "application/json"},
    )


class TestHistoryRestClient:
    @pytest.mark.asyncio
    async def test_fetch_candles(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return candles_response([
                ["2024-01-02T09:16:00+05:30", 101, 103, 100, 102, 200],
                ["2024-01-02T09:15:00+05:30", 100, 102, 99, 101, 100],
                ["2024-01-02T09:17:00+05:30", 100, 98, 99, 101, 100],
            ])

        client = make_client(handler)
        candles = await client.fetch_candles("256265", "1m", START, START + timedelta(hours=1))
        await client.close()

        assert len(requests) == 1
        request = requests[0]
        assert request.url.path == "/instruments/historical/256265/minute"
        assert request.url.params["from"] == "2024-01-02 09:15:00"
        assert request.url.params["to"] == "2024-01-02 10:15:00"
        assert request.headers["authorization"] == "token key:token"

        # Invalid third row dropped, remaining sorted oldest first
        assert [c.close for c in candles] == [101, 102]
        assert all(c.instrument_id == "256265" for c in candles)

    @pytest.mark.asyncio
    async def test_pages_long_ranges(self):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return candles_response([["2024-01-02T09:15:00+05:30", 100, 102, 99, 101, 100]])

        client = make_client(handler)
        candles = await client.fetch_candles("256265", "1m", START, START + timedelta(days=100))
        await client.close()

        assert calls == 2
        # Same candle from both pages deduplicated
        assert len(candles) == 1

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        client = make_client(lambda request: httpx.Response(500))

        with pytest.raises(httpx.HTTPStatusError):
            await client.fetch_candles("256265", "1m", START, START + timedelta(hours=1))
        await client.close()

    @pytest.mark.asyncio
    async def test_unsupported_interval(self):
        client = make_client(lambda request: candles_response([]))

        with pytest.raises(ValueError):
            await client.get_candles("256265", "3m", START, START + timedelta(hours=1))
        await client.close()

    def test_implements_protocol(self):
        client = HistoryRestClient(base_url="https://history.test")
        assert isinstance(client, CandleFetcher)


class TestPaperOrderClient:
    @pytest.mark.asyncio
    async def test_sequential_ids(self):
        client = PaperOrderClient()

        first = await client.submit("A", Side.BUY, 10.0)
        second = await client.submit("B", Side.SELL, 20.0)

        assert first.order_id == "PAPER-000001"
        assert second.order_id == "PAPER-000002"
        assert second.status == "simulated"
        assert [o.instrument_id for o in client.orders] == ["A", "B"]
        assert isinstance(client, OrderSubmitter)


class TestQueueTickFeed:
    @pytest.mark.asyncio
    async def test_batches_in_order_until_closed(self):
        feed = QueueTickFeed()
        await feed.publish([{"n": 1}, {"n": 2}])
        await feed.publish([{"n": 3}])
        await feed.publish([])
        feed.close()

        batches = [batch async for batch in feed.batches()]

        assert [t["n"] for batch in batches for t in batch] == [1, 2, 3]
        assert await feed.publish([{"n": 4}]) == 0

    @pytest.mark.asyncio
    async def test_full_queue_drops_batch(self):
        feed = QueueTickFeed(maxsize=1)

        assert feed.publish_nowait([{"n": 1}]) == 1
        assert feed.publish_nowait([{"n": 2}]) == 0
        assert feed.pending() == 1

    @pytest.mark.asyncio
    async def test_consumer_waits_for_ticks(self):
        feed = QueueTickFeed()
        received = []

        async def consume():
            async for batch in feed.batches():
                received.extend(batch)

        task = asyncio.create_task(consume())
        await asyncio.sleep(0)
        await feed.publish([{"n": 1}])
        feed.close()
        await asyncio.wait_for(task, timeout=1)

        assert received == [{"n": 1}]

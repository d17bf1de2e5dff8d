"""REST client for fetching historical candles."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

import httpx

from tickcore.collaborators import CandleInterval
from tickcore.models import Candle, InvalidCandleError, candle_from_payload

logger = logging.getLogger(__name__)

# API interval names for each candle width
INTERVAL_NAMES: dict[str, str] = {
    "1m": "minute",
    "5m": "5minute",
    "15m": "15minute",
    "60m": "60minute",
}

# Longest range the API serves per request for minute candles
MAX_DAYS_PER_REQUEST = 60


class RateLimiter:
    """Simple rate limiter for API calls."""

    def __init__(self, calls_per_second: float = 3.0):
        self.interval = 1.0 / calls_per_second
        self.last_call = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait if necessary to respect rate limit."""
        async with self._lock:
            loop = asyncio.get_running_loop()
            wait_time = self.last_call + self.interval - loop.time()
            if wait_time > 0:
                await asyncio.sleep(wait_time)
            self.last_call = loop.time()


class HistoryRestClient:
    """Historical candle API client (implements ``CandleFetcher``).

    GET ``/instruments/historical/{instrument_id}/{interval}`` with
    ``from``/``to`` in exchange-local time; the response carries
    ``{"data": {"candles": [[time, open, high, low, close, volume], ...]}}``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timezone_name: str = "Asia/Kolkata",
        transport: httpx.AsyncBaseTransport | None = None,
        rate_limiter: RateLimiter | None = None,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self._tz = ZoneInfo(timezone_name)
        self._transport = transport
        self.rate_limiter = rate_limiter or RateLimiter()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"X-Kite-Version": "3"}
            if self.api_key:
                headers["Authorization"] = f"token {self.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=30.0,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(self, endpoint: str, params: dict[str, Any]) -> Any:
        """Make a GET request with rate limiting."""
        await self.rate_limiter.acquire()
        client = await self._get_client()
        response = await client.get(endpoint, params=params)
        response.raise_for_status()
        return response.json()

    def _format_time(self, value: datetime) -> str:
        return value.astimezone(self._tz).strftime("%Y-%m-%d %H:%M:%S")

    async def get_candles(
        self,
        instrument_id: str,
        interval: CandleInterval,
        start: datetime,
        end: datetime,
    ) -> list[Candle]:
        """Fetch one page of candles.

        Rows that fail validation are dropped with a warning.
        """
        name = INTERVAL_NAMES.get(interval)
        if name is None:
            raise ValueError(f"Unsupported interval '{interval}'")

        data = await self._request(
            f"/instruments/historical/{instrument_id}/{name}",
            {"from": self._format_time(start), "to": self._format_time(end)},
        )
        rows = (data.get("data") or {}).get("candles") or []

        candles = []
        for row in rows:
            try:
                candles.append(candle_from_payload(instrument_id, row))
            except InvalidCandleError as e:
                logger.warning(f"Dropped historical candle: {e}")
        return candles

    async def fetch_candles(
        self,
        instrument_id: str,
        interval: CandleInterval,
        start: datetime,
        end: datetime,
    ) -> list[Candle]:
        """Fetch all candles in ``[start, end]``, paging by date range.

        Returns:
            Candles oldest first, deduplicated by open time
        """
        by_time: dict[float, Candle] = {}
        chunk_start = start
        while chunk_start < end:
            chunk_end = min(chunk_start + timedelta(days=MAX_DAYS_PER_REQUEST), end)
            for candle in await self.get_candles(instrument_id, interval, chunk_start, chunk_end):
                by_time[candle.open_time] = candle
            chunk_start = chunk_end + timedelta(seconds=1)

        candles = [by_time[t] for t in sorted(by_time)]
        logger.debug(f"Fetched {len(candles)} {interval} candles for {instrument_id}")
        return candles

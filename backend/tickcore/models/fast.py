"""Hot path data models using dataclass for high performance.

These models use:
- @dataclass(slots=True) for minimal memory footprint
- float instead of Decimal for fast arithmetic
- Unix timestamps in seconds (float) instead of datetime objects
"""

from dataclasses import dataclass, field


@dataclass(slots=True)
class Tick:
    """A single real-time price/volume update for an instrument."""

    instrument_id: str
    price: float
    cumulative_volume: float | None
    timestamp: float  # Unix timestamp in seconds
    day_open: float | None = None
    prev_close: float | None = None


@dataclass(slots=True)
class Candle:
    """OHLCV aggregate over a fixed time bucket.

    Invariant: low <= min(open, close) <= max(open, close) <= high.
    """

    instrument_id: str
    open_time: float  # Unix timestamp in seconds (bucket start)
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    tick_count: int = 0

    def is_consistent(self) -> bool:
        """Check the OHLC ordering invariant and non-negative volume."""
        return (
            self.low <= min(self.open, self.close)
            and max(self.open, self.close) <= self.high
            and self.volume >= 0
        )

    def apply_price(self, price: float) -> None:
        """Fold a trade price into this (open) candle."""
        if price > self.high:
            self.high = price
        if price < self.low:
            self.low = price
        self.close = price
        self.tick_count += 1


@dataclass(slots=True)
class InstrumentState:
    """Rolling per-instrument candle state.

    Owns the sealed candle history (bounded, oldest dropped first), the
    current open candle and the cumulative volume baseline used to turn
    cumulative tick volumes into per-candle deltas.
    """

    instrument_id: str
    max_candles: int = 500
    history: list[Candle] = field(default_factory=list)
    current: Candle | None = None
    volume_baseline: float | None = None
    last_tick_timestamp: float | None = None
    day_open: float | None = None
    prev_close: float | None = None

    def seal_current(self) -> Candle | None:
        """Move the open candle into history, enforcing the size bound."""
        sealed = self.current
        if sealed is None:
            return None
        self.history.append(sealed)
        if len(self.history) > self.max_candles:
            self.history = self.history[-self.max_candles:]
        self.current = None
        return sealed

    def candles(self, include_open: bool = True) -> list[Candle]:
        """Sealed candles, optionally followed by the open candle."""
        if include_open and self.current is not None:
            return [*self.history, self.current]
        return list(self.history)

    @property
    def day_gap_percent(self) -> float | None:
        """Gap between today's open and the previous close, in percent."""
        if self.day_open is None or not self.prev_close:
            return None
        return abs(self.day_open - self.prev_close) / self.prev_close * 100

    def is_stale(self, now: float, max_age: float) -> bool:
        """True if no tick has arrived within ``max_age`` seconds."""
        if self.last_tick_timestamp is None:
            return True
        return now - self.last_tick_timestamp > max_age

    def __len__(self) -> int:
        return len(self.history) + (1 if self.current is not None else 0)

"""REST API routes."""

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from tickapp.clients import QueueTickFeed
from tickapp.services import Engine
from tickcore.models import snapshot_to_payload, timestamp_to_datetime

logger = logging.getLogger(__name__)

router = APIRouter()


# Response models
class SystemStatus(BaseModel):
    """System status response."""

    status: str
    version: str
    strategy: str
    instruments: list[str]
    stale_instruments: list[str]
    warming_up: dict[str, list[str]]
    order_in_flight: bool
    pending_submits: int
    stats: dict[str, int]


class CooldownResponse(BaseModel):
    """Cooldown entry for an instrument."""

    instrument_id: str
    last_order_time: datetime
    last_order_side: str
    remaining_seconds: float


class InstrumentsRequest(BaseModel):
    """Replacement subscription list."""

    instruments: list[str]


class InstrumentsResponse(BaseModel):
    instruments: list[str]


class TicksRequest(BaseModel):
    """Raw tick payloads (``instrumentId``, ``lastPrice``, ...)."""

    ticks: list[dict[str, Any]]


class TicksResponse(BaseModel):
    queued: int


# Dependencies resolved from app.state (set in the lifespan)
def get_engine(request: Request) -> Engine:
    engine: Optional[Engine] = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine not running")
    return engine


def get_tick_feed(request: Request) -> QueueTickFeed:
    feed: Optional[QueueTickFeed] = getattr(request.app.state, "tick_feed", None)
    if feed is None or feed.closed:
        raise HTTPException(status_code=503, detail="Tick feed not available")
    return feed


@router.get("/status", response_model=SystemStatus)
async def get_status(engine: Engine = Depends(get_engine)):
    """Get engine status."""
    status = engine.status()
    return SystemStatus(
        status="running" if status["running"] else "stopped",
        version="0.1.0",
        strategy=status["strategy"],
        instruments=status["instruments"],
        stale_instruments=status["stale_instruments"],
        warming_up=status["warming_up"],
        order_in_flight=status["order_in_flight"],
        pending_submits=status["pending_submits"],
        stats=status["stats"],
    )


@router.get("/snapshots")
async def get_snapshots(engine: Engine = Depends(get_engine)) -> list[dict[str, Any]]:
    """Latest snapshot for every instrument."""
    return [
        {"instrumentId": s.instrument_id, **snapshot_to_payload(s)}
        for s in engine.snapshots()
    ]


@router.get("/snapshots/{instrument_id}")
async def get_snapshot(instrument_id: str, engine: Engine = Depends(get_engine)) -> dict[str, Any]:
    """Latest snapshot and condition breakdown for one instrument."""
    if instrument_id not in engine.instruments and instrument_id not in engine.cache:
        raise HTTPException(status_code=404, detail="Instrument not found")

    snapshot = engine.snapshot(instrument_id)
    evaluation = engine.evaluator.evaluate(snapshot)
    return {
        "instrumentId": instrument_id,
        **snapshot_to_payload(snapshot),
        "buySignal": evaluation.buy,
        "sellSignal": evaluation.sell,
        "buyConditions": evaluation.buy_conditions,
        "sellConditions": evaluation.sell_conditions,
    }


@router.get("/cooldowns", response_model=list[CooldownResponse])
async def get_cooldowns(engine: Engine = Depends(get_engine)):
    """Cooldown entries for every instrument that has traded."""
    return [
        CooldownResponse(
            instrument_id=entry.instrument_id,
            last_order_time=timestamp_to_datetime(entry.last_order_timestamp),
            last_order_side=entry.last_order_side.value,
            remaining_seconds=engine.gate.cooldown_remaining(entry.instrument_id),
        )
        for entry in engine.gate.cooldowns()
    ]


@router.put("/instruments", response_model=InstrumentsResponse)
async def replace_instruments(
    request: InstrumentsRequest,
    engine: Engine = Depends(get_engine),
):
    """Replace the subscription list (resets state, warms up new instruments)."""
    instruments = await engine.set_instruments(request.instruments)
    return InstrumentsResponse(instruments=instruments)


@router.post("/ticks", response_model=TicksResponse)
async def push_ticks(
    request: TicksRequest,
    feed: QueueTickFeed = Depends(get_tick_feed),
):
    """Push raw ticks into the engine's feed."""
    queued = feed.publish_nowait(request.ticks)
    if request.ticks and queued == 0:
        raise HTTPException(status_code=503, detail="Tick queue full")
    return TicksResponse(queued=queued)

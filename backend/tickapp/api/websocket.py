"""WebSocket endpoint for real-time updates."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import orjson
from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

# Seconds without a client message before the server pings
PING_INTERVAL = 60.0


def _orjson_dumps(obj: Any) -> str:
    """Serialize object to JSON string using orjson."""
    return orjson.dumps(obj, default=str).decode("utf-8")


def _control(message_type: str, data: dict[str, Any] | None = None) -> str:
    return _orjson_dumps({
        "type": message_type,
        "data": data or {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


class ConnectionManager:
    """Manage WebSocket connections and broadcasts."""

    def __init__(self):
        self._connections: list[WebSocket] = []
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        """Accept a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections.append(websocket)
        logger.info(f"WebSocket connected. Total connections: {len(self._connections)}")

    async def disconnect(self, websocket: WebSocket) -> None:
        """Remove a disconnected WebSocket."""
        async with self._lock:
            if websocket in self._connections:
                self._connections.remove(websocket)
        logger.info(f"WebSocket disconnected. Total connections: {len(self._connections)}")

    async def broadcast(self, payload: dict[str, Any]) -> None:
        """Broadcast an event payload to all connected clients."""
        if not self._connections:
            return

        message_text = _orjson_dumps(payload)
        disconnected = []

        async with self._lock:
            for websocket in self._connections:
                try:
                    await websocket.send_text(message_text)
                except Exception as e:
                    logger.warning(f"Failed to send message: {e}")
                    disconnected.append(websocket)

            for ws in disconnected:
                self._connections.remove(ws)

    @property
    def connection_count(self) -> int:
        """Get number of active connections."""
        return len(self._connections)


# Global connection manager
manager = ConnectionManager()


async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time updates.

    Messages sent to clients:
    - indicator_snapshot: Snapshot and BUY/SELL flags after each evaluation
    - trade_decision: Decision admitted by the gate
    - ping/pong: Keep-alive

    Message format:
    {
        "type": "trade_decision",
        "instrumentId": "256265",
        "side": "BUY",
        "price": 101.5,
        "reasons": [...],
        "timestamp": "2024-01-01T09:16:00+00:00"
    }
    """
    await manager.connect(websocket)

    try:
        await websocket.send_text(_control("connected", {"message": "Connected to tick signal engine"}))

        while True:
            try:
                data = await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=PING_INTERVAL,
                )

                try:
                    message = orjson.loads(data)
                    await handle_client_message(websocket, message)
                except orjson.JSONDecodeError:
                    await websocket.send_text(_control("error", {"message": "Invalid JSON"}))

            except asyncio.TimeoutError:
                await websocket.send_text(_control("ping"))

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        await manager.disconnect(websocket)


async def handle_client_message(websocket: WebSocket, message: Any) -> None:
    """Handle incoming message from client."""
    msg_type = message.get("type", "") if isinstance(message, dict) else ""

    if msg_type == "ping":
        await websocket.send_text(_control("pong"))
    elif msg_type == "pong":
        return
    else:
        await websocket.send_text(
            _control("error", {"message": f"Unknown message type: {msg_type}"})
        )

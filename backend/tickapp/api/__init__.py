"""API layer."""

from tickapp.api.routes import router
from tickapp.api.websocket import manager, websocket_endpoint

__all__ = ["router", "manager", "websocket_endpoint"]

"""Application services."""

from tickapp.services.engine import Engine, TickFeed

__all__ = ["Engine", "TickFeed"]

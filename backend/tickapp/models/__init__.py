"""Application-level models."""

from tickapp.models.events import DecisionEvent, SnapshotEvent

__all__ = ["DecisionEvent", "SnapshotEvent"]

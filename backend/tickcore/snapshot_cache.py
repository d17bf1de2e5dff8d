"""Per-instrument, per-field cache of last known good indicator values.

The live and fresh indicator paths both write here. A field is only
overwritten by a finite value, so a transient gap in one path (not enough
history, zero volume, failed fetch) never resets a value computed
earlier, and never clobbers fields owned by the other path.
"""

from __future__ import annotations

import logging
import math
import numbers
import threading
from collections.abc import Sequence
from dataclasses import replace
from typing import Any, Mapping

from tickcore.models import IndicatorSnapshot, SNAPSHOT_FIELDS

logger = logging.getLogger(__name__)


def _coerce_valid(field: str, value: Any) -> Any | None:
    """Return the value to store, or None if it must be ignored."""
    if field == "rsi_history":
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
            return None
        if not value:
            return None
        try:
            history = tuple(float(v) for v in value)
        except (TypeError, ValueError):
            return None
        return history if all(math.isfinite(v) for v in history) else None

    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, numbers.Real):
        return None
    number = float(value)
    return number if math.isfinite(number) else None


class SnapshotCache:
    """Thread-safe store of ``IndicatorSnapshot`` per instrument.

    Each ``set_if_valid`` is a single guarded mutation, so concurrent
    writers (live path, fresh path) cannot interleave partial updates of
    the same field.
    """

    def __init__(self):
        self._snapshots: dict[str, IndicatorSnapshot] = {}
        self._lock = threading.Lock()

    def get(self, instrument_id: str) -> IndicatorSnapshot:
        """Get the current snapshot (empty if nothing was cached yet)."""
        with self._lock:
            snapshot = self._snapshots.get(instrument_id)
        return snapshot if snapshot is not None else IndicatorSnapshot(instrument_id=instrument_id)

    def set_if_valid(self, instrument_id: str, field: str, value: Any) -> bool:
        """Store ``value`` for ``field`` if it is a finite number.

        Args:
            instrument_id: Instrument to update
            field: Snapshot field name
            value: New value; NaN, inf, None or non-numeric keeps the old value

        Returns:
            True if the value was stored

        Raises:
            KeyError: If ``field`` is not a snapshot field
        """
        if field not in SNAPSHOT_FIELDS:
            raise KeyError(f"Unknown snapshot field '{field}'")
        stored = _coerce_valid(field, value)
        if stored is None:
            return False
        with self._lock:
            current = self._snapshots.get(instrument_id) or IndicatorSnapshot(
                instrument_id=instrument_id
            )
            self._snapshots[instrument_id] = replace(current, **{field: stored})
        return True

    def update(self, instrument_id: str, values: Mapping[str, Any]) -> list[str]:
        """Apply ``set_if_valid`` for several fields under one lock.

        Returns:
            Names of the fields that were stored
        """
        accepted: dict[str, Any] = {}
        for field, value in values.items():
            if field not in SNAPSHOT_FIELDS:
                raise KeyError(f"Unknown snapshot field '{field}'")
            stored = _coerce_valid(field, value)
            if stored is not None:
                accepted[field] = stored

        if accepted:
            with self._lock:
                current = self._snapshots.get(instrument_id) or IndicatorSnapshot(
                    instrument_id=instrument_id
                )
                self._snapshots[instrument_id] = replace(current, **accepted)

        skipped = set(values) - set(accepted)
        if skipped:
            logger.debug(f"{instrument_id}: kept cached values for {sorted(skipped)}")
        return list(accepted)

    def instruments(self) -> list[str]:
        with self._lock:
            return list(self._snapshots.keys())

    def clear(self, instrument_id: str | None = None) -> None:
        """Drop cached values for one instrument, or all if None."""
        with self._lock:
            if instrument_id is not None:
                self._snapshots.pop(instrument_id, None)
            else:
                self._snapshots.clear()

    def __contains__(self, instrument_id: str) -> bool:
        with self._lock:
            return instrument_id in self._snapshots

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)

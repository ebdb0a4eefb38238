"""Measurement cache keyed by region."""

from __future__ import annotations

import time
from typing import Callable, Optional

from latencymap.config import CACHE_TTL_MS
from latencymap.models import Measurement


class MeasurementCache:
    """Most recent measurement per region, valid for ``ttl_ms``.

    Failed and timed-out measurements are stored too, so an unreachable
    endpoint is not hammered within the TTL window.  ``clock`` must return
    epoch seconds and is the same clock used to stamp measurements.
    """

    def __init__(self, ttl_ms: int = CACHE_TTL_MS, clock: Callable[[], float] = time.time):
        self.ttl_ms = ttl_ms
        self.clock = clock
        self._entries: dict[str, Measurement] = {}

    def age_ms(self, measurement: Measurement) -> float:
        return (self.clock() - measurement.measured_at) * 1000.0

    def get(self, region_id: str) -> Optional[Measurement]:
        """Return the cached measurement, or None if absent or expired."""
        cached = self._entries.get(region_id)
        if cached is None:
            return None
        if self.age_ms(cached) >= self.ttl_ms:
            return None
        return cached

    def put(self, measurement: Measurement) -> None:
        self._entries[measurement.region_id] = measurement

    def evict(self, region_id: str) -> None:
        self._entries.pop(region_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def snapshot(self) -> dict[str, Measurement]:
        """Copy of every stored entry, expired ones included."""
        return dict(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, region_id: str) -> bool:
        return self.get(region_id) is not None

"""Process-local traffic store used for demos and tests."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, List

from .base import TrafficStore
from ..errors import NotFound, PersistFailure
from ..models import SignalTiming, TrafficSample


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryTrafficStore(TrafficStore):
    """Dictionary backed store guarded by a single lock."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self.clock = clock or _utcnow
        self._samples: Dict[str, List[TrafficSample]] = {}
        self._timings: Dict[str, SignalTiming] = {}
        self._lock = threading.Lock()

    def add_sample(self, intersection_id: str, sample: TrafficSample) -> None:
        """Record ``sample`` as the newest observation of the intersection."""

        if sample.observed_at is None:
            sample = replace(sample, observed_at=self.clock())
        with self._lock:
            self._samples.setdefault(intersection_id, []).insert(0, sample)

    def set_timing(self, intersection_id: str, timing: SignalTiming) -> None:
        with self._lock:
            self._timings[intersection_id] = timing

    def fetch_recent_samples(self, intersection_id: str, limit: int = 5) -> List[TrafficSample]:
        with self._lock:
            return list(self._samples.get(intersection_id, [])[:limit])

    def fetch_timing(self, intersection_id: str) -> SignalTiming:
        with self._lock:
            try:
                return self._timings[intersection_id]
            except KeyError:
                raise NotFound(
                    f"No signal timing for intersection {intersection_id}",
                    intersection_id=intersection_id,
                ) from None

    def update_timing(self, intersection_id: str, timing: SignalTiming) -> SignalTiming:
        stored = replace(timing, updated_at=self.clock())
        with self._lock:
            if intersection_id not in self._timings:
                raise PersistFailure(
                    f"No signal timing row updated for intersection {intersection_id}",
                    intersection_id=intersection_id,
                )
            self._timings[intersection_id] = stored
        return stored

"""Traffic data store abstraction."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from ..models import SignalTiming, TrafficSample


class TrafficStore(ABC):
    """Read/write access to traffic samples and signal timings.

    Implementations raise :class:`~signal_optimizer.errors.DataUnavailable`
    when a fetch fails, :class:`~signal_optimizer.errors.NotFound` when an
    intersection has no timing record and
    :class:`~signal_optimizer.errors.PersistFailure` when an update fails.
    """

    @abstractmethod
    def fetch_recent_samples(self, intersection_id: str, limit: int = 5) -> List[TrafficSample]:
        """Return up to ``limit`` samples, most recent first.

        An intersection without samples yields an empty list.
        """

    @abstractmethod
    def fetch_timing(self, intersection_id: str) -> SignalTiming:
        """Return the current signal timing of the intersection."""

    @abstractmethod
    def update_timing(self, intersection_id: str, timing: SignalTiming) -> SignalTiming:
        """Persist ``timing`` and return the stored record with ``updated_at`` set."""

    def close(self) -> None:  # pragma: no cover - most stores hold nothing
        """Release any open connections."""

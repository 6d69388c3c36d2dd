"""Reduce a window of raw traffic observations into a single state."""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

from .config import OptimizerConfig
from .models import Phase, SignalTiming, TrafficSample, TrafficState

logger = logging.getLogger(__name__)


class StateAggregator:
    """Average the most recent samples of one intersection.

    The aggregator is a pure function of its input window.  An empty window
    is not an error: the mean is taken over a denominator of one, so every
    numeric field comes out as zero.  Such a state carries no information and
    callers should treat it as low-confidence input.
    """

    def __init__(
        self,
        window_size: int = 5,
        default_phase: Phase = Phase.NORTH_SOUTH_GREEN,
        default_time_in_phase: int = 25,
        waiting_ratio: float = 0.3,
    ) -> None:
        self.window_size = window_size
        self.default_phase = default_phase
        self.default_time_in_phase = default_time_in_phase
        self.waiting_ratio = waiting_ratio

    @classmethod
    def from_config(cls, config: OptimizerConfig) -> "StateAggregator":
        return cls(
            window_size=config.window_size,
            default_phase=config.default_phase,
            default_time_in_phase=config.default_time_in_phase,
            waiting_ratio=config.waiting_ratio,
        )

    def aggregate(
        self,
        samples: Sequence[TrafficSample],
        timing: Optional[SignalTiming] = None,
    ) -> TrafficState:
        """Return the mean state of ``samples`` (most recent first).

        ``timing`` is accepted for the phase defaults of a future phase
        tracker; the current phase fields are fixed configuration values.
        """

        window = list(samples[: self.window_size])
        if not window:
            logger.warning("Empty observation window; producing a zero state")
        count = len(window) or 1

        total_vehicles = sum(sample.vehicle_count for sample in window)
        total_speed = sum(sample.average_speed for sample in window)
        total_congestion = sum(sample.congestion_level for sample in window)

        mean_vehicles = total_vehicles / count
        return TrafficState(
            vehicle_count=math.floor(mean_vehicles),
            average_speed=total_speed / count,
            congestion_level=math.floor(total_congestion / count),
            current_phase=self.default_phase,
            time_in_phase=self.default_time_in_phase,
            waiting_vehicles=math.floor(mean_vehicles * self.waiting_ratio),
        )

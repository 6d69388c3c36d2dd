"""Value objects exchanged between the aggregator, engine, stores and callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
import re
from typing import Any, Dict, Mapping, Optional


class Phase(IntEnum):
    """Signal group currently holding right-of-way."""

    NORTH_SOUTH_GREEN = 0
    EAST_WEST_GREEN = 1


class Action(IntEnum):
    """Decision taken for the current phase."""

    KEEP = 0
    CHANGE = 1


_FRACTION = re.compile(r"(\.\d{1,6})\d*(?=[+-]\d{2}:?\d{2}$|$)")


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    # PostgREST emits a trailing "Z" on UTC timestamps and trims fractional zeros
    text = str(value).replace("Z", "+00:00")
    text = _FRACTION.sub(lambda match: match.group(1).ljust(7, "0"), text, count=1)
    return datetime.fromisoformat(text)


@dataclass(slots=True, frozen=True)
class TrafficSample:
    """One raw traffic observation for an intersection."""

    vehicle_count: int
    average_speed: float
    congestion_level: int
    observed_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TrafficSample":
        """Build a sample from a ``traffic_data`` row.

        ``average_speed`` and ``congestion_level`` are nullable columns and
        count as zero when missing.
        """

        return cls(
            vehicle_count=int(row.get("vehicle_count") or 0),
            average_speed=float(row.get("average_speed") or 0.0),
            congestion_level=int(row.get("congestion_level") or 0),
            observed_at=_parse_timestamp(row.get("created_at") or row.get("timestamp")),
        )


@dataclass(slots=True, frozen=True)
class TrafficState:
    """Discretised view of an intersection over the observation window."""

    vehicle_count: int
    average_speed: float
    congestion_level: int
    current_phase: Phase = Phase.NORTH_SOUTH_GREEN
    time_in_phase: int = 25
    waiting_vehicles: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vehicleCount": self.vehicle_count,
            "averageSpeed": self.average_speed,
            "congestionLevel": self.congestion_level,
            "currentPhase": int(self.current_phase),
            "timeInPhase": self.time_in_phase,
            "waitingVehicles": self.waiting_vehicles,
        }


@dataclass(slots=True, frozen=True)
class SignalTiming:
    """Red/yellow/green durations in whole seconds."""

    red_seconds: int
    yellow_seconds: int
    green_seconds: int
    updated_at: Optional[datetime] = field(default=None, compare=False)

    @property
    def cycle_seconds(self) -> int:
        return self.red_seconds + self.yellow_seconds + self.green_seconds

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SignalTiming":
        return cls(
            red_seconds=int(row["red_time"]),
            yellow_seconds=int(row["yellow_time"]),
            green_seconds=int(row["green_time"]),
            updated_at=_parse_timestamp(row.get("updated_at")),
        )

    def to_row(self) -> Dict[str, int]:
        return {
            "red_time": self.red_seconds,
            "yellow_time": self.yellow_seconds,
            "green_time": self.green_seconds,
        }

    def to_dict(self) -> Dict[str, int]:
        return {
            "redTime": self.red_seconds,
            "yellowTime": self.yellow_seconds,
            "greenTime": self.green_seconds,
        }


@dataclass(slots=True, frozen=True)
class Decision:
    """Outcome of :meth:`signal_optimizer.engine.DecisionEngine.predict`.

    Attributes
    ----------
    action:
        Whether to keep or change the current phase.
    confidence:
        Normalised score in [0, 1] derived from the value table entry.
    expected_reward:
        Heuristic desirability of ``action`` for the observed state.  It is
        informational only and never feeds back into the value table.
    new_timing:
        Timing derived from the state, applied only when the caller decides to.
    scenario:
        Value table key the state was classified into.
    """

    action: Action
    confidence: float
    expected_reward: float
    new_timing: SignalTiming
    scenario: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": int(self.action),
            "confidence": self.confidence,
            "expectedReward": self.expected_reward,
            "newTiming": self.new_timing.to_dict(),
            "scenario": self.scenario,
        }


@dataclass(slots=True)
class OptimizationResult:
    """Response of a single ``optimize`` request."""

    intersection_id: str
    decision: Decision
    state: TrafficState
    applied: bool
    message: str
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": True,
            "intersectionId": self.intersection_id,
            "aiDecision": self.decision.to_dict(),
            "currentState": self.state.to_dict(),
            "updated": self.applied,
            "message": self.message,
        }
        if self.error is not None:
            body["error"] = self.error
        return body


@dataclass(slots=True, frozen=True)
class SystemStatus:
    """Descriptive service status.

    The performance figures are fixed illustrative constants and are not
    computed from live data.
    """

    status: str = "active"
    model_name: str = "Deep Q-Learning Agent v1.0"
    last_optimized_at: Optional[datetime] = None
    accuracy: float = 0.87
    avg_reward: float = 23.5
    traffic_improvement_percent: float = 12.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "modelName": self.model_name,
            "lastOptimizedAt": (
                self.last_optimized_at.isoformat() if self.last_optimized_at else None
            ),
            "performance": {
                "accuracy": self.accuracy,
                "avgReward": self.avg_reward,
                "trafficImprovementPercent": self.traffic_improvement_percent,
            },
        }

"""Decision engine mapping a traffic state to a phase action and new timing."""

from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Protocol, Tuple

import numpy as np

from .config import SCENARIO_LABELS, OptimizerConfig
from .models import Action, Decision, SignalTiming, TrafficState

logger = logging.getLogger(__name__)

Scores = Tuple[float, float]

DEFAULT_GREEN = 25
DEFAULT_RED = 30
YELLOW_SECONDS = 5


class RandomSource(Protocol):
    """Subset of :class:`numpy.random.Generator` used by the engine."""

    def random(self) -> float: ...

    def integers(self, high: int) -> int: ...

    def uniform(self, low: float, high: float, size: Tuple[int, int]) -> np.ndarray: ...


def classify(state: TrafficState) -> str:
    """Return the scenario label for ``state``; the first matching rule wins.

    Only five of the seeded labels are reachable: ``low_traffic``,
    ``emergency`` and ``accident`` keep their table entries but no state maps
    onto them.
    """

    if state.congestion_level > 7:
        return "high_traffic"
    if state.congestion_level > 4:
        return "medium_traffic"
    if state.vehicle_count > 50:
        return "peak_hour"
    if state.average_speed < 10:
        return "congested"
    return "normal_flow"


def confidence_for(scores: Scores) -> float:
    """Normalised confidence of a ``(keep, change)`` score pair.

    Stays within [0, 1] only for non-negative scores.
    """

    high = max(scores)
    low = min(scores)
    return high / (high + low + 1)


def expected_reward(state: TrafficState, action: Action) -> float:
    reward = max(0, 50 - state.waiting_vehicles) * 0.5
    reward += state.average_speed * 0.3
    reward -= state.congestion_level * 2
    if state.time_in_phase > 30 and state.vehicle_count > 20 and action == Action.CHANGE:
        reward += 10
    return reward


def derive_timing(state: TrafficState) -> SignalTiming:
    """Derive red/yellow/green durations from the observed state.

    Rules are applied in order on the running values, each with its own
    absolute clamp.  Yellow is fixed.
    """

    green = DEFAULT_GREEN
    red = DEFAULT_RED

    if state.congestion_level > 6:
        excess = state.congestion_level - 6
        green = min(60, green + excess * 5)
        red = max(20, red - excess * 2)

    if state.vehicle_count > 40:
        green = min(70, green + 10)

    if state.vehicle_count < 10 and state.congestion_level < 3:
        green = max(15, green - 10)
        red = min(45, red + 5)

    return SignalTiming(red_seconds=red, yellow_seconds=YELLOW_SECONDS, green_seconds=green)


class ValueTable:
    """Read-only mapping from scenario label to ``(keep, change)`` scores.

    The table is built once and never updated by decisions, which makes it
    safe to share between concurrent requests.
    """

    __slots__ = ("_scores",)

    def __init__(self, scores: Mapping[str, Iterable[float]]) -> None:
        table: Dict[str, Scores] = {}
        for label, pair in scores.items():
            keep, change = (float(value) for value in pair)
            table[label] = (keep, change)
        self._scores = MappingProxyType(table)

    @classmethod
    def seeded(
        cls,
        rng: RandomSource,
        labels: Iterable[str] = SCENARIO_LABELS,
        low: float = 0.0,
        high: float = 10.0,
    ) -> "ValueTable":
        """Seed every label with two uniform draws from ``[low, high)``."""

        labels = tuple(labels)
        draws = rng.uniform(low, high, size=(len(labels), 2))
        return cls({label: row for label, row in zip(labels, draws)})

    def scores(self, label: str) -> Scores:
        return self._scores.get(label, (0.0, 0.0))

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(self._scores)

    def __contains__(self, label: object) -> bool:
        return label in self._scores

    def __len__(self) -> int:
        return len(self._scores)

    def __repr__(self) -> str:
        return f"ValueTable({dict(self._scores)!r})"


class DecisionEngine:
    """Epsilon-greedy policy over a static value table.

    When exploiting, equal scores resolve to ``Change``.

    Parameters
    ----------
    value_table:
        Scores per scenario label.  Seeded from ``rng`` when omitted.
    epsilon:
        Probability of picking a uniformly random action instead of the
        best-scoring one.
    rng:
        Random source for seeding and exploration.
    """

    def __init__(
        self,
        value_table: Optional[ValueTable] = None,
        epsilon: float = 0.1,
        rng: RandomSource | None = None,
    ) -> None:
        self.rng = rng if rng is not None else np.random.default_rng()
        self.value_table = value_table if value_table is not None else ValueTable.seeded(self.rng)
        self.epsilon = epsilon
        self._rng_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: OptimizerConfig) -> "DecisionEngine":
        rng = np.random.default_rng(config.seed)
        table = ValueTable.seeded(
            rng,
            labels=config.scenario_labels,
            low=config.seed_low,
            high=config.seed_high,
        )
        return cls(value_table=table, epsilon=config.epsilon, rng=rng)

    def select_action(self, scores: Scores, rng: RandomSource | None = None) -> Action:
        rng = rng if rng is not None else self.rng
        with self._rng_lock:
            if rng.random() < self.epsilon:
                return Action(int(rng.integers(2)))
        keep, change = scores
        return Action.KEEP if keep > change else Action.CHANGE

    def predict(self, state: TrafficState, rng: RandomSource | None = None) -> Decision:
        """Decide on the phase action and derive the next timing for ``state``."""

        scenario = classify(state)
        scores = self.value_table.scores(scenario)
        action = self.select_action(scores, rng=rng)
        decision = Decision(
            action=action,
            confidence=confidence_for(scores),
            expected_reward=expected_reward(state, action),
            new_timing=derive_timing(state),
            scenario=scenario,
        )
        logger.debug("Scenario %s scores %s -> %s", scenario, scores, decision)
        return decision

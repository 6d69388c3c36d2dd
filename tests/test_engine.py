from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import numpy as np
import pytest

from signal_optimizer import OptimizerConfig
from signal_optimizer.config import SCENARIO_LABELS
from signal_optimizer.engine import (
    DecisionEngine,
    ValueTable,
    classify,
    confidence_for,
    derive_timing,
    expected_reward,
)
from signal_optimizer.models import Action, TrafficState


class ScriptedRandom:
    """Random source replaying fixed draws."""

    def __init__(self, draws, choices=()):
        self.draws = list(draws)
        self.choices = list(choices)

    def random(self):
        return self.draws.pop(0)

    def integers(self, high):
        return self.choices.pop(0)


def make_state(**overrides):
    values = dict(
        vehicle_count=30,
        average_speed=25.0,
        congestion_level=3,
        time_in_phase=25,
        waiting_vehicles=9,
    )
    values.update(overrides)
    return TrafficState(**values)


SCENARIO_A = make_state(
    vehicle_count=60,
    average_speed=8.0,
    congestion_level=9,
    time_in_phase=40,
    waiting_vehicles=18,
)


@pytest.mark.parametrize("congestion", [8, 9, 10, 15])
@pytest.mark.parametrize("vehicles, speed", [(0, 0.0), (80, 3.0), (5, 60.0)])
def test_high_congestion_always_classified_high_traffic(congestion, vehicles, speed):
    state = make_state(congestion_level=congestion, vehicle_count=vehicles, average_speed=speed)

    assert classify(state) == "high_traffic"


def test_classification_follows_priority_order():
    assert classify(make_state(congestion_level=5, vehicle_count=90, average_speed=2.0)) == "medium_traffic"
    assert classify(make_state(congestion_level=4, vehicle_count=51, average_speed=2.0)) == "peak_hour"
    assert classify(make_state(congestion_level=4, vehicle_count=50, average_speed=9.9)) == "congested"
    assert classify(make_state(congestion_level=4, vehicle_count=50, average_speed=10.0)) == "normal_flow"


def test_seeded_only_labels_are_never_produced():
    produced = {
        classify(make_state(congestion_level=c, vehicle_count=v, average_speed=s))
        for c in range(0, 11)
        for v in (0, 10, 40, 51, 100)
        for s in (0.0, 5.0, 9.99, 10.0, 50.0)
    }

    assert produced == {"high_traffic", "medium_traffic", "peak_hour", "congested", "normal_flow"}
    assert not produced & {"low_traffic", "emergency", "accident"}


def test_derive_timing_scenario_a():
    timing = derive_timing(SCENARIO_A)

    # rule 1 lifts green to 40, rule 2 adds 10
    assert timing.green_seconds == 50
    assert timing.red_seconds == 24
    assert timing.yellow_seconds == 5


def test_derive_timing_defaults_and_low_traffic():
    assert derive_timing(make_state()).to_dict() == {"redTime": 30, "yellowTime": 5, "greenTime": 25}

    quiet = derive_timing(make_state(vehicle_count=4, congestion_level=1))
    assert quiet.green_seconds == 15
    assert quiet.red_seconds == 35


def test_derive_timing_clamps_extreme_congestion():
    timing = derive_timing(make_state(congestion_level=25, vehicle_count=10))
    assert timing.green_seconds == 60
    assert timing.red_seconds == 20

    timing = derive_timing(make_state(congestion_level=25, vehicle_count=45))
    assert timing.green_seconds == 70
    assert timing.red_seconds == 20


def test_derive_timing_stays_within_bounds():
    for congestion in range(0, 21):
        for vehicles in (0, 5, 9, 10, 39, 41, 200):
            timing = derive_timing(make_state(congestion_level=congestion, vehicle_count=vehicles))
            assert 15 <= timing.green_seconds <= 70
            assert 20 <= timing.red_seconds <= 45
            assert timing.yellow_seconds == 5


def test_confidence_bounded_for_seed_range():
    rng = np.random.default_rng(7)
    pairs = rng.uniform(0.0, 10.0, size=(10_000, 2))

    for keep, change in pairs:
        confidence = confidence_for((keep, change))
        assert 0.0 <= confidence <= 1.0


def test_confidence_formula():
    assert confidence_for((0.0, 0.0)) == 0.0
    assert confidence_for((9.0, 1.0)) == pytest.approx(9.0 / 11.0)
    assert confidence_for((1.0, 9.0)) == pytest.approx(9.0 / 11.0)


def test_expected_reward_scenario_a():
    assert expected_reward(SCENARIO_A, Action.CHANGE) == pytest.approx(16 + 2.4 - 18 + 10)
    assert expected_reward(SCENARIO_A, Action.KEEP) == pytest.approx(16 + 2.4 - 18)


def test_expected_reward_bonus_requires_long_phase():
    state = make_state(vehicle_count=60, time_in_phase=30, waiting_vehicles=60, average_speed=0.0, congestion_level=0)

    assert expected_reward(state, Action.CHANGE) == 0.0


def test_value_table_seeding_is_reproducible_and_in_range():
    first = ValueTable.seeded(np.random.default_rng(11))
    second = ValueTable.seeded(np.random.default_rng(11))

    assert first.labels == SCENARIO_LABELS
    for label in SCENARIO_LABELS:
        assert first.scores(label) == second.scores(label)
        assert all(0.0 <= score < 10.0 for score in first.scores(label))


def test_value_table_unknown_label_scores_zero():
    table = ValueTable({"normal_flow": (1.0, 2.0)})

    assert table.scores("accident") == (0.0, 0.0)
    assert "normal_flow" in table
    assert len(table) == 1


def test_exploit_picks_strictly_greater_score_and_ties_change():
    engine = DecisionEngine(ValueTable({}), epsilon=0.1, rng=ScriptedRandom([0.5, 0.5, 0.5]))

    assert engine.select_action((7.0, 3.0)) == Action.KEEP
    assert engine.select_action((3.0, 7.0)) == Action.CHANGE
    assert engine.select_action((4.0, 4.0)) == Action.CHANGE


def test_explore_draws_uniform_action():
    engine = DecisionEngine(ValueTable({}), epsilon=0.1, rng=ScriptedRandom([0.05, 0.09], [0, 1]))

    assert engine.select_action((1.0, 9.0)) == Action.KEEP
    assert engine.select_action((9.0, 1.0)) == Action.CHANGE


def test_predict_uses_scenario_scores():
    table = ValueTable({"high_traffic": (2.0, 8.0)})
    engine = DecisionEngine(table, epsilon=0.0, rng=ScriptedRandom([0.9]))

    decision = engine.predict(SCENARIO_A)

    assert decision.scenario == "high_traffic"
    assert decision.action == Action.CHANGE
    assert decision.confidence == pytest.approx(8.0 / 11.0)
    assert decision.expected_reward == pytest.approx(10.4)
    assert decision.new_timing == derive_timing(SCENARIO_A)


def test_predict_is_deterministic_for_identical_random_source():
    engine = DecisionEngine.from_config(OptimizerConfig(seed=5, epsilon=0.5))

    outcomes = [
        engine.predict(SCENARIO_A, rng=np.random.default_rng(99)) for _ in range(2)
    ]

    assert outcomes[0] == outcomes[1]


def test_engines_from_same_seed_share_value_table():
    first = DecisionEngine.from_config(OptimizerConfig(seed=21))
    second = DecisionEngine.from_config(OptimizerConfig(seed=21))

    for label in SCENARIO_LABELS:
        assert first.value_table.scores(label) == second.value_table.scores(label)


def test_engine_seeds_table_from_injected_random_source():
    class SeededSource(ScriptedRandom):
        def uniform(self, low, high, size):
            return np.full(size, 4.0)

    engine = DecisionEngine(epsilon=0.0, rng=SeededSource([0.5]))

    assert engine.value_table.labels == SCENARIO_LABELS
    assert engine.value_table.scores("normal_flow") == (4.0, 4.0)
    assert engine.predict(make_state()).action == Action.CHANGE

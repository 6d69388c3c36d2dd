from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from signal_optimizer import OptimizerConfig, StateAggregator
from signal_optimizer.models import Phase, SignalTiming, TrafficSample


def samples(*rows):
    return [TrafficSample(vehicle_count=v, average_speed=s, congestion_level=c) for v, s, c in rows]


def test_aggregate_averages_and_floors_window():
    aggregator = StateAggregator()

    state = aggregator.aggregate(
        samples((10, 20.0, 3), (11, 21.0, 4), (12, 22.0, 4), (13, 23.0, 5), (14, 24.5, 5)),
        SignalTiming(30, 5, 25),
    )

    assert state.vehicle_count == 12
    assert state.average_speed == pytest.approx(22.1)
    assert state.congestion_level == 4
    assert state.waiting_vehicles == 3
    assert state.current_phase == Phase.NORTH_SOUTH_GREEN
    assert state.time_in_phase == 25


def test_aggregate_only_uses_most_recent_window():
    aggregator = StateAggregator(window_size=2)

    state = aggregator.aggregate(samples((10, 10.0, 2), (20, 20.0, 4), (500, 500.0, 10)))

    assert state.vehicle_count == 15
    assert state.average_speed == pytest.approx(15.0)
    assert state.congestion_level == 3


def test_empty_window_produces_zero_state():
    state = StateAggregator().aggregate([])

    assert state.vehicle_count == 0
    assert state.average_speed == 0.0
    assert state.congestion_level == 0
    assert state.waiting_vehicles == 0


def test_aggregator_from_config_uses_phase_defaults():
    config = OptimizerConfig(default_phase=Phase.EAST_WEST_GREEN, default_time_in_phase=40, waiting_ratio=0.5)
    aggregator = StateAggregator.from_config(config)

    state = aggregator.aggregate(samples((9, 30.0, 1)))

    assert state.current_phase == Phase.EAST_WEST_GREEN
    assert state.time_in_phase == 40
    assert state.waiting_vehicles == 4


def test_sample_from_row_treats_null_columns_as_zero():
    sample = TrafficSample.from_row(
        {
            "vehicle_count": 12,
            "average_speed": None,
            "congestion_level": None,
            "created_at": "2024-05-01T12:00:00Z",
        }
    )

    assert sample.average_speed == 0.0
    assert sample.congestion_level == 0
    assert sample.observed_at.year == 2024
    assert sample.observed_at.utcoffset().total_seconds() == 0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"epsilon": 1.5},
        {"window_size": 0},
        {"confidence_threshold": -0.1},
        {"seed_low": -1.0},
        {"seed_low": 5.0, "seed_high": 5.0},
        {"persist_retries": -1},
    ],
)
def test_config_rejects_invalid_values(kwargs):
    with pytest.raises(ValueError):
        OptimizerConfig(**kwargs)

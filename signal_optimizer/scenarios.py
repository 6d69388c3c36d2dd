"""Predefined traffic windows for demos and manual checks of the optimizer."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .models import TrafficSample


@dataclass(frozen=True)
class TrafficScenario:
    """A repeatable window of observations for one intersection.

    ``observations`` holds ``(vehicle_count, average_speed, congestion_level)``
    tuples, most recent first.
    """

    name: str
    description: str
    observations: Tuple[Tuple[int, float, int], ...]

    def __post_init__(self) -> None:  # type: ignore[override]
        if not self.observations:
            raise ValueError("A scenario must contain at least one observation")
        for vehicles, speed, congestion in self.observations:
            if vehicles < 0 or speed < 0 or congestion < 0:
                raise ValueError("Observations cannot contain negative values")

    def samples(self) -> List[TrafficSample]:
        """Return the observations as samples, most recent first."""

        return [
            TrafficSample(vehicle_count=vehicles, average_speed=speed, congestion_level=congestion)
            for vehicles, speed, congestion in self.observations
        ]


def load_predefined_scenarios() -> List[TrafficScenario]:
    """Return curated windows covering each reachable scenario label."""

    rush_hour = TrafficScenario(
        name="rush-hour",
        description=(
            "Saturated arterial during the evening peak. Congestion stays above 7 "
            "so the state is classified as high traffic."
        ),
        observations=((62, 7.5, 9), (58, 8.0, 9), (65, 6.5, 10), (55, 9.0, 8), (60, 9.0, 9)),
    )

    busy_flow = TrafficScenario(
        name="busy-flow",
        description="Dense but moving traffic with moderate congestion.",
        observations=((38, 22.0, 6), (41, 20.5, 5), (35, 24.0, 5), (44, 19.0, 6), (40, 21.0, 5)),
    )

    event_crowd = TrafficScenario(
        name="event-crowd",
        description=(
            "High vehicle counts with low congestion readings, typical right after "
            "a stadium event releases."
        ),
        observations=((72, 28.0, 3), (68, 30.0, 4), (75, 26.5, 3), (70, 29.0, 2), (66, 31.0, 3)),
    )

    slow_crawl = TrafficScenario(
        name="slow-crawl",
        description="Few vehicles crawling through road works.",
        observations=((18, 6.0, 3), (22, 7.5, 4), (20, 5.5, 3), (16, 8.0, 2), (19, 6.5, 3)),
    )

    quiet_night = TrafficScenario(
        name="quiet-night",
        description="Near-empty intersection in the small hours.",
        observations=((4, 42.0, 1), (6, 45.0, 0), (3, 48.0, 1), (5, 44.0, 1), (2, 50.0, 0)),
    )

    return [rush_hour, busy_flow, event_crowd, slow_crawl, quiet_night]


def find_scenario(name: str) -> Optional[TrafficScenario]:
    for scenario in load_predefined_scenarios():
        if scenario.name == name:
            return scenario
    return None

"""Configuration dataclasses for the signal optimization service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional, Tuple

from .models import Phase


BackendLiteral = Literal["memory", "sqlite", "supabase"]

SCENARIO_LABELS: Tuple[str, ...] = (
    "low_traffic",
    "medium_traffic",
    "high_traffic",
    "peak_hour",
    "emergency",
    "accident",
    "normal_flow",
    "congested",
)


@dataclass(slots=True)
class OptimizerConfig:
    """Runtime configuration for :class:`signal_optimizer.service.OptimizerService`.

    Parameters
    ----------
    epsilon:
        Exploration rate of the epsilon-greedy policy.
    window_size:
        Number of most recent traffic samples averaged into one state.
    confidence_threshold:
        A ``Change`` decision is persisted only when its confidence is strictly
        above this value.
    default_phase, default_time_in_phase:
        Phase fields reported in every state.  They are not derived from live
        signal data yet.
    waiting_ratio:
        Share of the mean vehicle count assumed to be waiting at the stop line.
    seed_low, seed_high:
        Half-open range ``[seed_low, seed_high)`` used to seed the value table.
        Must stay non-negative for the confidence formula to remain in [0, 1].
    scenario_labels:
        Value table keys, in seeding order.
    persist_retries:
        Extra attempts made when writing a new timing fails.
    serialize_per_intersection:
        Hold a per-intersection lock for the duration of ``optimize``.
    seed:
        Seed for the engine's random generator.  ``None`` draws fresh entropy.
    """

    epsilon: float = 0.1
    window_size: int = 5
    confidence_threshold: float = 0.6
    default_phase: Phase = Phase.NORTH_SOUTH_GREEN
    default_time_in_phase: int = 25
    waiting_ratio: float = 0.3
    seed_low: float = 0.0
    seed_high: float = 10.0
    scenario_labels: Tuple[str, ...] = SCENARIO_LABELS
    persist_retries: int = 1
    serialize_per_intersection: bool = True
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.epsilon <= 1.0:
            raise ValueError("epsilon must be within [0, 1]")
        if self.window_size < 1:
            raise ValueError("window_size must be at least 1")
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError("confidence_threshold must be within [0, 1]")
        if self.seed_low < 0 or self.seed_high <= self.seed_low:
            raise ValueError("seed range must be non-negative and non-empty")
        if not self.scenario_labels:
            raise ValueError("at least one scenario label is required")
        if self.persist_retries < 0:
            raise ValueError("persist_retries cannot be negative")


@dataclass(slots=True)
class StorageConfig:
    """Selects and parameterises the traffic data backend."""

    backend: BackendLiteral = "memory"
    db_path: str | Path | None = None
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = field(default=None, repr=False)
    timeout: float = 10.0

    def __post_init__(self) -> None:
        if self.backend not in ("memory", "sqlite", "supabase"):
            raise ValueError(f"unknown storage backend: {self.backend!r}")
        if self.backend == "sqlite" and self.db_path is None:
            raise ValueError("sqlite backend requires db_path")
        if self.backend == "supabase" and not (self.supabase_url and self.supabase_key):
            raise ValueError("supabase backend requires both url and service key")

    @classmethod
    def from_env(cls, backend: BackendLiteral | None = None) -> "StorageConfig":
        """Build a configuration from the deployment environment variables.

        ``SUPABASE_URL`` and ``SUPABASE_SERVICE_ROLE_KEY`` select the hosted
        store, ``SIGNAL_OPTIMIZER_DB`` a local SQLite file.  With neither set
        the in-memory store is used.
        """

        url = os.environ.get("SUPABASE_URL") or None
        key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY") or None
        db_path = os.environ.get("SIGNAL_OPTIMIZER_DB") or None
        if backend is None:
            if url and key:
                backend = "supabase"
            elif db_path:
                backend = "sqlite"
            else:
                backend = "memory"
        return cls(backend=backend, db_path=db_path, supabase_url=url, supabase_key=key)

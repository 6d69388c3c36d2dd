"""Traffic signal optimization engine and its request service."""

from .aggregator import StateAggregator
from .config import OptimizerConfig, StorageConfig
from .engine import DecisionEngine, ValueTable, classify, derive_timing
from .errors import DataUnavailable, NotFound, OptimizerError, PersistFailure
from .models import Action, Decision, OptimizationResult, Phase, SignalTiming, TrafficSample, TrafficState
from .service import OptimizerService

__all__ = [
    "Action",
    "DataUnavailable",
    "Decision",
    "DecisionEngine",
    "NotFound",
    "OptimizationResult",
    "OptimizerConfig",
    "OptimizerError",
    "OptimizerService",
    "PersistFailure",
    "Phase",
    "SignalTiming",
    "StateAggregator",
    "StorageConfig",
    "TrafficSample",
    "TrafficState",
    "ValueTable",
    "classify",
    "derive_timing",
]

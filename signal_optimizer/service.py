"""Request orchestration around the aggregator, the engine and a traffic store."""

from __future__ import annotations

import logging
import threading
import weakref
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .aggregator import StateAggregator
from .config import OptimizerConfig
from .engine import DecisionEngine
from .errors import OptimizerError, PersistFailure
from .models import Action, Decision, OptimizationResult, SystemStatus
from .storage.base import TrafficStore

logger = logging.getLogger(__name__)

MAINTAIN_MESSAGE = "AI maintaining current timing"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OptimizerService:
    """Run one optimization per request against a traffic store.

    The engine is created once per service and shared between requests; its
    value table is read-only.  Store calls are the only blocking operations.
    """

    def __init__(
        self,
        store: TrafficStore,
        config: OptimizerConfig | None = None,
        engine: DecisionEngine | None = None,
        aggregator: StateAggregator | None = None,
        time_func: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.config = config or OptimizerConfig()
        self.engine = engine or DecisionEngine.from_config(self.config)
        self.aggregator = aggregator or StateAggregator.from_config(self.config)
        self.time_func = time_func or _utcnow
        self.last_optimized_at: Optional[datetime] = None
        # entries live only while a request holds the lock
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, intersection_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(intersection_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[intersection_id] = lock
            return lock

    def should_apply(self, decision: Decision) -> bool:
        return (
            decision.action == Action.CHANGE
            and decision.confidence > self.config.confidence_threshold
        )

    def optimize(self, intersection_id: str) -> OptimizationResult:
        """Decide on and possibly apply a new timing for ``intersection_id``.

        Fetch failures propagate as :class:`~signal_optimizer.errors.DataUnavailable`
        or :class:`~signal_optimizer.errors.NotFound`.  A failed timing update is
        retried ``persist_retries`` times and then reported on the result with
        ``applied`` left false.
        """

        if not self.config.serialize_per_intersection:
            return self._optimize(intersection_id)
        with self._lock_for(intersection_id):
            return self._optimize(intersection_id)

    def _optimize(self, intersection_id: str) -> OptimizationResult:
        logger.info("AI optimization requested for intersection: %s", intersection_id)

        samples = self.store.fetch_recent_samples(intersection_id, limit=self.config.window_size)
        timing = self.store.fetch_timing(intersection_id)

        state = self.aggregator.aggregate(samples, timing)
        logger.info("Current traffic state: %s", state)

        decision = self.engine.predict(state)
        logger.info("AI decision: %s", decision)
        self.last_optimized_at = self.time_func()

        applied = False
        error: Optional[str] = None
        if self.should_apply(decision):
            try:
                self._persist(intersection_id, decision)
                applied = True
            except PersistFailure as exc:
                error = str(exc)

        if applied:
            timing = decision.new_timing
            message = f"AI optimized timing: G:{timing.green_seconds}s R:{timing.red_seconds}s"
        else:
            message = MAINTAIN_MESSAGE

        return OptimizationResult(
            intersection_id=intersection_id,
            decision=decision,
            state=state,
            applied=applied,
            message=message,
            error=error,
        )

    def _persist(self, intersection_id: str, decision: Decision) -> None:
        attempts = self.config.persist_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                self.store.update_timing(intersection_id, decision.new_timing)
            except PersistFailure as exc:
                logger.error(
                    "Error updating signal timing (attempt %d/%d): %s", attempt, attempts, exc
                )
                if attempt == attempts:
                    raise
            else:
                logger.info("Signal timing updated by AI")
                return

    def status(self) -> SystemStatus:
        """Describe the service; the performance figures are fixed constants."""

        return SystemStatus(last_optimized_at=self.last_optimized_at)

    def handle_request(self, payload: Mapping[str, Any]) -> Tuple[int, Dict[str, Any]]:
        """Dispatch a JSON request body and return ``(http_status, response_body)``."""

        operation = payload.get("operation")
        try:
            if operation == "optimize":
                intersection_id = payload.get("intersectionId")
                if not intersection_id:
                    return 400, {"error": "intersectionId is required"}
                return 200, self.optimize(str(intersection_id)).to_dict()
            if operation == "status":
                return 200, self.status().to_dict()
        except OptimizerError as exc:
            logger.error("Error in AI traffic optimizer: %s", exc)
            return 500, {"error": "AI optimization failed", "details": str(exc)}
        return 400, {"error": "Invalid operation"}

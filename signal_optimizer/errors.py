"""Exceptions raised by the storage layer and surfaced by the service."""

from __future__ import annotations

from typing import Optional


class OptimizerError(Exception):
    """Base class for every failure reported to optimizer callers."""

    def __init__(self, message: str, intersection_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.intersection_id = intersection_id


class DataUnavailable(OptimizerError):
    """Fetching traffic samples or timing from the store failed."""


class NotFound(OptimizerError):
    """The intersection has no signal timing record."""


class PersistFailure(OptimizerError):
    """Writing a new signal timing failed after a decision was made."""

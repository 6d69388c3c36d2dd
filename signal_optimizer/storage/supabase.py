"""Hosted store speaking the PostgREST API of a Supabase project."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx

from .base import TrafficStore
from ..errors import DataUnavailable, NotFound, PersistFailure
from ..models import SignalTiming, TrafficSample

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SupabaseTrafficStore(TrafficStore):
    """Read samples and read/write timings through ``/rest/v1``.

    Parameters
    ----------
    url:
        Project URL, e.g. ``https://abc.supabase.co``.
    service_key:
        Service role key sent as both ``apikey`` and bearer token.
    timeout:
        Per-request timeout in seconds.
    client:
        Pre-built :class:`httpx.Client`, mainly for tests.  Its ``base_url``
        must already point at the REST root.
    """

    def __init__(
        self,
        url: str,
        service_key: str,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.base_url = url.rstrip("/") + "/rest/v1"
        self.service_key = service_key
        self.clock = clock or _utcnow
        self._client = client or httpx.Client(base_url=self.base_url, timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Dict[str, Any],
        json_body: Dict[str, Any] | None = None,
        headers: Dict[str, str] | None = None,
    ) -> List[Dict[str, Any]]:
        response = self._client.request(
            method,
            path,
            params=params,
            json=json_body,
            headers={**self._headers(), **(headers or {})},
        )
        response.raise_for_status()
        return response.json() if response.content else []

    def fetch_recent_samples(self, intersection_id: str, limit: int = 5) -> List[TrafficSample]:
        try:
            rows = self._request(
                "GET",
                "/traffic_data",
                params={
                    "select": "*",
                    "intersection_id": f"eq.{intersection_id}",
                    "order": "created_at.desc",
                    "limit": str(limit),
                },
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error fetching traffic data: %s", exc)
            raise DataUnavailable(str(exc), intersection_id=intersection_id) from exc
        try:
            return [TrafficSample.from_row(row) for row in rows]
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Malformed traffic data row: %s", exc)
            raise DataUnavailable(
                f"Malformed traffic_data row: {exc}", intersection_id=intersection_id
            ) from exc

    def fetch_timing(self, intersection_id: str) -> SignalTiming:
        try:
            rows = self._request(
                "GET",
                "/signal_timing",
                params={"select": "*", "intersection_id": f"eq.{intersection_id}"},
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error fetching signal data: %s", exc)
            raise DataUnavailable(str(exc), intersection_id=intersection_id) from exc
        if not rows:
            raise NotFound(
                f"No signal timing for intersection {intersection_id}",
                intersection_id=intersection_id,
            )
        try:
            return SignalTiming.from_row(rows[0])
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Malformed signal timing row: %s", exc)
            raise DataUnavailable(
                f"Malformed signal_timing row: {exc}", intersection_id=intersection_id
            ) from exc

    def update_timing(self, intersection_id: str, timing: SignalTiming) -> SignalTiming:
        stored = replace(timing, updated_at=self.clock())
        body = {**stored.to_row(), "updated_at": stored.updated_at.isoformat()}
        try:
            rows = self._request(
                "PATCH",
                "/signal_timing",
                params={"intersection_id": f"eq.{intersection_id}"},
                json_body=body,
                headers={"Prefer": "return=representation"},
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error updating signal timing: %s", exc)
            raise PersistFailure(str(exc), intersection_id=intersection_id) from exc
        if not rows:
            raise PersistFailure(
                f"No signal timing row updated for intersection {intersection_id}",
                intersection_id=intersection_id,
            )
        return stored

    def close(self) -> None:
        self._client.close()

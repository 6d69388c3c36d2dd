"""SQLite backed store mirroring the hosted ``traffic_data``/``signal_timing`` tables."""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List

from .base import TrafficStore
from ..errors import DataUnavailable, NotFound, PersistFailure
from ..models import SignalTiming, TrafficSample

logger = logging.getLogger(__name__)


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS traffic_data (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    intersection_id TEXT NOT NULL,
    vehicle_count INTEGER NOT NULL,
    average_speed REAL,
    congestion_level INTEGER,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_traffic_data_recent
    ON traffic_data (intersection_id, created_at DESC);

CREATE TABLE IF NOT EXISTS signal_timing (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    intersection_id TEXT NOT NULL UNIQUE,
    red_time INTEGER NOT NULL DEFAULT 30,
    yellow_time INTEGER NOT NULL DEFAULT 5,
    green_time INTEGER NOT NULL DEFAULT 25,
    cycle_length INTEGER,
    updated_at TEXT
);
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_connection(db_path: str | Path) -> sqlite3.Connection:
    path = Path(db_path)
    if str(db_path) != ":memory:":
        path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    conn.executescript(_SCHEMA_SQL)
    conn.commit()


class SQLiteTrafficStore(TrafficStore):
    """Local relational store with the same columns as the hosted schema."""

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.clock = clock or _utcnow
        self.conn = get_connection(db_path)
        init_db(self.conn)
        self._lock = threading.Lock()

    def add_sample(self, intersection_id: str, sample: TrafficSample) -> None:
        observed_at = sample.observed_at or self.clock()
        with self._lock:
            self.conn.execute(
                """
                INSERT INTO traffic_data (
                    intersection_id, vehicle_count, average_speed, congestion_level, created_at
                )
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    intersection_id,
                    sample.vehicle_count,
                    sample.average_speed,
                    sample.congestion_level,
                    observed_at.isoformat(),
                ),
            )
            self.conn.commit()

    def set_timing(self, intersection_id: str, timing: SignalTiming) -> None:
        updated_at = timing.updated_at or self.clock()
        with self._lock:
            self.conn.execute(
                """
                INSERT INTO signal_timing (intersection_id, red_time, yellow_time, green_time, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (intersection_id) DO UPDATE SET
                    red_time = excluded.red_time,
                    yellow_time = excluded.yellow_time,
                    green_time = excluded.green_time,
                    updated_at = excluded.updated_at
                """,
                (
                    intersection_id,
                    timing.red_seconds,
                    timing.yellow_seconds,
                    timing.green_seconds,
                    updated_at.isoformat(),
                ),
            )
            self.conn.commit()

    def fetch_recent_samples(self, intersection_id: str, limit: int = 5) -> List[TrafficSample]:
        try:
            with self._lock:
                rows = self.conn.execute(
                    """
                    SELECT vehicle_count, average_speed, congestion_level, created_at
                    FROM traffic_data
                    WHERE intersection_id = ?
                    ORDER BY created_at DESC, id DESC
                    LIMIT ?
                    """,
                    (intersection_id, limit),
                ).fetchall()
        except sqlite3.Error as exc:
            logger.error("Error fetching traffic data: %s", exc)
            raise DataUnavailable(str(exc), intersection_id=intersection_id) from exc
        try:
            return [TrafficSample.from_row(dict(row)) for row in rows]
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Malformed traffic data row: %s", exc)
            raise DataUnavailable(
                f"Malformed traffic_data row: {exc}", intersection_id=intersection_id
            ) from exc

    def fetch_timing(self, intersection_id: str) -> SignalTiming:
        try:
            with self._lock:
                row = self.conn.execute(
                    """
                    SELECT red_time, yellow_time, green_time, updated_at
                    FROM signal_timing
                    WHERE intersection_id = ?
                    """,
                    (intersection_id,),
                ).fetchone()
        except sqlite3.Error as exc:
            logger.error("Error fetching signal data: %s", exc)
            raise DataUnavailable(str(exc), intersection_id=intersection_id) from exc
        if row is None:
            raise NotFound(
                f"No signal timing for intersection {intersection_id}",
                intersection_id=intersection_id,
            )
        try:
            return SignalTiming.from_row(dict(row))
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Malformed signal timing row: %s", exc)
            raise DataUnavailable(
                f"Malformed signal_timing row: {exc}", intersection_id=intersection_id
            ) from exc

    def update_timing(self, intersection_id: str, timing: SignalTiming) -> SignalTiming:
        stored = replace(timing, updated_at=self.clock())
        try:
            with self._lock:
                cursor = self.conn.execute(
                    """
                    UPDATE signal_timing
                    SET red_time = ?, yellow_time = ?, green_time = ?, updated_at = ?
                    WHERE intersection_id = ?
                    """,
                    (
                        stored.red_seconds,
                        stored.yellow_seconds,
                        stored.green_seconds,
                        stored.updated_at.isoformat(),
                        intersection_id,
                    ),
                )
                self.conn.commit()
        except sqlite3.Error as exc:
            logger.error("Error updating signal timing: %s", exc)
            raise PersistFailure(str(exc), intersection_id=intersection_id) from exc
        if cursor.rowcount == 0:
            raise PersistFailure(
                f"No signal timing row updated for intersection {intersection_id}",
                intersection_id=intersection_id,
            )
        return stored

    def close(self) -> None:
        self.conn.close()

"""
SQLite implementation of the experiment store.

Each operation opens its own connection, so the store can be shared between
request threads. ``:memory:`` databases keep a single shared connection
instead, since every new connection would see an empty database.
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from variantlab.ab_testing.exceptions import StoreUnavailableError
from variantlab.ab_testing.models import (
    Event,
    EventType,
    Experiment,
    ExperimentStatus,
    Variant,
)
from variantlab.storage.interface import UPDATABLE_FIELDS, ExperimentStore
from variantlab.utils.logging import get_logger


SCHEMA = """
CREATE TABLE IF NOT EXISTS ab_experiments (
    id TEXT PRIMARY KEY,
    subject_id TEXT NOT NULL,
    variants TEXT NOT NULL,  -- JSON array
    metrics TEXT NOT NULL,  -- JSON array
    duration_days INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    winner TEXT,
    started_at TEXT NOT NULL,
    ended_at TEXT
);

CREATE TABLE IF NOT EXISTS ab_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    experiment_id TEXT NOT NULL,
    variant_id TEXT NOT NULL,
    event_type TEXT NOT NULL,
    metric TEXT,
    timestamp TEXT NOT NULL,
    FOREIGN KEY (experiment_id) REFERENCES ab_experiments (id)
);

CREATE INDEX IF NOT EXISTS idx_events_experiment ON ab_events(experiment_id);
CREATE INDEX IF NOT EXISTS idx_events_variant ON ab_events(experiment_id, variant_id);
CREATE INDEX IF NOT EXISTS idx_experiments_status ON ab_experiments(status);
"""


class SQLiteExperimentStore(ExperimentStore):
    """Experiment store backed by a SQLite database file."""

    def __init__(self, db_path: Optional[str] = None, timeout: float = 30.0):
        """Initialize the store and create the schema.

        Args:
            db_path: Path to the SQLite database, or ``:memory:``
            timeout: Seconds to wait on a locked database
        """
        self.db_path = db_path or "ab_tests.db"
        self.timeout = timeout
        self.logger = get_logger(f"{__name__}.SQLiteExperimentStore")
        self._shared_conn = None
        self._shared_lock = threading.Lock()

        if self.db_path == ":memory:":
            self._shared_conn = sqlite3.connect(
                ":memory:", check_same_thread=False, timeout=timeout
            )

        self._init_database()

    def _init_database(self):
        with self._connect() as conn:
            conn.executescript(SCHEMA)

        self.logger.info(f"A/B testing database initialized at {self.db_path}")

    @contextmanager
    def _connect(self):
        """Yield a connection inside a transaction, wrapping sqlite errors."""
        try:
            if self._shared_conn is not None:
                with self._shared_lock:
                    with self._shared_conn:
                        yield self._shared_conn
            else:
                conn = sqlite3.connect(self.db_path, timeout=self.timeout)
                try:
                    with conn:
                        yield conn
                finally:
                    conn.close()
        except sqlite3.Error as e:
            self.logger.error(f"SQLite operation failed on {self.db_path}: {e}")
            raise StoreUnavailableError(
                f"Experiment store unavailable: {e}",
                metadata={"db_path": self.db_path},
            ) from e

    def create_experiment(self, experiment: Experiment) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO ab_experiments (
                    id, subject_id, variants, metrics, duration_days,
                    status, winner, started_at, ended_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    experiment.id,
                    experiment.subject_id,
                    json.dumps([variant.to_dict() for variant in experiment.variants]),
                    json.dumps(list(experiment.metrics)),
                    experiment.duration_days,
                    experiment.status.value,
                    experiment.winner,
                    experiment.started_at.isoformat(),
                    experiment.ended_at.isoformat() if experiment.ended_at else None,
                ),
            )

    def get_experiment(self, experiment_id: str) -> Optional[Experiment]:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                "SELECT * FROM ab_experiments WHERE id = ?", (experiment_id,)
            )
            row = cursor.fetchone()

        if not row:
            return None
        return self._row_to_experiment(row)

    def list_experiments(
        self, status: Optional[ExperimentStatus] = None
    ) -> List[Experiment]:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            if status:
                cursor = conn.execute(
                    """
                    SELECT * FROM ab_experiments
                    WHERE status = ?
                    ORDER BY started_at DESC
                """,
                    (status.value,),
                )
            else:
                cursor = conn.execute(
                    "SELECT * FROM ab_experiments ORDER BY started_at DESC"
                )
            rows = cursor.fetchall()

        return [self._row_to_experiment(row) for row in rows]

    def update_experiment(
        self,
        experiment_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[ExperimentStatus] = None,
    ) -> bool:
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update experiment fields: {sorted(unknown)}")
        if not fields:
            return False

        assignments = []
        params = []
        for name in UPDATABLE_FIELDS:
            if name in fields:
                assignments.append(f"{name} = ?")
                params.append(_serialize_field(fields[name]))

        query = f"UPDATE ab_experiments SET {', '.join(assignments)} WHERE id = ?"
        params.append(experiment_id)
        if expected_status is not None:
            query += " AND status = ?"
            params.append(expected_status.value)

        with self._connect() as conn:
            cursor = conn.execute(query, tuple(params))
            updated = cursor.rowcount == 1

        return updated

    def append_event(
        self,
        experiment_id: str,
        variant_id: str,
        event_type: EventType,
        metric: Optional[str],
        timestamp: datetime,
    ) -> Event:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO ab_events (
                    experiment_id, variant_id, event_type, metric, timestamp
                ) VALUES (?, ?, ?, ?, ?)
            """,
                (
                    experiment_id,
                    variant_id,
                    event_type.value,
                    metric,
                    timestamp.isoformat(),
                ),
            )

        return Event(
            experiment_id=experiment_id,
            variant_id=variant_id,
            type=event_type,
            timestamp=timestamp,
            metric=metric,
        )

    def list_events(self, experiment_id: str) -> List[Event]:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                """
                SELECT experiment_id, variant_id, event_type, metric, timestamp
                FROM ab_events
                WHERE experiment_id = ?
                ORDER BY id
            """,
                (experiment_id,),
            )
            rows = cursor.fetchall()

        return [
            Event(
                experiment_id=row["experiment_id"],
                variant_id=row["variant_id"],
                type=EventType(row["event_type"]),
                timestamp=datetime.fromisoformat(row["timestamp"]),
                metric=row["metric"],
            )
            for row in rows
        ]

    def close(self) -> None:
        if self._shared_conn is not None:
            self._shared_conn.close()
            self._shared_conn = None

    def _row_to_experiment(self, row: sqlite3.Row) -> Experiment:
        return Experiment(
            id=row["id"],
            subject_id=row["subject_id"],
            variants=[
                Variant(id=v["id"], weight=v["weight"], url=v.get("url", ""))
                for v in json.loads(row["variants"])
            ],
            metrics=json.loads(row["metrics"]),
            duration_days=row["duration_days"],
            status=ExperimentStatus(row["status"]),
            winner=row["winner"],
            started_at=datetime.fromisoformat(row["started_at"]),
            ended_at=(
                datetime.fromisoformat(row["ended_at"]) if row["ended_at"] else None
            ),
        )


def _serialize_field(value: Any) -> Any:
    if isinstance(value, ExperimentStatus):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value

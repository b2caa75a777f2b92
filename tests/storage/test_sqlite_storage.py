"""
Tests for the SQLite experiment store.
"""

import sqlite3
from datetime import datetime, timezone

import pytest

from variantlab.ab_testing.exceptions import StoreUnavailableError
from variantlab.ab_testing.models import EventType, Experiment, ExperimentStatus, Variant
from variantlab.storage import SQLiteExperimentStore


def _experiment(experiment_id="exp-1"):
    return Experiment(
        id=experiment_id,
        subject_id="project-1",
        variants=[Variant(id="A", weight=1.0, url="/a")],
        metrics=["conversion"],
        duration_days=7,
        status=ExperimentStatus.ACTIVE,
        started_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def test_database_initialization(temp_db):
    """Test database tables are created."""
    SQLiteExperimentStore(db_path=temp_db)

    with sqlite3.connect(temp_db) as conn:
        cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        tables = {row[0] for row in cursor.fetchall()}

    assert {"ab_experiments", "ab_events"} <= tables


def test_data_survives_new_instance(temp_db):
    """Test a second store on the same file sees stored data."""
    first = SQLiteExperimentStore(db_path=temp_db)
    first.create_experiment(_experiment())
    first.append_event(
        "exp-1", "A", EventType.VISIT, None, datetime(2024, 1, 2, tzinfo=timezone.utc)
    )

    second = SQLiteExperimentStore(db_path=temp_db)

    assert second.get_experiment("exp-1").subject_id == "project-1"
    assert len(second.list_events("exp-1")) == 1


def test_unreachable_database(tmp_path):
    """Test an unusable database path is reported as store unavailability."""
    db_path = str(tmp_path / "missing-dir" / "ab_tests.db")

    with pytest.raises(StoreUnavailableError) as exc_info:
        SQLiteExperimentStore(db_path=db_path)

    assert isinstance(exc_info.value.__cause__, sqlite3.Error)
    assert exc_info.value.metadata["db_path"] == db_path


def test_failure_during_operation(sqlite_store, mocker):
    """Test sqlite errors raised mid-operation are wrapped."""
    mocker.patch(
        "variantlab.storage.sqlite_storage.sqlite3.connect",
        side_effect=sqlite3.OperationalError("database is locked"),
    )

    with pytest.raises(StoreUnavailableError, match="database is locked"):
        sqlite_store.get_experiment("exp-1")


def test_memory_database_shares_connection():
    """Test ':memory:' keeps its data between operations."""
    store = SQLiteExperimentStore(db_path=":memory:")
    try:
        store.create_experiment(_experiment())
        assert store.get_experiment("exp-1") is not None
    finally:
        store.close()

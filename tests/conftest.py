"""
Pytest configuration and fixtures for testing.
"""

import contextlib
import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

from variantlab.ab_testing.ab_test_manager import ABTestManager
from variantlab.storage import (
    InMemoryExperimentStore,
    SQLiteExperimentStore,
    reset_storage_instance,
)


@pytest.fixture
def temp_db():
    """Create temporary database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    yield db_path

    # Cleanup
    with contextlib.suppress(FileNotFoundError):
        os.unlink(db_path)


@pytest.fixture
def sqlite_store(temp_db):
    """SQLite experiment store on a temporary database file."""
    return SQLiteExperimentStore(db_path=temp_db)


@pytest.fixture
def memory_store():
    """In-memory experiment store."""
    return InMemoryExperimentStore()


class FakeClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_manager(sqlite_store, clock):
    """Create test A/B manager on a temporary SQLite database."""
    return ABTestManager(
        store=sqlite_store, base_url="https://pages.example.com", clock=clock
    )


@pytest.fixture
def two_variant_config():
    return {
        "subject_id": "project-42",
        "variants": [
            {"id": "A", "weight": 0.5, "url": "/p/42/a"},
            {"id": "B", "weight": 0.5, "url": "/p/42/b"},
        ],
        "metrics": ["conversion"],
        "duration_days": 14,
    }


@pytest.fixture(autouse=True)
def _reset_storage_singleton():
    yield
    reset_storage_instance()


@pytest.fixture
def memory_manager(memory_store, clock):
    """A/B manager on the in-memory store, for high-volume traffic tests."""
    return ABTestManager(
        store=memory_store, base_url="https://pages.example.com", clock=clock
    )


@pytest.fixture
def record_traffic():
    """Return a helper recording visit and conversion events for a variant."""

    def _record(manager, experiment_id, variant_id, visits, conversions):
        for _ in range(visits):
            manager.record_event(experiment_id, variant_id, "visit")
        for _ in range(conversions):
            manager.record_event(experiment_id, variant_id, "conversion")

    return _record

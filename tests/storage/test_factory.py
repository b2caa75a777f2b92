"""
Tests for the storage factory.
"""

import pytest

from variantlab.config import settings
from variantlab.storage import (
    InMemoryExperimentStore,
    SQLiteExperimentStore,
    configure_storage,
    get_storage_instance,
    reset_storage_instance,
)


def test_memory_storage():
    """Test selecting the in-memory backend."""
    assert isinstance(get_storage_instance("memory"), InMemoryExperimentStore)


def test_sqlite_storage(temp_db):
    """Test selecting the SQLite backend with a database path."""
    store = get_storage_instance("sqlite", {"db_path": temp_db})

    assert isinstance(store, SQLiteExperimentStore)
    assert store.db_path == temp_db


def test_storage_type_from_config():
    """Test the backend can be chosen through the config dictionary."""
    assert isinstance(
        get_storage_instance(config={"storage_type": "MEMORY"}),
        InMemoryExperimentStore,
    )


def test_storage_type_from_settings(monkeypatch):
    """Test the backend defaults to AB_STORAGE_TYPE."""
    monkeypatch.setattr(settings, "AB_STORAGE_TYPE", "memory")

    assert isinstance(get_storage_instance(), InMemoryExperimentStore)


def test_singleton():
    """Test repeated calls return the same instance."""
    first = get_storage_instance("memory")

    assert get_storage_instance() is first

    reset_storage_instance()
    assert get_storage_instance("memory") is not first


def test_configure_storage_returns_new_instance():
    """Test configure_storage bypasses the singleton."""
    shared = get_storage_instance("memory")

    configured = configure_storage("memory")

    assert configured is not shared
    assert get_storage_instance() is shared


def test_unsupported_storage_type():
    """Test unknown backends are rejected."""
    with pytest.raises(ValueError, match="Unsupported storage type"):
        get_storage_instance("postgres", force_new=True)

"""
Storage abstraction layer for variantlab.

This module provides the experiment store interface and its backends, so the
A/B test manager can run against SQLite in production and an in-memory store
in tests.
"""

from .factory import configure_storage, get_storage_instance, reset_storage_instance
from .interface import ExperimentStore
from .memory_storage import InMemoryExperimentStore
from .sqlite_storage import SQLiteExperimentStore

__all__ = [
    "ExperimentStore",
    "SQLiteExperimentStore",
    "InMemoryExperimentStore",
    "get_storage_instance",
    "configure_storage",
    "reset_storage_instance",
]

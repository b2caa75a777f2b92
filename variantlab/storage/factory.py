"""
Storage factory for variantlab.

This module provides a factory function for creating experiment store
instances based on configuration or environment variables.
"""

from typing import Any, Dict, Optional

from variantlab.config import settings
from variantlab.utils.logging import get_logger

from .interface import ExperimentStore
from .memory_storage import InMemoryExperimentStore
from .sqlite_storage import SQLiteExperimentStore

logger = get_logger(__name__)

# Storage type constants
SQLITE = "sqlite"
MEMORY = "memory"

SUPPORTED_STORAGE_TYPES = [SQLITE, MEMORY]

# Global storage instance for singleton pattern
_storage_instance: Optional[ExperimentStore] = None


def get_storage_instance(
    storage_type: Optional[str] = None,
    config: Optional[Dict[str, Any]] = None,
    force_new: bool = False,
) -> ExperimentStore:
    """
    Get an experiment store based on configuration.

    Args:
        storage_type: Type of storage backend ('sqlite' or 'memory')
        config: Optional configuration dictionary (``storage_type``, ``db_path``)
        force_new: Force creation of new instance instead of using singleton

    Returns:
        Experiment store instance

    Raises:
        ValueError: If storage type is not supported
    """
    global _storage_instance

    if _storage_instance and not force_new:
        return _storage_instance

    config = config or {}

    if not storage_type:
        storage_type = config.get("storage_type")
    if not storage_type:
        storage_type = settings.AB_STORAGE_TYPE

    storage_type = storage_type.lower()

    if storage_type == SQLITE:
        instance = SQLiteExperimentStore(
            db_path=config.get("db_path", settings.AB_DATABASE_PATH)
        )
    elif storage_type == MEMORY:
        instance = InMemoryExperimentStore()
    else:
        raise ValueError(f"Unsupported storage type: {storage_type}")

    if not force_new:
        _storage_instance = instance

    logger.info(f"Created {storage_type} storage instance")
    return instance


def reset_storage_instance():
    """Reset the global storage instance (useful for testing)."""
    global _storage_instance
    if _storage_instance is not None:
        _storage_instance.close()
    _storage_instance = None


def configure_storage(
    storage_type: str, config: Optional[Dict[str, Any]] = None
) -> ExperimentStore:
    """
    Configure and return a new storage instance.

    Args:
        storage_type: Type of storage backend
        config: Configuration dictionary

    Returns:
        Configured experiment store instance
    """
    return get_storage_instance(storage_type, config, force_new=True)

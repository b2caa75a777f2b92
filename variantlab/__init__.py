"""
Variantlab package for landing-page A/B testing.

This package contains the experiment engine, its storage backends, and the
configuration and logging helpers they share.
"""

__version__ = "0.1.0"

# ab_testing first: the storage backends import its models
from . import ab_testing, storage, utils

# Configuration
from .config import get_config, load_config

__all__ = [
    "ab_testing",
    "storage",
    "utils",
    "get_config",
    "load_config",
    "__version__",
]

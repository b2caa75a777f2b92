"""
Configuration settings for variantlab.

This module contains all configuration settings for the A/B testing engine,
loaded from environment variables with appropriate type conversion and defaults.
"""

import sys
from typing import Any

from variantlab.config import (
    get_env,
    get_float_env,
    get_int_env,
)

# Environment configuration
ENVIRONMENT = get_env("ENVIRONMENT", "development")

# ==================
# Logging
# ==================
LOG_LEVEL = get_env("LOG_LEVEL", "INFO")
LOG_FORMAT = get_env("LOG_FORMAT", "json")

# ==================
# Service URLs
# ==================
BASE_URL = get_env("BASE_URL", "http://localhost:3000").rstrip("/")
TRACKING_ENDPOINT = get_env("TRACKING_ENDPOINT", "/api/ab-testing/track")

# ==================
# Storage
# ==================
AB_STORAGE_TYPE = get_env("AB_STORAGE_TYPE", "sqlite")
AB_DATABASE_PATH = get_env("AB_DATABASE_PATH", "ab_tests.db")

# ==================
# Statistics
# ==================
AB_MIN_SAMPLE_FOR_CONFIDENCE = get_int_env("AB_MIN_SAMPLE_FOR_CONFIDENCE", 30)
AB_MIN_VISITORS_PER_VARIANT = get_int_env("AB_MIN_VISITORS_PER_VARIANT", 100)
AB_MIN_IMPROVEMENT = get_float_env("AB_MIN_IMPROVEMENT", 0.05)
AB_MIN_CONFIDENCE = get_float_env("AB_MIN_CONFIDENCE", 95.0)
AB_Z_SCORE = get_float_env("AB_Z_SCORE", 1.96)

# ==================
# Experiment defaults
# ==================
DEFAULT_DURATION_DAYS = get_int_env("DEFAULT_DURATION_DAYS", 30)
DEFAULT_METRICS = [
    metric.strip()
    for metric in get_env(
        "DEFAULT_METRICS", "conversion,engagement,bounce-rate"
    ).split(",")
    if metric.strip()
]


def is_production() -> bool:
    """Check if running in production environment."""
    return ENVIRONMENT.lower() == "production"


def is_development() -> bool:
    """Check if running in development environment."""
    return ENVIRONMENT.lower() == "development"


def get_all_settings() -> dict[str, Any]:
    """
    Get all configuration settings as a dictionary.

    Returns:
        Dictionary of all settings defined in this module
    """
    settings = {}

    current_module = sys.modules[__name__]
    for name in dir(current_module):
        if name.isupper():
            settings[name] = getattr(current_module, name)

    settings["is_production"] = is_production
    settings["is_development"] = is_development

    return settings

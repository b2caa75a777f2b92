"""
A/B Testing Engine for Landing Page Variants
============================================

This module runs experiments over rendered landing-page variants: it assigns
visitors to weighted variants, records visits and conversions, computes
per-variant conversion statistics and picks a winner once the data supports
one.

Key Features:
- Weighted variant assignment (client snippet and server side)
- Append-only visit and conversion tracking
- Confidence scoring and conservative winner selection
- Atomic experiment completion across manager instances

Usage:
    from variantlab.ab_testing import ABTestManager

    manager = ABTestManager()

    created = manager.create({
        "subject_id": "project-42",
        "variants": [
            {"id": "A", "weight": 0.5, "url": "/p/42/a"},
            {"id": "B", "weight": 0.5, "url": "/p/42/b"},
        ],
        "metrics": ["conversion"],
        "duration_days": 14,
    })

    manager.record_event(created.experiment_id, "A", "visit")
    manager.record_event(created.experiment_id, "A", "conversion", metric="signup")

    results = manager.get_results(created.experiment_id)
    outcome = manager.end(created.experiment_id)
"""

from .ab_test_manager import ABTestManager
from .assignment import SessionAssigner, select_weighted_variant
from .exceptions import (
    ABTestingError,
    AlreadyEndedError,
    DataIntegrityError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from .models import (
    CreatedExperiment,
    EndResult,
    Event,
    EventType,
    Experiment,
    ExperimentConfig,
    ExperimentStatus,
    Variant,
    VariantConfig,
    VariantResult,
)
from .statistical_engine import StatisticalEngine
from .tracking_snippet import TrackingSnippetRenderer

__all__ = [
    "ABTestManager",
    "StatisticalEngine",
    "TrackingSnippetRenderer",
    "SessionAssigner",
    "select_weighted_variant",
    "ABTestingError",
    "AlreadyEndedError",
    "DataIntegrityError",
    "NotFoundError",
    "StoreUnavailableError",
    "ValidationError",
    "CreatedExperiment",
    "EndResult",
    "Event",
    "EventType",
    "Experiment",
    "ExperimentConfig",
    "ExperimentStatus",
    "Variant",
    "VariantConfig",
    "VariantResult",
]

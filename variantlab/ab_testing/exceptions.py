"""
Exception classes for the A/B testing engine.

Each failure mode of the experiment lifecycle has its own type so callers can
decide between rejecting the request, re-fetching state or retrying later.
"""

from typing import Any, Dict, Optional


class ABTestingError(Exception):
    """Base exception for all A/B testing errors."""

    def __init__(
        self,
        message: str,
        experiment_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.experiment_id = experiment_id
        self.metadata = metadata or {}


class ValidationError(ABTestingError):
    """Malformed experiment configuration or event input."""

    def __init__(
        self,
        message: str,
        experiment_id: Optional[str] = None,
        errors: Optional[list] = None,
        **kwargs,
    ):
        super().__init__(message, experiment_id, **kwargs)
        self.errors = errors or []


class NotFoundError(ABTestingError):
    """Experiment is unknown to the manager and its store."""

    pass


class AlreadyEndedError(NotFoundError):
    """Experiment exists but has already been completed."""

    def __init__(
        self,
        message: str,
        experiment_id: Optional[str] = None,
        winner: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, experiment_id, **kwargs)
        self.winner = winner


class StoreUnavailableError(ABTestingError):
    """The backing experiment store failed. Safe for the caller to retry reads."""

    pass


class DataIntegrityError(ABTestingError):
    """Stored events reference a variant the experiment never declared."""

    def __init__(
        self,
        message: str,
        experiment_id: Optional[str] = None,
        unknown_variants: Optional[Dict[str, int]] = None,
        **kwargs,
    ):
        super().__init__(message, experiment_id, **kwargs)
        self.unknown_variants = unknown_variants or {}

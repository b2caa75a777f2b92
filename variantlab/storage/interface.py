"""
Storage interface definition for variantlab.

This module defines the abstract interface that all experiment store backends
must implement. The store is the source of truth for experiment status.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from variantlab.ab_testing.models import (
    Event,
    EventType,
    Experiment,
    ExperimentStatus,
)

# Experiment fields that may change after creation
UPDATABLE_FIELDS = ("status", "winner", "ended_at")


class ExperimentStore(ABC):
    """
    Abstract interface for experiment and event persistence.

    Implementations wrap their own backend failures in
    ``StoreUnavailableError`` so callers see a single retryable error type.
    """

    @abstractmethod
    def create_experiment(self, experiment: Experiment) -> None:
        """
        Persist a new experiment record.

        Args:
            experiment: Experiment to store
        """
        pass

    @abstractmethod
    def get_experiment(self, experiment_id: str) -> Optional[Experiment]:
        """
        Get an experiment by ID.

        Args:
            experiment_id: Experiment identifier

        Returns:
            The experiment, or None if it does not exist
        """
        pass

    @abstractmethod
    def list_experiments(
        self, status: Optional[ExperimentStatus] = None
    ) -> List[Experiment]:
        """
        List experiments, newest first.

        Args:
            status: Only return experiments with this status

        Returns:
            List of experiments
        """
        pass

    @abstractmethod
    def update_experiment(
        self,
        experiment_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[ExperimentStatus] = None,
    ) -> bool:
        """
        Update experiment fields, optionally as a conditional transition.

        When ``expected_status`` is given the update is applied atomically only
        if the stored status still equals it.

        Args:
            experiment_id: Experiment identifier
            fields: Subset of ``status``, ``winner`` and ``ended_at``
            expected_status: Required current status for the update to apply

        Returns:
            True if the experiment was updated
        """
        pass

    @abstractmethod
    def append_event(
        self,
        experiment_id: str,
        variant_id: str,
        event_type: EventType,
        metric: Optional[str],
        timestamp: datetime,
    ) -> Event:
        """
        Append one event. Events are never updated or deleted.

        Returns:
            The stored event
        """
        pass

    @abstractmethod
    def list_events(self, experiment_id: str) -> List[Event]:
        """
        List all events of an experiment in insertion order.

        Args:
            experiment_id: Experiment identifier

        Returns:
            List of events
        """
        pass

    def close(self) -> None:
        """Release backend resources. No-op by default."""
        pass

"""
In-memory experiment store.

Useful for tests and single-process deployments. All state lives in the
process; a lock makes the conditional status transition atomic.
"""

import copy
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

from variantlab.ab_testing.models import (
    Event,
    EventType,
    Experiment,
    ExperimentStatus,
)
from variantlab.storage.interface import UPDATABLE_FIELDS, ExperimentStore


class InMemoryExperimentStore(ExperimentStore):
    """Experiment store keeping experiments and events in dictionaries."""

    def __init__(self):
        self._experiments: Dict[str, Experiment] = {}
        self._events: Dict[str, List[Event]] = {}
        self._lock = threading.Lock()

    def create_experiment(self, experiment: Experiment) -> None:
        with self._lock:
            if experiment.id in self._experiments:
                raise ValueError(f"Experiment already exists: {experiment.id}")
            self._experiments[experiment.id] = copy.deepcopy(experiment)
            self._events.setdefault(experiment.id, [])

    def get_experiment(self, experiment_id: str) -> Optional[Experiment]:
        with self._lock:
            experiment = self._experiments.get(experiment_id)
            return copy.deepcopy(experiment) if experiment else None

    def list_experiments(
        self, status: Optional[ExperimentStatus] = None
    ) -> List[Experiment]:
        with self._lock:
            experiments = [
                copy.deepcopy(e)
                for e in self._experiments.values()
                if status is None or e.status == status
            ]
        return sorted(experiments, key=lambda e: e.started_at, reverse=True)

    def update_experiment(
        self,
        experiment_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[ExperimentStatus] = None,
    ) -> bool:
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update experiment fields: {sorted(unknown)}")
        if not fields:
            return False

        with self._lock:
            experiment = self._experiments.get(experiment_id)
            if experiment is None:
                return False
            if expected_status is not None and experiment.status != expected_status:
                return False
            for name, value in fields.items():
                setattr(experiment, name, value)
            return True

    def append_event(
        self,
        experiment_id: str,
        variant_id: str,
        event_type: EventType,
        metric: Optional[str],
        timestamp: datetime,
    ) -> Event:
        event = Event(
            experiment_id=experiment_id,
            variant_id=variant_id,
            type=event_type,
            timestamp=timestamp,
            metric=metric,
        )
        with self._lock:
            self._events.setdefault(experiment_id, []).append(event)
        return event

    def list_events(self, experiment_id: str) -> List[Event]:
        with self._lock:
            return list(self._events.get(experiment_id, []))

"""
A/B Test Manager - Core orchestration for the A/B testing engine.

This module owns the experiment lifecycle: creation (with the client tracking
snippet), event recording, results and winner determination, and ending an
experiment.

The backing store is the source of truth for experiment status. The manager
keeps a process-local registry of active experiments as a cache only: every
``record_event`` and ``end`` checks the store before accepting the call, so
several manager instances can share one store without split-brain.
"""

import threading
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError as PydanticValidationError

from variantlab.ab_testing.exceptions import (
    AlreadyEndedError,
    DataIntegrityError,
    NotFoundError,
    ValidationError,
)
from variantlab.ab_testing.models import (
    CreatedExperiment,
    EndResult,
    Event,
    EventType,
    Experiment,
    ExperimentConfig,
    ExperimentStatus,
    VariantResult,
)
from variantlab.ab_testing.statistical_engine import StatisticalEngine
from variantlab.ab_testing.tracking_snippet import TrackingSnippetRenderer
from variantlab.config import settings
from variantlab.storage import ExperimentStore, get_storage_instance
from variantlab.utils.logging import LogContext, get_logger, log_execution_time


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ABTestManager:
    """Central manager for A/B test experiments."""

    def __init__(
        self,
        store: Optional[ExperimentStore] = None,
        statistical_engine: Optional[StatisticalEngine] = None,
        snippet_renderer: Optional[TrackingSnippetRenderer] = None,
        base_url: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize A/B test manager.

        Args:
            store: Experiment store, defaults to the configured storage instance
            statistical_engine: Engine computing confidence and winners
            snippet_renderer: Renderer for the client tracking snippet
            base_url: Base URL used to build dashboard links
            clock: Callable returning the current UTC time
        """
        self.store = store or get_storage_instance()
        self.statistical_engine = statistical_engine or StatisticalEngine()
        self.snippet_renderer = snippet_renderer or TrackingSnippetRenderer()
        self.base_url = (base_url or settings.BASE_URL).rstrip("/")
        self._clock = clock or _utcnow
        self._registry: Dict[str, Experiment] = {}
        self._registry_lock = threading.Lock()
        self.logger = get_logger(f"{__name__}.ABTestManager")

    @property
    def active_experiment_ids(self) -> List[str]:
        """Experiment ids currently held in this process's registry."""
        with self._registry_lock:
            return list(self._registry)

    def create(
        self, config: Union[ExperimentConfig, Mapping[str, Any]]
    ) -> CreatedExperiment:
        """Create and start a new experiment.

        Args:
            config: ``ExperimentConfig`` or a mapping with ``subject_id``,
                ``variants``, ``metrics`` and ``duration_days``

        Returns:
            Experiment id, tracking snippet and dashboard URL

        Raises:
            ValidationError: If the configuration is malformed. Nothing is
                written to the store in that case.
        """
        experiment_config = self._validate_config(config)
        experiment_id = str(uuid.uuid4())

        experiment = Experiment(
            id=experiment_id,
            subject_id=experiment_config.subject_id,
            variants=experiment_config.to_variants(),
            metrics=list(experiment_config.metrics),
            duration_days=experiment_config.duration_days,
            status=ExperimentStatus.ACTIVE,
            started_at=self._clock(),
        )

        tracking_snippet = self.snippet_renderer.render(
            experiment_id, experiment.subject_id, experiment.variants
        )

        self.store.create_experiment(experiment)
        self._cache(experiment)

        self.logger.info(
            f"A/B test created: {experiment_id} ({experiment.subject_id})",
            extra={
                "experiment_id": experiment_id,
                "variants": experiment.variant_ids,
            },
        )

        return CreatedExperiment(
            experiment_id=experiment_id,
            tracking_snippet=tracking_snippet,
            dashboard_url=self.dashboard_url(experiment_id),
        )

    def create_for_rendered_variants(
        self,
        subject_id: str,
        rendered_variants: Sequence[Mapping[str, Any]],
        metrics: Optional[Sequence[str]] = None,
        duration_days: Optional[int] = None,
    ) -> CreatedExperiment:
        """Create an equal-weight experiment from renderer output.

        Args:
            subject_id: Project or page under test
            rendered_variants: Items with ``id`` (or ``variant``) and ``url``
            metrics: Tracked metrics, defaults to ``DEFAULT_METRICS``
            duration_days: Planned duration, defaults to ``DEFAULT_DURATION_DAYS``

        Returns:
            Experiment id, tracking snippet and dashboard URL
        """
        if not rendered_variants:
            raise ValidationError("Experiment must have at least one variant")

        weight = 1 / len(rendered_variants)
        variants = []
        for rendered in rendered_variants:
            if not isinstance(rendered, Mapping):
                raise ValidationError(
                    f"Rendered variant must be a mapping, got {type(rendered).__name__}"
                )
            variant_id = rendered.get("id", rendered.get("variant"))
            variants.append(
                {"id": variant_id, "weight": weight, "url": rendered.get("url", "")}
            )

        return self.create(
            {
                "subject_id": subject_id,
                "variants": variants,
                "metrics": list(
                    metrics if metrics is not None else settings.DEFAULT_METRICS
                ),
                "duration_days": duration_days or settings.DEFAULT_DURATION_DAYS,
            }
        )

    def record_event(
        self,
        experiment_id: str,
        variant_id: str,
        event_type: Union[EventType, str],
        metric: Optional[str] = None,
    ) -> Event:
        """Append a visit or conversion event.

        Args:
            experiment_id: Experiment identifier
            variant_id: Variant the visitor was assigned
            event_type: ``visit`` or ``conversion``
            metric: Optional metric name qualifying a conversion

        Returns:
            The stored event

        Raises:
            NotFoundError: If the experiment does not exist
            AlreadyEndedError: If the experiment has been completed
            ValidationError: If the variant or event type is unknown
        """
        experiment = self._require_active(experiment_id)
        event_type = self._coerce_event_type(event_type, experiment_id)

        if experiment.get_variant(variant_id) is None:
            raise ValidationError(
                f"Unknown variant {variant_id!r} for experiment {experiment_id}",
                experiment_id=experiment_id,
            )

        event = self.store.append_event(
            experiment_id, variant_id, event_type, metric, self._clock()
        )

        self.logger.debug(
            f"A/B test event tracked: {experiment_id}/{variant_id}/{event_type.value}",
            extra={"experiment_id": experiment_id, "metric": metric},
        )
        return event

    @log_execution_time
    def get_results(self, experiment_id: str) -> List[VariantResult]:
        """Compute per-variant statistics for an experiment.

        Results are recomputed from all stored events on every call. Events
        appended while the read is in progress may or may not be included.

        Args:
            experiment_id: Experiment identifier

        Returns:
            One result per variant in declared order, at most one marked winner

        Raises:
            NotFoundError: If the experiment does not exist
            DataIntegrityError: If stored events reference undeclared variants
        """
        experiment = self._load_experiment(experiment_id)
        return self._compute_results(experiment)

    def end(self, experiment_id: str) -> EndResult:
        """End an experiment and record its winner.

        The transition ``active -> completed`` is a conditional update at the
        store, so only one of several concurrent callers succeeds.

        Args:
            experiment_id: Experiment identifier

        Returns:
            Winning variant id (or None) and the final results

        Raises:
            NotFoundError: If the experiment does not exist
            AlreadyEndedError: If the experiment was already completed
        """
        with LogContext(self.logger, experiment_id=experiment_id):
            experiment = self._require_active(experiment_id)
            results = self._compute_results(experiment)
            winner = next((r.variant_id for r in results if r.is_winner), None)

            updated = self.store.update_experiment(
                experiment_id,
                {
                    "status": ExperimentStatus.COMPLETED,
                    "winner": winner,
                    "ended_at": self._clock(),
                },
                expected_status=ExperimentStatus.ACTIVE,
            )
            self._evict(experiment_id)

            if not updated:
                current = self.store.get_experiment(experiment_id)
                self.logger.warning(
                    f"A/B test {experiment_id} was ended concurrently, keeping "
                    f"recorded winner {current.winner if current else None}"
                )
                raise AlreadyEndedError(
                    f"Experiment already ended: {experiment_id}",
                    experiment_id=experiment_id,
                    winner=current.winner if current else None,
                )

            self.logger.info(f"A/B test ended: {experiment_id} (winner={winner})")

        return EndResult(experiment_id=experiment_id, winner=winner, results=results)

    def get_experiment(self, experiment_id: str) -> Optional[Experiment]:
        """Get an experiment from the store.

        Args:
            experiment_id: Experiment identifier

        Returns:
            The experiment or None if not found
        """
        return self.store.get_experiment(experiment_id)

    def list_active_experiments(self) -> List[Experiment]:
        """Get all active experiments from the store."""
        return self.store.list_experiments(ExperimentStatus.ACTIVE)

    def rehydrate(self) -> int:
        """Load all active experiments from the store into the registry.

        Returns:
            Number of experiments now cached
        """
        experiments = self.list_active_experiments()
        with self._registry_lock:
            self._registry = {e.id: e for e in experiments}

        self.logger.info(f"Rehydrated {len(experiments)} active A/B tests")
        return len(experiments)

    def dashboard_url(self, experiment_id: str) -> str:
        return f"{self.base_url}/ab-testing/{experiment_id}"

    def _validate_config(
        self, config: Union[ExperimentConfig, Mapping[str, Any]]
    ) -> ExperimentConfig:
        if isinstance(config, ExperimentConfig):
            return config

        try:
            return ExperimentConfig.model_validate(dict(config))
        except PydanticValidationError as e:
            self.logger.warning(f"Rejected A/B test configuration: {e}")
            raise ValidationError(
                f"Invalid experiment configuration: {e}",
                errors=e.errors(),
            ) from e
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid experiment configuration: {e}") from e

    def _coerce_event_type(
        self, event_type: Union[EventType, str], experiment_id: str
    ) -> EventType:
        if isinstance(event_type, EventType):
            return event_type
        try:
            return EventType(event_type)
        except ValueError as e:
            raise ValidationError(
                f"Unknown event type: {event_type!r}", experiment_id=experiment_id
            ) from e

    def _require_active(self, experiment_id: str) -> Experiment:
        """Validate against the store that the experiment exists and is active."""
        experiment = self.store.get_experiment(experiment_id)

        if experiment is None:
            self._evict(experiment_id)
            raise NotFoundError(
                f"Experiment not found: {experiment_id}", experiment_id=experiment_id
            )

        if not experiment.is_active:
            self._evict(experiment_id)
            raise AlreadyEndedError(
                f"Experiment already ended: {experiment_id}",
                experiment_id=experiment_id,
                winner=experiment.winner,
            )

        self._cache(experiment)
        return experiment

    def _load_experiment(self, experiment_id: str) -> Experiment:
        """Registry first, store second. Variant sets never change."""
        with self._registry_lock:
            cached = self._registry.get(experiment_id)
        if cached is not None:
            return cached

        experiment = self.store.get_experiment(experiment_id)
        if experiment is None:
            raise NotFoundError(
                f"Experiment not found: {experiment_id}", experiment_id=experiment_id
            )
        if experiment.is_active:
            self._cache(experiment)
        return experiment

    def _compute_results(self, experiment: Experiment) -> List[VariantResult]:
        events = self.store.list_events(experiment.id)
        declared = set(experiment.variant_ids)

        counts: Dict[str, Dict[str, int]] = defaultdict(
            lambda: {"visitors": 0, "conversions": 0}
        )
        unknown: Dict[str, int] = defaultdict(int)

        for event in events:
            if event.variant_id not in declared:
                unknown[event.variant_id] += 1
                continue
            if event.type == EventType.VISIT:
                counts[event.variant_id]["visitors"] += 1
            elif event.type == EventType.CONVERSION:
                counts[event.variant_id]["conversions"] += 1

        if unknown:
            self.logger.error(
                f"A/B test {experiment.id} has events for undeclared variants: "
                f"{dict(unknown)}"
            )
            raise DataIntegrityError(
                f"Events reference undeclared variants in experiment {experiment.id}",
                experiment_id=experiment.id,
                unknown_variants=dict(unknown),
            )

        return self.statistical_engine.build_results(experiment.variant_ids, counts)

    def _cache(self, experiment: Experiment) -> None:
        with self._registry_lock:
            self._registry[experiment.id] = experiment

    def _evict(self, experiment_id: str) -> None:
        with self._registry_lock:
            self._registry.pop(experiment_id, None)

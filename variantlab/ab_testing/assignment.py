"""
Weighted variant assignment.

The generated client snippet assigns visitors in the browser. The functions
here implement the same algorithm server-side so it can be exercised with
fixed draws in tests and used by server-rendered pages.

The walk follows declared variant order and returns the first variant whose
cumulative weight exceeds the draw. When weights sum to less than 1 and the
draw lands past the last boundary, the first variant is returned. Weights are
never re-normalised, which would shift traffic in running experiments.
"""

import random
import threading
from typing import Callable, Dict, Optional, Sequence, Tuple, Union

from variantlab.ab_testing.models import Variant

WeightedItem = Union[Variant, Dict[str, float]]


def _weight_of(variant: WeightedItem) -> float:
    if isinstance(variant, dict):
        return float(variant["weight"])
    return float(variant.weight)


def _id_of(variant: WeightedItem) -> str:
    if isinstance(variant, dict):
        return variant["id"]
    return variant.id


def select_weighted_variant(variants: Sequence[WeightedItem], draw: float) -> str:
    """Pick a variant id for a uniform draw in [0, 1).

    Args:
        variants: Variants in declared order, ``Variant`` objects or dicts
            with ``id`` and ``weight`` keys
        draw: Uniform random number in [0, 1)

    Returns:
        The id of the selected variant
    """
    if not variants:
        raise ValueError("Cannot assign from an empty variant list")

    cumulative = 0.0
    for variant in variants:
        cumulative += _weight_of(variant)
        if draw < cumulative:
            return _id_of(variant)

    # Weights summed to less than the draw
    return _id_of(variants[0])


class SessionAssigner:
    """Sticky per-session assignment, mirroring the snippet's sessionStorage.

    The first request for a ``(experiment_id, session_id)`` pair draws once
    from ``random_source`` and every later request returns the stored result.
    """

    def __init__(self, random_source: Optional[Callable[[], float]] = None):
        self._random = random_source or random.random
        self._assignments: Dict[Tuple[str, str], str] = {}
        self._lock = threading.Lock()

    def assign(
        self, experiment_id: str, session_id: str, variants: Sequence[WeightedItem]
    ) -> str:
        key = (experiment_id, session_id)
        with self._lock:
            assigned = self._assignments.get(key)
            if assigned is None:
                assigned = select_weighted_variant(variants, self._random())
                self._assignments[key] = assigned
            return assigned

    def forget(self, experiment_id: str, session_id: str) -> None:
        """Drop a stored assignment, as when a browser session ends."""
        with self._lock:
            self._assignments.pop((experiment_id, session_id), None)

    def __len__(self) -> int:
        return len(self._assignments)

"""
Data model for the A/B testing engine.

Dataclasses describe what the engine stores and returns. The pydantic models
at the bottom validate caller input before an experiment is created.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class ExperimentStatus(Enum):
    """Experiment status enumeration."""

    ACTIVE = "active"
    COMPLETED = "completed"


class EventType(Enum):
    """Tracked event types."""

    VISIT = "visit"
    CONVERSION = "conversion"


@dataclass(frozen=True)
class Variant:
    """One arm of an experiment."""

    id: str
    weight: float
    url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "weight": self.weight, "url": self.url}


@dataclass
class Experiment:
    """A configured comparison between page variants for one subject."""

    id: str
    subject_id: str
    variants: List[Variant]
    metrics: List[str]
    duration_days: int
    status: ExperimentStatus
    started_at: datetime
    ended_at: Optional[datetime] = None
    winner: Optional[str] = None

    @property
    def variant_ids(self) -> List[str]:
        return [variant.id for variant in self.variants]

    @property
    def is_active(self) -> bool:
        return self.status == ExperimentStatus.ACTIVE

    def get_variant(self, variant_id: str) -> Optional[Variant]:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None


@dataclass(frozen=True)
class Event:
    """Visit or conversion event. Events are append-only."""

    experiment_id: str
    variant_id: str
    type: EventType
    timestamp: datetime
    metric: Optional[str] = None


@dataclass
class VariantResult:
    """Per-variant statistics in a results snapshot."""

    variant_id: str
    visitors: int
    conversions: int
    conversion_rate: float
    confidence: float
    is_winner: bool = False
    p_value: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the result payload field names."""
        return {
            "variantId": self.variant_id,
            "visitors": self.visitors,
            "conversions": self.conversions,
            "conversionRate": self.conversion_rate,
            "confidence": self.confidence,
            "isWinner": self.is_winner,
            "pValue": self.p_value,
        }


@dataclass
class CreatedExperiment:
    """Return value of experiment creation."""

    experiment_id: str
    tracking_snippet: str
    dashboard_url: str


@dataclass
class EndResult:
    """Final outcome of an ended experiment."""

    experiment_id: str
    winner: Optional[str]
    results: List[VariantResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "experimentId": self.experiment_id,
            "winner": self.winner,
            "results": [result.to_dict() for result in self.results],
        }


class VariantConfig(BaseModel):
    """Variant definition as supplied by the caller."""

    id: str = Field(
        ...,
        min_length=1,
        pattern=r"^[A-Za-z0-9_-]+$",
        description="Variant identifier, also used in the ab-variant-<id> CSS class",
    )
    weight: float = Field(..., gt=0, le=1, description="Traffic share in (0, 1]")
    url: str = Field(default="", description="Rendered asset reference")


class ExperimentConfig(BaseModel):
    """Experiment configuration accepted by ``ABTestManager.create``."""

    subject_id: str = Field(..., min_length=1, description="Project or page under test")
    variants: List[VariantConfig] = Field(..., description="Ordered variant list")
    metrics: List[str] = Field(default_factory=list, description="Tracked metrics")
    duration_days: int = Field(..., gt=0, description="Planned duration in days")

    @field_validator("variants")
    @classmethod
    def validate_variants(cls, v):
        """Require at least one variant and unique ids."""
        if not v:
            raise ValueError("Experiment must have at least one variant")
        ids = [variant.id for variant in v]
        if len(ids) != len(set(ids)):
            raise ValueError("Variant ids must be unique")
        return v

    def to_variants(self) -> List[Variant]:
        return [
            Variant(id=variant.id, weight=variant.weight, url=variant.url)
            for variant in self.variants
        ]

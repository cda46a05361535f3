"""Data models for the statistics engine."""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


class Variant(str, Enum):
    """Experiment arm a measurement belongs to."""

    CONTROL = "control"
    TREATMENT = "treatment"


class KillDirection(str, Enum):
    """Direction of movement that counts as harm for the primary signal."""

    DECREASE = "decrease"  # Treatment lowering the metric is harmful
    INCREASE = "increase"  # Treatment raising the metric is harmful


class Measurement(BaseModel):
    """A single observation of the primary signal for one variant."""

    model_config = ConfigDict(frozen=True)

    value: float = Field(..., description="Observed metric value")
    variant: Variant = Field(..., description="Variant the value was observed on")
    sample_size: int | None = Field(
        None, ge=0, description="Underlying sample behind the value, if known"
    )
    timestamp: datetime = Field(default_factory=_utcnow, description="Observation time")


class MeasurementPlan(BaseModel):
    """How an experiment's primary signal is judged.

    ``success_threshold`` and ``kill_threshold`` are signed deltas in the same
    units as ``Measurement.value``.
    """

    min_sample_size: int = Field(
        ..., ge=1, description="Minimum measurements per variant before testing"
    )
    confidence_required: float = Field(
        ..., gt=0.0, lt=1.0, description="Required confidence, e.g. 0.95"
    )
    success_threshold: float = Field(..., description="Delta that counts as success")
    kill_threshold: float = Field(
        ..., description="Delta magnitude that counts as harm"
    )
    kill_direction: KillDirection = Field(
        default=KillDirection.DECREASE,
        description="Which direction of the delta the kill threshold guards against",
    )
    mixture_variance: float | None = Field(
        None,
        gt=0.0,
        description="Variance (tau^2) of the effect-size mixing distribution",
    )


class SignificanceResult(BaseModel):
    """Outcome of one sequential test evaluation.

    Always recomputable from the measurements and the plan; never the source
    of truth for an experiment's state.
    """

    significant: bool = Field(
        ..., description="Whether the mSPRT crossed its threshold"
    )
    test_statistic: float | None = Field(None, description="Mixture likelihood ratio")
    estimated_delta: float | None = Field(
        None, description="Treatment mean minus control mean"
    )
    confidence_interval: tuple[float, float] | None = Field(
        None, description="Normal-approximation interval on the delta"
    )
    sample_size_control: int = Field(..., ge=0)
    sample_size_treatment: int = Field(..., ge=0)
    meets_success_threshold: bool = Field(default=False)
    exceeds_kill_threshold: bool = Field(default=False)
    reason: str | None = Field(None, description="Why no test was run, if it wasn't")


class ConfidenceIntervalResult(BaseModel):
    """Standalone interval estimate."""

    point_estimate: float
    lower: float
    upper: float
    confidence_level: float = Field(..., gt=0.0, lt=1.0)

    @property
    def width(self) -> float:
        return self.upper - self.lower

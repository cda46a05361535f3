"""Candidate hypothesis models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RiskLevel(str, Enum):
    """Delivery risk of a candidate experiment."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Prediction(BaseModel):
    """Predicted effect of a candidate on its signal."""

    signal: str | None = Field(None, description="Signal the candidate should move")
    expected_delta: float = Field(..., description="Expected change in the signal")
    delta_range: tuple[float, float] | None = Field(
        None, description="Plausible (low, high) range of the delta"
    )
    confidence: float = Field(
        ..., ge=0.0, le=1.0, description="Belief in the prediction"
    )


class Candidate(BaseModel):
    """A hypothesis that could become an experiment."""

    title: str | None = None
    hypothesis: str | None = None
    prediction: Prediction
    risk_level: RiskLevel
    effort_hours: float = Field(..., ge=0.0, description="Estimated build effort")
    reversible: bool = Field(..., description="Whether the change can be rolled back")
    affected_files: list[str] = Field(
        default_factory=list, description="Paths the change touches"
    )


class ScoredCandidate(Candidate):
    """A candidate with its derived portfolio score."""

    model_config = ConfigDict(frozen=True)

    score: float

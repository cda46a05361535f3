"""Portfolio scoring and selection of candidate hypotheses."""

from .models import Candidate, Prediction, RiskLevel, ScoredCandidate
from .scoring import (
    RISK_MULTIPLIER,
    has_file_conflict,
    score_candidate,
    score_candidates,
    select_portfolio,
)

__all__ = [
    "RISK_MULTIPLIER",
    "Candidate",
    "Prediction",
    "RiskLevel",
    "ScoredCandidate",
    "has_file_conflict",
    "score_candidate",
    "score_candidates",
    "select_portfolio",
]

"""Candidate scoring and portfolio selection.

Score weights:

- expected impact, ``|expected_delta| * confidence``: 35%
- risk adjustment, multiplier by risk level: 25%
- speed bonus, ``1 / ln(effort_hours + 2)``: 20%
- learning value, 1.0 if reversible else 0.7: 20%
"""

import math
from collections.abc import Iterable, Sequence

from .models import Candidate, RiskLevel, ScoredCandidate

IMPACT_WEIGHT = 0.35
RISK_WEIGHT = 0.25
SPEED_WEIGHT = 0.20
LEARNING_WEIGHT = 0.20

RISK_MULTIPLIER: dict[RiskLevel, float] = {
    RiskLevel.LOW: 1.0,
    RiskLevel.MEDIUM: 0.8,
    RiskLevel.HIGH: 0.5,
}

IRREVERSIBLE_LEARNING_VALUE = 0.7


def score_candidate(candidate: Candidate) -> ScoredCandidate:
    """Attach the weighted portfolio score to a candidate."""
    prediction = candidate.prediction
    expected_impact = abs(prediction.expected_delta) * prediction.confidence
    risk_multiplier = RISK_MULTIPLIER[candidate.risk_level]
    # effort_hours >= 0 keeps the log argument at or above 2
    speed_bonus = 1.0 / math.log(candidate.effort_hours + 2)
    learning_value = 1.0 if candidate.reversible else IRREVERSIBLE_LEARNING_VALUE

    score = (
        expected_impact * IMPACT_WEIGHT
        + risk_multiplier * RISK_WEIGHT
        + speed_bonus * SPEED_WEIGHT
        + learning_value * LEARNING_WEIGHT
    )
    return ScoredCandidate(**candidate.model_dump(), score=score)


def score_candidates(candidates: Iterable[Candidate]) -> list[ScoredCandidate]:
    """Score each candidate, preserving input order."""
    return [score_candidate(c) for c in candidates]


def has_file_conflict(a: Candidate, b: Candidate) -> bool:
    """Whether two candidates touch at least one common file."""
    if not a.affected_files or not b.affected_files:
        return False
    return not set(a.affected_files).isdisjoint(b.affected_files)


def select_portfolio(
    candidates: Sequence[ScoredCandidate],
    max_concurrent: int,
) -> list[ScoredCandidate]:
    """
    Greedily pick the highest-scoring, mutually non-conflicting candidates.

    Candidates are visited in descending score order (ties keep input order).
    A candidate that conflicts with an already selected one is skipped and
    never reconsidered.

    Args:
        candidates: Scored candidates.
        max_concurrent: Maximum number of candidates to select.

    Returns:
        Selected candidates in selection order.

    Raises:
        ValueError: If ``max_concurrent`` is negative.
    """
    if max_concurrent < 0:
        raise ValueError(f"max_concurrent must be >= 0, got {max_concurrent}")

    selected: list[ScoredCandidate] = []
    for candidate in sorted(candidates, key=lambda c: c.score, reverse=True):
        if len(selected) >= max_concurrent:
            break
        if any(has_file_conflict(s, candidate) for s in selected):
            continue
        selected.append(candidate)
    return selected

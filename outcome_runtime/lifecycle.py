"""Experiment lifecycle state machine.

An experiment moves from hypothesis through build, launch and measurement to
one of three final states: shipped, killed or failed_build. Human gates sit
between the phases; the kill-switch can end an experiment from any live
state through the ``KILL`` event.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from outcome_runtime.core.exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ExperimentStatus(str, Enum):
    """Experiment lifecycle status."""

    HYPOTHESIS = "hypothesis"
    AWAITING_PORTFOLIO_GATE = "awaiting_portfolio_gate"
    BUILDING = "building"
    AWAITING_LAUNCH_GATE = "awaiting_launch_gate"
    RUNNING = "running"
    MEASURING = "measuring"
    AWAITING_ANALYSIS_GATE = "awaiting_analysis_gate"
    SCALING = "scaling"
    AWAITING_SCALE_GATE = "awaiting_scale_gate"
    KILLED = "killed"
    SHIPPED = "shipped"
    FAILED_BUILD = "failed_build"


FINAL_STATUSES: frozenset[ExperimentStatus] = frozenset(
    {ExperimentStatus.KILLED, ExperimentStatus.SHIPPED, ExperimentStatus.FAILED_BUILD}
)


class ExperimentEvent(str, Enum):
    """Events that drive the experiment lifecycle."""

    PORTFOLIO_GATE_APPROVED = "portfolio_gate_approved"
    PORTFOLIO_GATE_REJECTED = "portfolio_gate_rejected"
    BUILD_STARTED = "build_started"
    BUILD_COMPLETED = "build_completed"
    BUILD_FAILED = "build_failed"
    LAUNCH_GATE_APPROVED = "launch_gate_approved"
    LAUNCH_GATE_REJECTED = "launch_gate_rejected"
    SIGNIFICANCE_REACHED = "significance_reached"
    KILL_THRESHOLD_HIT = "kill_threshold_hit"
    CONSTRAINT_VIOLATED = "constraint_violated"
    ANALYSIS_GATE_APPROVED = "analysis_gate_approved"
    ANALYSIS_GATE_REJECTED = "analysis_gate_rejected"
    SCALE_GATE_APPROVED = "scale_gate_approved"
    SCALE_GATE_REJECTED = "scale_gate_rejected"
    SHIP = "ship"
    KILL = "kill"


class AnalysisDecision(str, Enum):
    """What an approved analysis gate decided."""

    SHIP = "ship"
    SCALE = "scale"
    ITERATE = "iterate"
    KILL = "kill"


S = ExperimentStatus
E = ExperimentEvent

TRANSITIONS: dict[tuple[ExperimentStatus, ExperimentEvent], ExperimentStatus] = {
    (S.HYPOTHESIS, E.PORTFOLIO_GATE_APPROVED): S.AWAITING_PORTFOLIO_GATE,
    (S.AWAITING_PORTFOLIO_GATE, E.BUILD_STARTED): S.BUILDING,
    (S.AWAITING_PORTFOLIO_GATE, E.PORTFOLIO_GATE_REJECTED): S.KILLED,
    (S.BUILDING, E.BUILD_COMPLETED): S.AWAITING_LAUNCH_GATE,
    (S.BUILDING, E.BUILD_FAILED): S.FAILED_BUILD,
    (S.AWAITING_LAUNCH_GATE, E.LAUNCH_GATE_APPROVED): S.RUNNING,
    (S.AWAITING_LAUNCH_GATE, E.LAUNCH_GATE_REJECTED): S.KILLED,
    (S.RUNNING, E.SIGNIFICANCE_REACHED): S.MEASURING,
    (S.RUNNING, E.KILL_THRESHOLD_HIT): S.KILLED,
    (S.RUNNING, E.CONSTRAINT_VIOLATED): S.KILLED,
    (S.MEASURING, E.SIGNIFICANCE_REACHED): S.AWAITING_ANALYSIS_GATE,
    (S.MEASURING, E.KILL_THRESHOLD_HIT): S.KILLED,
    (S.MEASURING, E.CONSTRAINT_VIOLATED): S.KILLED,
    (S.AWAITING_ANALYSIS_GATE, E.ANALYSIS_GATE_REJECTED): S.KILLED,
    (S.SCALING, E.SCALE_GATE_APPROVED): S.AWAITING_SCALE_GATE,
    (S.SCALING, E.KILL_THRESHOLD_HIT): S.KILLED,
    (S.AWAITING_SCALE_GATE, E.SHIP): S.SHIPPED,
    (S.AWAITING_SCALE_GATE, E.SCALE_GATE_REJECTED): S.KILLED,
}

ANALYSIS_OUTCOMES: dict[AnalysisDecision, ExperimentStatus] = {
    AnalysisDecision.SHIP: S.SHIPPED,
    AnalysisDecision.SCALE: S.SCALING,
    AnalysisDecision.ITERATE: S.RUNNING,
    AnalysisDecision.KILL: S.KILLED,
}

# Events whose reason is recorded as the kill reason
_REASONED_KILL_EVENTS = frozenset(
    {
        E.PORTFOLIO_GATE_REJECTED,
        E.LAUNCH_GATE_REJECTED,
        E.KILL_THRESHOLD_HIT,
        E.CONSTRAINT_VIOLATED,
        E.ANALYSIS_GATE_APPROVED,
        E.KILL,
    }
)


class TransitionRecord(BaseModel):
    """One applied transition."""

    event: ExperimentEvent
    from_status: ExperimentStatus
    to_status: ExperimentStatus
    reason: str | None = None
    at: datetime


class ExperimentState(BaseModel):
    """Snapshot of an experiment's lifecycle."""

    experiment_id: str
    outcome_id: str | None = None
    status: ExperimentStatus = ExperimentStatus.HYPOTHESIS
    launched_at: datetime | None = None
    concluded_at: datetime | None = None
    kill_reason: str | None = None
    fail_reason: str | None = None
    history: list[TransitionRecord] = Field(default_factory=list)

    @property
    def is_final(self) -> bool:
        return self.status in FINAL_STATUSES


def next_status(
    current: ExperimentStatus,
    event: ExperimentEvent,
    decision: AnalysisDecision | None = None,
) -> ExperimentStatus:
    """
    Resolve the target status of ``event`` in ``current``.

    Raises:
        InvalidTransitionError: If the event is not allowed.
    """
    if current in FINAL_STATUSES:
        raise InvalidTransitionError(current.value, event.value)
    if event == E.KILL:
        return S.KILLED
    if current == S.AWAITING_ANALYSIS_GATE and event == E.ANALYSIS_GATE_APPROVED:
        if decision is None:
            raise InvalidTransitionError(current.value, event.value)
        return ANALYSIS_OUTCOMES[decision]

    target = TRANSITIONS.get((current, event))
    if target is None:
        raise InvalidTransitionError(current.value, event.value)
    return target


class ExperimentLifecycle:
    """
    Drives one experiment through its lifecycle.

    Example:
        lifecycle = ExperimentLifecycle("exp-1")
        lifecycle.apply(ExperimentEvent.PORTFOLIO_GATE_APPROVED)
        switch = AutoKillSwitch(registry, on_kill=lifecycle.on_kill)
    """

    def __init__(
        self,
        experiment_id: str,
        outcome_id: str | None = None,
        state: ExperimentState | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.state = state or ExperimentState(
            experiment_id=experiment_id, outcome_id=outcome_id
        )
        self._clock = clock or _utcnow

    @property
    def status(self) -> ExperimentStatus:
        return self.state.status

    def can_apply(
        self, event: ExperimentEvent, decision: AnalysisDecision | None = None
    ) -> bool:
        try:
            next_status(self.state.status, event, decision)
        except InvalidTransitionError:
            return False
        return True

    def apply(
        self,
        event: ExperimentEvent,
        *,
        reason: str | None = None,
        decision: AnalysisDecision | None = None,
    ) -> ExperimentStatus:
        """
        Apply an event.

        Args:
            event: Event to apply.
            reason: Why; recorded as the kill or failure reason where the
                event ends the experiment.
            decision: Required for ``ANALYSIS_GATE_APPROVED``.

        Returns:
            The new status.

        Raises:
            InvalidTransitionError: If the event is not allowed now.
        """
        current = self.state.status
        target = next_status(current, event, decision)
        now = self._clock()

        updates: dict[str, object] = {"status": target}
        if target == S.RUNNING and event == E.LAUNCH_GATE_APPROVED:
            updates["launched_at"] = now
        if target in FINAL_STATUSES:
            updates["concluded_at"] = now
        if target == S.KILLED and event in _REASONED_KILL_EVENTS:
            updates["kill_reason"] = reason or "Unknown reason"
        if target == S.FAILED_BUILD:
            updates["fail_reason"] = reason or "Unknown failure"

        record = TransitionRecord(
            event=event, from_status=current, to_status=target, reason=reason, at=now
        )
        updates["history"] = [*self.state.history, record]
        self.state = self.state.model_copy(update=updates)

        logger.info(
            "Experiment %s: %s -> %s (%s)",
            self.state.experiment_id,
            current.value,
            target.value,
            event.value,
        )
        return target

    def kill(self, reason: str) -> bool:
        """
        Kill the experiment.

        Returns:
            True if the experiment was killed now, False if it already was.

        Raises:
            InvalidTransitionError: If the experiment already shipped or
                failed its build.
        """
        if self.state.status == S.KILLED:
            logger.debug("Experiment %s already killed", self.state.experiment_id)
            return False
        self.apply(E.KILL, reason=reason)
        return True

    async def on_kill(self, experiment_id: str, reason: str) -> None:
        """Kill callback for :class:`~outcome_runtime.safety.AutoKillSwitch`."""
        if experiment_id != self.state.experiment_id:
            raise ValueError(
                f"Kill for {experiment_id} sent to lifecycle of "
                f"{self.state.experiment_id}"
            )
        self.kill(reason)

"""Human gate models."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


class GateType(str, Enum):
    """Checkpoint in the experiment lifecycle that needs sign-off."""

    PORTFOLIO_REVIEW = "portfolio_review"
    LAUNCH_APPROVAL = "launch_approval"
    ANALYSIS_REVIEW = "analysis_review"
    SCALE_APPROVAL = "scale_approval"
    SHIP_APPROVAL = "ship_approval"


class GateStatus(str, Enum):
    """Gate status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    APPROVED_WITH_CONDITIONS = "approved_with_conditions"
    DELEGATED = "delegated"  # reassigned by escalation, still awaiting a decision
    TIMED_OUT = "timed_out"


OPEN_STATUSES: frozenset[GateStatus] = frozenset(
    {GateStatus.PENDING, GateStatus.DELEGATED}
)

DECISION_STATUSES: frozenset[GateStatus] = frozenset(
    {
        GateStatus.APPROVED,
        GateStatus.REJECTED,
        GateStatus.APPROVED_WITH_CONDITIONS,
    }
)


class Gate(BaseModel):
    """A human-approval checkpoint for an experiment."""

    id: str
    experiment_id: str
    outcome_id: str | None = None
    gate_type: GateType
    question: str
    context_package: dict[str, Any] = Field(
        default_factory=dict,
        description="Material shown to the approver; may carry experimentTitle "
        "and outcomeTitle",
    )
    signal_snapshot: dict[str, Any] | None = None
    options: dict[str, Any] | None = None
    assigned_to: str
    escalation_chain: list[str] = Field(default_factory=list)
    sla_hours: float = Field(..., gt=0)
    status: GateStatus = GateStatus.PENDING
    conditions: list[str] = Field(default_factory=list)
    response_note: str | None = None
    decided_by: str | None = None
    status_reason: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    responded_at: datetime | None = None
    notification_sent_at: datetime | None = None
    reminder_sent_at: datetime | None = None
    escalated_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES


class GateCreateInput(BaseModel):
    """Request to open a gate."""

    experiment_id: str
    outcome_id: str | None = None
    gate_type: GateType
    question: str = Field(..., min_length=1)
    context_package: dict[str, Any] = Field(default_factory=dict)
    signal_snapshot: dict[str, Any] | None = None
    options: dict[str, Any] | None = None
    assigned_to: str = Field(..., min_length=1)
    escalation_chain: list[str] = Field(default_factory=list)
    sla_hours: float | None = Field(
        None, gt=0, description="Response window; the configured default when unset"
    )


class GateResponse(BaseModel):
    """A human decision on a gate."""

    gate_id: str
    status: GateStatus
    conditions: list[str] = Field(default_factory=list)
    response_note: str | None = None
    decided_by: str = Field(..., min_length=1)

    @field_validator("status")
    @classmethod
    def must_be_decision(cls, v: GateStatus) -> GateStatus:
        if v not in DECISION_STATUSES:
            allowed = ", ".join(sorted(s.value for s in DECISION_STATUSES))
            raise ValueError(f"Response status must be one of: {allowed}")
        return v


class NotificationKind(str, Enum):
    """Why a notification is being sent."""

    CREATED = "created"
    REMINDER = "reminder"
    ESCALATION = "escalation"


class GateNotification(BaseModel):
    """Payload handed to notification channels."""

    gate_id: str
    assigned_to: str
    gate_type: GateType
    question: str
    experiment_title: str
    outcome_title: str
    sla_hours: float
    dashboard_url: str
    kind: NotificationKind = NotificationKind.CREATED

    @property
    def gate_type_label(self) -> str:
        """Human-readable gate type, e.g. ``launch approval``."""
        return self.gate_type.value.replace("_", " ")


class SLAAction(str, Enum):
    """What an SLA check did to the gate."""

    NONE = "none"
    REMINDED = "reminded"
    ESCALATED = "escalated"
    TIMED_OUT = "timed_out"
    CONFLICT = "conflict"  # gate changed concurrently; nothing written


class SLAStatus(BaseModel):
    """SLA position of a gate.

    ``hours_elapsed`` is rounded to 0.1 and ``percent_used`` to a whole
    percent for display; decisions are made on the unrounded values.
    """

    gate_id: str
    assigned_to: str
    sla_hours: float
    baseline: datetime = Field(..., description="Start of the SLA clock")
    hours_elapsed: float
    percent_used: int
    is_overdue: bool
    should_remind: bool
    should_escalate: bool
    action: SLAAction = SLAAction.NONE

"""SLA tracking for human gates."""

from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from .models import Gate, SLAStatus

DEFAULT_REMINDER_PERCENT = 50.0


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SLAMonitor:
    """
    Computes where a gate stands against its SLA.

    The monitor only reads time; acting on the result is the gate
    manager's job.
    """

    def __init__(
        self,
        reminder_percent: float = DEFAULT_REMINDER_PERCENT,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.reminder_percent = reminder_percent
        self._clock = clock or _utcnow

    def check_sla(
        self,
        gate_id: str,
        assigned_to: str,
        sla_hours: float,
        baseline: datetime,
        reminder_sent_at: datetime | None = None,
    ) -> SLAStatus:
        """
        Check the SLA position of a gate.

        Args:
            gate_id: Gate identifier.
            assigned_to: Current assignee.
            sla_hours: Allowed response time.
            baseline: When the SLA clock started.
            reminder_sent_at: When a reminder was last sent, if ever.

        Returns:
            SLA status. A reminder is due once ``reminder_percent`` of the
            window is used, at most once, and never after the deadline.
            Escalation is due from the deadline on.
        """
        if sla_hours <= 0:
            raise ValueError(f"sla_hours must be positive, got {sla_hours}")

        elapsed = (self._clock() - baseline).total_seconds() / 3600
        percent_used = elapsed / sla_hours * 100
        is_overdue = elapsed >= sla_hours

        return SLAStatus(
            gate_id=gate_id,
            assigned_to=assigned_to,
            sla_hours=sla_hours,
            baseline=baseline,
            hours_elapsed=round(elapsed, 1),
            percent_used=round(percent_used),
            is_overdue=is_overdue,
            should_remind=(
                percent_used >= self.reminder_percent
                and reminder_sent_at is None
                and not is_overdue
            ),
            should_escalate=is_overdue,
        )

    def check_gate(self, gate: Gate, reset_on_delegation: bool = False) -> SLAStatus:
        """Check a gate, choosing the clock baseline.

        The clock runs from ``created_at`` unless ``reset_on_delegation`` is
        set and the gate has been escalated, in which case it runs from
        ``escalated_at``.
        """
        baseline = gate.created_at
        if reset_on_delegation and gate.escalated_at is not None:
            baseline = gate.escalated_at
        return self.check_sla(
            gate.id,
            gate.assigned_to,
            gate.sla_hours,
            baseline,
            gate.reminder_sent_at,
        )

    @staticmethod
    def get_escalation_target(
        escalation_chain: Sequence[str],
        current_assignee: str,
    ) -> str | None:
        """
        Next assignee in the escalation chain.

        Returns the first entry when the current assignee is not in the
        chain, the entry after them when they are, and None when the chain
        is exhausted.
        """
        try:
            index = list(escalation_chain).index(current_assignee)
        except ValueError:
            return escalation_chain[0] if escalation_chain else None
        if index + 1 < len(escalation_chain):
            return escalation_chain[index + 1]
        return None

"""Tests for SLAMonitor."""

from datetime import timedelta

import pytest

from outcome_runtime.gates import Gate, GateType, SLAMonitor


@pytest.fixture
def sla(clock) -> SLAMonitor:
    return SLAMonitor(reminder_percent=50, clock=clock)


def _check(sla: SLAMonitor, baseline, reminder_sent_at=None, sla_hours: float = 24):
    return sla.check_sla("gate-1", "alice", sla_hours, baseline, reminder_sent_at)


class TestCheckSla:
    """Tests for SLAMonitor.check_sla."""

    def test_fresh_gate(self, sla, clock) -> None:
        status = _check(sla, clock())

        assert status.hours_elapsed == 0
        assert status.percent_used == 0
        assert not status.is_overdue
        assert not status.should_remind
        assert not status.should_escalate

    def test_just_before_reminder(self, sla, clock) -> None:
        baseline = clock()
        clock.advance(hours=11, minutes=59)
        assert not _check(sla, baseline).should_remind

    def test_reminder_at_exactly_half(self, sla, clock) -> None:
        """Test a reminder is due at exactly the reminder share."""
        baseline = clock()
        clock.advance(hours=12)

        status = _check(sla, baseline)

        assert status.percent_used == 50
        assert status.hours_elapsed == 12.0
        assert status.should_remind is True
        assert status.should_escalate is False

    def test_no_second_reminder(self, sla, clock) -> None:
        baseline = clock()
        reminded = clock.advance(hours=12)
        clock.advance(hours=6)

        status = _check(sla, baseline, reminder_sent_at=reminded)

        assert status.percent_used == 75
        assert status.should_remind is False

    def test_overdue_at_deadline(self, sla, clock) -> None:
        """Test the deadline itself is overdue and escalates, without a reminder."""
        baseline = clock()
        clock.advance(hours=24)

        status = _check(sla, baseline)

        assert status.is_overdue is True
        assert status.should_escalate is True
        assert status.should_remind is False
        assert status.percent_used == 100

    def test_rounding(self, sla, clock) -> None:
        baseline = clock()
        clock.advance(minutes=100)

        status = _check(sla, baseline, sla_hours=3)

        assert status.hours_elapsed == 1.7
        assert status.percent_used == 56

    def test_custom_reminder_percent(self, clock) -> None:
        sla = SLAMonitor(reminder_percent=80, clock=clock)
        baseline = clock()
        clock.advance(hours=18)
        assert not _check(sla, baseline).should_remind
        clock.advance(hours=1.5)
        assert _check(sla, baseline).should_remind

    def test_rejects_non_positive_sla(self, sla, clock) -> None:
        with pytest.raises(ValueError, match="sla_hours"):
            _check(sla, clock(), sla_hours=0)


class TestCheckGate:
    """Tests for choosing the SLA baseline from a gate."""

    def _gate(self, clock) -> Gate:
        created = clock()
        return Gate(
            id="gate-1",
            experiment_id="exp-1",
            gate_type=GateType.LAUNCH_APPROVAL,
            question="Launch?",
            assigned_to="bob",
            sla_hours=10,
            created_at=created,
            escalated_at=created + timedelta(hours=10),
        )

    def test_baseline_defaults_to_creation(self, sla, clock) -> None:
        gate = self._gate(clock)
        clock.advance(hours=12)

        status = sla.check_gate(gate)

        assert status.baseline == gate.created_at
        assert status.is_overdue

    def test_reset_on_delegation(self, sla, clock) -> None:
        gate = self._gate(clock)
        clock.advance(hours=12)

        status = sla.check_gate(gate, reset_on_delegation=True)

        assert status.baseline == gate.escalated_at
        assert status.hours_elapsed == 2.0
        assert not status.is_overdue


class TestEscalationTarget:
    """Tests for SLAMonitor.get_escalation_target."""

    @pytest.mark.parametrize(
        ("chain", "current", "expected"),
        [
            (["lead", "director"], "alice", "lead"),
            (["lead", "director"], "lead", "director"),
            (["lead", "director"], "director", None),
            ([], "alice", None),
        ],
    )
    def test_target(self, chain, current, expected) -> None:
        assert SLAMonitor.get_escalation_target(chain, current) == expected

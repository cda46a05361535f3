"""Gate manager: creates gates, records decisions and enforces SLAs."""

import asyncio
import logging
import uuid
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from outcome_runtime.core.logging import bind_context
from outcome_runtime.core.settings import OutcomeRuntimeSettings, get_cached_settings

from .exceptions import GateAlreadyDecidedError, GateError, GateNotFoundError
from .models import (
    OPEN_STATUSES,
    Gate,
    GateCreateInput,
    GateNotification,
    GateResponse,
    GateStatus,
    NotificationKind,
    SLAAction,
    SLAStatus,
)
from .notifications import NotificationChannel
from .sla import SLAMonitor
from .store import GateStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class GateManager:
    """
    Manages the lifecycle of human gates.

    A gate is created pending, and leaves the open states (pending,
    delegated) exactly once: through a human response or through SLA
    timeout. Every status change goes through the store's compare-and-set,
    so a decision and an SLA sweep racing on the same gate cannot both win.

    Example:
        manager = GateManager(InMemoryGateStore(), [LogNotificationChannel()])
        gate = await manager.create_gate(GateCreateInput(...))
        await manager.respond_to_gate(GateResponse(gate_id=gate.id, ...))
    """

    def __init__(
        self,
        store: GateStore,
        channels: Sequence[NotificationChannel] = (),
        settings: OutcomeRuntimeSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.channels = list(channels)
        self.settings = settings or get_cached_settings()
        self._clock = clock or _utcnow
        self.sla_monitor = SLAMonitor(
            reminder_percent=self.settings.gates.reminder_percent,
            clock=self._clock,
        )

    async def create_gate(self, data: GateCreateInput) -> Gate:
        """
        Create a pending gate and notify its assignee.

        Returns:
            The stored gate, with ``notification_sent_at`` set when at least
            one channel delivered.
        """
        sla_hours = (
            data.sla_hours
            if data.sla_hours is not None
            else self.settings.gates.default_sla_hours
        )
        gate = Gate(
            id=str(uuid.uuid4()),
            experiment_id=data.experiment_id,
            outcome_id=data.outcome_id,
            gate_type=data.gate_type,
            question=data.question,
            context_package=data.context_package,
            signal_snapshot=data.signal_snapshot,
            options=data.options,
            assigned_to=data.assigned_to,
            escalation_chain=list(data.escalation_chain),
            sla_hours=sla_hours,
            created_at=self._clock(),
        )
        gate = await self.store.create(gate)

        with bind_context(gate_id=gate.id, experiment_id=gate.experiment_id):
            logger.info(
                "Gate %s (%s) created for %s",
                gate.id,
                gate.gate_type.value,
                gate.assigned_to,
            )
            return await self._notify(gate, NotificationKind.CREATED)

    async def respond_to_gate(self, response: GateResponse) -> Gate:
        """
        Record a human decision.

        Raises:
            GateNotFoundError: If the gate does not exist.
            GateAlreadyDecidedError: If the gate is no longer open, including
                when another writer decided it first.
        """
        gate = await self.store.find_by_id(response.gate_id)
        if gate is None:
            raise GateNotFoundError(response.gate_id)
        if not gate.is_open:
            raise GateAlreadyDecidedError(gate.id, gate.status.value)

        updated = await self.store.update(
            gate.id,
            {
                "status": response.status,
                "conditions": list(response.conditions),
                "response_note": response.response_note,
                "decided_by": response.decided_by,
                "responded_at": self._clock(),
            },
            expected_status=OPEN_STATUSES,
        )
        with bind_context(gate_id=gate.id, experiment_id=gate.experiment_id):
            logger.info(
                "Gate %s %s by %s",
                gate.id,
                updated.status.value,
                response.decided_by,
            )
        return updated

    async def get_pending_gates(self, assigned_to: str) -> list[Gate]:
        """Open gates waiting on ``assigned_to``."""
        return await self.store.find_pending_by_assignee(assigned_to)

    async def check_and_handle_sla(self, gate: Gate) -> SLAStatus:
        """
        Check a gate's SLA and act on it.

        Sends at most one reminder per assignment once the reminder share of
        the window is used. At the deadline the gate is delegated to the
        next person in its escalation chain, or timed out when there is
        none. The transition is stored before anyone is notified.

        Gate conflicts (the gate was decided or changed concurrently) and
        notification failures are logged, never raised.

        Args:
            gate: Snapshot of the gate to check.

        Returns:
            The SLA status, with ``action`` describing what was done.
        """
        with bind_context(gate_id=gate.id, experiment_id=gate.experiment_id):
            status = self.sla_monitor.check_gate(
                gate, reset_on_delegation=self.settings.gates.reset_sla_on_delegation
            )
            if not gate.is_open:
                return status.model_copy(
                    update={"should_remind": False, "should_escalate": False}
                )

            try:
                if status.should_escalate:
                    action = await self._escalate(gate, status)
                elif status.should_remind:
                    action = await self._remind(gate)
                else:
                    action = SLAAction.NONE
            except GateError as e:
                logger.warning("SLA handling for gate %s skipped: %s", gate.id, e)
                action = SLAAction.CONFLICT

            return status.model_copy(update={"action": action})

    async def _remind(self, gate: Gate) -> SLAAction:
        updated = await self.store.update(
            gate.id,
            {"reminder_sent_at": self._clock()},
            expected_status=gate.status,
            expected_fields={"assigned_to": gate.assigned_to, "reminder_sent_at": None},
        )
        logger.info("Reminding %s about gate %s", updated.assigned_to, gate.id)
        await self._notify(updated, NotificationKind.REMINDER)
        return SLAAction.REMINDED

    async def _escalate(self, gate: Gate, status: SLAStatus) -> SLAAction:
        target = self.sla_monitor.get_escalation_target(
            gate.escalation_chain, gate.assigned_to
        )
        if target is None:
            reason = (
                f"SLA of {gate.sla_hours:g}h expired after "
                f"{status.hours_elapsed:g}h with no escalation target left "
                f"after {gate.assigned_to}"
            )
            await self.store.update(
                gate.id,
                {"status": GateStatus.TIMED_OUT, "status_reason": reason},
                expected_status=gate.status,
                expected_fields={"assigned_to": gate.assigned_to},
            )
            logger.warning("Gate %s timed out: %s", gate.id, reason)
            return SLAAction.TIMED_OUT

        updated = await self.store.update(
            gate.id,
            {
                "assigned_to": target,
                "status": GateStatus.DELEGATED,
                "status_reason": (
                    f"Escalated from {gate.assigned_to} after SLA of "
                    f"{gate.sla_hours:g}h expired"
                ),
                "escalated_at": self._clock(),
                "reminder_sent_at": None,
            },
            expected_status=gate.status,
            expected_fields={"assigned_to": gate.assigned_to},
        )
        logger.warning(
            "Gate %s escalated from %s to %s", gate.id, gate.assigned_to, target
        )
        await self._notify(updated, NotificationKind.ESCALATION)
        return SLAAction.ESCALATED

    def build_notification(
        self, gate: Gate, kind: NotificationKind = NotificationKind.CREATED
    ) -> GateNotification:
        """Build the channel payload for a gate."""
        context = gate.context_package
        return GateNotification(
            gate_id=gate.id,
            assigned_to=gate.assigned_to,
            gate_type=gate.gate_type,
            question=gate.question,
            experiment_title=str(context.get("experimentTitle") or "Experiment"),
            outcome_title=str(context.get("outcomeTitle") or "Outcome"),
            sla_hours=gate.sla_hours,
            dashboard_url=f"{self.settings.gates.dashboard_url}/gates/{gate.id}",
            kind=kind,
        )

    async def _notify(self, gate: Gate, kind: NotificationKind) -> Gate:
        if not self.channels:
            return gate

        notification = self.build_notification(gate, kind)
        results = await asyncio.gather(
            *(channel.send(notification) for channel in self.channels),
            return_exceptions=True,
        )

        delivered = False
        for channel, result in zip(self.channels, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(
                    "Notification for gate %s via %s failed: %s",
                    gate.id,
                    channel.name,
                    result,
                )
            else:
                delivered = True

        if not delivered:
            return gate
        try:
            return await self.store.update(
                gate.id, {"notification_sent_at": self._clock()}
            )
        except GateError as e:
            logger.warning(
                "Could not record notification for gate %s: %s", gate.id, e
            )
            return gate

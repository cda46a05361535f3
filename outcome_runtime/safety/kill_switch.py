"""Automatic kill-switch.

Halts an experiment without waiting for a human when its primary signal has
moved past the kill threshold or one of its guard metrics is out of bounds.
The switch keeps no state between calls: the caller decides what "kill"
means through the ``on_kill`` callback and is responsible for not invoking
it twice for the same experiment.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from outcome_runtime.core.logging import bind_context
from outcome_runtime.core.settings import OutcomeRuntimeSettings, get_cached_settings
from outcome_runtime.signals.monitor import (
    ConstraintCheck,
    SignalMonitor,
    ViolationType,
)
from outcome_runtime.signals.registry import ConnectorRegistry
from outcome_runtime.statistics import (
    KillDirection,
    Measurement,
    MeasurementPlan,
    SignificanceResult,
)

logger = logging.getLogger(__name__)

KillCallback = Callable[[str, str], Awaitable[None]]

PRIMARY_SIGNAL = "primary"


class KillType(str, Enum):
    """What caused a kill."""

    KILL_THRESHOLD = "kill_threshold"
    CONSTRAINT_VIOLATION = "constraint_violation"


class KillSwitchConfig(BaseModel):
    """Kill-switch configuration for one experiment."""

    experiment_id: str = Field(..., description="Experiment to halt on breach")
    outcome_id: str | None = Field(None, description="Outcome the experiment serves")
    kill_threshold: float | None = Field(
        None,
        description="Threshold reported in kill reasons; defaults to the plan's",
    )
    constraints: list[ConstraintCheck] = Field(
        default_factory=list, description="Guard metrics, checked in order"
    )


class KillDetails(BaseModel):
    """Structured description of what fired."""

    type: KillType
    signal: str
    current_value: float
    limit: float


class KillSwitchResult(BaseModel):
    """Result of a kill-switch check."""

    should_kill: bool
    reason: str | None = None
    details: KillDetails | None = None
    significance: SignificanceResult | None = None
    executed: bool = Field(
        default=False, description="Whether the kill callback was invoked"
    )


def breaches_kill_threshold(delta: float, plan: MeasurementPlan) -> bool:
    """Whether ``delta`` is strictly beyond the kill threshold.

    A delta sitting exactly on the threshold is tolerated.
    """
    limit = abs(plan.kill_threshold)
    if plan.kill_direction == KillDirection.INCREASE:
        return delta > limit
    return delta < -limit


class AutoKillSwitch:
    """
    Decides whether an experiment must be halted now.

    Example:
        switch = AutoKillSwitch(registry, on_kill=lifecycle_kill)
        result = await switch.check(config, measurements, plan)
    """

    def __init__(
        self,
        connectors: ConnectorRegistry,
        on_kill: KillCallback,
        settings: OutcomeRuntimeSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings or get_cached_settings()
        self._on_kill = on_kill
        self._monitor = SignalMonitor(connectors, self.settings, clock=clock)

    async def check(
        self,
        config: KillSwitchConfig,
        measurements: Iterable[Measurement],
        plan: MeasurementPlan,
    ) -> KillSwitchResult:
        """
        Check the primary signal, then each guard constraint in order.

        The primary signal always takes priority: when it breaches, no
        constraint is fetched. Constraints whose connector is unknown or
        whose fetch fails are skipped and never cause a kill.

        Args:
            config: Experiment id and guard constraints.
            measurements: Primary-signal measurements collected so far.
            plan: Measurement plan with the kill threshold.

        Returns:
            Whether the experiment should be killed, and why.
        """
        with bind_context(experiment_id=config.experiment_id):
            significance = self._monitor.test_significance(measurements, plan)

            delta = significance.estimated_delta
            if (
                significance.exceeds_kill_threshold
                and delta is not None
                and breaches_kill_threshold(delta, plan)
            ):
                limit = (
                    config.kill_threshold
                    if config.kill_threshold is not None
                    else plan.kill_threshold
                )
                return await self._fire(
                    config,
                    reason=(
                        "Primary signal exceeded kill threshold. "
                        f"Delta: {delta:.4f}, Kill threshold: {limit:g}"
                    ),
                    details=KillDetails(
                        type=KillType.KILL_THRESHOLD,
                        signal=PRIMARY_SIGNAL,
                        current_value=delta,
                        limit=limit,
                    ),
                    significance=significance,
                )

            for constraint in config.constraints:
                result = await self._check_guard(constraint)
                if result is not None:
                    reason, details = result
                    return await self._fire(
                        config,
                        reason=reason,
                        details=details,
                        significance=significance,
                    )

            logger.debug("Kill-switch check passed for %s", config.experiment_id)
            return KillSwitchResult(should_kill=False, significance=significance)

    async def _check_guard(
        self, constraint: ConstraintCheck
    ) -> tuple[str, KillDetails] | None:
        connector = self._monitor.connectors.get(constraint.connector)
        if connector is None:
            logger.warning(
                "Skipping guard '%s': connector '%s' is not registered",
                constraint.signal,
                constraint.connector,
            )
            return None

        fetched = await self._monitor.fetch_metric(
            connector,
            constraint.connector_config,
            constraint.metric,
            window_hours=self.settings.kill_switch.guard_window_hours,
        )
        if not fetched.ok or fetched.value is None:
            logger.warning(
                "Skipping guard '%s': %s", constraint.signal, fetched.error
            )
            return None

        value = fetched.value.value
        crossed = constraint.violation(value)
        if crossed is None:
            return None

        violation_type, limit = crossed
        bound = "min" if violation_type == ViolationType.BELOW_MIN else "max"
        reason = (
            f"Constraint violated: {constraint.signal} = {value:g} ({bound}: {limit:g})"
        )
        return reason, KillDetails(
            type=KillType.CONSTRAINT_VIOLATION,
            signal=constraint.signal,
            current_value=value,
            limit=limit,
        )

    async def _fire(
        self,
        config: KillSwitchConfig,
        reason: str,
        details: KillDetails,
        significance: SignificanceResult,
    ) -> KillSwitchResult:
        if not self.settings.kill_switch.enabled:
            logger.warning(
                "Kill switch disabled; not killing %s: %s", config.experiment_id, reason
            )
            return KillSwitchResult(
                should_kill=True,
                reason=reason,
                details=details,
                significance=significance,
            )

        logger.warning("Killing experiment %s: %s", config.experiment_id, reason)
        await self._on_kill(config.experiment_id, reason)
        return KillSwitchResult(
            should_kill=True,
            reason=reason,
            details=details,
            significance=significance,
            executed=True,
        )

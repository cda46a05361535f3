"""Tests for the automatic kill-switch."""

import pytest

from outcome_runtime.lifecycle import ExperimentLifecycle, ExperimentStatus
from outcome_runtime.safety import (
    AutoKillSwitch,
    KillSwitchConfig,
    KillType,
    breaches_kill_threshold,
)
from outcome_runtime.signals import ConstraintCheck, SignalError
from outcome_runtime.statistics import (
    KillDirection,
    Measurement,
    MeasurementPlan,
    Variant,
)


class KillRecorder:
    """Kill callback that records its calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    async def __call__(self, experiment_id: str, reason: str) -> None:
        self.calls.append((experiment_id, reason))


def _measurements(control: float, treatment: float, n: int = 3) -> list[Measurement]:
    return [Measurement(value=control, variant=Variant.CONTROL)] * n + [
        Measurement(value=treatment, variant=Variant.TREATMENT)
    ] * n


PLAN = MeasurementPlan(
    min_sample_size=3,
    confidence_required=0.95,
    success_threshold=0.5,
    kill_threshold=0.5,
)

HEALTHY = _measurements(10.0, 10.2)


@pytest.fixture
def on_kill() -> KillRecorder:
    return KillRecorder()


@pytest.fixture
def switch(registry, on_kill, settings, clock) -> AutoKillSwitch:
    return AutoKillSwitch(registry, on_kill, settings=settings, clock=clock)


def _config(*constraints: ConstraintCheck, **kwargs) -> KillSwitchConfig:
    return KillSwitchConfig(
        experiment_id="exp-1", constraints=list(constraints), **kwargs
    )


class TestBreachesKillThreshold:
    """Tests for the strict kill boundary."""

    def test_exact_threshold_is_tolerated(self) -> None:
        assert breaches_kill_threshold(-0.5, PLAN) is False

    def test_beyond_threshold_breaches(self) -> None:
        assert breaches_kill_threshold(-0.51, PLAN) is True

    def test_increase_direction(self) -> None:
        plan = PLAN.model_copy(update={"kill_direction": KillDirection.INCREASE})
        assert breaches_kill_threshold(0.51, plan) is True
        assert breaches_kill_threshold(0.5, plan) is False
        assert breaches_kill_threshold(-5.0, plan) is False


class TestPrimarySignal:
    """Tests for kills driven by the primary signal."""

    @pytest.mark.anyio
    async def test_delta_on_threshold_does_not_kill(self, switch, on_kill) -> None:
        """Test a delta sitting exactly on -k is not a kill."""
        result = await switch.check(_config(), _measurements(10.0, 9.5), PLAN)

        assert result.should_kill is False
        assert result.significance is not None
        assert result.significance.exceeds_kill_threshold is True
        assert on_kill.calls == []

    @pytest.mark.anyio
    async def test_delta_beyond_threshold_kills(self, switch, on_kill) -> None:
        """Test a delta past -k kills with the primary reason."""
        result = await switch.check(_config(), _measurements(10.0, 9.0), PLAN)

        assert result.should_kill is True
        assert result.executed is True
        assert result.reason == (
            "Primary signal exceeded kill threshold. "
            "Delta: -1.0000, Kill threshold: 0.5"
        )
        assert result.details is not None
        assert result.details.type == KillType.KILL_THRESHOLD
        assert result.details.signal == "primary"
        assert result.details.current_value == -1.0
        assert on_kill.calls == [("exp-1", result.reason)]

    @pytest.mark.anyio
    async def test_config_threshold_is_reported(self, switch) -> None:
        result = await switch.check(
            _config(kill_threshold=-0.5), _measurements(10.0, 9.0), PLAN
        )
        assert result.reason is not None
        assert result.reason.endswith("Kill threshold: -0.5")

    @pytest.mark.anyio
    async def test_insufficient_sample_never_kills(self, switch, on_kill) -> None:
        result = await switch.check(_config(), _measurements(10.0, 0.0, n=2), PLAN)
        assert result.should_kill is False
        assert on_kill.calls == []

    @pytest.mark.anyio
    async def test_primary_breach_skips_constraints(
        self, switch, registry
    ) -> None:
        """Test guards are not fetched once the primary signal fires."""
        result = await switch.check(
            _config(
                ConstraintCheck(
                    signal="errors", connector="metrics", metric="error_rate", max=0.0
                )
            ),
            _measurements(10.0, 9.0),
            PLAN,
        )

        assert result.details is not None
        assert result.details.type == KillType.KILL_THRESHOLD
        assert registry.require("metrics").calls == []


class TestGuardConstraints:
    """Tests for kills driven by guard metrics."""

    @pytest.mark.anyio
    async def test_all_guards_in_bounds(self, switch, on_kill) -> None:
        result = await switch.check(
            _config(
                ConstraintCheck(
                    signal="errors", connector="metrics", metric="error_rate", max=0.05
                )
            ),
            HEALTHY,
            PLAN,
        )
        assert result.should_kill is False
        assert result.reason is None
        assert on_kill.calls == []

    @pytest.mark.anyio
    async def test_max_violation(self, switch, on_kill) -> None:
        result = await switch.check(
            _config(
                ConstraintCheck(
                    signal="p95 latency",
                    connector="metrics",
                    metric="p95_latency_ms",
                    max=150.0,
                )
            ),
            HEALTHY,
            PLAN,
        )

        assert result.should_kill is True
        assert result.reason == "Constraint violated: p95 latency = 180 (max: 150)"
        assert result.details is not None
        assert result.details.type == KillType.CONSTRAINT_VIOLATION
        assert result.details.current_value == 180.0
        assert result.details.limit == 150.0
        assert len(on_kill.calls) == 1

    @pytest.mark.anyio
    async def test_min_violation(self, switch) -> None:
        result = await switch.check(
            _config(
                ConstraintCheck(
                    signal="errors", connector="metrics", metric="error_rate", min=0.02
                )
            ),
            HEALTHY,
            PLAN,
        )
        assert result.reason == "Constraint violated: errors = 0.01 (min: 0.02)"

    @pytest.mark.anyio
    async def test_first_violation_wins(self, switch, registry) -> None:
        """Test guards are checked in order and stop at the first violation."""
        result = await switch.check(
            _config(
                ConstraintCheck(
                    signal="latency",
                    connector="metrics",
                    metric="p95_latency_ms",
                    max=100.0,
                ),
                ConstraintCheck(
                    signal="errors", connector="metrics", metric="error_rate", max=0.0
                ),
            ),
            HEALTHY,
            PLAN,
        )

        assert result.details is not None
        assert result.details.signal == "latency"
        assert [c["metric"] for c in registry.require("metrics").calls] == [
            "p95_latency_ms"
        ]

    @pytest.mark.anyio
    async def test_unknown_connector_is_skipped(self, switch, on_kill) -> None:
        result = await switch.check(
            _config(
                ConstraintCheck(
                    signal="errors", connector="datadog", metric="error_rate", max=0.0
                )
            ),
            HEALTHY,
            PLAN,
        )
        assert result.should_kill is False
        assert on_kill.calls == []

    @pytest.mark.anyio
    async def test_failed_fetch_is_skipped(self, switch) -> None:
        """Test a failing guard is skipped and later guards still run."""
        result = await switch.check(
            _config(
                ConstraintCheck(
                    signal="broken", connector="metrics", metric="missing", max=0.0
                ),
                ConstraintCheck(
                    signal="errors", connector="metrics", metric="error_rate", max=0.0
                ),
            ),
            HEALTHY,
            PLAN,
        )
        assert result.details is not None
        assert result.details.signal == "errors"

    @pytest.mark.anyio
    async def test_signal_error_from_connector_is_skipped(
        self, switch, registry, make_connector, on_kill
    ) -> None:
        """Test a guard whose connector raises SignalError does not stop the check."""
        registry.register(
            make_connector(
                "quota", errors={"error_rate": SignalError("vendor quota hit")}
            )
        )

        result = await switch.check(
            _config(
                ConstraintCheck(
                    signal="errors", connector="quota", metric="error_rate", max=0.0
                ),
                ConstraintCheck(
                    signal="latency",
                    connector="metrics",
                    metric="p95_latency_ms",
                    max=150.0,
                ),
            ),
            HEALTHY,
            PLAN,
        )

        assert result.should_kill is True
        assert result.details is not None
        assert result.details.signal == "latency"
        assert len(on_kill.calls) == 1

    @pytest.mark.anyio
    async def test_guard_uses_guard_window(self, switch, registry, clock) -> None:
        await switch.check(
            _config(
                ConstraintCheck(
                    signal="errors", connector="metrics", metric="error_rate", max=1.0
                )
            ),
            HEALTHY,
            PLAN,
        )
        time_range = registry.require("metrics").calls[-1]["time_range"]
        assert (time_range.end - time_range.start).total_seconds() == 24 * 3600
        assert time_range.end == clock()


class TestExecution:
    """Tests for how kills are executed."""

    @pytest.mark.anyio
    async def test_stateless_between_checks(self, switch, on_kill) -> None:
        """Test each check evaluates independently."""
        measurements = _measurements(10.0, 9.0)
        first = await switch.check(_config(), measurements, PLAN)
        second = await switch.check(_config(), measurements, PLAN)

        assert first.should_kill and second.should_kill
        assert len(on_kill.calls) == 2

    @pytest.mark.anyio
    async def test_disabled_switch_reports_without_killing(
        self, registry, on_kill, settings
    ) -> None:
        settings.kill_switch.enabled = False
        switch = AutoKillSwitch(registry, on_kill, settings=settings)

        result = await switch.check(_config(), _measurements(10.0, 9.0), PLAN)

        assert result.should_kill is True
        assert result.executed is False
        assert on_kill.calls == []

    @pytest.mark.anyio
    async def test_kills_lifecycle_once(self, registry, settings) -> None:
        """Test the lifecycle callback makes repeated kills idempotent."""
        lifecycle = ExperimentLifecycle("exp-1")
        switch = AutoKillSwitch(registry, lifecycle.on_kill, settings=settings)
        measurements = _measurements(10.0, 9.0)

        await switch.check(_config(), measurements, PLAN)
        await switch.check(_config(), measurements, PLAN)

        assert lifecycle.status == ExperimentStatus.KILLED
        assert lifecycle.state.kill_reason is not None
        assert lifecycle.state.kill_reason.startswith("Primary signal exceeded")
        assert len(lifecycle.state.history) == 1

    @pytest.mark.anyio
    async def test_callback_error_propagates(self, registry, settings) -> None:
        async def broken(experiment_id: str, reason: str) -> None:
            raise RuntimeError("control plane down")

        switch = AutoKillSwitch(registry, broken, settings=settings)
        with pytest.raises(RuntimeError, match="control plane down"):
            await switch.check(_config(), _measurements(10.0, 9.0), PLAN)

"""Shared pytest fixtures for outcome runtime tests."""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from outcome_runtime.core.logging import reset_logging
from outcome_runtime.core.settings import OutcomeRuntimeSettings
from outcome_runtime.gates import (
    GateManager,
    GateNotification,
    InMemoryGateStore,
    NotificationChannel,
    NotificationError,
)
from outcome_runtime.signals import (
    ConnectionResult,
    ConnectorConfig,
    ConnectorRegistry,
    MetricDefinition,
    MetricType,
    MetricValue,
    SignalConnector,
    TimeRange,
    VariantMetricValue,
)

START = datetime(2024, 5, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
def anyio_backend() -> str:
    """The runtime is built on asyncio; run async tests on that backend only."""
    return "asyncio"


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeConnector(SignalConnector):
    """In-memory connector returning canned metric values."""

    def __init__(
        self,
        name: str = "fake",
        values: dict[str, float] | None = None,
        errors: dict[str, Exception] | None = None,
        variant_values: dict[str, tuple[float, float]] | None = None,
        delay: float = 0.0,
    ) -> None:
        self._name = name
        self.values = dict(values or {})
        self.errors = dict(errors or {})
        self.variant_values = dict(variant_values or {})
        self.delay = delay
        self.calls: list[dict] = []

    @property
    def name(self) -> str:
        return self._name

    async def test_connection(self, config: ConnectorConfig) -> ConnectionResult:
        return ConnectionResult(success=True, message="ok")

    async def fetch_metric(
        self,
        metric: str,
        time_range: TimeRange,
        segment: dict[str, str] | None = None,
        config: ConnectorConfig | None = None,
    ) -> MetricValue:
        self.calls.append(
            {"metric": metric, "time_range": time_range, "segment": segment}
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if metric in self.errors:
            raise self.errors[metric]
        if metric not in self.values:
            raise KeyError(f"unknown metric {metric}")
        return MetricValue(
            value=self.values[metric], sample_size=100, timestamp=time_range.end
        )

    async def fetch_variant_metric(
        self,
        metric: str,
        variant_key: str,
        time_range: TimeRange,
        config: ConnectorConfig | None = None,
    ) -> VariantMetricValue:
        self.calls.append(
            {"metric": metric, "time_range": time_range, "variant_key": variant_key}
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if metric in self.errors:
            raise self.errors[metric]
        control, treatment = self.variant_values[metric]
        return VariantMetricValue(
            control=MetricValue(value=control, sample_size=500),
            treatment=MetricValue(value=treatment, sample_size=480),
        )

    async def list_metrics(self, config: ConnectorConfig) -> list[MetricDefinition]:
        return [
            MetricDefinition(name=name, type=MetricType.CUSTOM)
            for name in sorted(self.values)
        ]


class RecordingChannel(NotificationChannel):
    """Channel that keeps every notification it is given."""

    def __init__(self, name: str = "recording") -> None:
        self._name = name
        self.sent: list[GateNotification] = []

    @property
    def name(self) -> str:
        return self._name

    async def send(self, notification: GateNotification) -> None:
        self.sent.append(notification)


class FailingChannel(NotificationChannel):
    """Channel whose every delivery fails."""

    def __init__(self) -> None:
        self.attempts = 0

    @property
    def name(self) -> str:
        return "failing"

    async def send(self, notification: GateNotification) -> None:
        self.attempts += 1
        raise NotificationError(self.name, "service unavailable")


@pytest.fixture(autouse=True)
def clean_logging():
    """Reset logging state around each test."""
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def settings() -> OutcomeRuntimeSettings:
    """Default settings without config file discovery."""
    return OutcomeRuntimeSettings(_skip_file_loading=True)


@pytest.fixture
def clock() -> FrozenClock:
    """Frozen clock starting at 2024-05-01 09:00 UTC."""
    return FrozenClock()


@pytest.fixture
def make_connector() -> Callable[..., FakeConnector]:
    """Factory for fake connectors."""
    return FakeConnector


@pytest.fixture
def registry() -> ConnectorRegistry:
    """Registry with a 'metrics' connector serving healthy guard values."""
    return ConnectorRegistry(
        [
            FakeConnector(
                "metrics",
                values={"error_rate": 0.01, "p95_latency_ms": 180.0},
            )
        ]
    )


@pytest.fixture
def recording_channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def failing_channel() -> FailingChannel:
    return FailingChannel()


@pytest.fixture
def gate_store() -> InMemoryGateStore:
    return InMemoryGateStore()


@pytest.fixture
def gate_manager(
    gate_store: InMemoryGateStore,
    recording_channel: RecordingChannel,
    settings: OutcomeRuntimeSettings,
    clock: FrozenClock,
) -> GateManager:
    """Gate manager wired to an in-memory store and a recording channel."""
    return GateManager(gate_store, [recording_channel], settings=settings, clock=clock)

"""Signal connector contract.

Connectors adapt an analytics backend (product analytics, a warehouse, an
APM) to the four operations the control plane needs. The runtime never
depends on a specific vendor; concrete connectors live outside this package
and are registered in a :class:`~outcome_runtime.signals.registry.ConnectorRegistry`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ConnectorConfig(BaseModel):
    """Per-call connector configuration.

    Vendor-specific keys (project ids, queries, credentials) are accepted as
    extra fields and passed through untouched.
    """

    model_config = ConfigDict(extra="allow")

    timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Upper bound for a single connector call; falls back to "
        "the monitor's default when unset",
    )


class TimeRange(BaseModel):
    """Half-open time window [start, end)."""

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def check_order(self) -> TimeRange:
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self

    @classmethod
    def trailing(cls, hours: float, now: datetime | None = None) -> TimeRange:
        """Window covering the last ``hours`` hours up to ``now``."""
        end = now or _utcnow()
        return cls(start=end - timedelta(hours=hours), end=end)


class MetricValue(BaseModel):
    """A metric reading from a connector."""

    model_config = ConfigDict(frozen=True)

    value: float
    sample_size: int | None = Field(None, ge=0)
    timestamp: datetime = Field(default_factory=_utcnow)


class VariantMetricValue(BaseModel):
    """A metric reading split by experiment arm."""

    control: MetricValue
    treatment: MetricValue


class MetricType(str, Enum):
    """Kind of metric a connector exposes."""

    EVENT = "event"
    FUNNEL = "funnel"
    CUSTOM = "custom"


class MetricDefinition(BaseModel):
    """A metric available from a connector."""

    name: str
    type: MetricType
    description: str | None = None


class ConnectionResult(BaseModel):
    """Result of a connectivity check."""

    success: bool
    message: str


class SignalConnector(ABC):
    """
    Base class for signal connectors.

    Implementations must be safe to call concurrently; all per-call state
    travels in the ``config`` argument.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the connector type tag used for registry lookup."""

    @abstractmethod
    async def test_connection(self, config: ConnectorConfig) -> ConnectionResult:
        """Check that the backend is reachable with this configuration."""

    @abstractmethod
    async def fetch_metric(
        self,
        metric: str,
        time_range: TimeRange,
        segment: dict[str, str] | None = None,
        config: ConnectorConfig | None = None,
    ) -> MetricValue:
        """
        Fetch the aggregate value of ``metric`` over ``time_range``.

        Args:
            metric: Metric name as known to the backend.
            time_range: Window to aggregate over.
            segment: Optional equality filters (e.g. {"country": "DE"}).
            config: Connector configuration.

        Raises:
            Exception: Any backend failure. Callers in this package wrap it
                in ``SignalFetchError``.
        """

    @abstractmethod
    async def fetch_variant_metric(
        self,
        metric: str,
        variant_key: str,
        time_range: TimeRange,
        config: ConnectorConfig | None = None,
    ) -> VariantMetricValue:
        """Fetch ``metric`` split into control and treatment by ``variant_key``."""

    @abstractmethod
    async def list_metrics(self, config: ConnectorConfig) -> list[MetricDefinition]:
        """List metrics available with this configuration."""

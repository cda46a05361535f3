"""Signal monitor: samples connectors and checks guard constraints."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from outcome_runtime.core.settings import OutcomeRuntimeSettings, get_cached_settings
from outcome_runtime.statistics import (
    Measurement,
    MeasurementPlan,
    SignificanceResult,
    Variant,
    evaluate_significance,
)

from .base import ConnectorConfig, MetricValue, SignalConnector, TimeRange
from .exceptions import SignalError, SignalFetchError, SignalTimeoutError
from .registry import ConnectorRegistry

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ViolationType(str, Enum):
    """Which bound a constraint value crossed."""

    BELOW_MIN = "below_min"
    ABOVE_MAX = "above_max"


class ConstraintCheck(BaseModel):
    """A guard metric with inclusive bounds."""

    signal: str = Field(..., description="Human-readable signal name")
    connector: str = Field(..., description="Registered connector name")
    connector_config: ConnectorConfig = Field(default_factory=ConnectorConfig)
    metric: str = Field(..., description="Metric name as known to the connector")
    min: float | None = Field(None, description="Lowest acceptable value")
    max: float | None = Field(None, description="Highest acceptable value")

    def violation(self, value: float) -> tuple[ViolationType, float] | None:
        """Return the crossed bound for ``value``, or None when in bounds."""
        if self.min is not None and value < self.min:
            return ViolationType.BELOW_MIN, self.min
        if self.max is not None and value > self.max:
            return ViolationType.ABOVE_MAX, self.max
        return None


class ConstraintResult(BaseModel):
    """Outcome of one constraint check."""

    signal: str
    value: float
    violated: bool
    violation_type: ViolationType | None = None
    limit: float | None = None
    error: str | None = Field(
        None, description="Fetch failure text; a failed fetch is never a violation"
    )


class FetchResult(BaseModel):
    """Explicit success or failure of a single metric fetch."""

    source: str
    metric: str
    value: MetricValue | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None

    @classmethod
    def success(cls, source: str, metric: str, value: MetricValue) -> FetchResult:
        return cls(source=source, metric=metric, value=value)

    @classmethod
    def failure(cls, source: str, metric: str, error: str) -> FetchResult:
        return cls(source=source, metric=metric, error=error)


class SignalMonitor:
    """
    Reads current metric values through registered connectors.

    The monitor holds no experiment state. Each call opens its own time
    window relative to ``clock()`` and bounds every connector call with the
    configured timeout.
    """

    def __init__(
        self,
        connectors: ConnectorRegistry,
        settings: OutcomeRuntimeSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.connectors = connectors
        self.settings = settings or get_cached_settings()
        self._clock = clock or _utcnow

    def _timeout_for(self, config: ConnectorConfig | None) -> float:
        if config is not None and config.timeout_seconds is not None:
            return config.timeout_seconds
        return self.settings.monitor.default_timeout_seconds

    async def _fetch(
        self,
        connector: SignalConnector,
        config: ConnectorConfig | None,
        metric: str,
        window_hours: float,
        segment: dict[str, str] | None = None,
    ) -> MetricValue:
        time_range = TimeRange.trailing(window_hours, now=self._clock())
        timeout = self._timeout_for(config)
        try:
            return await asyncio.wait_for(
                connector.fetch_metric(metric, time_range, segment, config),
                timeout=timeout,
            )
        except TimeoutError as e:
            raise SignalTimeoutError(connector.name, timeout, metric=metric) from e
        except SignalFetchError:
            raise
        except SignalError as e:
            raise SignalFetchError(
                connector.name, e.message, metric=metric, cause=e
            ) from e
        except Exception as e:
            raise SignalFetchError(
                connector.name, str(e), metric=metric, cause=e
            ) from e

    async def fetch_current_value(
        self,
        connector: SignalConnector,
        config: ConnectorConfig | None,
        metric: str,
        segment: dict[str, str] | None = None,
    ) -> MetricValue:
        """
        Fetch the current value of a metric over the trailing metric window.

        Args:
            connector: Connector to read from.
            config: Connector configuration.
            metric: Metric name.
            segment: Optional equality filters.

        Returns:
            The connector's reading.

        Raises:
            SignalTimeoutError: If the call exceeds the timeout.
            SignalFetchError: If the connector fails.
        """
        return await self._fetch(
            connector,
            config,
            metric,
            self.settings.monitor.metric_window_hours,
            segment,
        )

    async def fetch_metric(
        self,
        connector: SignalConnector,
        config: ConnectorConfig | None,
        metric: str,
        segment: dict[str, str] | None = None,
        window_hours: float | None = None,
    ) -> FetchResult:
        """Like :meth:`fetch_current_value`, but reports failure as a value."""
        hours = (
            window_hours
            if window_hours is not None
            else self.settings.monitor.metric_window_hours
        )
        try:
            value = await self._fetch(connector, config, metric, hours, segment)
        except SignalFetchError as e:
            return FetchResult.failure(connector.name, metric, e.message)
        return FetchResult.success(connector.name, metric, value)

    async def _check_one(self, constraint: ConstraintCheck) -> ConstraintResult:
        connector = self.connectors.get(constraint.connector)
        if connector is None:
            logger.warning(
                "Constraint '%s' references unknown connector '%s'",
                constraint.signal,
                constraint.connector,
            )
            return ConstraintResult(
                signal=constraint.signal,
                value=0.0,
                violated=False,
                error=f"Connector '{constraint.connector}' not found in registry",
            )

        result = await self.fetch_metric(
            connector,
            constraint.connector_config,
            constraint.metric,
            window_hours=self.settings.monitor.constraint_window_hours,
        )
        if not result.ok or result.value is None:
            logger.warning(
                "Constraint '%s' could not be checked: %s",
                constraint.signal,
                result.error,
            )
            return ConstraintResult(
                signal=constraint.signal,
                value=0.0,
                violated=False,
                error=result.error,
            )

        value = result.value.value
        crossed = constraint.violation(value)
        if crossed is None:
            return ConstraintResult(
                signal=constraint.signal, value=value, violated=False
            )

        violation_type, limit = crossed
        return ConstraintResult(
            signal=constraint.signal,
            value=value,
            violated=True,
            violation_type=violation_type,
            limit=limit,
        )

    async def check_constraints(
        self, constraints: Sequence[ConstraintCheck]
    ) -> list[ConstraintResult]:
        """
        Check every constraint concurrently over the constraint window.

        Results are returned in input order. A constraint whose fetch fails is
        reported with ``value=0.0``, ``violated=False`` and the failure text in
        ``error``; it never cancels or fails the other checks.
        """
        if not constraints:
            return []
        return list(await asyncio.gather(*(self._check_one(c) for c in constraints)))

    def test_significance(
        self,
        measurements: Iterable[Measurement],
        plan: MeasurementPlan,
    ) -> SignificanceResult:
        """Evaluate the sequential test with the configured statistics settings."""
        return evaluate_significance(
            measurements,
            plan,
            ci_z_score=self.settings.statistics.ci_z_score,
            default_mixture_variance=self.settings.statistics.default_mixture_variance,
        )

    async def sample_variants(
        self,
        connector: SignalConnector,
        config: ConnectorConfig | None,
        metric: str,
        variant_key: str,
    ) -> list[Measurement]:
        """
        Take one reading per variant and turn it into measurements.

        Returns exactly two measurements (control, treatment) or, when the
        connector fails, none.
        """
        time_range = TimeRange.trailing(
            self.settings.monitor.metric_window_hours, now=self._clock()
        )
        timeout = self._timeout_for(config)
        try:
            reading = await asyncio.wait_for(
                connector.fetch_variant_metric(metric, variant_key, time_range, config),
                timeout=timeout,
            )
        except TimeoutError:
            logger.warning(
                "Variant sample of '%s' from %s timed out after %ss",
                metric,
                connector.name,
                timeout,
            )
            return []
        except Exception as e:
            logger.warning(
                "Variant sample of '%s' from %s failed: %s", metric, connector.name, e
            )
            return []

        return [
            Measurement(
                value=reading.control.value,
                variant=Variant.CONTROL,
                sample_size=reading.control.sample_size,
                timestamp=reading.control.timestamp,
            ),
            Measurement(
                value=reading.treatment.value,
                variant=Variant.TREATMENT,
                sample_size=reading.treatment.sample_size,
                timestamp=reading.treatment.timestamp,
            ),
        ]

"""Signal connectors, registry and monitor."""

from .base import (
    ConnectionResult,
    ConnectorConfig,
    MetricDefinition,
    MetricType,
    MetricValue,
    SignalConnector,
    TimeRange,
    VariantMetricValue,
)
from .exceptions import (
    ConnectorNotFoundError,
    SignalError,
    SignalFetchError,
    SignalTimeoutError,
)
from .monitor import (
    ConstraintCheck,
    ConstraintResult,
    FetchResult,
    SignalMonitor,
    ViolationType,
)
from .registry import ConnectorRegistry

__all__ = [
    "ConnectionResult",
    "ConnectorConfig",
    "ConnectorNotFoundError",
    "ConnectorRegistry",
    "ConstraintCheck",
    "ConstraintResult",
    "FetchResult",
    "MetricDefinition",
    "MetricType",
    "MetricValue",
    "SignalConnector",
    "SignalError",
    "SignalFetchError",
    "SignalMonitor",
    "SignalTimeoutError",
    "TimeRange",
    "VariantMetricValue",
    "ViolationType",
]

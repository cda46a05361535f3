"""Signal-specific exceptions."""

from outcome_runtime.core.exceptions import OutcomeRuntimeError


class SignalError(OutcomeRuntimeError):
    """Base exception for signal errors."""

    code = "SIGNAL_ERROR"

    def __init__(
        self,
        message: str,
        source: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.source = source
        self.cause = cause
        super().__init__(message, context={"source": source})


class SignalFetchError(SignalError):
    """Raised when a connector fails to return a metric."""

    code = "SIGNAL_FETCH_FAILED"

    def __init__(
        self,
        source: str,
        message: str,
        metric: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.metric = metric
        super().__init__(
            f"Signal fetch from {source} failed: {message}",
            source=source,
            cause=cause,
        )


class SignalTimeoutError(SignalFetchError):
    """Raised when a connector call exceeds its timeout."""

    code = "SIGNAL_TIMEOUT"

    def __init__(
        self,
        source: str,
        timeout_seconds: float,
        metric: str | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            source,
            f"timed out after {timeout_seconds:g}s",
            metric=metric,
        )


class ConnectorNotFoundError(SignalError):
    """Raised when a requested connector is not registered."""

    code = "CONNECTOR_NOT_FOUND"

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Connector '{name}' not found in registry",
            source=name,
        )

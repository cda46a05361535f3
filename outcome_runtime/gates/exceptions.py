"""Gate-specific exceptions."""

from outcome_runtime.core.exceptions import OutcomeRuntimeError


class GateError(OutcomeRuntimeError):
    """Base exception for gate errors."""

    code = "GATE_ERROR"


class GateNotFoundError(GateError):
    """Raised when a gate id does not exist."""

    code = "GATE_NOT_FOUND"

    def __init__(self, gate_id: str) -> None:
        self.gate_id = gate_id
        super().__init__(f"Gate {gate_id} not found", context={"gate_id": gate_id})


class GateAlreadyDecidedError(GateError):
    """Raised when a gate is no longer open, or changed under the writer."""

    code = "GATE_ALREADY_DECIDED"

    def __init__(self, gate_id: str, status: str) -> None:
        self.gate_id = gate_id
        self.status = status
        super().__init__(
            f"Gate {gate_id} is already {status}",
            context={"gate_id": gate_id, "status": status},
        )


class NotificationError(OutcomeRuntimeError):
    """Raised when a notification channel fails to deliver."""

    code = "NOTIFICATION_FAILED"

    def __init__(
        self,
        channel: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        self.channel = channel
        self.cause = cause
        super().__init__(
            f"Notification via {channel} failed: {message}",
            context={"channel": channel},
        )


class GateConflictError(GateError):
    """Raised when a guarded gate field changed under the writer."""

    code = "GATE_CONFLICT"

    def __init__(self, gate_id: str, field: str) -> None:
        self.gate_id = gate_id
        self.field = field
        super().__init__(
            f"Gate {gate_id} changed concurrently: {field}",
            context={"gate_id": gate_id, "field": field},
        )

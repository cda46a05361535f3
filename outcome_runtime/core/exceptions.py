"""Outcome runtime exceptions."""

from typing import Any


class OutcomeRuntimeError(Exception):
    """Base exception for all outcome runtime errors.

    Every error carries a stable machine-readable ``code`` so that an API
    layer can map it to a response without inspecting the message.
    """

    code = "OUTCOME_RUNTIME_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class ConfigValidationError(OutcomeRuntimeError):
    """Configuration file or input document failed validation."""

    code = "CONFIG_VALIDATION_FAILED"

    def __init__(
        self,
        message: str,
        errors: dict[str, list[str]] | None = None,
        file_path: str | None = None,
    ):
        self.errors = errors or {}
        self.file_path = file_path

        full_message = f"File: {file_path}: {message}" if file_path else message
        super().__init__(full_message, context={"errors": self.errors})


class InvalidTransitionError(OutcomeRuntimeError):
    """A lifecycle event is not allowed from the current state."""

    code = "INVALID_TRANSITION"

    def __init__(self, current: str, event: str):
        self.current = current
        self.event = event
        super().__init__(
            f"Event '{event}' is not allowed in state '{current}'",
            context={"current": current, "event": event},
        )

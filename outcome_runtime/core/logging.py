"""Structured logging for the outcome runtime.

Library modules log through ``logging.getLogger(__name__)``. Once
``configure_logging`` has run, their records pass through the same structlog
processor chain as ``get_logger`` loggers, so every line carries the
correlation id of the current run and the fields bound with
``bind_context`` (``experiment_id``, ``gate_id``).

Example:
    configure_logging_from_settings(settings.logging)

    with correlation_context():
        with bind_context(experiment_id="exp-42"):
            logger.warning("Killing experiment %s: %s", "exp-42", reason)
"""

import logging
import socket
import sys
import uuid
from contextvars import ContextVar, Token
from functools import lru_cache
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from outcome_runtime._version import __version__
from outcome_runtime.core.security import REDACTED, redact_secrets, sanitize_log_message
from outcome_runtime.core.settings import LoggingSettings

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_bound_fields: ContextVar[dict[str, Any]] = ContextVar("bound_fields", default={})

# Loggers given their own level by the last configure_logging call
_leveled_modules: list[str] = []

SENSITIVE_KEY_PARTS = (
    "password",
    "passwd",
    "secret",
    "token",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "connection_string",
    "private_key",
)


def _to_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


class correlation_context:
    """Scope in which every log record carries the same correlation id.

    The CLI opens one per invocation; a scheduler driving kill-switch checks
    or SLA sweeps would open one per cycle.
    """

    def __init__(self, correlation_id: str | None = None) -> None:
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self._token: Token[str | None] | None = None

    def __enter__(self) -> str:
        self._token = _correlation_id.set(self.correlation_id)
        return self.correlation_id

    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            _correlation_id.reset(self._token)

    async def __aenter__(self) -> str:
        return self.__enter__()

    async def __aexit__(self, *args: Any) -> None:
        self.__exit__(*args)


class bind_context:
    """Bind fields to every record logged inside the block.

    Nested blocks add to the outer fields; leaving a block restores them.
    """

    def __init__(self, **fields: Any) -> None:
        self.fields = fields
        self._token: Token[dict[str, Any]] | None = None

    def __enter__(self) -> "bind_context":
        self._token = _bound_fields.set({**_bound_fields.get(), **self.fields})
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            _bound_fields.reset(self._token)


# -----------------------------------------------------------------------------
# Processors
# -----------------------------------------------------------------------------


def add_run_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add the correlation id and bound fields; explicit fields win."""
    correlation_id = _correlation_id.get()
    if correlation_id is not None:
        event_dict.setdefault("correlation_id", correlation_id)
    for key, value in _bound_fields.get().items():
        event_dict.setdefault(key, value)
    return event_dict


@lru_cache(maxsize=1)
def _hostname() -> str:
    try:
        return socket.gethostname()
    except OSError:
        return "unknown"


def add_common_fields(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict.setdefault("runtime_version", __version__)
    event_dict.setdefault("hostname", _hostname())
    return event_dict


def _redact(value: Any) -> Any:
    if isinstance(value, str):
        return redact_secrets(value)
    if isinstance(value, dict):
        return {
            k: REDACTED if _is_sensitive(k) else _redact(v) for k, v in value.items()
        }
    return value


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(part in lowered for part in SENSITIVE_KEY_PARTS)


def redact_sensitive_data(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Mask sensitive keys (also nested) and secret-looking substrings."""
    return _redact(dict(event_dict))


def sanitize_event(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Escape control characters in the message to block log injection."""
    event = event_dict.get("event")
    if isinstance(event, str):
        event_dict["event"] = sanitize_log_message(event)
    return event_dict


def _processors() -> list[Processor]:
    return [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_run_context,
        add_common_fields,
        redact_sensitive_data,
        sanitize_event,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------


def configure_logging(
    level: str | int = logging.INFO,
    json_output: bool | None = None,
    log_file: str | None = None,
    module_levels: dict[str, str | int] | None = None,
) -> None:
    """Route stdlib and structlog records through one processor chain.

    Args:
        level: Root log level.
        json_output: Render JSON lines; when None, JSON unless stderr is a TTY.
        log_file: Also write records to this file.
        module_levels: Level per logger name; applies to its child loggers
            too and may be lower than ``level``.
    """
    if json_output is None:
        json_output = not sys.stderr.isatty()
    level = _to_level(level)

    _clear_module_levels()
    for module, module_level in (module_levels or {}).items():
        logging.getLogger(module).setLevel(_to_level(module_level))
        _leveled_modules.append(module)

    processors = _processors()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer, foreign_pre_chain=processors
    )

    # stdout is reserved for command output
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)


def _clear_module_levels() -> None:
    for module in _leveled_modules:
        logging.getLogger(module).setLevel(logging.NOTSET)
    _leveled_modules.clear()


def configure_logging_from_settings(
    settings: LoggingSettings, level: str | int | None = None
) -> None:
    """Configure logging from a ``logging`` settings group.

    Args:
        settings: Logging settings.
        level: Overrides ``settings.level`` when given.
    """
    configure_logging(
        level=level if level is not None else settings.level,
        json_output=settings.json_output,
        log_file=settings.file,
        module_levels=dict(settings.module_levels),
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Structured logger taking key-value event fields."""
    return structlog.get_logger(name)


def reset_logging() -> None:
    """Drop all logging configuration and context."""
    _clear_module_levels()
    _correlation_id.set(None)
    _bound_fields.set({})
    structlog.reset_defaults()

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.WARNING)

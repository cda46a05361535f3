"""Human approval gates with SLA tracking."""

from .exceptions import (
    GateAlreadyDecidedError,
    GateConflictError,
    GateError,
    GateNotFoundError,
    NotificationError,
)
from .manager import GateManager
from .models import (
    DECISION_STATUSES,
    OPEN_STATUSES,
    Gate,
    GateCreateInput,
    GateNotification,
    GateResponse,
    GateStatus,
    GateType,
    NotificationKind,
    SLAAction,
    SLAStatus,
)
from .notifications import (
    EmailNotificationChannel,
    LogNotificationChannel,
    NotificationChannel,
    SlackNotificationChannel,
    WebhookNotificationChannel,
)
from .sla import SLAMonitor
from .store import GateStore, InMemoryGateStore

__all__ = [
    "DECISION_STATUSES",
    "OPEN_STATUSES",
    "EmailNotificationChannel",
    "Gate",
    "GateAlreadyDecidedError",
    "GateConflictError",
    "GateCreateInput",
    "GateError",
    "GateManager",
    "GateNotFoundError",
    "GateNotification",
    "GateResponse",
    "GateStatus",
    "GateStore",
    "GateType",
    "InMemoryGateStore",
    "LogNotificationChannel",
    "NotificationChannel",
    "NotificationError",
    "NotificationKind",
    "SLAAction",
    "SLAMonitor",
    "SLAStatus",
    "SlackNotificationChannel",
    "WebhookNotificationChannel",
]

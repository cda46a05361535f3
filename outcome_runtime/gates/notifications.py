"""Notification channels for human gates.

Every channel raises :class:`NotificationError` when delivery fails. The gate
manager logs and swallows those errors: a broken channel never blocks a gate
transition.
"""

import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from email.mime.text import MIMEText
from typing import Any

import httpx

from .exceptions import NotificationError
from .models import GateNotification, NotificationKind

logger = logging.getLogger(__name__)

SLACK_API_URL = "https://slack.com/api"


def _plain_text(text: str) -> dict[str, Any]:
    return {"type": "plain_text", "text": text, "emoji": True}


def _mrkdwn(text: str) -> dict[str, Any]:
    return {"type": "mrkdwn", "text": text}


def _button(text: str, action_id: str, value: str, **extra: Any) -> dict[str, Any]:
    return {
        "type": "button",
        "text": _plain_text(text),
        "action_id": action_id,
        "value": value,
        **extra,
    }


class NotificationChannel(ABC):
    """Abstract base class for gate notification channels."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the channel name."""

    @abstractmethod
    async def send(self, notification: GateNotification) -> None:
        """Deliver a notification.

        Raises:
            NotificationError: If delivery fails.
        """


class LogNotificationChannel(NotificationChannel):
    """Channel that writes notifications to the application log."""

    @property
    def name(self) -> str:
        return "log"

    async def send(self, notification: GateNotification) -> None:
        logger.info(
            "[GATE] %s (%s) for %s: assigned to %s, SLA %gh, %s",
            notification.gate_type.value,
            notification.kind.value,
            notification.experiment_title,
            notification.assigned_to,
            notification.sla_hours,
            notification.dashboard_url,
        )


class WebhookNotificationChannel(NotificationChannel):
    """Channel that POSTs the notification as JSON."""

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize webhook channel.

        Args:
            url: Webhook URL.
            headers: Optional HTTP headers.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport.
        """
        self._url = url
        self._headers = headers or {"Content-Type": "application/json"}
        self._timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "webhook"

    async def send(self, notification: GateNotification) -> None:
        payload = {
            "type": "gate_notification",
            "gate": notification.model_dump(mode="json"),
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self._url, json=payload, headers=self._headers
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(self.name, str(e), cause=e) from e
        logger.debug("Webhook notification for gate %s sent", notification.gate_id)


class SlackNotificationChannel(NotificationChannel):
    """Channel that posts a block-kit message with approve/reject buttons."""

    def __init__(
        self,
        bot_token: str,
        channel: str,
        api_url: str = SLACK_API_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._bot_token = bot_token
        self._channel = channel
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "slack"

    def build_blocks(self, notification: GateNotification) -> list[dict[str, Any]]:
        """Build the Slack block-kit payload for a notification."""
        n = notification
        title = n.gate_type_label.title()
        if n.kind != NotificationKind.CREATED:
            title = f"{title} ({n.kind.value})"

        return [
            {"type": "header", "text": _plain_text(title)},
            {
                "type": "section",
                "fields": [
                    _mrkdwn(f"*Outcome:*\n{n.outcome_title}"),
                    _mrkdwn(f"*Experiment:*\n{n.experiment_title}"),
                    _mrkdwn(f"*Assigned to:*\n{n.assigned_to}"),
                    _mrkdwn(f"*SLA:*\n{n.sla_hours:g} hours"),
                ],
            },
            {"type": "section", "text": _mrkdwn(f"*Question:*\n{n.question}")},
            {
                "type": "actions",
                "block_id": f"gate_action_{n.gate_id}",
                "elements": [
                    _button("Approve", "gate_approve", n.gate_id, style="primary"),
                    _button("Reject", "gate_reject", n.gate_id, style="danger"),
                    _button("View Details", "gate_view", n.dashboard_url),
                ],
            },
        ]

    async def send(self, notification: GateNotification) -> None:
        body = {
            "channel": self._channel,
            "text": (
                f"Human Gate: {notification.gate_type_label} - "
                f"{notification.experiment_title}"
            ),
            "blocks": self.build_blocks(notification),
        }
        headers = {
            "Authorization": f"Bearer {self._bot_token}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self._api_url}/chat.postMessage", json=body, headers=headers
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise NotificationError(self.name, str(e), cause=e) from e

        if not data.get("ok"):
            raise NotificationError(self.name, f"Slack API error: {data.get('error')}")


class EmailNotificationChannel(NotificationChannel):
    """Channel that emails the assignee via SMTP."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int = 587,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        from_addr: str | None = None,
        use_tls: bool = True,
    ) -> None:
        self._smtp_host = smtp_host
        self._smtp_port = smtp_port
        self._smtp_user = smtp_user
        self._smtp_password = smtp_password
        self._from_addr = from_addr or smtp_user or "outcome-runtime@localhost"
        self._use_tls = use_tls

    @property
    def name(self) -> str:
        return "email"

    def build_message(self, notification: GateNotification) -> MIMEText:
        """Build the plain-text email for a notification."""
        subject = (
            f"[Outcome Runtime] {notification.gate_type_label} needed: "
            f"{notification.experiment_title}"
        )
        body = f"""Human Gate: {notification.gate_type_label}

Outcome: {notification.outcome_title}
Experiment: {notification.experiment_title}
Question: {notification.question}
SLA: {notification.sla_hours:g} hours

Review and decide: {notification.dashboard_url}
"""
        msg = MIMEText(body)
        msg["Subject"] = subject
        msg["From"] = self._from_addr
        msg["To"] = notification.assigned_to
        return msg

    def _send_sync(self, msg: MIMEText) -> None:
        with smtplib.SMTP(self._smtp_host, self._smtp_port) as server:
            if self._use_tls:
                server.starttls()
            if self._smtp_user and self._smtp_password:
                server.login(self._smtp_user, self._smtp_password)
            server.sendmail(msg["From"], [msg["To"]], msg.as_string())

    async def send(self, notification: GateNotification) -> None:
        msg = self.build_message(notification)
        loop = asyncio.get_running_loop()
        try:
            # smtplib is blocking
            await loop.run_in_executor(None, self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(self.name, str(e), cause=e) from e
        logger.info("Email notification for gate %s sent", notification.gate_id)

"""Notification delivery channels."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

import httpx
from loguru import logger

from packet_engine.config.settings import settings

CLIENT_PACKET_READY = "CLIENT_PACKET_READY"
CLIENT_PACKET_UPDATED = "CLIENT_PACKET_UPDATED"
ADMIN_PACKET_FAILED = "ADMIN_PACKET_FAILED"


@dataclass(frozen=True)
class Notification:
    kind: str
    recipients: list[str]
    subject: str
    body: str
    metadata: dict[str, Any] = field(default_factory=dict)


class NotificationChannel(Protocol):
    def send(self, notification: Notification) -> None: ...


class LogNotificationChannel:
    """Write notifications to the log; used when no delivery backend is configured."""

    def send(self, notification: Notification) -> None:
        logger.bind(kind=notification.kind, recipients=notification.recipients).info(
            f"[NOTIFY] {notification.subject}"
        )


class WebhookNotificationChannel:
    """POST notifications as JSON to a webhook that handles e-mail or in-app delivery."""

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    def send(self, notification: Notification) -> None:
        with httpx.Client(timeout=self.timeout) as client:
            response = client.post(self.url, json=asdict(notification))
            response.raise_for_status()


def build_default_channel() -> NotificationChannel:
    if settings.notification_webhook_url:
        return WebhookNotificationChannel(settings.notification_webhook_url)
    return LogNotificationChannel()

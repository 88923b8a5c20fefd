"""Delivery targets for booking lifecycle notifications."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Protocol
from uuid import UUID

import httpx

from app.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class NotificationMessage:
    booking_id: UUID
    recipient: str
    event_type: str
    title: str
    body: str
    channel: str = "email"


class NotificationPublisher(Protocol):
    async def publish(self, message: NotificationMessage) -> None: ...


class LoggingNotificationPublisher:
    """Writes messages to the log; used when no delivery service is configured."""

    async def publish(self, message: NotificationMessage) -> None:
        logger.info(
            "Notification for %s on booking %s: %s",
            message.recipient,
            message.booking_id,
            message.title,
        )


class HttpNotificationPublisher:
    """Posts messages to the notification delivery service."""

    def __init__(self, url: str, timeout_seconds: float = 5.0, client: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.client = client

    async def publish(self, message: NotificationMessage) -> None:
        body = asdict(message)
        body["booking_id"] = str(message.booking_id)
        if self.client is not None:
            response = await self.client.post(self.url, json=body, timeout=self.timeout_seconds)
            response.raise_for_status()
            return
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.post(self.url, json=body)
            response.raise_for_status()


def build_publisher(settings: Settings) -> NotificationPublisher:
    if settings.notification_webhook_url:
        return HttpNotificationPublisher(
            settings.notification_webhook_url,
            timeout_seconds=settings.notification_timeout_seconds,
        )
    return LoggingNotificationPublisher()

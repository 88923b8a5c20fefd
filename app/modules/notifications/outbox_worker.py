"""Outbox consumer that relays booking lifecycle events as notifications."""

from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID

from app.modules.audit.models import OutboxEvent
from app.modules.audit.repository import AuditRepository
from app.modules.notifications.publisher import NotificationMessage, NotificationPublisher
from app.shared.utils import utc_now

CLIENT = "client"
PROVIDER = "provider"

# event_type -> [(recipient, title, body template)]
MESSAGE_TEMPLATES: dict[str, list[tuple[str, str, str]]] = {
    "booking.created": [(PROVIDER, "New booking request", "A client requested {service_type}.")],
    "booking.accepted": [(CLIENT, "Booking accepted", "Your appointment on {scheduled_at} is confirmed.")],
    "booking.rescheduled": [
        (CLIENT, "Booking rescheduled", "Your appointment moved to {new_scheduled_at}."),
        (PROVIDER, "Booking rescheduled", "Appointment moved to {new_scheduled_at}."),
    ],
    "booking.cancelled": [
        (CLIENT, "Booking cancelled", "Your booking was cancelled."),
        (PROVIDER, "Booking cancelled", "A booking was cancelled by the {cancelled_by}."),
    ],
    "deposit.requested": [(CLIENT, "Deposit requested", "Please pay a deposit of {amount}.")],
    "deposit.captured": [
        (CLIENT, "Deposit received", "We received your deposit of {amount}."),
        (PROVIDER, "Deposit captured", "Client paid a deposit of {amount}."),
    ],
    "deposit.released": [(PROVIDER, "Deposit released", "{amount} of the deposit was released to you.")],
    "deposit.refunded": [(CLIENT, "Deposit refunded", "{amount} of your deposit was refunded.")],
    "deposit.disputed": [(PROVIDER, "Deposit on hold", "The deposit of {amount} is on hold pending a dispute.")],
    "deposit.fee_retained": [
        (CLIENT, "Late change fee", "{amount} of your deposit was kept as a late change fee."),
    ],
    "completion.work_done": [
        (CLIENT, "Please confirm the job", "Your provider marked the job as done. Confirm by {confirm_by}."),
    ],
    "completion.confirmed": [(PROVIDER, "Job confirmed", "The client confirmed the job was completed.")],
    "completion.auto_confirmed": [
        (CLIENT, "Job completed", "The job was marked completed after the confirmation window."),
        (PROVIDER, "Job completed", "The job was confirmed automatically."),
    ],
    "completion.disputed": [(PROVIDER, "Job disputed", "The client disputed the job outcome.")],
    "remainder.settled": [(CLIENT, "Payment received", "Thank you, your balance is settled.")],
}


class _PayloadView(dict):
    def __missing__(self, key: str) -> str:
        return "unknown"


class NotificationsOutboxWorker:
    """Process outbox events and publish client/provider notifications."""

    def __init__(
        self,
        audit_repository: AuditRepository,
        publisher: NotificationPublisher,
        *,
        batch_size: int = 100,
        max_retries: int = 5,
        base_backoff_seconds: int = 30,
        max_backoff_seconds: int = 300,
        now_provider=utc_now,
    ) -> None:
        self.audit_repository = audit_repository
        self.publisher = publisher
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.now_provider = now_provider

    async def run_once(self) -> dict[str, int]:
        """Run one processing cycle."""
        stats = {"requeued": 0, "processed": 0, "failed": 0, "dispatched": 0}
        stats["requeued"] = await self._requeue_retryable_failed_events()

        events = await self.audit_repository.list_pending_outbox(limit=self.batch_size)
        for event in events:
            try:
                for message in self._build_messages(event):
                    await self.publisher.publish(message)
                    stats["dispatched"] += 1

                await self.audit_repository.mark_outbox_processed(event, self.now_provider())
                stats["processed"] += 1
            except Exception as exc:
                await self.audit_repository.mark_outbox_failed(event, str(exc))
                stats["failed"] += 1
        return stats

    async def _requeue_retryable_failed_events(self) -> int:
        now = self.now_provider()
        failed_events = await self.audit_repository.list_failed_outbox(
            limit=self.batch_size,
            max_retries=self.max_retries,
        )
        requeued = 0
        for event in failed_events:
            if self._is_backoff_elapsed(event, now):
                await self.audit_repository.mark_outbox_pending(event)
                requeued += 1
        return requeued

    def _is_backoff_elapsed(self, event: OutboxEvent, now: datetime) -> bool:
        retries = max(event.retries, 1)
        backoff_seconds = min(
            self.max_backoff_seconds,
            self.base_backoff_seconds * (2 ** (retries - 1)),
        )
        last_attempt_at = event.updated_at or event.occurred_at
        return now >= last_attempt_at + timedelta(seconds=backoff_seconds)

    def _build_messages(self, event: OutboxEvent) -> list[NotificationMessage]:
        templates = MESSAGE_TEMPLATES.get(event.event_type)
        if not templates:
            return []

        payload = event.payload or {}
        booking_id = self._required_uuid(payload, "booking_id")
        values = _PayloadView(payload)
        if "amount_cents" in payload:
            values["amount"] = f"{int(payload['amount_cents']) / 100:.2f} {payload.get('currency', '')}".strip()

        return [
            NotificationMessage(
                booking_id=booking_id,
                recipient=recipient,
                event_type=event.event_type,
                title=title,
                body=body.format_map(values),
            )
            for recipient, title, body in templates
        ]

    @staticmethod
    def _required_uuid(payload: dict, key: str) -> UUID:
        value = payload.get(key)
        if value is None:
            raise ValueError(f"Missing required key: {key}")
        return UUID(str(value))

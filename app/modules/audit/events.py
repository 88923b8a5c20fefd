"""Helpers that write the booking trail and the notification outbox together."""

from __future__ import annotations

from uuid import UUID

from app.modules.audit.repository import AuditRepository
from app.shared.actor import Actor
from app.shared.money import Money


def money_payload(money: Money) -> dict:
    return {"amount_cents": money.amount_cents, "currency": money.currency}


async def record_booking_event(
    audit_repository: AuditRepository,
    *,
    booking_id: UUID,
    actor: Actor,
    event_type: str,
    payload: dict | None = None,
    notify: bool = True,
) -> None:
    """Append an audit entry and, when `notify` is set, an outbox event."""
    body = {"booking_id": str(booking_id), **(payload or {})}
    await audit_repository.create_audit_log(
        booking_id=booking_id,
        actor=actor,
        action=event_type,
        payload=body,
    )
    if notify:
        await audit_repository.create_outbox_event(
            aggregate_type="booking",
            aggregate_id=str(booking_id),
            event_type=event_type,
            payload={**body, "actor_type": str(actor.type)},
        )

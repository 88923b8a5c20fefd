"""Audit API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.core.enums import ActorTypeEnum
from app.modules.audit.schemas import BookingEventRead, OutboxEventRead
from app.modules.audit.service import AuditService, get_audit_service
from app.shared.actor import Actor, require_actor_types
from app.shared.pagination import Page, PageWindow, build_page, get_page_window

router = APIRouter(tags=["audit"])


@router.get("/bookings/{booking_id}/events", response_model=Page[BookingEventRead])
async def list_booking_events(
    booking_id: UUID,
    window: PageWindow = Depends(get_page_window),
    service: AuditService = Depends(get_audit_service),
    actor: Actor = Depends(require_actor_types(ActorTypeEnum.PROVIDER, ActorTypeEnum.ADMIN)),
) -> Page[BookingEventRead]:
    """Booking trail, oldest first."""
    items, total = await service.list_booking_events(booking_id, actor, window.limit, window.offset)
    return build_page(items, total, window, BookingEventRead)


@router.get("/audit/outbox/pending", response_model=list[OutboxEventRead])
async def list_pending_outbox(
    limit: int = Query(default=100, ge=1, le=500),
    service: AuditService = Depends(get_audit_service),
    actor: Actor = Depends(require_actor_types(ActorTypeEnum.ADMIN)),
) -> list[OutboxEventRead]:
    """List pending outbox events."""
    items = await service.list_pending_outbox(actor, limit=limit)
    return [OutboxEventRead.model_validate(item) for item in items]

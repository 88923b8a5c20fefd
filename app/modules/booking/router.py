"""Booking API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.enums import ActorTypeEnum, BookingStatusEnum
from app.modules.booking.schemas import (
    BookingCancelRequest,
    BookingCreate,
    BookingRead,
    BookingRescheduleRequest,
    RescheduleRead,
)
from app.modules.booking.service import BookingService, get_booking_service
from app.shared.actor import Actor, get_current_actor, require_actor_types
from app.shared.pagination import Page, PageWindow, build_page, get_page_window

router = APIRouter(prefix="/bookings", tags=["booking"])

manage_actor = require_actor_types(ActorTypeEnum.PROVIDER, ActorTypeEnum.ADMIN)


@router.post("", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor),
) -> BookingRead:
    """Create booking request, optionally with a deposit and job total."""
    booking = await service.create_booking(payload, actor)
    return BookingRead.model_validate(booking)


@router.get("", response_model=Page[BookingRead])
async def list_bookings(
    status_filter: BookingStatusEnum | None = Query(default=None, alias="status"),
    window: PageWindow = Depends(get_page_window),
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(manage_actor),
) -> Page[BookingRead]:
    items, total = await service.list_bookings(actor, status_filter, window.limit, window.offset)
    return build_page(items, total, window, BookingRead)


@router.get("/{booking_id}", response_model=BookingRead)
async def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(manage_actor),
) -> BookingRead:
    booking = await service.get_booking(booking_id, actor)
    return BookingRead.model_validate(booking)


@router.post("/{booking_id}/accept", response_model=BookingRead)
async def accept_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(manage_actor),
) -> BookingRead:
    """Accept pending booking request."""
    booking = await service.accept_booking(booking_id, actor)
    return BookingRead.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingRead)
async def cancel_booking(
    booking_id: UUID,
    payload: BookingCancelRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(manage_actor),
) -> BookingRead:
    """Cancel booking and settle the deposit by cancellation notice."""
    booking = await service.cancel_booking(booking_id, payload, actor)
    return BookingRead.model_validate(booking)


@router.post("/{booking_id}/reschedule", response_model=RescheduleRead)
async def reschedule_booking(
    booking_id: UUID,
    payload: BookingRescheduleRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(manage_actor),
) -> RescheduleRead:
    """Move the appointment, applying the late-reschedule fee policy."""
    booking, decision = await service.reschedule_booking(booking_id, payload, actor)
    return RescheduleRead(
        booking=BookingRead.model_validate(booking),
        is_late=decision.is_late,
        hours_until_appointment=decision.hours_until_appointment,
        late_reschedule_count=decision.late_reschedule_count,
        fee_cents=decision.fee_cents,
    )

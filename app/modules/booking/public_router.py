"""Client-facing routes authorized by the booking confirmation token."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.enums import ActorTypeEnum
from app.modules.booking.schemas import BookingCancelRequest, BookingRead, PublicBookingRead
from app.modules.booking.service import BookingService, get_booking_service
from app.modules.completion.schemas import CompletionRead, DisputeCreate
from app.modules.completion.service import CompletionService, get_completion_service
from app.shared.actor import Actor

router = APIRouter(prefix="/public/bookings/{token}", tags=["public"])

CLIENT_ACTOR = Actor(type=ActorTypeEnum.CUSTOMER)


@router.get("", response_model=PublicBookingRead)
async def get_public_booking(
    token: str,
    service: BookingService = Depends(get_booking_service),
) -> PublicBookingRead:
    return await service.get_public_summary(token)


@router.post("/confirm", response_model=CompletionRead)
async def confirm_completion(
    token: str,
    service: CompletionService = Depends(get_completion_service),
) -> CompletionRead:
    """Client confirms the job was done."""
    record = await service.confirm_completion_by_token(token, CLIENT_ACTOR)
    return CompletionRead.model_validate(record)


@router.post("/dispute", response_model=CompletionRead)
async def raise_dispute(
    token: str,
    payload: DisputeCreate,
    service: CompletionService = Depends(get_completion_service),
) -> CompletionRead:
    """Client disputes the job outcome; the deposit is frozen."""
    record = await service.raise_dispute_by_token(token, CLIENT_ACTOR, payload.reason)
    return CompletionRead.model_validate(record)


@router.post("/cancel", response_model=BookingRead)
async def cancel_booking(
    token: str,
    payload: BookingCancelRequest,
    service: BookingService = Depends(get_booking_service),
) -> BookingRead:
    booking = await service.cancel_booking_by_token(token, payload, CLIENT_ACTOR)
    return BookingRead.model_validate(booking)

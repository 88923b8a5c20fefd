"""Booking ownership checks shared by the lifecycle services."""

from __future__ import annotations

from uuid import UUID

from app.core.enums import ActorTypeEnum
from app.modules.booking.models import BookingRequest
from app.modules.booking.repository import BookingRepository
from app.shared.actor import Actor
from app.shared.exceptions import NotFoundException, UnauthorizedException


def validate_actor_access(booking: BookingRequest, actor: Actor) -> None:
    if actor.type in (ActorTypeEnum.ADMIN, ActorTypeEnum.SYSTEM):
        return
    if actor.type == ActorTypeEnum.PROVIDER and booking.provider_id == actor.id:
        return
    raise UnauthorizedException("You cannot manage this booking")


async def load_booking(
    repository: BookingRepository,
    booking_id: UUID,
    actor: Actor,
) -> BookingRequest:
    """Fetch booking by id and check the actor may manage it."""
    booking = await repository.get_booking_by_id(booking_id)
    if booking is None:
        raise NotFoundException("Booking not found")
    validate_actor_access(booking, actor)
    return booking


async def load_booking_by_token(repository: BookingRepository, token: str) -> BookingRequest:
    """Fetch booking through the client's confirmation token."""
    booking = await repository.get_booking_by_token(token)
    if booking is None:
        raise NotFoundException("Booking not found")
    return booking

"""Booking repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import BookingStatusEnum
from app.modules.booking.models import BookingRequest


class BookingRepository:
    """DB operations for booking requests."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_booking_request(
        self,
        provider_id: UUID,
        client_name: str,
        client_phone: str | None,
        client_email: str | None,
        service_type: str,
        description: str | None,
        location: str | None,
        scheduled_at: datetime,
    ) -> BookingRequest:
        booking = BookingRequest(
            provider_id=provider_id,
            client_name=client_name,
            client_phone=client_phone,
            client_email=client_email,
            service_type=service_type,
            description=description,
            location=location,
            scheduled_at=scheduled_at,
            status=BookingStatusEnum.PENDING,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_booking_by_id(self, booking_id: UUID) -> BookingRequest | None:
        stmt = select(BookingRequest).where(BookingRequest.id == booking_id)
        return await self.session.scalar(stmt)

    async def get_booking_by_token(self, token: str) -> BookingRequest | None:
        stmt = select(BookingRequest).where(BookingRequest.confirmation_token == token)
        return await self.session.scalar(stmt)

    async def list_bookings(
        self,
        provider_id: UUID | None,
        status: BookingStatusEnum | None,
        limit: int,
        offset: int,
    ) -> tuple[list[BookingRequest], int]:
        base_stmt: Select[tuple[BookingRequest]] = select(BookingRequest)
        if provider_id is not None:
            base_stmt = base_stmt.where(BookingRequest.provider_id == provider_id)
        if status is not None:
            base_stmt = base_stmt.where(BookingRequest.status == status)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(BookingRequest.scheduled_at.asc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def save(self, booking: BookingRequest) -> BookingRequest:
        await self.session.flush()
        return booking

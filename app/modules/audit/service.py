"""Audit business logic layer."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.modules.audit.models import AuditLog, OutboxEvent
from app.modules.audit.repository import AuditRepository
from app.modules.booking.access import load_booking
from app.modules.booking.repository import BookingRepository
from app.shared.actor import Actor
from app.shared.exceptions import UnauthorizedException


class AuditService:
    """Service for the booking trail and outbox inspection."""

    def __init__(self, repository: AuditRepository, booking_repository: BookingRepository) -> None:
        self.repository = repository
        self.booking_repository = booking_repository

    async def list_booking_events(
        self,
        booking_id: UUID,
        actor: Actor,
        limit: int,
        offset: int,
    ) -> tuple[list[AuditLog], int]:
        """List booking trail entries oldest first."""
        await load_booking(self.booking_repository, booking_id, actor)
        return await self.repository.list_booking_events(booking_id, limit=limit, offset=offset)

    async def list_pending_outbox(self, actor: Actor, limit: int) -> list[OutboxEvent]:
        """List pending outbox events (admin only)."""
        if not actor.is_admin:
            raise UnauthorizedException("Only admin can view outbox")
        return await self.repository.list_pending_outbox(limit)


async def get_audit_service(session: AsyncSession = Depends(get_db_session)) -> AuditService:
    """Dependency provider for audit service."""
    return AuditService(AuditRepository(session), BookingRepository(session))

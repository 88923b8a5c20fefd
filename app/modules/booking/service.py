"""Booking business logic layer."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import (
    ActorTypeEnum,
    BookingStatusEnum,
    CompletionStatusEnum,
    DepositStatusEnum,
)
from app.modules.audit.events import record_booking_event
from app.modules.audit.repository import AuditRepository
from app.modules.booking.access import load_booking, load_booking_by_token
from app.modules.booking.models import BookingRequest
from app.modules.booking.repository import BookingRepository
from app.modules.booking.schemas import (
    BookingCancelRequest,
    BookingCreate,
    BookingRescheduleRequest,
    PublicBookingRead,
)
from app.modules.completion.repository import CompletionRepository
from app.modules.deposits.policy import LifecyclePolicy, get_lifecycle_policy
from app.modules.deposits.reschedule_policy import RescheduleDecision
from app.modules.deposits.service import DepositService, build_deposit_service
from app.modules.remainder.repository import RemainderRepository
from app.modules.scheduler.repository import SchedulerRepository
from app.shared.actor import Actor
from app.shared.exceptions import (
    BusinessRuleException,
    InvalidScheduleError,
    InvalidTransitionError,
    UnauthorizedException,
)
from app.shared.money import Money
from app.shared.utils import ensure_utc, hours_between, utc_now

logger = logging.getLogger(__name__)

OPEN_BOOKING_STATUSES = (BookingStatusEnum.PENDING, BookingStatusEnum.ACCEPTED)


class BookingService:
    """Booking request lifecycle: create, accept, reschedule, cancel."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        completion_repository: CompletionRepository,
        remainder_repository: RemainderRepository,
        scheduler_repository: SchedulerRepository,
        audit_repository: AuditRepository,
        deposit_service: DepositService,
        *,
        policy: LifecyclePolicy,
        default_currency: str = "USD",
        now_provider=utc_now,
    ) -> None:
        self.booking_repository = booking_repository
        self.completion_repository = completion_repository
        self.remainder_repository = remainder_repository
        self.scheduler_repository = scheduler_repository
        self.audit_repository = audit_repository
        self.deposit_service = deposit_service
        self.policy = policy
        self.default_currency = default_currency
        self.now_provider = now_provider

    def _resolve_provider_id(self, payload: BookingCreate, actor: Actor) -> UUID:
        if actor.type == ActorTypeEnum.PROVIDER:
            if payload.provider_id is not None and payload.provider_id != actor.id:
                raise UnauthorizedException("Providers can only create their own bookings")
            return actor.id
        if payload.provider_id is None:
            raise BusinessRuleException("provider_id is required")
        return payload.provider_id

    async def create_booking(self, payload: BookingCreate, actor: Actor) -> BookingRequest:
        """Create booking request with optional deposit and job total."""
        provider_id = self._resolve_provider_id(payload, actor)
        scheduled_at = ensure_utc(payload.scheduled_at)
        if scheduled_at <= self.now_provider():
            raise InvalidScheduleError("Cannot book a time in the past")

        currency = payload.currency or self.default_currency
        booking = await self.booking_repository.create_booking_request(
            provider_id=provider_id,
            client_name=payload.client_name,
            client_phone=payload.client_phone,
            client_email=payload.client_email,
            service_type=payload.service_type,
            description=payload.description,
            location=payload.location,
            scheduled_at=scheduled_at,
        )
        await record_booking_event(
            self.audit_repository,
            booking_id=booking.id,
            actor=actor,
            event_type="booking.created",
            payload={
                "provider_id": str(provider_id),
                "scheduled_at": scheduled_at.isoformat(),
                "service_type": payload.service_type,
            },
        )

        if payload.total_amount_cents is not None:
            total = Money(payload.total_amount_cents, currency)
            await self.remainder_repository.create_balance(booking.id, total.amount_cents, total.currency)
        if payload.deposit_amount_cents is not None:
            await self.deposit_service.open_hold(booking, payload.deposit_amount_cents, currency, actor)
        return booking

    async def get_booking(self, booking_id: UUID, actor: Actor) -> BookingRequest:
        return await load_booking(self.booking_repository, booking_id, actor)

    async def get_public_summary(self, token: str) -> PublicBookingRead:
        """Booking state as shown on the client's confirmation page."""
        booking = await load_booking_by_token(self.booking_repository, token)
        hold = await self.deposit_service.deposit_repository.get_by_booking_id(booking.id)
        record = await self.completion_repository.get_by_booking_id(booking.id)
        return PublicBookingRead(
            id=booking.id,
            service_type=booking.service_type,
            scheduled_at=booking.scheduled_at,
            status=booking.status,
            deposit_status=hold.status if hold is not None else DepositStatusEnum.NONE,
            deposit_amount_cents=hold.amount_cents if hold is not None else None,
            currency=hold.currency if hold is not None else None,
            completion_status=record.completion_status if record is not None else None,
        )

    async def list_bookings(
        self,
        actor: Actor,
        status: BookingStatusEnum | None,
        limit: int,
        offset: int,
    ) -> tuple[list[BookingRequest], int]:
        """Providers see their own bookings, admins see all."""
        if actor.type == ActorTypeEnum.PROVIDER:
            return await self.booking_repository.list_bookings(actor.id, status, limit, offset)
        if actor.is_admin:
            return await self.booking_repository.list_bookings(None, status, limit, offset)
        raise UnauthorizedException("Only providers and admins can list bookings")

    async def accept_booking(self, booking_id: UUID, actor: Actor) -> BookingRequest:
        """Provider accepts the request; the job now awaits completion."""
        booking = await load_booking(self.booking_repository, booking_id, actor)
        if booking.status != BookingStatusEnum.PENDING:
            raise InvalidTransitionError("Only pending booking can be accepted")

        booking.status = BookingStatusEnum.ACCEPTED
        booking.accepted_at = self.now_provider()
        await self.booking_repository.save(booking)

        if await self.completion_repository.get_by_booking_id(booking.id) is None:
            await self.completion_repository.create_record(booking.id)

        await record_booking_event(
            self.audit_repository,
            booking_id=booking.id,
            actor=actor,
            event_type="booking.accepted",
            payload={"scheduled_at": booking.scheduled_at.isoformat()},
        )
        return booking

    async def reschedule_booking(
        self,
        booking_id: UUID,
        payload: BookingRescheduleRequest,
        actor: Actor,
    ) -> tuple[BookingRequest, RescheduleDecision]:
        """Move the appointment; late moves may retain part of the deposit."""
        booking = await load_booking(self.booking_repository, booking_id, actor)
        if booking.status not in OPEN_BOOKING_STATUSES:
            raise InvalidTransitionError("Only pending or accepted booking can be rescheduled")

        new_date = ensure_utc(payload.new_scheduled_at)
        old_date = booking.scheduled_at
        decision = await self.deposit_service.apply_reschedule(booking, new_date, actor)

        booking.scheduled_at = new_date
        booking.last_rescheduled_at = self.now_provider()
        await self.booking_repository.save(booking)

        await record_booking_event(
            self.audit_repository,
            booking_id=booking.id,
            actor=actor,
            event_type="booking.rescheduled",
            payload={
                "old_scheduled_at": ensure_utc(old_date).isoformat(),
                "new_scheduled_at": new_date.isoformat(),
                "is_late": decision.is_late,
                "late_reschedule_count": decision.late_reschedule_count,
                "fee_cents": decision.fee_cents,
            },
        )
        logger.info(
            "Booking %s rescheduled, late=%s fee_cents=%s",
            booking.id,
            decision.is_late,
            decision.fee_cents,
        )
        return booking, decision

    async def cancel_booking(
        self,
        booking_id: UUID,
        payload: BookingCancelRequest,
        actor: Actor,
    ) -> BookingRequest:
        """Cancel booking from the provider or admin side."""
        booking = await load_booking(self.booking_repository, booking_id, actor)
        cancelled_by = ActorTypeEnum.CUSTOMER if payload.requested_by_client else actor.type
        return await self._cancel(booking, actor, cancelled_by, payload.reason)

    async def cancel_booking_by_token(
        self,
        token: str,
        payload: BookingCancelRequest,
        actor: Actor,
    ) -> BookingRequest:
        """Client cancels through the confirmation link."""
        booking = await load_booking_by_token(self.booking_repository, token)
        return await self._cancel(booking, actor, ActorTypeEnum.CUSTOMER, payload.reason)

    async def _cancel(
        self,
        booking: BookingRequest,
        actor: Actor,
        cancelled_by: ActorTypeEnum,
        reason: str | None,
    ) -> BookingRequest:
        if booking.status not in OPEN_BOOKING_STATUSES:
            raise InvalidTransitionError("Booking is already completed or cancelled")
        record = await self.completion_repository.get_by_booking_id(booking.id)
        if record is not None and record.completion_status != CompletionStatusEnum.SCHEDULED:
            raise InvalidTransitionError("Work was already reported for this booking, open a dispute instead")

        now = self.now_provider()
        hours_until = hours_between(now, booking.scheduled_at)
        refund = cancelled_by != ActorTypeEnum.CUSTOMER or hours_until >= self.policy.late_threshold_hours

        hold = await self.deposit_service.settle_for_cancellation(booking, actor, refund=refund)
        await self.scheduler_repository.disarm(booking.id)

        booking.status = BookingStatusEnum.CANCELLED
        booking.cancelled_at = now
        booking.cancelled_by = cancelled_by
        booking.cancellation_reason = reason
        await self.booking_repository.save(booking)

        await record_booking_event(
            self.audit_repository,
            booking_id=booking.id,
            actor=actor,
            event_type="booking.cancelled",
            payload={
                "cancelled_by": str(cancelled_by),
                "hours_until_appointment": round(hours_until, 2),
                "deposit_status": str(hold.status) if hold is not None else str(DepositStatusEnum.NONE),
                "reason": reason,
            },
        )
        return booking


def build_booking_service(session: AsyncSession, policy: LifecyclePolicy | None = None) -> BookingService:
    """Wire booking service over one DB session."""
    policy = policy or get_lifecycle_policy()
    return BookingService(
        booking_repository=BookingRepository(session),
        completion_repository=CompletionRepository(session),
        remainder_repository=RemainderRepository(session),
        scheduler_repository=SchedulerRepository(session),
        audit_repository=AuditRepository(session),
        deposit_service=build_deposit_service(session, policy),
        policy=policy,
        default_currency=get_settings().default_currency,
    )


async def get_booking_service(session: AsyncSession = Depends(get_db_session)) -> BookingService:
    """Dependency provider for booking service."""
    return build_booking_service(session)

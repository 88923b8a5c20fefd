"""Completion confirmation business logic layer."""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import (
    ActorTypeEnum,
    BookingStatusEnum,
    CompletionStatusEnum,
    ScheduledJobKindEnum,
)
from app.core.metrics import COMPLETION_TRANSITIONS_TOTAL
from app.modules.audit.events import record_booking_event
from app.modules.audit.repository import AuditRepository
from app.modules.booking.access import load_booking, load_booking_by_token
from app.modules.booking.models import BookingRequest
from app.modules.booking.repository import BookingRepository
from app.modules.completion.models import CompletionRecord
from app.modules.completion.repository import CompletionRepository
from app.modules.deposits.policy import LifecyclePolicy, get_lifecycle_policy
from app.modules.deposits.service import DepositService, build_deposit_service
from app.modules.scheduler.repository import SchedulerRepository
from app.shared.actor import SYSTEM_ACTOR, Actor
from app.shared.exceptions import (
    ConcurrentModificationError,
    InvalidTransitionError,
    NotFoundException,
    UnauthorizedException,
)
from app.shared.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

COMPLETION_TRANSITIONS: dict[CompletionStatusEnum, frozenset[CompletionStatusEnum]] = {
    CompletionStatusEnum.SCHEDULED: frozenset({CompletionStatusEnum.AWAITING_CONFIRMATION}),
    CompletionStatusEnum.AWAITING_CONFIRMATION: frozenset(
        {CompletionStatusEnum.COMPLETED, CompletionStatusEnum.DISPUTE},
    ),
    CompletionStatusEnum.COMPLETED: frozenset({CompletionStatusEnum.DISPUTE}),
    CompletionStatusEnum.DISPUTE: frozenset(),
}


class CompletionService:
    """Tracks work-done, client confirmation, timeouts and disputes."""

    def __init__(
        self,
        completion_repository: CompletionRepository,
        booking_repository: BookingRepository,
        scheduler_repository: SchedulerRepository,
        audit_repository: AuditRepository,
        deposit_service: DepositService,
        *,
        policy: LifecyclePolicy,
        now_provider=utc_now,
    ) -> None:
        self.completion_repository = completion_repository
        self.booking_repository = booking_repository
        self.scheduler_repository = scheduler_repository
        self.audit_repository = audit_repository
        self.deposit_service = deposit_service
        self.policy = policy
        self.now_provider = now_provider

    async def _require_record(self, booking_id: UUID) -> CompletionRecord:
        record = await self.completion_repository.get_by_booking_id(booking_id)
        if record is None:
            raise NotFoundException("Booking has not been accepted yet")
        return record

    async def _apply(self, record: CompletionRecord, target: CompletionStatusEnum, **values) -> None:
        expected = record.completion_status
        if target not in COMPLETION_TRANSITIONS[expected]:
            raise InvalidTransitionError(f"Invalid completion status transition: {expected} -> {target}")
        applied = await self.completion_repository.compare_and_set(
            record,
            expected,
            completion_status=target,
            **values,
        )
        if not applied:
            raise ConcurrentModificationError("Completion record was modified concurrently, reload and retry")
        COMPLETION_TRANSITIONS_TOTAL.labels(to_status=str(target)).inc()

    async def get_record(self, booking_id: UUID, actor: Actor) -> CompletionRecord:
        await load_booking(self.booking_repository, booking_id, actor)
        return await self._require_record(booking_id)

    async def get_record_by_token(self, token: str) -> tuple[BookingRequest, CompletionRecord]:
        booking = await load_booking_by_token(self.booking_repository, token)
        return booking, await self._require_record(booking.id)

    async def mark_work_done(self, booking_id: UUID, actor: Actor) -> CompletionRecord:
        """Provider reports the job as done; client has a window to confirm."""
        booking = await load_booking(self.booking_repository, booking_id, actor)
        if booking.status != BookingStatusEnum.ACCEPTED:
            raise InvalidTransitionError("Only accepted booking can be marked as done")

        record = await self._require_record(booking.id)
        now = self.now_provider()
        await self._apply(record, CompletionStatusEnum.AWAITING_CONFIRMATION, work_done_at=now)
        due_at = await self.arm_confirmation_timeout(booking.id, now)

        await record_booking_event(
            self.audit_repository,
            booking_id=booking.id,
            actor=actor,
            event_type="completion.work_done",
            payload={"confirm_by": due_at.isoformat()},
        )
        return record

    async def arm_confirmation_timeout(self, booking_id: UUID, work_done_at: datetime) -> datetime:
        due_at = ensure_utc(work_done_at) + self.policy.confirmation_timeout
        await self.scheduler_repository.arm(booking_id, ScheduledJobKindEnum.COMPLETION_TIMEOUT, due_at)
        return due_at

    async def confirm_completion(self, booking_id: UUID, actor: Actor) -> CompletionRecord:
        """Confirm on the client's behalf (admin)."""
        if not actor.is_admin:
            raise UnauthorizedException("Only the client or admin can confirm completion")
        booking = await load_booking(self.booking_repository, booking_id, actor)
        record = await self._require_record(booking.id)
        await self._complete(booking, record, actor)
        return record

    async def confirm_completion_by_token(self, token: str, actor: Actor) -> CompletionRecord:
        """Client confirms through the link sent with the work-done notice."""
        booking, record = await self.get_record_by_token(token)
        await self._complete(booking, record, actor)
        return record

    async def _complete(self, booking: BookingRequest, record: CompletionRecord, actor: Actor) -> None:
        now = self.now_provider()
        await self._apply(
            record,
            CompletionStatusEnum.COMPLETED,
            completed_at=now,
            completed_by=actor.type,
        )
        await self.scheduler_repository.disarm(booking.id, [ScheduledJobKindEnum.COMPLETION_TIMEOUT])
        await self._finish_booking(booking, actor, now, "completion.confirmed")

    async def _finish_booking(
        self,
        booking: BookingRequest,
        actor: Actor,
        completed_at: datetime,
        event_type: str,
    ) -> None:
        booking.status = BookingStatusEnum.COMPLETED
        await self.booking_repository.save(booking)
        hold = await self.deposit_service.arm_auto_release(booking.id, completed_at)
        await record_booking_event(
            self.audit_repository,
            booking_id=booking.id,
            actor=actor,
            event_type=event_type,
            payload={
                "completed_at": completed_at.isoformat(),
                "auto_release_at": (
                    hold.auto_release_at.isoformat()
                    if hold is not None and hold.auto_release_at is not None
                    else None
                ),
            },
        )

    async def complete_by_timeout(self, booking_id: UUID) -> bool:
        """Fire the confirmation timeout; returns False when no longer applicable."""
        record = await self.completion_repository.get_by_booking_id(booking_id)
        if record is None or record.completion_status != CompletionStatusEnum.AWAITING_CONFIRMATION:
            logger.info(
                "Completion timeout for booking %s dropped, status is %s",
                booking_id,
                record.completion_status if record is not None else None,
            )
            return False

        now = self.now_provider()
        applied = await self.completion_repository.compare_and_set(
            record,
            CompletionStatusEnum.AWAITING_CONFIRMATION,
            completion_status=CompletionStatusEnum.COMPLETED,
            completed_at=now,
            completed_by=ActorTypeEnum.SYSTEM,
        )
        if not applied:
            logger.info("Completion timeout for booking %s preempted by a concurrent transition", booking_id)
            return False
        COMPLETION_TRANSITIONS_TOTAL.labels(to_status=str(CompletionStatusEnum.COMPLETED)).inc()

        booking = await self.booking_repository.get_booking_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found")
        await self._finish_booking(booking, SYSTEM_ACTOR, now, "completion.auto_confirmed")
        return True

    async def raise_dispute(self, booking_id: UUID, actor: Actor, reason: str | None = None) -> CompletionRecord:
        """Open a dispute on the client's behalf (admin)."""
        if not actor.is_admin:
            raise UnauthorizedException("Only the client or admin can dispute completion")
        booking = await load_booking(self.booking_repository, booking_id, actor)
        record = await self._require_record(booking.id)
        await self._dispute(booking, record, actor, reason)
        return record

    async def raise_dispute_by_token(self, token: str, actor: Actor, reason: str | None = None) -> CompletionRecord:
        booking, record = await self.get_record_by_token(token)
        await self._dispute(booking, record, actor, reason)
        return record

    async def _dispute(
        self,
        booking: BookingRequest,
        record: CompletionRecord,
        actor: Actor,
        reason: str | None,
    ) -> None:
        now = self.now_provider()
        if (
            record.completion_status == CompletionStatusEnum.COMPLETED
            and record.completed_at is not None
            and now > ensure_utc(record.completed_at) + self.policy.dispute_window
        ):
            raise InvalidTransitionError("Dispute window for this booking has closed")

        await self._apply(record, CompletionStatusEnum.DISPUTE, disputed_at=now, dispute_reason=reason)
        await self.scheduler_repository.disarm(booking.id)
        hold = await self.deposit_service.hold_for_dispute(booking.id, actor)

        await record_booking_event(
            self.audit_repository,
            booking_id=booking.id,
            actor=actor,
            event_type="completion.disputed",
            payload={
                "reason": reason,
                "deposit_status": str(hold.status) if hold is not None else None,
            },
        )


def build_completion_service(session: AsyncSession, policy: LifecyclePolicy | None = None) -> CompletionService:
    """Wire completion service over one DB session."""
    policy = policy or get_lifecycle_policy()
    return CompletionService(
        completion_repository=CompletionRepository(session),
        booking_repository=BookingRepository(session),
        scheduler_repository=SchedulerRepository(session),
        audit_repository=AuditRepository(session),
        deposit_service=build_deposit_service(session, policy),
        policy=policy,
    )


async def get_completion_service(session: AsyncSession = Depends(get_db_session)) -> CompletionService:
    """Dependency provider for completion service."""
    return build_completion_service(session)

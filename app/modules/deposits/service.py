"""Deposit hold business logic layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import (
    BookingStatusEnum,
    DepositStatusEnum,
    PaymentMethodEnum,
    ScheduledJobKindEnum,
)
from app.core.metrics import DEPOSIT_TRANSITIONS_TOTAL
from app.modules.audit.events import money_payload, record_booking_event
from app.modules.audit.repository import AuditRepository
from app.modules.booking.access import load_booking
from app.modules.booking.models import BookingRequest
from app.modules.booking.repository import BookingRepository
from app.modules.completion.repository import CompletionRepository
from app.modules.deposits.models import DepositHold
from app.modules.deposits.policy import LifecyclePolicy, get_lifecycle_policy
from app.modules.deposits.repository import DepositRepository
from app.modules.deposits.reschedule_policy import (
    HoldPosition,
    RescheduleDecision,
    evaluate_reschedule,
)
from app.modules.deposits.state_machine import check_ledger, ensure_transition
from app.modules.remainder.repository import RemainderRepository
from app.modules.scheduler.repository import SchedulerRepository
from app.shared.actor import SYSTEM_ACTOR, Actor
from app.shared.exceptions import (
    BusinessRuleException,
    ConcurrentModificationError,
    CurrencyMismatchError,
    InvalidTransitionError,
    NotFoundException,
    UnauthorizedException,
)
from app.shared.money import Money, split_fee
from app.shared.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PaymentEvidence:
    """Proof that the client paid the deposit."""

    method: PaymentMethodEnum
    proof_reference: str | None = None


class DepositService:
    """Owns every status change of a deposit hold."""

    def __init__(
        self,
        deposit_repository: DepositRepository,
        booking_repository: BookingRepository,
        completion_repository: CompletionRepository,
        scheduler_repository: SchedulerRepository,
        audit_repository: AuditRepository,
        remainder_repository: RemainderRepository,
        *,
        policy: LifecyclePolicy,
        now_provider=utc_now,
    ) -> None:
        self.deposit_repository = deposit_repository
        self.booking_repository = booking_repository
        self.completion_repository = completion_repository
        self.scheduler_repository = scheduler_repository
        self.audit_repository = audit_repository
        self.remainder_repository = remainder_repository
        self.policy = policy
        self.now_provider = now_provider

    async def _require_hold(self, booking_id: UUID) -> DepositHold:
        hold = await self.deposit_repository.get_by_booking_id(booking_id)
        if hold is None:
            raise NotFoundException("No deposit was requested for this booking")
        return hold

    async def _apply(self, hold: DepositHold, target: DepositStatusEnum, **values) -> None:
        """Move hold to target status with a single compare-and-set."""
        expected = hold.status
        ensure_transition(expected, target)
        applied = await self.deposit_repository.compare_and_set(
            hold,
            expected,
            status=target,
            **values,
        )
        if not applied:
            raise ConcurrentModificationError("Deposit hold was modified concurrently, reload and retry")
        DEPOSIT_TRANSITIONS_TOTAL.labels(to_status=str(target)).inc()

    async def _update(self, hold: DepositHold, **values) -> None:
        """Change hold fields while keeping its status."""
        applied = await self.deposit_repository.compare_and_set(hold, hold.status, **values)
        if not applied:
            raise ConcurrentModificationError("Deposit hold was modified concurrently, reload and retry")

    async def _emit(
        self,
        booking_id: UUID,
        actor: Actor,
        event_type: str,
        money: Money,
        extra: dict | None = None,
        *,
        notify: bool = True,
    ) -> None:
        await record_booking_event(
            self.audit_repository,
            booking_id=booking_id,
            actor=actor,
            event_type=event_type,
            payload={**money_payload(money), **(extra or {})},
            notify=notify,
        )

    async def get_hold(self, booking_id: UUID, actor: Actor) -> DepositHold | None:
        """Return current hold, or None when no deposit was requested."""
        await load_booking(self.booking_repository, booking_id, actor)
        return await self.deposit_repository.get_by_booking_id(booking_id)

    async def request_deposit(
        self,
        booking_id: UUID,
        amount_cents: int,
        currency: str,
        actor: Actor,
    ) -> DepositHold:
        """Open a hold for the booking (none -> pending)."""
        booking = await load_booking(self.booking_repository, booking_id, actor)
        return await self.open_hold(booking, amount_cents, currency, actor)

    async def open_hold(
        self,
        booking: BookingRequest,
        amount_cents: int,
        currency: str,
        actor: Actor,
    ) -> DepositHold:
        if booking.status in (BookingStatusEnum.CANCELLED, BookingStatusEnum.COMPLETED):
            raise InvalidTransitionError("Cannot request a deposit for a closed booking")
        if amount_cents <= 0:
            raise BusinessRuleException("Deposit amount must be positive")
        amount = Money(amount_cents, currency)

        existing = await self.deposit_repository.get_by_booking_id(booking.id)
        current = existing.status if existing is not None else DepositStatusEnum.NONE
        ensure_transition(current, DepositStatusEnum.PENDING)
        balance = await self.remainder_repository.get_by_booking_id(booking.id)
        if balance is not None and balance.currency != amount.currency:
            raise CurrencyMismatchError(
                f"Deposit currency {amount.currency} does not match job total currency {balance.currency}",
            )

        hold = await self.deposit_repository.create_hold(booking.id, amount.amount_cents, amount.currency)
        DEPOSIT_TRANSITIONS_TOTAL.labels(to_status=str(DepositStatusEnum.PENDING)).inc()
        await self._emit(booking.id, actor, "deposit.requested", amount)
        return hold

    async def capture_deposit(
        self,
        booking_id: UUID,
        evidence: PaymentEvidence,
        actor: Actor,
    ) -> DepositHold:
        """Record payment evidence supplied by the provider."""
        booking = await load_booking(self.booking_repository, booking_id, actor)
        return await self._capture(booking, evidence, actor)

    async def capture_from_processor(self, booking_id: UUID, evidence: PaymentEvidence) -> DepositHold:
        """Record a card-processor payment confirmation."""
        booking = await self.booking_repository.get_booking_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found")
        return await self._capture(booking, evidence, SYSTEM_ACTOR)

    async def _capture(self, booking: BookingRequest, evidence: PaymentEvidence, actor: Actor) -> DepositHold:
        hold = await self._require_hold(booking.id)
        if hold.status not in (DepositStatusEnum.NONE, DepositStatusEnum.PENDING):
            if hold.payment_method == evidence.method and hold.proof_reference == evidence.proof_reference:
                logger.debug("Capture replay for booking %s acknowledged, hold is %s", booking.id, hold.status)
                return hold
            raise InvalidTransitionError("Deposit was already captured with different payment evidence")
        if booking.status == BookingStatusEnum.CANCELLED:
            raise InvalidTransitionError("Cannot capture a deposit for a cancelled booking")

        await self._apply(
            hold,
            DepositStatusEnum.CAPTURED,
            payment_method=evidence.method,
            proof_reference=evidence.proof_reference,
            captured_at=self.now_provider(),
        )
        await self._emit(
            booking.id,
            actor,
            "deposit.captured",
            hold.rolled,
            {"payment_method": str(evidence.method)},
        )

        completion = await self.completion_repository.get_by_booking_id(booking.id)
        if completion is not None and completion.completed_at is not None:
            await self.arm_auto_release(booking.id, completion.completed_at)
        return hold

    async def arm_auto_release(self, booking_id: UUID, completed_at: datetime) -> DepositHold | None:
        """Persist the release deadline and arm its timer if the hold is captured."""
        hold = await self.deposit_repository.get_by_booking_id(booking_id)
        if hold is None or hold.status != DepositStatusEnum.CAPTURED:
            return hold

        due_at = hold.auto_release_at or ensure_utc(completed_at) + self.policy.release_buffer
        if hold.auto_release_at is None:
            await self._update(hold, auto_release_at=due_at)
        await self.scheduler_repository.arm(booking_id, ScheduledJobKindEnum.DEPOSIT_AUTO_RELEASE, due_at)
        logger.debug("Auto-release for booking %s armed at %s", booking_id, due_at.isoformat())
        return hold

    async def release_manually(self, booking_id: UUID, actor: Actor) -> DepositHold:
        """Release the rolled amount on explicit request."""
        await load_booking(self.booking_repository, booking_id, actor)
        hold = await self._require_hold(booking_id)
        if hold.status == DepositStatusEnum.ON_HOLD_DISPUTE and not actor.is_admin:
            raise UnauthorizedException("Only admin can resolve a disputed deposit")
        await self._release(hold, actor, trigger="manual")
        return hold

    async def _release(self, hold: DepositHold, actor: Actor, *, trigger: str) -> None:
        released = hold.rolled
        await self._apply(
            hold,
            DepositStatusEnum.RELEASED,
            released_at=self.now_provider(),
            released_amount_cents=released.amount_cents,
            auto_release_at=None,
        )
        await self.scheduler_repository.disarm(
            hold.booking_id,
            [ScheduledJobKindEnum.DEPOSIT_AUTO_RELEASE],
        )
        await self._emit(hold.booking_id, actor, "deposit.released", released, {"trigger": trigger})

    async def release_by_timer(self, booking_id: UUID) -> bool:
        """Fire auto-release; returns False when the hold is no longer eligible."""
        hold = await self.deposit_repository.get_by_booking_id(booking_id)
        if hold is None or hold.status != DepositStatusEnum.CAPTURED:
            logger.info(
                "Auto-release for booking %s dropped, hold status is %s",
                booking_id,
                hold.status if hold is not None else DepositStatusEnum.NONE,
            )
            return False

        released = hold.rolled
        applied = await self.deposit_repository.compare_and_set(
            hold,
            DepositStatusEnum.CAPTURED,
            status=DepositStatusEnum.RELEASED,
            released_at=self.now_provider(),
            released_amount_cents=released.amount_cents,
            auto_release_at=None,
        )
        if not applied:
            logger.info("Auto-release for booking %s preempted by a concurrent transition", booking_id)
            return False

        DEPOSIT_TRANSITIONS_TOTAL.labels(to_status=str(DepositStatusEnum.RELEASED)).inc()
        await self._emit(booking_id, SYSTEM_ACTOR, "deposit.released", released, {"trigger": "auto_release"})
        return True

    async def refund(self, booking_id: UUID, actor: Actor, reason: str | None = None) -> DepositHold:
        """Refund the rolled amount to the client (manual only)."""
        await load_booking(self.booking_repository, booking_id, actor)
        hold = await self._require_hold(booking_id)
        if hold.status == DepositStatusEnum.ON_HOLD_DISPUTE and not actor.is_admin:
            raise UnauthorizedException("Only admin can resolve a disputed deposit")
        await self._refund(hold, actor, reason)
        return hold

    async def refund_from_processor(self, booking_id: UUID, reason: str | None = None) -> DepositHold:
        """Record a refund confirmed by the card processor."""
        hold = await self._require_hold(booking_id)
        if hold.status in (DepositStatusEnum.REFUNDED, DepositStatusEnum.RELEASED):
            logger.info("Processor refund for booking %s acknowledged, hold is already %s", booking_id, hold.status)
            return hold
        await self._refund(hold, SYSTEM_ACTOR, reason)
        return hold

    async def _refund(self, hold: DepositHold, actor: Actor, reason: str | None) -> None:
        refunded = hold.rolled
        await self._apply(
            hold,
            DepositStatusEnum.REFUNDED,
            refunded_at=self.now_provider(),
            refunded_amount_cents=refunded.amount_cents,
            auto_release_at=None,
        )
        await self.scheduler_repository.disarm(
            hold.booking_id,
            [ScheduledJobKindEnum.DEPOSIT_AUTO_RELEASE],
        )
        await self._emit(hold.booking_id, actor, "deposit.refunded", refunded, {"reason": reason})

    async def hold_for_dispute(self, booking_id: UUID, actor: Actor) -> DepositHold | None:
        """Freeze a captured hold while the job outcome is disputed."""
        await self.scheduler_repository.disarm(booking_id, [ScheduledJobKindEnum.DEPOSIT_AUTO_RELEASE])
        hold = await self.deposit_repository.get_by_booking_id(booking_id)
        if hold is None or hold.status != DepositStatusEnum.CAPTURED:
            return hold

        await self._apply(
            hold,
            DepositStatusEnum.ON_HOLD_DISPUTE,
            disputed_at=self.now_provider(),
            auto_release_at=None,
        )
        await self._emit(booking_id, actor, "deposit.disputed", hold.rolled)
        return hold

    async def waive_reschedule_fee(self, booking_id: UUID, actor: Actor) -> DepositHold:
        """Set the one-way waiver so later reschedules retain nothing."""
        await load_booking(self.booking_repository, booking_id, actor)
        hold = await self._require_hold(booking_id)
        if hold.waive_reschedule_fee:
            return hold
        await self._update(hold, waive_reschedule_fee=True)
        await self._emit(booking_id, actor, "deposit.reschedule_fee_waived", hold.rolled, notify=False)
        return hold

    async def apply_reschedule(
        self,
        booking: BookingRequest,
        new_date: datetime,
        actor: Actor,
    ) -> RescheduleDecision:
        """Run the late-reschedule policy and persist its effect on the hold."""
        hold = await self.deposit_repository.get_by_booking_id(booking.id)
        position = HoldPosition.from_hold(hold) if hold is not None else None
        decision = evaluate_reschedule(
            position,
            old_date=booking.scheduled_at,
            new_date=new_date,
            now=self.now_provider(),
            policy=self.policy,
        )
        if hold is None or not decision.counts_against_hold:
            return decision

        check_ledger(
            hold.amount_cents,
            decision.retained.amount_cents,
            decision.rolled.amount_cents,
            previous_retained_cents=hold.retained_amount_cents,
        )
        await self._update(
            hold,
            late_reschedule_count=decision.late_reschedule_count,
            retained_amount_cents=decision.retained.amount_cents,
            rolled_amount_cents=decision.rolled.amount_cents,
        )
        if decision.fee_cents > 0:
            await self._emit(
                booking.id,
                actor,
                "deposit.fee_retained",
                decision.fee,
                {
                    "reason": "late_reschedule",
                    "late_reschedule_count": decision.late_reschedule_count,
                    "retained_amount_cents": hold.retained_amount_cents,
                    "rolled_amount_cents": hold.rolled_amount_cents,
                },
            )
        return decision

    async def settle_for_cancellation(
        self,
        booking: BookingRequest,
        actor: Actor,
        *,
        refund: bool,
    ) -> DepositHold | None:
        """Refund the rolled deposit, or retain all of it for a late client cancellation."""
        hold = await self.deposit_repository.get_by_booking_id(booking.id)
        if hold is None or hold.status != DepositStatusEnum.CAPTURED:
            return hold

        if refund:
            await self._refund(hold, actor, "booking_cancelled")
            return hold

        fee, remaining = split_fee(hold.rolled, hold.rolled)
        retained = hold.retained.add(fee)
        check_ledger(
            hold.amount_cents,
            retained.amount_cents,
            remaining.amount_cents,
            previous_retained_cents=hold.retained_amount_cents,
        )
        await self._update(
            hold,
            retained_amount_cents=retained.amount_cents,
            rolled_amount_cents=remaining.amount_cents,
        )
        await self._emit(booking.id, actor, "deposit.fee_retained", fee, {"reason": "late_cancellation"})
        await self._release(hold, actor, trigger="late_cancellation")
        return hold


def build_deposit_service(session: AsyncSession, policy: LifecyclePolicy | None = None) -> DepositService:
    """Wire deposit service over one DB session."""
    return DepositService(
        deposit_repository=DepositRepository(session),
        booking_repository=BookingRepository(session),
        completion_repository=CompletionRepository(session),
        scheduler_repository=SchedulerRepository(session),
        audit_repository=AuditRepository(session),
        remainder_repository=RemainderRepository(session),
        policy=policy or get_lifecycle_policy(),
    )


async def get_deposit_service(session: AsyncSession = Depends(get_db_session)) -> DepositService:
    """Dependency provider for deposit service."""
    return build_deposit_service(session)

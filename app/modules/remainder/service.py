"""Remainder ledger business logic layer."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import PaymentMethodEnum, RemainderPaymentStatusEnum
from app.modules.audit.events import money_payload, record_booking_event
from app.modules.audit.repository import AuditRepository
from app.modules.booking.access import load_booking
from app.modules.booking.repository import BookingRepository
from app.modules.deposits.repository import DepositRepository
from app.modules.remainder.models import RemainderBalance
from app.modules.remainder.repository import RemainderRepository
from app.shared.actor import Actor
from app.shared.exceptions import (
    AlreadySettledError,
    ConflictException,
    CurrencyMismatchError,
    NotFoundException,
)
from app.shared.money import Money
from app.shared.utils import utc_now


def compute_remainder_due(total: Money, deposit: Money | None) -> Money:
    """What the client still owes after the deposit, never below zero."""
    if deposit is None:
        return total
    if total.currency != deposit.currency:
        raise CurrencyMismatchError(f"Cannot combine {total.currency} with {deposit.currency}")
    return Money(max(total.amount_cents - deposit.amount_cents, 0), total.currency)


@dataclass(frozen=True, slots=True)
class RemainderView:
    balance: RemainderBalance
    remainder_due: Money


class RemainderService:
    """Records how the post-deposit balance was settled."""

    def __init__(
        self,
        remainder_repository: RemainderRepository,
        booking_repository: BookingRepository,
        deposit_repository: DepositRepository,
        audit_repository: AuditRepository,
        now_provider=utc_now,
    ) -> None:
        self.remainder_repository = remainder_repository
        self.booking_repository = booking_repository
        self.deposit_repository = deposit_repository
        self.audit_repository = audit_repository
        self.now_provider = now_provider

    async def _view(self, balance: RemainderBalance) -> RemainderView:
        hold = await self.deposit_repository.get_by_booking_id(balance.booking_id)
        deposit = hold.amount if hold is not None else None
        return RemainderView(balance=balance, remainder_due=compute_remainder_due(balance.total, deposit))

    async def _require_balance(self, booking_id: UUID) -> RemainderBalance:
        balance = await self.remainder_repository.get_by_booking_id(booking_id)
        if balance is None:
            raise NotFoundException("No remainder balance recorded for this booking")
        return balance

    async def get_balance(self, booking_id: UUID, actor: Actor) -> RemainderView:
        await load_booking(self.booking_repository, booking_id, actor)
        return await self._view(await self._require_balance(booking_id))

    async def open_balance(
        self,
        booking_id: UUID,
        total_amount_cents: int,
        currency: str,
        actor: Actor,
    ) -> RemainderView:
        """Record the quoted job total once it is known."""
        await load_booking(self.booking_repository, booking_id, actor)
        total = Money(total_amount_cents, currency)
        if await self.remainder_repository.get_by_booking_id(booking_id) is not None:
            raise ConflictException("Remainder balance already exists for this booking")
        hold = await self.deposit_repository.get_by_booking_id(booking_id)
        if hold is not None and hold.currency != total.currency:
            raise CurrencyMismatchError(
                f"Job total currency {total.currency} does not match deposit currency {hold.currency}",
            )
        balance = await self.remainder_repository.create_balance(booking_id, total.amount_cents, total.currency)
        await record_booking_event(
            self.audit_repository,
            booking_id=booking_id,
            actor=actor,
            event_type="remainder.opened",
            payload=money_payload(total),
            notify=False,
        )
        return await self._view(balance)

    async def record_settlement(
        self,
        booking_id: UUID,
        method: PaymentMethodEnum,
        notes: str | None,
        actor: Actor,
    ) -> RemainderView:
        """Mark the remainder as paid.

        Settlement is the only transition of a balance, so a lost compare-and-set
        means another request settled it first.
        """
        await load_booking(self.booking_repository, booking_id, actor)
        balance = await self._require_balance(booking_id)
        if balance.payment_status == RemainderPaymentStatusEnum.PAID:
            raise AlreadySettledError("Remainder balance is already settled")

        applied = await self.remainder_repository.compare_and_set(
            balance,
            RemainderPaymentStatusEnum.PENDING,
            payment_status=RemainderPaymentStatusEnum.PAID,
            payment_method=method,
            paid_at=self.now_provider(),
            notes=notes,
        )
        if not applied:
            raise AlreadySettledError("Remainder balance is already settled")

        view = await self._view(balance)
        await record_booking_event(
            self.audit_repository,
            booking_id=booking_id,
            actor=actor,
            event_type="remainder.settled",
            payload={**money_payload(view.remainder_due), "payment_method": str(method)},
        )
        return view


async def get_remainder_service(session: AsyncSession = Depends(get_db_session)) -> RemainderService:
    """Dependency provider for remainder service."""
    return RemainderService(
        remainder_repository=RemainderRepository(session),
        booking_repository=BookingRepository(session),
        deposit_repository=DepositRepository(session),
        audit_repository=AuditRepository(session),
    )

"""Remainder balance repository layer."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import compare_and_set
from app.core.enums import RemainderPaymentStatusEnum
from app.modules.remainder.models import RemainderBalance
from app.shared.exceptions import ConflictException


class RemainderRepository:
    """DB operations for remainder balances."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_balance(self, booking_id: UUID, total_amount_cents: int, currency: str) -> RemainderBalance:
        balance = RemainderBalance(
            booking_id=booking_id,
            total_amount_cents=total_amount_cents,
            currency=currency.upper(),
            payment_status=RemainderPaymentStatusEnum.PENDING,
        )
        self.session.add(balance)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise ConflictException("Remainder balance already exists for this booking") from exc
        return balance

    async def get_by_booking_id(self, booking_id: UUID) -> RemainderBalance | None:
        stmt = select(RemainderBalance).where(RemainderBalance.booking_id == booking_id)
        return await self.session.scalar(stmt)

    async def compare_and_set(
        self,
        balance: RemainderBalance,
        expected_status: RemainderPaymentStatusEnum,
        **values: Any,
    ) -> bool:
        return await compare_and_set(
            self.session,
            balance,
            RemainderBalance.payment_status,
            expected_status,
            values,
        )

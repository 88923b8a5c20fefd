"""Deposit hold repository layer."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import compare_and_set
from app.core.enums import DepositStatusEnum
from app.modules.deposits.models import DepositHold
from app.shared.exceptions import ConcurrentModificationError


class DepositRepository:
    """DB operations for deposit holds."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_hold(self, booking_id: UUID, amount_cents: int, currency: str) -> DepositHold:
        hold = DepositHold(
            booking_id=booking_id,
            amount_cents=amount_cents,
            currency=currency.upper(),
            status=DepositStatusEnum.PENDING,
            retained_amount_cents=0,
            rolled_amount_cents=amount_cents,
            late_reschedule_count=0,
            waive_reschedule_fee=False,
        )
        self.session.add(hold)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise ConcurrentModificationError("Deposit was already requested for this booking") from exc
        return hold

    async def get_by_booking_id(self, booking_id: UUID) -> DepositHold | None:
        stmt = select(DepositHold).where(DepositHold.booking_id == booking_id)
        return await self.session.scalar(stmt)

    async def compare_and_set(
        self,
        hold: DepositHold,
        expected_status: DepositStatusEnum,
        **values: Any,
    ) -> bool:
        return await compare_and_set(self.session, hold, DepositHold.status, expected_status, values)

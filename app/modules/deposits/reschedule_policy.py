"""Late-reschedule fee decisions.

The engine is a pure function of the hold's ledger position, the appointment
times and the policy. It does not deduplicate replays: every call is treated
as one distinct reschedule action.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from app.core.enums import DepositStatusEnum
from app.modules.deposits.policy import LifecyclePolicy
from app.shared.exceptions import InvalidScheduleError
from app.shared.money import Money, percentage_of, split_fee
from app.shared.utils import ensure_utc, hours_between


@dataclass(frozen=True, slots=True)
class HoldPosition:
    """Ledger view of a deposit hold at the moment of a reschedule."""

    status: DepositStatusEnum
    amount: Money
    retained: Money
    rolled: Money
    late_reschedule_count: int = 0
    waive_reschedule_fee: bool = False

    @classmethod
    def from_hold(cls, hold) -> HoldPosition:
        return cls(
            status=hold.status,
            amount=hold.amount,
            retained=hold.retained,
            rolled=hold.rolled,
            late_reschedule_count=hold.late_reschedule_count,
            waive_reschedule_fee=hold.waive_reschedule_fee,
        )


@dataclass(frozen=True, slots=True)
class RescheduleDecision:
    hours_until_appointment: float
    is_late: bool
    late_reschedule_count: int
    fee: Money | None = None
    retained: Money | None = None
    rolled: Money | None = None

    @property
    def counts_against_hold(self) -> bool:
        """True when the hold record itself must be updated."""
        return self.retained is not None

    @property
    def fee_cents(self) -> int:
        return self.fee.amount_cents if self.fee is not None else 0


def validate_new_date(new_date: datetime, now: datetime) -> None:
    if ensure_utc(new_date) < ensure_utc(now):
        raise InvalidScheduleError("Cannot reschedule a booking into the past")


def evaluate_reschedule(
    position: HoldPosition | None,
    old_date: datetime,
    new_date: datetime,
    now: datetime,
    policy: LifecyclePolicy,
) -> RescheduleDecision:
    """Decide the monetary effect of moving an appointment from old_date to new_date."""
    validate_new_date(new_date, now)

    hours_until = hours_between(now, old_date)
    is_late = hours_until < policy.late_threshold_hours

    if position is None or position.status != DepositStatusEnum.CAPTURED or not is_late:
        count = position.late_reschedule_count if position is not None else 0
        return RescheduleDecision(
            hours_until_appointment=hours_until,
            is_late=is_late,
            late_reschedule_count=count,
        )

    late_count = position.late_reschedule_count + 1
    fee = Money.zero(position.amount.currency)
    if not position.waive_reschedule_fee:
        fee = percentage_of(position.amount, policy.fee_percent_for(late_count)).min(position.rolled)
        cap = percentage_of(position.amount, policy.retention_cap_percent)
        cap_remaining = Money(
            max(cap.amount_cents - position.retained.amount_cents, 0),
            position.amount.currency,
        )
        fee = fee.min(cap_remaining)

    retained_share, remaining = split_fee(position.rolled, fee)
    return RescheduleDecision(
        hours_until_appointment=hours_until,
        is_late=True,
        late_reschedule_count=late_count,
        fee=retained_share,
        retained=position.retained.add(retained_share),
        rolled=remaining,
    )

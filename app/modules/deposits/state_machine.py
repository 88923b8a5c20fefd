"""Deposit hold transition table and ledger guards."""

from __future__ import annotations

from app.core.enums import DepositStatusEnum
from app.shared.exceptions import InvalidTransitionError, UnderflowError

DEPOSIT_TRANSITIONS: dict[DepositStatusEnum, frozenset[DepositStatusEnum]] = {
    DepositStatusEnum.NONE: frozenset({DepositStatusEnum.PENDING}),
    DepositStatusEnum.PENDING: frozenset({DepositStatusEnum.CAPTURED}),
    DepositStatusEnum.CAPTURED: frozenset(
        {
            DepositStatusEnum.RELEASED,
            DepositStatusEnum.REFUNDED,
            DepositStatusEnum.ON_HOLD_DISPUTE,
        },
    ),
    DepositStatusEnum.ON_HOLD_DISPUTE: frozenset(
        {DepositStatusEnum.RELEASED, DepositStatusEnum.REFUNDED},
    ),
    DepositStatusEnum.RELEASED: frozenset(),
    DepositStatusEnum.REFUNDED: frozenset(),
}

TERMINAL_DEPOSIT_STATUSES = frozenset({DepositStatusEnum.RELEASED, DepositStatusEnum.REFUNDED})


def can_transition(current: DepositStatusEnum, target: DepositStatusEnum) -> bool:
    return target in DEPOSIT_TRANSITIONS[current]


def ensure_transition(current: DepositStatusEnum, target: DepositStatusEnum) -> None:
    """Raise InvalidTransitionError unless current -> target is allowed."""
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Invalid deposit status transition: {current} -> {target}",
        )


def check_ledger(
    amount_cents: int,
    retained_cents: int,
    rolled_cents: int,
    previous_retained_cents: int = 0,
) -> None:
    """Validate the retained/rolled split of a hold before it is persisted."""
    if retained_cents < 0 or rolled_cents < 0:
        raise UnderflowError("Deposit split cannot contain negative amounts")
    if retained_cents + rolled_cents != amount_cents:
        raise UnderflowError(
            f"Deposit split {retained_cents} + {rolled_cents} does not equal {amount_cents}",
        )
    if retained_cents < previous_retained_cents:
        raise InvalidTransitionError("Retained deposit amount cannot decrease")

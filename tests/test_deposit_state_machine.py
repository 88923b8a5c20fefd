from __future__ import annotations

import pytest

from app.core.enums import DepositStatusEnum
from app.modules.deposits.state_machine import (
    DEPOSIT_TRANSITIONS,
    TERMINAL_DEPOSIT_STATUSES,
    can_transition,
    check_ledger,
    ensure_transition,
)
from app.shared.exceptions import InvalidTransitionError, UnderflowError


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (DepositStatusEnum.NONE, DepositStatusEnum.PENDING),
        (DepositStatusEnum.PENDING, DepositStatusEnum.CAPTURED),
        (DepositStatusEnum.CAPTURED, DepositStatusEnum.RELEASED),
        (DepositStatusEnum.CAPTURED, DepositStatusEnum.REFUNDED),
        (DepositStatusEnum.CAPTURED, DepositStatusEnum.ON_HOLD_DISPUTE),
        (DepositStatusEnum.ON_HOLD_DISPUTE, DepositStatusEnum.RELEASED),
        (DepositStatusEnum.ON_HOLD_DISPUTE, DepositStatusEnum.REFUNDED),
    ],
)
def test_allowed_transitions(current: DepositStatusEnum, target: DepositStatusEnum) -> None:
    assert can_transition(current, target)
    ensure_transition(current, target)


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (DepositStatusEnum.PENDING, DepositStatusEnum.RELEASED),
        (DepositStatusEnum.PENDING, DepositStatusEnum.REFUNDED),
        (DepositStatusEnum.NONE, DepositStatusEnum.CAPTURED),
        (DepositStatusEnum.ON_HOLD_DISPUTE, DepositStatusEnum.CAPTURED),
        (DepositStatusEnum.RELEASED, DepositStatusEnum.REFUNDED),
        (DepositStatusEnum.REFUNDED, DepositStatusEnum.RELEASED),
    ],
)
def test_forbidden_transitions_raise(current: DepositStatusEnum, target: DepositStatusEnum) -> None:
    assert not can_transition(current, target)
    with pytest.raises(InvalidTransitionError):
        ensure_transition(current, target)


def test_terminal_statuses_have_no_exits() -> None:
    for status in TERMINAL_DEPOSIT_STATUSES:
        assert DEPOSIT_TRANSITIONS[status] == frozenset()


def test_check_ledger_accepts_conserving_split() -> None:
    check_ledger(10000, 4000, 6000, previous_retained_cents=0)


def test_check_ledger_rejects_split_that_does_not_sum() -> None:
    with pytest.raises(UnderflowError):
        check_ledger(10000, 4000, 5000)


def test_check_ledger_rejects_decreasing_retained() -> None:
    with pytest.raises(InvalidTransitionError):
        check_ledger(10000, 2000, 8000, previous_retained_cents=4000)

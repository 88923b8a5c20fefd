from __future__ import annotations

import pytest

from app.shared.exceptions import CurrencyMismatchError, UnderflowError
from app.shared.money import Money, percentage_of, split_fee


def test_money_normalizes_currency_code() -> None:
    assert Money(500, "usd") == Money(500, "USD")


def test_money_rejects_negative_amount() -> None:
    with pytest.raises(UnderflowError):
        Money(-1, "USD")


def test_money_rejects_fractional_amount() -> None:
    with pytest.raises(TypeError):
        Money(10.5, "USD")  # type: ignore[arg-type]


def test_subtract_below_zero_raises_underflow() -> None:
    with pytest.raises(UnderflowError):
        Money(100, "USD").subtract(Money(101, "USD"))


def test_arithmetic_across_currencies_is_rejected() -> None:
    with pytest.raises(CurrencyMismatchError):
        Money(100, "USD").add(Money(100, "EUR"))
    with pytest.raises(CurrencyMismatchError):
        Money(100, "USD").min(Money(100, "CAD"))


def test_percentage_floors_to_the_cent() -> None:
    assert percentage_of(Money(999, "USD"), 40) == Money(399, "USD")
    assert percentage_of(Money(10000, "USD"), 15) == Money(1500, "USD")


def test_percentage_outside_range_is_rejected() -> None:
    with pytest.raises(ValueError):
        percentage_of(Money(100, "USD"), 101)


def test_split_fee_conserves_total() -> None:
    total = Money(8000, "USD")

    retained, remaining = split_fee(total, Money(1600, "USD"))

    assert retained == Money(1600, "USD")
    assert remaining == Money(6400, "USD")
    assert retained.add(remaining) == total


def test_split_fee_larger_than_total_raises() -> None:
    with pytest.raises(UnderflowError):
        split_fee(Money(100, "USD"), Money(200, "USD"))


def test_money_renders_as_decimal_with_currency() -> None:
    assert str(Money(10000, "usd")) == "100.00 USD"

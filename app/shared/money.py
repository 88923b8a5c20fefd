"""Integer-cent money primitives.

Every monetary value in the service is a non-negative count of minor currency
units tagged with an ISO-4217 code. Arithmetic never rounds; percentage fees
floor to the cent.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.shared.exceptions import CurrencyMismatchError, UnderflowError


@dataclass(frozen=True, slots=True)
class Money:
    amount_cents: int
    currency: str

    def __post_init__(self) -> None:
        if not isinstance(self.amount_cents, int) or isinstance(self.amount_cents, bool):
            raise TypeError("Money amount must be an integer number of cents")
        if self.amount_cents < 0:
            raise UnderflowError(f"Money amount cannot be negative: {self.amount_cents}")
        object.__setattr__(self, "currency", self.currency.upper())

    @classmethod
    def zero(cls, currency: str) -> Money:
        return cls(0, currency)

    @property
    def is_zero(self) -> bool:
        return self.amount_cents == 0

    def _ensure_same_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(
                f"Cannot combine {self.currency} with {other.currency}",
            )

    def add(self, other: Money) -> Money:
        self._ensure_same_currency(other)
        return Money(self.amount_cents + other.amount_cents, self.currency)

    def subtract(self, other: Money) -> Money:
        self._ensure_same_currency(other)
        result = self.amount_cents - other.amount_cents
        if result < 0:
            raise UnderflowError(
                f"Cannot subtract {other.amount_cents} from {self.amount_cents} {self.currency}",
            )
        return Money(result, self.currency)

    def min(self, other: Money) -> Money:
        self._ensure_same_currency(other)
        return self if self.amount_cents <= other.amount_cents else other

    def __str__(self) -> str:
        return f"{self.amount_cents / 100:.2f} {self.currency}"


def split_fee(total: Money, fee: Money) -> tuple[Money, Money]:
    """Split `total` into (retained, remaining) where retained is the fee.

    `retained + remaining == total` holds by construction because remaining is
    derived from total by subtraction.
    """
    remaining = total.subtract(fee)
    return fee, remaining


def percentage_of(money: Money, percent: int) -> Money:
    """Return `percent`% of money floored to the cent."""
    if percent < 0 or percent > 100:
        raise ValueError(f"Percent must be between 0 and 100, got {percent}")
    return Money(money.amount_cents * percent // 100, money.currency)

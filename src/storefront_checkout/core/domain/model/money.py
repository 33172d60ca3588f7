from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

CENT = Decimal("0.01")
DEFAULT_CURRENCY = "USD"


@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency: str = DEFAULT_CURRENCY

    @staticmethod
    def of(amount: Decimal | int | str, currency: str = DEFAULT_CURRENCY) -> "Money":
        dec = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
        return Money(dec, currency)

    @staticmethod
    def zero(currency: str = DEFAULT_CURRENCY) -> "Money":
        return Money.of(0, currency)

    @staticmethod
    def from_minor_units(units: int, currency: str = DEFAULT_CURRENCY) -> "Money":
        return Money.of(Decimal(units) / 100, currency)

    def minor_units(self) -> int:
        """Amount in the smallest currency unit (cents)."""
        return int((self.amount * 100).to_integral_value(rounding=ROUND_HALF_UP))

    def percent(self, rate: Decimal) -> "Money":
        return Money.of(self.amount * rate / Decimal(100), self.currency)

    def __add__(self, other: "Money") -> "Money":
        self._assert_same_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __mul__(self, n: int) -> "Money":
        return Money(
            (self.amount * Decimal(n)).quantize(CENT, rounding=ROUND_HALF_UP),
            self.currency,
        )

    def __lt__(self, other: "Money") -> bool:
        self._assert_same_currency(other)
        return self.amount < other.amount

    def _assert_same_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise ValueError(f"currency_mismatch: {self.currency} vs {other.currency}")


def fold_money(values: Iterable[Money], currency: str = DEFAULT_CURRENCY) -> Money:
    total = Money.zero(currency)
    for v in values:
        total = total + v
    return total

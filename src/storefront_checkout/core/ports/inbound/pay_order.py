from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from returns.result import Result

from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.order import Charge, Order


@dataclass(frozen=True)
class PayOrderCommand:
    order_id: str  # UUID string
    customer_id: str
    payment_token: str
    email: str | None = None  # overrides the customer's address on file


@dataclass(frozen=True)
class PaymentOutcome:
    order: Order
    charge: Charge
    payer_email: str
    warnings: Sequence[CheckoutError] = ()


class PayOrderUseCase(Protocol):
    async def pay_order(
        self, command: PayOrderCommand
    ) -> Result[PaymentOutcome, CheckoutError]: ...

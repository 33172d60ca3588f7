from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from returns.result import Result

from storefront_checkout.core.domain.model.errors import CheckoutError


@dataclass(frozen=True)
class ChargeRequest:
    amount_minor: int
    currency: str
    token: str
    description: str
    idempotency_key: str
    receipt_email: str | None = None


@dataclass(frozen=True)
class GatewayCharge:
    charge_id: str
    status: str


class PaymentGateway(Protocol):
    async def charge(
        self, request: ChargeRequest
    ) -> Result[GatewayCharge, CheckoutError]:
        """
        Failure(PaymentDeclined) for a definitive refusal,
        Failure(PaymentGatewayUnreachable) when no definitive answer arrived.
        """
        ...

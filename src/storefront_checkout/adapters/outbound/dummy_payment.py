from __future__ import annotations

from dataclasses import dataclass, field
from typing import List
from uuid import uuid4

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    PaymentDeclined,
    PaymentGatewayUnreachable,
)
from storefront_checkout.core.ports.outbound.payment import (
    ChargeRequest,
    GatewayCharge,
    PaymentGateway,
)


@dataclass
class DummyPaymentGateway(PaymentGateway):
    decline_tokens: set[str] | None = None
    unreachable_tokens: set[str] | None = None
    max_amount_minor: int = 100_000_000
    requests: List[ChargeRequest] = field(default_factory=list)

    async def charge(self, request: ChargeRequest) -> Result[GatewayCharge, CheckoutError]:
        self.requests.append(request)
        if request.token in (self.unreachable_tokens or set()):
            return Failure(PaymentGatewayUnreachable("gateway connection refused"))
        if request.token in (self.decline_tokens or set()):
            return Failure(PaymentDeclined(message="token declined", reason="card_declined"))
        if request.amount_minor > self.max_amount_minor:
            return Failure(
                PaymentDeclined(message="amount too large", reason="amount_too_large")
            )
        return Success(GatewayCharge(charge_id=f"ch_{uuid4().hex[:24]}", status="succeeded"))

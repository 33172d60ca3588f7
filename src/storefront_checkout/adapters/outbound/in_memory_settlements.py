from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from uuid import uuid4

from returns.result import Failure, Result, Success

from storefront_checkout.adapters.outbound.in_memory_state import InMemoryState
from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    OrderAlreadySettled,
)
from storefront_checkout.core.domain.model.order import OrderId, now_utc
from storefront_checkout.core.ports.outbound.settlements import (
    SettlementClaim,
    SettlementClaims,
)


@dataclass
class InMemorySettlementClaims(SettlementClaims):
    state: InMemoryState

    async def acquire(
        self, order_id: OrderId, ttl_seconds: int
    ) -> Result[SettlementClaim, CheckoutError]:
        key = str(order_id.value)
        now = now_utc()
        held = self.state.claims.get(key)
        if held is not None and now - held.claimed_at <= timedelta(seconds=ttl_seconds):
            return Failure(
                OrderAlreadySettled(
                    message="a settlement for this order is already in progress",
                    order_id=key,
                )
            )
        claim = SettlementClaim(order_id=order_id, token=uuid4().hex, claimed_at=now)
        self.state.claims[key] = claim
        return Success(claim)

    async def release(self, claim: SettlementClaim) -> Result[None, CheckoutError]:
        key = str(claim.order_id.value)
        held = self.state.claims.get(key)
        if held is not None and held.token == claim.token:
            del self.state.claims[key]
        return Success(None)

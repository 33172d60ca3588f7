from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from returns.result import Result

from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.order import OrderId


@dataclass(frozen=True)
class SettlementClaim:
    """Held by one settlement attempt; ``token`` tells it apart from a later
    attempt that took over the same order after this claim expired."""

    order_id: OrderId
    token: str
    claimed_at: datetime


class SettlementClaims(Protocol):
    """
    One in-flight settlement per order. In a real DB the claim table has
    order_id as PRIMARY KEY so acquire is an INSERT where the first writer wins.
    """

    async def acquire(
        self, order_id: OrderId, ttl_seconds: int
    ) -> Result[SettlementClaim, CheckoutError]:
        """Failure(OrderAlreadySettled) while another unexpired claim exists."""
        ...

    async def release(self, claim: SettlementClaim) -> Result[None, CheckoutError]:
        """Drop the claim only while ``claim.token`` still holds it."""
        ...

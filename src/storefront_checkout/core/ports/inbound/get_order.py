from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, Sequence

from returns.result import Result

from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.money import Money
from storefront_checkout.core.domain.model.order import (
    CustomerId,
    OrderId,
    OrderStatus,
)


@dataclass(frozen=True)
class GetOrderQuery:
    order_id: str  # UUID string
    customer_id: str


@dataclass(frozen=True)
class OrderLineView:
    product_id: int
    product_name: str
    unit_cost: Money
    quantity: int
    subtotal: Money


@dataclass(frozen=True)
class OrderView:
    order_id: OrderId
    customer_id: CustomerId
    status: OrderStatus
    subtotal: Money
    shipping_cost: Money
    tax_amount: Money
    total: Money
    created_at: datetime
    lines: Sequence[OrderLineView]
    charge_id: str | None = None


class GetOrderUseCase(Protocol):
    async def get_order(self, query: GetOrderQuery) -> Result[OrderView, CheckoutError]: ...

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from returns.result import Result

from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.money import Money
from storefront_checkout.core.domain.model.order import CustomerId, OrderId, OrderStatus


@dataclass(frozen=True)
class PlaceOrderCommand:
    customer_id: str
    cart_id: str
    shipping_id: int
    tax_id: int


@dataclass(frozen=True)
class OrderReceipt:
    order_id: OrderId
    customer_id: CustomerId
    total: Money
    status: OrderStatus


class PlaceOrderUseCase(Protocol):
    async def place_order(
        self, command: PlaceOrderCommand
    ) -> Result[OrderReceipt, CheckoutError]: ...

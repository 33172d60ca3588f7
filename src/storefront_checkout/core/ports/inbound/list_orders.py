from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, Sequence

from returns.result import Result

from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.money import Money
from storefront_checkout.core.domain.model.order import OrderId, OrderStatus


@dataclass(frozen=True)
class ListOrdersQuery:
    customer_id: str
    offset: int = 0
    limit: int = 50


@dataclass(frozen=True)
class OrderSummaryView:
    order_id: OrderId
    status: OrderStatus
    total: Money
    created_at: datetime


class ListOrdersUseCase(Protocol):
    async def list_orders(
        self, query: ListOrdersQuery
    ) -> Result[Sequence[OrderSummaryView], CheckoutError]: ...

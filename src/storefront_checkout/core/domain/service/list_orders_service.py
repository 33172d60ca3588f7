from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from returns.result import Failure, Result

from storefront_checkout.core.domain.model.errors import CheckoutError, ValidationError
from storefront_checkout.core.domain.model.order import CustomerId, Order
from storefront_checkout.core.ports.inbound.list_orders import (
    ListOrdersQuery,
    ListOrdersUseCase,
    OrderSummaryView,
)
from storefront_checkout.core.ports.outbound.orders import OrderRepository


@dataclass(frozen=True)
class ListOrdersDeps:
    orders: OrderRepository


@dataclass(frozen=True)
class ListOrdersService(ListOrdersUseCase):
    deps: ListOrdersDeps

    async def list_orders(
        self, query: ListOrdersQuery
    ) -> Result[Sequence[OrderSummaryView], CheckoutError]:
        if query.offset < 0:
            return Failure(ValidationError(message="offset must be >= 0"))
        if query.limit <= 0:
            return Failure(ValidationError(message="limit must be > 0"))
        if query.limit > 100:
            return Failure(ValidationError(message="limit must be <= 100"))

        cid = query.customer_id.strip()
        if not cid:
            return Failure(ValidationError(message="customer_id is required"))

        listed = await self.deps.orders.list_for_customer(
            CustomerId(cid), query.offset, query.limit
        )
        return listed.map(_to_summaries)


def _to_summaries(orders: Sequence[Order]) -> Sequence[OrderSummaryView]:
    return tuple(
        OrderSummaryView(
            order_id=o.order_id,
            status=o.status,
            total=o.total,
            created_at=o.created_at,
        )
        for o in orders
    )

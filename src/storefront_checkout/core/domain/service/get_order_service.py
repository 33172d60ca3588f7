from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    OrderNotFound,
    ValidationError,
)
from storefront_checkout.core.domain.model.order import Charge, CustomerId, Order, OrderId
from storefront_checkout.core.ports.inbound.get_order import (
    GetOrderQuery,
    GetOrderUseCase,
    OrderLineView,
    OrderView,
)
from storefront_checkout.core.ports.outbound.orders import OrderRepository


@dataclass(frozen=True)
class GetOrderDeps:
    orders: OrderRepository


@dataclass(frozen=True)
class GetOrderService(GetOrderUseCase):
    deps: GetOrderDeps

    async def get_order(self, query: GetOrderQuery) -> Result[OrderView, CheckoutError]:
        try:
            oid = OrderId(UUID(query.order_id))
        except ValueError:
            return Failure(ValidationError(message="order_id must be a valid UUID"))

        got = await self.deps.orders.get(oid)
        if isinstance(got, Failure):
            return got
        order = got.unwrap()
        # other customers' orders are reported as absent
        if order.customer_id != CustomerId(query.customer_id):
            return Failure(OrderNotFound(message="order not found", order_id=query.order_id))

        charge = await self.deps.orders.get_charge(oid)
        if isinstance(charge, Failure):
            return charge
        return Success(_to_view(order, charge.unwrap()))


def _to_view(order: Order, charge: Charge | None) -> OrderView:
    lines = tuple(
        OrderLineView(
            product_id=li.product_id,
            product_name=li.product_name,
            unit_cost=li.unit_cost,
            quantity=li.quantity,
            subtotal=li.subtotal(),
        )
        for li in order.items
    )
    return OrderView(
        order_id=order.order_id,
        customer_id=order.customer_id,
        status=order.status,
        subtotal=order.subtotal,
        shipping_cost=order.shipping_cost,
        tax_amount=order.tax_amount,
        total=order.total,
        created_at=order.created_at,
        lines=lines,
        charge_id=charge.charge_id if charge is not None else None,
    )

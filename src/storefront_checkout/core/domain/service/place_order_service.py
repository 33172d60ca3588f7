from __future__ import annotations

from dataclasses import dataclass

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.cart import CartId
from storefront_checkout.core.domain.model.errors import CheckoutError, ValidationError
from storefront_checkout.core.domain.model.order import CustomerId, Order
from storefront_checkout.core.domain.service.materializer import OrderMaterializer
from storefront_checkout.core.ports.inbound.cart import CartStoreUseCase
from storefront_checkout.core.ports.inbound.place_order import (
    OrderReceipt,
    PlaceOrderCommand,
    PlaceOrderUseCase,
)


@dataclass(frozen=True)
class PlaceOrderDeps:
    carts: CartStoreUseCase
    materializer: OrderMaterializer


@dataclass(frozen=True)
class PlaceOrderService(PlaceOrderUseCase):
    deps: PlaceOrderDeps

    async def place_order(
        self, command: PlaceOrderCommand
    ) -> Result[OrderReceipt, CheckoutError]:
        v = _validate_command(command)
        if isinstance(v, Failure):
            return v
        cmd = v.unwrap()

        loaded = await self.deps.carts.load_validated_cart(CartId(cmd.cart_id.strip()))
        if isinstance(loaded, Failure):
            return loaded

        materialized = await self.deps.materializer.materialize(
            loaded.unwrap(),
            CustomerId(cmd.customer_id.strip()),
            cmd.shipping_id,
            cmd.tax_id,
        )
        return materialized.map(_to_receipt)


def _validate_command(cmd: PlaceOrderCommand) -> Result[PlaceOrderCommand, CheckoutError]:
    if not cmd.customer_id.strip():
        return Failure(ValidationError("customer_id is required"))
    if not cmd.cart_id.strip():
        return Failure(ValidationError("cart_id is required"))
    if cmd.shipping_id <= 0:
        return Failure(ValidationError("shipping_id must be > 0"))
    if cmd.tax_id <= 0:
        return Failure(ValidationError("tax_id must be > 0"))
    return Success(cmd)


def _to_receipt(order: Order) -> OrderReceipt:
    return OrderReceipt(
        order_id=order.order_id,
        customer_id=order.customer_id,
        total=order.total,
        status=order.status,
    )

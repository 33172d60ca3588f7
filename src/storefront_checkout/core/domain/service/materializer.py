"""Cart -> Order materialization.

The order row, its line-item snapshots, the stock decrements and the cart
consumption are written through one unit of work: either all of them become
visible on commit, or none do.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.cart import Cart
from storefront_checkout.core.domain.model.catalog import ShippingOption, TaxOption
from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.order import (
    CustomerId,
    Order,
    OrderId,
    OrderLineItem,
    OrderStatus,
    now_utc,
)
from storefront_checkout.core.domain.service.pricing import PriceBreakdown, price_cart
from storefront_checkout.core.ports.outbound.catalog import CatalogRepository
from storefront_checkout.core.ports.outbound.orders import UnitOfWork, UnitOfWorkFactory

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MaterializerDeps:
    catalog: CatalogRepository
    unit_of_work: UnitOfWorkFactory


@dataclass(frozen=True)
class OrderMaterializer:
    deps: MaterializerDeps

    async def materialize(
        self,
        cart: Cart,
        customer_id: CustomerId,
        shipping_id: int,
        tax_id: int,
    ) -> Result[Order, CheckoutError]:
        shipping = await self.deps.catalog.get_shipping(shipping_id)
        if isinstance(shipping, Failure):
            return shipping
        tax = await self.deps.catalog.get_tax(tax_id)
        if isinstance(tax, Failure):
            return tax

        priced = price_cart(cart.items, shipping.unwrap(), tax.unwrap())
        if isinstance(priced, Failure):
            return priced

        order = _build_order(
            customer_id, shipping.unwrap(), tax.unwrap(), priced.unwrap()
        )
        log = logger.bind(order_id=str(order.order_id.value), cart_id=cart.cart_id.value)

        async with self.deps.unit_of_work() as uow:
            written = await _write_all(uow, cart, order)
            if isinstance(written, Failure):
                await uow.rollback()
                err = written.failure()
                log.warning("order_materialize_failed", code=err.code, error=str(err))
                return written

        log.info("order_materialized", total=str(order.total.amount))
        return Success(order)


async def _write_all(
    uow: UnitOfWork, cart: Cart, order: Order
) -> Result[None, CheckoutError]:
    consumed = await uow.consume_cart(cart)
    if isinstance(consumed, Failure):
        return consumed
    for item in cart.items:
        reserved = await uow.decrement_stock(item.product_id, item.quantity)
        if isinstance(reserved, Failure):
            return reserved
    added = await uow.add_order(order)
    if isinstance(added, Failure):
        return added
    return await uow.commit()


def _build_order(
    customer_id: CustomerId,
    shipping: ShippingOption,
    tax: TaxOption,
    priced: PriceBreakdown,
) -> Order:
    items = tuple(
        OrderLineItem(
            product_id=ln.product_id,
            product_name=ln.name,
            quantity=ln.quantity,
            unit_cost=ln.unit_cost,
        )
        for ln in priced.lines
    )
    return Order(
        order_id=OrderId.new(),
        customer_id=customer_id,
        shipping_id=shipping.shipping_id,
        tax_id=tax.tax_id,
        items=items,
        subtotal=priced.subtotal,
        shipping_cost=priced.shipping,
        tax_amount=priced.tax,
        total=priced.total,
        created_at=now_utc(),
        status=OrderStatus.CREATED,
    )

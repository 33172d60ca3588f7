from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import TracebackType
from typing import Dict, List, Sequence

from returns.result import Failure, Result, Success

from storefront_checkout.adapters.outbound.in_memory_state import InMemoryState
from storefront_checkout.core.domain.model.cart import Cart
from storefront_checkout.core.domain.model.errors import (
    CartModified,
    CartNotFound,
    CheckoutError,
    OrderAlreadySettled,
    OrderNotFound,
    OrderPersistenceFailed,
    OutOfStock,
    ProductNotFound,
)
from storefront_checkout.core.domain.model.order import (
    Charge,
    CustomerId,
    Order,
    OrderId,
    OrderStatus,
    already_settled,
)
from storefront_checkout.core.ports.outbound.orders import OrderRepository, UnitOfWork


@dataclass
class InMemoryOrderRepository(OrderRepository):
    state: InMemoryState

    async def get(self, order_id: OrderId) -> Result[Order, CheckoutError]:
        key = str(order_id.value)
        order = self.state.orders.get(key)
        if order is None:
            return Failure(OrderNotFound(message="order not found", order_id=key))
        return Success(order)

    async def list_for_customer(
        self, customer_id: CustomerId, offset: int, limit: int
    ) -> Result[Sequence[Order], CheckoutError]:
        orders = [o for o in self.state.orders.values() if o.customer_id == customer_id]
        orders = sorted(orders, key=lambda o: o.created_at, reverse=True)
        return Success(tuple(orders[offset : offset + limit]))

    async def get_charge(self, order_id: OrderId) -> Result[Charge | None, CheckoutError]:
        return Success(self.state.charges.get(str(order_id.value)))

    async def mark_payment_failed(
        self, order_id: OrderId, reason: str
    ) -> Result[Order, CheckoutError]:
        got = await self.get(order_id)
        if isinstance(got, Failure):
            return got
        order = got.unwrap()
        if not order.accepts_settlement():
            return Failure(already_settled(order.status, str(order_id.value)))
        failed = order.transitioned(OrderStatus.PAYMENT_FAILED, reason=reason)
        self.state.orders[str(order_id.value)] = failed
        return Success(failed)

    async def record_payment(self, charge: Charge) -> Result[Order, CheckoutError]:
        key = str(charge.order_id.value)
        got = await self.get(charge.order_id)
        if isinstance(got, Failure):
            return got
        order = got.unwrap()
        if not order.accepts_settlement():
            return Failure(already_settled(order.status, key))
        if key in self.state.charges:
            return Failure(
                OrderAlreadySettled(message="order already has a charge", order_id=key)
            )
        paid = order.transitioned(OrderStatus.PAID)
        self.state.orders[key] = paid
        self.state.charges[key] = charge
        return Success(paid)


@dataclass
class InMemoryUnitOfWork(UnitOfWork):
    """
    Stages every write and applies them together in commit(). commit() does
    not await between re-validation and apply, so no other task can observe
    or interleave with a half-applied checkout.
    """

    state: InMemoryState
    fail_on_commit: bool = False
    _consumed: Dict[str, int] = field(default_factory=dict)  # cart_id -> version
    _stock: Dict[int, int] = field(default_factory=dict)  # product_id -> quantity
    _orders: List[Order] = field(default_factory=list)
    _done: bool = False

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self._done:
            await self.rollback()

    async def consume_cart(self, cart: Cart) -> Result[None, CheckoutError]:
        key = cart.cart_id.value
        if key in self._consumed:
            return Failure(CartNotFound(message="cart not found", cart_id=key))
        checked = _check_cart(self.state, key, cart.version)
        if isinstance(checked, Failure):
            return checked
        self._consumed[key] = cart.version
        return Success(None)

    async def decrement_stock(
        self, product_id: int, quantity: int
    ) -> Result[None, CheckoutError]:
        product = self.state.products.get(product_id)
        if product is None:
            return Failure(
                ProductNotFound(message="product no longer exists", product_id=product_id)
            )
        if product.stock is None:
            return Success(None)
        wanted = self._stock.get(product_id, 0) + quantity
        if wanted > product.stock:
            return Failure(
                OutOfStock(message="insufficient stock", product_id=product_id)
            )
        self._stock[product_id] = wanted
        return Success(None)

    async def add_order(self, order: Order) -> Result[None, CheckoutError]:
        if str(order.order_id.value) in self.state.orders:
            return Failure(OrderPersistenceFailed("order_id already exists"))
        self._orders.append(order)
        return Success(None)

    async def commit(self) -> Result[None, CheckoutError]:
        if self._done:
            return Failure(OrderPersistenceFailed("unit of work already finished"))
        if self.fail_on_commit:
            await self.rollback()
            return Failure(OrderPersistenceFailed("storage rejected the commit"))

        # validate first (no partial apply)
        for cart_id, version in self._consumed.items():
            checked = _check_cart(self.state, cart_id, version)
            if isinstance(checked, Failure):
                await self.rollback()
                return checked
        for product_id, quantity in self._stock.items():
            product = self.state.products.get(product_id)
            if product is None or product.stock is None or product.stock < quantity:
                await self.rollback()
                return Failure(
                    OutOfStock(message="insufficient stock", product_id=product_id)
                )

        # apply
        for cart_id in self._consumed:
            del self.state.carts[cart_id]
            self.state.consumed_carts.add(cart_id)
        for product_id, quantity in self._stock.items():
            product = self.state.products[product_id]
            self.state.products[product_id] = replace(
                product, stock=(product.stock or 0) - quantity
            )
        for order in self._orders:
            self.state.orders[str(order.order_id.value)] = order

        self._done = True
        return Success(None)

    async def rollback(self) -> None:
        self._consumed.clear()
        self._stock.clear()
        self._orders.clear()
        self._done = True


@dataclass
class InMemoryUnitOfWorkFactory:
    state: InMemoryState
    fail_on_commit: bool = False

    def __call__(self) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(self.state, fail_on_commit=self.fail_on_commit)


def _check_cart(
    state: InMemoryState, cart_id: str, version: int
) -> Result[None, CheckoutError]:
    stored = state.carts.get(cart_id)
    if stored is None or cart_id in state.consumed_carts:
        return Failure(CartNotFound(message="cart not found", cart_id=cart_id))
    if stored.version != version:
        return Failure(
            CartModified(message="cart changed while checking out", cart_id=cart_id)
        )
    return Success(None)

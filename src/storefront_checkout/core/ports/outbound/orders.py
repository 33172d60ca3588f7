from __future__ import annotations

from types import TracebackType
from typing import Callable, Protocol, Sequence

from returns.result import Result

from storefront_checkout.core.domain.model.cart import Cart
from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.order import (
    Charge,
    CustomerId,
    Order,
    OrderId,
)


class OrderRepository(Protocol):
    async def get(self, order_id: OrderId) -> Result[Order, CheckoutError]: ...

    async def list_for_customer(
        self, customer_id: CustomerId, offset: int, limit: int
    ) -> Result[Sequence[Order], CheckoutError]:
        """Newest first."""
        ...

    async def get_charge(self, order_id: OrderId) -> Result[Charge | None, CheckoutError]: ...

    async def mark_payment_failed(
        self, order_id: OrderId, reason: str
    ) -> Result[Order, CheckoutError]:
        """Conditional write: only while ``Order.accepts_settlement()``."""
        ...

    async def record_payment(self, charge: Charge) -> Result[Order, CheckoutError]:
        """
        Transition the order to paid and append the charge in one write.
        Failure(OrderAlreadySettled) when the order no longer accepts settlement
        or a charge for it already exists.
        """
        ...


class UnitOfWork(Protocol):
    """
    One indivisible checkout write: order + line items + cart consumption +
    stock decrement. Nothing becomes visible before commit(); rollback()
    (or leaving the context without commit) discards every staged write.
    """

    async def __aenter__(self) -> "UnitOfWork": ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...

    async def consume_cart(self, cart: Cart) -> Result[None, CheckoutError]:
        """
        Mark the cart checked out. Failure(CartNotFound) when it is gone or
        already consumed, Failure(CartModified) when the stored cart is not
        the version that was priced.
        """
        ...

    async def decrement_stock(
        self, product_id: int, quantity: int
    ) -> Result[None, CheckoutError]: ...

    async def add_order(self, order: Order) -> Result[None, CheckoutError]: ...

    async def commit(self) -> Result[None, CheckoutError]: ...

    async def rollback(self) -> None: ...


UnitOfWorkFactory = Callable[[], UnitOfWork]

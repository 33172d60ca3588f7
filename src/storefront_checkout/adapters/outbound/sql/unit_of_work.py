from __future__ import annotations

from dataclasses import dataclass, field
from types import TracebackType

from returns.result import Failure, Result, Success
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_checkout.adapters.outbound.sql.repositories import (
    SessionFactory,
    order_rows,
    storage_error,
)
from storefront_checkout.adapters.outbound.sql.tables import (
    CartItemRow,
    CartRow,
    ProductRow,
)
from storefront_checkout.core.domain.model.cart import Cart
from storefront_checkout.core.domain.model.errors import (
    CartModified,
    CartNotFound,
    CheckoutError,
    OrderPersistenceFailed,
    OutOfStock,
    ProductNotFound,
)
from storefront_checkout.core.domain.model.order import Order, now_utc
from storefront_checkout.core.ports.outbound.orders import UnitOfWork


@dataclass
class SqlUnitOfWork(UnitOfWork):
    """One database transaction. The cart consumption and the stock updates
    are conditional, so a concurrent checkout of the same cart or the last
    unit of stock loses at statement level instead of double-writing."""

    session_factory: SessionFactory
    _session: AsyncSession | None = field(default=None, init=False)
    _done: bool = field(default=False, init=False)

    async def __aenter__(self) -> "SqlUnitOfWork":
        self._session = self.session_factory()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            if not self._done:
                await self.rollback()
        finally:
            if self._session is not None:
                await self._session.close()
                self._session = None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("unit of work used outside 'async with'")
        return self._session

    async def consume_cart(self, cart: Cart) -> Result[None, CheckoutError]:
        key = cart.cart_id.value
        try:
            result = await self.session.execute(
                update(CartRow)
                .where(
                    CartRow.cart_id == key,
                    CartRow.version == cart.version,
                    CartRow.consumed_at.is_(None),
                )
                .values(consumed_at=now_utc(), version=CartRow.version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                stored = await self.session.get(CartRow, key)
                if stored is None or stored.consumed_at is not None:
                    return Failure(CartNotFound(message="cart not found", cart_id=key))
                return Failure(
                    CartModified(message="cart changed while checking out", cart_id=key)
                )
            await self.session.execute(
                delete(CartItemRow).where(CartItemRow.cart_id == key)
            )
        except SQLAlchemyError as e:
            return Failure(storage_error(e))
        return Success(None)

    async def decrement_stock(
        self, product_id: int, quantity: int
    ) -> Result[None, CheckoutError]:
        try:
            product = await self.session.get(ProductRow, product_id)
            if product is None:
                return Failure(
                    ProductNotFound(
                        message="product no longer exists", product_id=product_id
                    )
                )
            if product.stock is None:
                return Success(None)
            result = await self.session.execute(
                update(ProductRow)
                .where(ProductRow.product_id == product_id, ProductRow.stock >= quantity)
                .values(stock=ProductRow.stock - quantity)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            return Failure(storage_error(e))
        if result.rowcount == 0:
            return Failure(OutOfStock(message="insufficient stock", product_id=product_id))
        return Success(None)

    async def add_order(self, order: Order) -> Result[None, CheckoutError]:
        row, items = order_rows(order)
        self.session.add(row)
        self.session.add_all(items)
        try:
            await self.session.flush()
        except IntegrityError:
            return Failure(OrderPersistenceFailed("order_id already exists"))
        except SQLAlchemyError as e:
            return Failure(storage_error(e))
        return Success(None)

    async def commit(self) -> Result[None, CheckoutError]:
        if self._done:
            return Failure(OrderPersistenceFailed("unit of work already finished"))
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.rollback()
            return Failure(storage_error(e))
        self._done = True
        return Success(None)

    async def rollback(self) -> None:
        self._done = True
        if self._session is not None:
            await self._session.rollback()


@dataclass(frozen=True)
class SqlUnitOfWorkFactory:
    session_factory: SessionFactory

    def __call__(self) -> SqlUnitOfWork:
        return SqlUnitOfWork(self.session_factory)

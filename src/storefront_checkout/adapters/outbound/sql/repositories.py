from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta
from decimal import Decimal
from typing import Iterable, Mapping, Sequence
from uuid import uuid4

from returns.result import Failure, Result, Success
from sqlalchemy import ColumnElement, and_, delete, or_, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront_checkout.adapters.outbound.sql.tables import (
    CartItemRow,
    CartRow,
    ChargeRow,
    CustomerRow,
    OrderItemRow,
    OrderRow,
    ProductRow,
    SettlementClaimRow,
    ShippingOptionRow,
    TaxOptionRow,
    as_utc,
)
from storefront_checkout.core.domain.model.cart import Cart, CartId, CartItem
from storefront_checkout.core.domain.model.catalog import (
    Product,
    ShippingOption,
    TaxOption,
)
from storefront_checkout.core.domain.model.errors import (
    CartAlreadyCheckedOut,
    CartModified,
    CartNotFound,
    CheckoutError,
    CustomerNotFound,
    OrderAlreadySettled,
    OrderNotFound,
    OrderPersistenceFailed,
    ProductNotFound,
    ShippingNotFound,
    StorageUnavailable,
    TaxNotFound,
)
from storefront_checkout.core.domain.model.money import Money
from storefront_checkout.core.domain.model.order import (
    Charge,
    CustomerId,
    Order,
    OrderId,
    OrderLineItem,
    OrderStatus,
    RETRYABLE_FAILURE_REASONS,
    already_settled,
    now_utc,
)
from storefront_checkout.core.ports.outbound.carts import CartRepository
from storefront_checkout.core.ports.outbound.catalog import CatalogRepository
from storefront_checkout.core.ports.outbound.customers import CustomerDirectory
from storefront_checkout.core.ports.outbound.orders import OrderRepository
from storefront_checkout.core.ports.outbound.settlements import (
    SettlementClaim,
    SettlementClaims,
)

SessionFactory = async_sessionmaker[AsyncSession]


def storage_error(e: SQLAlchemyError) -> CheckoutError:
    if isinstance(e, OperationalError) or getattr(e, "connection_invalidated", False):
        return StorageUnavailable(f"storage unavailable: {e.__class__.__name__}")
    return OrderPersistenceFailed(f"storage failure: {e.__class__.__name__}")


def _money(minor: int | None, currency: str) -> Money | None:
    return None if minor is None else Money.from_minor_units(minor, currency)


def _minor(money: Money | None) -> int | None:
    return None if money is None else money.minor_units()


# ---- catalog ---------------------------------------------------------------


@dataclass(frozen=True)
class SqlCatalog(CatalogRepository):
    session_factory: SessionFactory
    currency: str = "USD"

    async def get_product(self, product_id: int) -> Result[Product, CheckoutError]:
        try:
            async with self.session_factory() as session:
                row = await session.get(ProductRow, product_id)
        except SQLAlchemyError as e:
            return Failure(storage_error(e))
        if row is None:
            return Failure(
                ProductNotFound(
                    message=f"product {product_id} does not exist", product_id=product_id
                )
            )
        return Success(
            Product(
                product_id=row.product_id,
                name=row.name,
                price=Money.from_minor_units(row.price_minor, self.currency),
                discounted_price=_money(row.discounted_price_minor, self.currency),
                stock=row.stock,
            )
        )

    async def get_shipping(
        self, shipping_id: int
    ) -> Result[ShippingOption, CheckoutError]:
        try:
            async with self.session_factory() as session:
                row = await session.get(ShippingOptionRow, shipping_id)
        except SQLAlchemyError as e:
            return Failure(storage_error(e))
        if row is None:
            return Failure(
                ShippingNotFound(
                    message=f"shipping option {shipping_id} does not exist",
                    shipping_id=shipping_id,
                )
            )
        return Success(
            ShippingOption(
                shipping_id=row.shipping_id,
                label=row.label,
                cost=Money.from_minor_units(row.cost_minor, self.currency),
            )
        )

    async def get_tax(self, tax_id: int) -> Result[TaxOption, CheckoutError]:
        try:
            async with self.session_factory() as session:
                row = await session.get(TaxOptionRow, tax_id)
        except SQLAlchemyError as e:
            return Failure(storage_error(e))
        if row is None:
            return Failure(
                TaxNotFound(message=f"tax option {tax_id} does not exist", tax_id=tax_id)
            )
        return Success(
            TaxOption(
                tax_id=row.tax_id,
                label=row.label,
                percentage=Decimal(row.percentage),
                applies_to_shipping=row.applies_to_shipping,
            )
        )


@dataclass(frozen=True)
class SqlCustomerDirectory(CustomerDirectory):
    session_factory: SessionFactory

    async def get_email(self, customer_id: CustomerId) -> Result[str, CheckoutError]:
        try:
            async with self.session_factory() as session:
                row = await session.get(CustomerRow, customer_id.value)
        except SQLAlchemyError as e:
            return Failure(storage_error(e))
        if row is None:
            return Failure(
                CustomerNotFound(
                    message="customer has no email on file", customer_id=customer_id.value
                )
            )
        return Success(row.email)


async def seed_reference_data(
    session_factory: SessionFactory,
    products: Iterable[Product] = (),
    shipping: Iterable[ShippingOption] = (),
    taxes: Iterable[TaxOption] = (),
    customer_emails: Mapping[str, str] | None = None,
) -> None:
    """Upsert catalog, shipping, tax and customer rows (demo data, tests)."""
    async with session_factory() as session:
        for p in products:
            await session.merge(
                ProductRow(
                    product_id=p.product_id,
                    name=p.name,
                    price_minor=p.price.minor_units(),
                    discounted_price_minor=_minor(p.discounted_price),
                    stock=p.stock,
                )
            )
        for s in shipping:
            await session.merge(
                ShippingOptionRow(
                    shipping_id=s.shipping_id, label=s.label, cost_minor=s.cost.minor_units()
                )
            )
        for t in taxes:
            await session.merge(
                TaxOptionRow(
                    tax_id=t.tax_id,
                    label=t.label,
                    percentage=str(t.percentage),
                    applies_to_shipping=t.applies_to_shipping,
                )
            )
        for customer_id, email in (customer_emails or {}).items():
            await session.merge(CustomerRow(customer_id=customer_id, email=email))
        await session.commit()


# ---- carts -----------------------------------------------------------------


@dataclass(frozen=True)
class SqlCartRepository(CartRepository):
    session_factory: SessionFactory
    currency: str = "USD"

    async def get(self, cart_id: CartId) -> Result[Cart, CheckoutError]:
        try:
            async with self.session_factory() as session:
                cart = await session.get(CartRow, cart_id.value)
                if cart is None or cart.consumed_at is not None:
                    return Failure(
                        CartNotFound(message="cart not found", cart_id=cart_id.value)
                    )
                rows = (
                    await session.scalars(
                        select(CartItemRow)
                        .where(CartItemRow.cart_id == cart_id.value)
                        .order_by(CartItemRow.position)
                    )
                ).all()
        except SQLAlchemyError as e:
            return Failure(storage_error(e))

        items = tuple(
            CartItem(
                product_id=r.product_id,
                name=r.name,
                quantity=r.quantity,
                unit_price=Money.from_minor_units(r.unit_price_minor, self.currency),
                discounted_price=_money(r.discounted_price_minor, self.currency),
            )
            for r in rows
        )
        return Success(Cart(cart_id=cart_id, items=items, version=cart.version))

    async def save(self, cart: Cart) -> Result[Cart, CheckoutError]:
        key = cart.cart_id.value
        modified = CartModified(message="cart changed since it was read", cart_id=key)
        try:
            async with self.session_factory() as session:
                row = await session.get(CartRow, key)
                if row is not None and row.consumed_at is not None:
                    return Failure(
                        CartAlreadyCheckedOut(
                            message="cart was already checked out", cart_id=key
                        )
                    )
                if row is None:
                    if cart.version != 0:
                        return Failure(modified)
                    session.add(CartRow(cart_id=key, created_at=now_utc(), version=1))
                else:
                    bumped = await session.execute(
                        update(CartRow)
                        .where(
                            CartRow.cart_id == key,
                            CartRow.version == cart.version,
                            CartRow.consumed_at.is_(None),
                        )
                        .values(version=CartRow.version + 1)
                        .execution_options(synchronize_session=False)
                    )
                    if bumped.rowcount == 0:
                        await session.rollback()
                        return Failure(modified)
                await session.execute(delete(CartItemRow).where(CartItemRow.cart_id == key))
                session.add_all(
                    CartItemRow(
                        cart_id=key,
                        position=i,
                        product_id=item.product_id,
                        name=item.name,
                        quantity=item.quantity,
                        unit_price_minor=item.unit_price.minor_units(),
                        discounted_price_minor=_minor(item.discounted_price),
                    )
                    for i, item in enumerate(cart.items)
                )
                try:
                    await session.commit()
                except IntegrityError:
                    # a concurrent first write created the cart row
                    await session.rollback()
                    return Failure(modified)
        except SQLAlchemyError as e:
            return Failure(storage_error(e))
        return Success(replace(cart, version=cart.version + 1))


# ---- orders ----------------------------------------------------------------


def order_rows(order: Order) -> tuple[OrderRow, list[OrderItemRow]]:
    key = str(order.order_id.value)
    row = OrderRow(
        order_id=key,
        customer_id=order.customer_id.value,
        shipping_id=order.shipping_id,
        tax_id=order.tax_id,
        currency=order.total.currency,
        subtotal_minor=order.subtotal.minor_units(),
        shipping_minor=order.shipping_cost.minor_units(),
        tax_minor=order.tax_amount.minor_units(),
        total_minor=order.total.minor_units(),
        status=order.status.value,
        failure_reason=order.failure_reason,
        created_at=order.created_at,
    )
    items = [
        OrderItemRow(
            order_id=key,
            position=i,
            product_id=li.product_id,
            product_name=li.product_name,
            quantity=li.quantity,
            unit_cost_minor=li.unit_cost.minor_units(),
        )
        for i, li in enumerate(order.items)
    ]
    return row, items


def _to_order(row: OrderRow, items: Sequence[OrderItemRow]) -> Order:
    cur = row.currency
    return Order(
        order_id=OrderId.parse(row.order_id),
        customer_id=CustomerId(row.customer_id),
        shipping_id=row.shipping_id,
        tax_id=row.tax_id,
        items=tuple(
            OrderLineItem(
                product_id=i.product_id,
                product_name=i.product_name,
                quantity=i.quantity,
                unit_cost=Money.from_minor_units(i.unit_cost_minor, cur),
            )
            for i in items
        ),
        subtotal=Money.from_minor_units(row.subtotal_minor, cur),
        shipping_cost=Money.from_minor_units(row.shipping_minor, cur),
        tax_amount=Money.from_minor_units(row.tax_minor, cur),
        total=Money.from_minor_units(row.total_minor, cur),
        created_at=as_utc(row.created_at),
        status=OrderStatus(row.status),
        failure_reason=row.failure_reason,
    )


async def _load_order(session: AsyncSession, key: str) -> Order | None:
    row = await session.get(OrderRow, key)
    if row is None:
        return None
    items = (
        await session.scalars(
            select(OrderItemRow)
            .where(OrderItemRow.order_id == key)
            .order_by(OrderItemRow.position)
        )
    ).all()
    return _to_order(row, items)


@dataclass(frozen=True)
class SqlOrderRepository(OrderRepository):
    session_factory: SessionFactory

    async def get(self, order_id: OrderId) -> Result[Order, CheckoutError]:
        key = str(order_id.value)
        try:
            async with self.session_factory() as session:
                order = await _load_order(session, key)
        except SQLAlchemyError as e:
            return Failure(storage_error(e))
        if order is None:
            return Failure(OrderNotFound(message="order not found", order_id=key))
        return Success(order)

    async def list_for_customer(
        self, customer_id: CustomerId, offset: int, limit: int
    ) -> Result[Sequence[Order], CheckoutError]:
        try:
            async with self.session_factory() as session:
                keys = (
                    await session.scalars(
                        select(OrderRow.order_id)
                        .where(OrderRow.customer_id == customer_id.value)
                        .order_by(OrderRow.created_at.desc())
                        .offset(offset)
                        .limit(limit)
                    )
                ).all()
                orders = [await _load_order(session, k) for k in keys]
        except SQLAlchemyError as e:
            return Failure(storage_error(e))
        return Success(tuple(o for o in orders if o is not None))

    async def get_charge(self, order_id: OrderId) -> Result[Charge | None, CheckoutError]:
        try:
            async with self.session_factory() as session:
                row = await session.scalar(
                    select(ChargeRow).where(ChargeRow.order_id == str(order_id.value))
                )
        except SQLAlchemyError as e:
            return Failure(storage_error(e))
        if row is None:
            return Success(None)
        return Success(
            Charge(
                charge_id=row.charge_id,
                order_id=order_id,
                amount_minor=row.amount_minor,
                currency=row.currency,
                created_at=as_utc(row.created_at),
            )
        )

    async def mark_payment_failed(
        self, order_id: OrderId, reason: str
    ) -> Result[Order, CheckoutError]:
        key = str(order_id.value)
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    update(OrderRow)
                    .where(OrderRow.order_id == key, _accepts_settlement())
                    .values(status=OrderStatus.PAYMENT_FAILED.value, failure_reason=reason[:255])
                )
                if result.rowcount == 0:
                    await session.rollback()
                    return Failure(await self._why_not_updated(session, key))
                await session.commit()
                order = await _load_order(session, key)
        except SQLAlchemyError as e:
            return Failure(storage_error(e))
        if order is None:
            return Failure(OrderNotFound(message="order not found", order_id=key))
        return Success(order)

    async def record_payment(self, charge: Charge) -> Result[Order, CheckoutError]:
        key = str(charge.order_id.value)
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    update(OrderRow)
                    .where(OrderRow.order_id == key, _accepts_settlement())
                    .values(status=OrderStatus.PAID.value, failure_reason=None)
                )
                if result.rowcount == 0:
                    await session.rollback()
                    return Failure(await self._why_not_updated(session, key))
                session.add(
                    ChargeRow(
                        charge_id=charge.charge_id,
                        order_id=key,
                        amount_minor=charge.amount_minor,
                        currency=charge.currency,
                        created_at=charge.created_at,
                    )
                )
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    return Failure(
                        OrderAlreadySettled(
                            message="order already has a charge", order_id=key
                        )
                    )
                order = await _load_order(session, key)
        except SQLAlchemyError as e:
            return Failure(storage_error(e))
        if order is None:
            return Failure(OrderNotFound(message="order not found", order_id=key))
        return Success(order)

    async def _why_not_updated(self, session: AsyncSession, key: str) -> CheckoutError:
        row = await session.get(OrderRow, key)
        if row is None:
            return OrderNotFound(message="order not found", order_id=key)
        return already_settled(OrderStatus(row.status), key)


def _accepts_settlement() -> ColumnElement[bool]:
    return or_(
        OrderRow.status == OrderStatus.CREATED.value,
        and_(
            OrderRow.status == OrderStatus.PAYMENT_FAILED.value,
            OrderRow.failure_reason.in_(RETRYABLE_FAILURE_REASONS),
        ),
    )


# ---- settlement claims -----------------------------------------------------


@dataclass(frozen=True)
class SqlSettlementClaims(SettlementClaims):
    session_factory: SessionFactory

    async def acquire(
        self, order_id: OrderId, ttl_seconds: int
    ) -> Result[SettlementClaim, CheckoutError]:
        key = str(order_id.value)
        claim = SettlementClaim(order_id=order_id, token=uuid4().hex, claimed_at=now_utc())
        try:
            async with self.session_factory() as session:
                # an expired claim belongs to a crashed attempt; take it over
                await session.execute(
                    delete(SettlementClaimRow).where(
                        SettlementClaimRow.order_id == key,
                        SettlementClaimRow.claimed_at
                        < claim.claimed_at - timedelta(seconds=ttl_seconds),
                    )
                )
                session.add(
                    SettlementClaimRow(
                        order_id=key, token=claim.token, claimed_at=claim.claimed_at
                    )
                )
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    return Failure(
                        OrderAlreadySettled(
                            message="a settlement for this order is already in progress",
                            order_id=key,
                        )
                    )
        except SQLAlchemyError as e:
            return Failure(storage_error(e))
        return Success(claim)

    async def release(self, claim: SettlementClaim) -> Result[None, CheckoutError]:
        try:
            async with self.session_factory() as session:
                await session.execute(
                    delete(SettlementClaimRow).where(
                        SettlementClaimRow.order_id == str(claim.order_id.value),
                        SettlementClaimRow.token == claim.token,
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            return Failure(storage_error(e))
        return Success(None)

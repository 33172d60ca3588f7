from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import AsyncIterator

import httpx
import structlog
from fastapi import FastAPI
from returns.result import Failure
from sqlalchemy.ext.asyncio import AsyncEngine

from storefront_checkout.adapters.inbound.web.fastapi_app import create_app
from storefront_checkout.adapters.outbound.dummy_payment import DummyPaymentGateway
from storefront_checkout.adapters.outbound.in_memory_carts import InMemoryCartRepository
from storefront_checkout.adapters.outbound.in_memory_catalog import (
    InMemoryCatalog,
    InMemoryCustomerDirectory,
)
from storefront_checkout.adapters.outbound.in_memory_orders import (
    InMemoryOrderRepository,
    InMemoryUnitOfWorkFactory,
)
from storefront_checkout.adapters.outbound.in_memory_settlements import (
    InMemorySettlementClaims,
)
from storefront_checkout.adapters.outbound.in_memory_state import InMemoryState
from storefront_checkout.adapters.outbound.log_mailer import LoggingMailer
from storefront_checkout.adapters.outbound.sql.repositories import (
    SessionFactory,
    SqlCartRepository,
    SqlCatalog,
    SqlCustomerDirectory,
    SqlOrderRepository,
    SqlSettlementClaims,
    seed_reference_data,
)
from storefront_checkout.adapters.outbound.sql.tables import (
    build_session_factory,
    create_schema,
)
from storefront_checkout.adapters.outbound.sql.unit_of_work import SqlUnitOfWorkFactory
from storefront_checkout.adapters.outbound.stripe_payment import (
    StripePaymentGateway,
    build_stripe_client,
)
from storefront_checkout.config import Settings
from storefront_checkout.core.domain.model.catalog import (
    Product,
    ShippingOption,
    TaxOption,
)
from storefront_checkout.core.domain.model.money import Money
from storefront_checkout.core.domain.service.cart_service import (
    CartDeps,
    CartService,
    CartStoreAccessor,
)
from storefront_checkout.core.domain.service.get_order_service import (
    GetOrderDeps,
    GetOrderService,
)
from storefront_checkout.core.domain.service.list_orders_service import (
    ListOrdersDeps,
    ListOrdersService,
)
from storefront_checkout.core.domain.service.materializer import (
    MaterializerDeps,
    OrderMaterializer,
)
from storefront_checkout.core.domain.service.notification import (
    NotificationDeps,
    NotificationDispatcher,
)
from storefront_checkout.core.domain.service.pay_order_service import (
    PayOrderDeps,
    PayOrderService,
)
from storefront_checkout.core.domain.service.place_order_service import (
    PlaceOrderDeps,
    PlaceOrderService,
)
from storefront_checkout.core.domain.service.settlement import (
    PaymentSettlementCoordinator,
    SettlementDeps,
)
from storefront_checkout.core.ports.outbound.carts import CartRepository
from storefront_checkout.core.ports.outbound.catalog import CatalogRepository
from storefront_checkout.core.ports.outbound.customers import CustomerDirectory
from storefront_checkout.core.ports.outbound.notification import NotificationTransport
from storefront_checkout.core.ports.outbound.orders import (
    OrderRepository,
    UnitOfWorkFactory,
)
from storefront_checkout.core.ports.outbound.payment import PaymentGateway
from storefront_checkout.core.ports.outbound.settlements import SettlementClaims
from storefront_checkout.utils.logging import configure_logging

logger = structlog.get_logger(__name__)


def demo_products(currency: str = "USD") -> tuple[Product, ...]:
    return (
        Product(1, "T-Shirt", Money.of("10.00", currency), stock=100),
        Product(2, "Coffee Mug", Money.of("5.00", currency), Money.of("4.00", currency), stock=50),
        Product(3, "Poster", Money.of("15.00", currency), stock=3),
    )


def demo_shipping(currency: str = "USD") -> tuple[ShippingOption, ...]:
    return (
        ShippingOption(1, "Standard", Money.of("3.00", currency)),
        ShippingOption(2, "Express", Money.of("12.50", currency)),
    )


def demo_taxes() -> tuple[TaxOption, ...]:
    return (
        TaxOption(1, "No tax", Decimal("0")),
        TaxOption(2, "Sales tax", Decimal("8.25")),
    )


DEMO_CUSTOMERS = {"c-1": "jane@example.com"}


@dataclass(frozen=True)
class Adapters:
    catalog: CatalogRepository
    customers: CustomerDirectory
    carts: CartRepository
    orders: OrderRepository
    claims: SettlementClaims
    unit_of_work: UnitOfWorkFactory
    payment: PaymentGateway
    transport: NotificationTransport


@dataclass(frozen=True)
class UseCases:
    cart: CartService
    place_order: PlaceOrderService
    pay_order: PayOrderService
    get_order: GetOrderService
    list_orders: ListOrdersService


def wire_usecases(adapters: Adapters, settings: Settings) -> UseCases:
    cart_store = CartStoreAccessor(carts=adapters.carts)
    materializer = OrderMaterializer(
        MaterializerDeps(catalog=adapters.catalog, unit_of_work=adapters.unit_of_work)
    )
    settlement = PaymentSettlementCoordinator(
        SettlementDeps(
            orders=adapters.orders,
            payment=adapters.payment,
            claims=adapters.claims,
            gateway_timeout_seconds=settings.gateway_timeout_seconds,
            claim_ttl_seconds=settings.settlement_claim_ttl_seconds,
        )
    )
    notifications = NotificationDispatcher(
        NotificationDeps(
            transport=adapters.transport,
            timeout_seconds=settings.notification_timeout_seconds,
        )
    )

    return UseCases(
        cart=CartService(
            CartDeps(
                carts=adapters.carts, catalog=adapters.catalog, currency=settings.currency
            )
        ),
        place_order=PlaceOrderService(
            PlaceOrderDeps(carts=cart_store, materializer=materializer)
        ),
        pay_order=PayOrderService(
            PayOrderDeps(
                orders=adapters.orders,
                customers=adapters.customers,
                settlement=settlement,
                notifications=notifications,
            )
        ),
        get_order=GetOrderService(GetOrderDeps(orders=adapters.orders)),
        list_orders=ListOrdersService(ListOrdersDeps(orders=adapters.orders)),
    )


def seed_demo_state(state: InMemoryState, currency: str = "USD") -> InMemoryState:
    state.products.update({p.product_id: p for p in demo_products(currency)})
    state.shipping.update({s.shipping_id: s for s in demo_shipping(currency)})
    state.taxes.update({t.tax_id: t for t in demo_taxes()})
    state.customer_emails.update(DEMO_CUSTOMERS)
    return state


def in_memory_adapters(
    state: InMemoryState,
    payment: PaymentGateway,
    transport: NotificationTransport,
) -> Adapters:
    return Adapters(
        catalog=InMemoryCatalog(state),
        customers=InMemoryCustomerDirectory(state),
        carts=InMemoryCartRepository(state),
        orders=InMemoryOrderRepository(state),
        claims=InMemorySettlementClaims(state),
        unit_of_work=InMemoryUnitOfWorkFactory(state),
        payment=payment,
        transport=transport,
    )


def sql_adapters(
    session_factory: SessionFactory,
    payment: PaymentGateway,
    transport: NotificationTransport,
    currency: str = "USD",
) -> Adapters:
    return Adapters(
        catalog=SqlCatalog(session_factory, currency=currency),
        customers=SqlCustomerDirectory(session_factory),
        carts=SqlCartRepository(session_factory, currency=currency),
        orders=SqlOrderRepository(session_factory),
        claims=SqlSettlementClaims(session_factory),
        unit_of_work=SqlUnitOfWorkFactory(session_factory),
        payment=payment,
        transport=transport,
    )


def demo_payment_gateway() -> DummyPaymentGateway:
    return DummyPaymentGateway(
        decline_tokens={"tok_declined"}, unreachable_tokens={"tok_unreachable"}
    )


def build_usecases(
    settings: Settings | None = None,
    state: InMemoryState | None = None,
    payment: PaymentGateway | None = None,
    transport: NotificationTransport | None = None,
) -> UseCases:
    """In-memory wiring (tests, local runs without a database)."""
    settings = settings or Settings()
    if state is None:
        state = seed_demo_state(InMemoryState(), settings.currency)
    adapters = in_memory_adapters(
        state,
        payment or demo_payment_gateway(),
        transport or LoggingMailer(sender=settings.mail_sender),
    )
    return wire_usecases(adapters, settings)


def build_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()
    transport = LoggingMailer(sender=settings.mail_sender)

    client: httpx.AsyncClient | None = None
    payment: PaymentGateway
    if settings.stripe_api_key:
        client = build_stripe_client(
            settings.stripe_api_key,
            settings.stripe_api_base,
            settings.gateway_timeout_seconds,
        )
        payment = StripePaymentGateway(client)
    else:
        payment = demo_payment_gateway()

    engine: AsyncEngine | None = None
    if settings.database_url:
        session_factory, engine = build_session_factory(settings.database_url)
        adapters = sql_adapters(session_factory, payment, transport, settings.currency)
    else:
        adapters = in_memory_adapters(
            seed_demo_state(InMemoryState(), settings.currency), payment, transport
        )
    usecases = wire_usecases(adapters, settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if engine is not None:
            await create_schema(engine)
            seeded = await adapters.catalog.get_product(demo_products()[0].product_id)
            if isinstance(seeded, Failure):
                await seed_reference_data(
                    session_factory,
                    products=demo_products(settings.currency),
                    shipping=demo_shipping(settings.currency),
                    taxes=demo_taxes(),
                    customer_emails=DEMO_CUSTOMERS,
                )
        logger.info(
            "app_started",
            storage="sql" if engine is not None else "memory",
            gateway="stripe" if client is not None else "dummy",
        )
        try:
            yield
        finally:
            if client is not None:
                await client.aclose()
            if engine is not None:
                await engine.dispose()

    return create_app(
        usecases.cart,
        usecases.place_order,
        usecases.pay_order,
        usecases.get_order,
        usecases.list_orders,
        lifespan=lifespan,
    )


def create_asgi_app() -> FastAPI:
    settings = Settings.from_env()
    configure_logging(settings.log_level, settings.log_json)
    return build_app(settings)

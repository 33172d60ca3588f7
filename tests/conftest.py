from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, List, Mapping

import pytest
from returns.result import Failure, Result, Success

from storefront_checkout.adapters.outbound.dummy_payment import DummyPaymentGateway
from storefront_checkout.adapters.outbound.in_memory_state import InMemoryState
from storefront_checkout.bootstrap import UseCases, build_usecases
from storefront_checkout.config import Settings
from storefront_checkout.core.domain.model.catalog import (
    Product,
    ShippingOption,
    TaxOption,
)
from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.money import Money
from storefront_checkout.core.ports.inbound.cart import AddItemCommand
from storefront_checkout.core.ports.inbound.place_order import PlaceOrderCommand
from storefront_checkout.core.ports.outbound.payment import ChargeRequest, GatewayCharge

CUSTOMER = "c-1"
CUSTOMER_EMAIL = "jane@example.com"

TSHIRT, MUG, POSTER = 1, 2, 3
STANDARD_SHIPPING = 1
SALES_TAX, NO_TAX, TAX_ON_SHIPPING = 1, 2, 3


def catalog_products() -> list[Product]:
    return [
        Product(TSHIRT, "T-Shirt", Money.of("10.00"), stock=100),
        Product(MUG, "Coffee Mug", Money.of("5.00"), Money.of("4.00"), stock=50),
        Product(POSTER, "Poster", Money.of("15.00"), stock=1),
    ]


def catalog_shipping() -> list[ShippingOption]:
    return [ShippingOption(STANDARD_SHIPPING, "Standard", Money.of("3.00"))]


def catalog_taxes() -> list[TaxOption]:
    return [
        TaxOption(SALES_TAX, "Sales tax", Decimal("8.333")),
        TaxOption(NO_TAX, "No tax", Decimal("0")),
        TaxOption(TAX_ON_SHIPPING, "VAT", Decimal("10"), applies_to_shipping=True),
    ]


@dataclass
class RecordingMailer:
    fail: bool = False
    crash: bool = False
    delay: float = 0.0
    sent: List[tuple[str, str, Mapping[str, Any]]] = field(default_factory=list)

    async def send(
        self, to: str, template: str, context: Mapping[str, Any]
    ) -> Result[None, CheckoutError]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.crash:
            raise ConnectionError("smtp connection reset")
        if self.fail:
            return Failure(CheckoutError("mailbox unavailable"))
        self.sent.append((to, template, dict(context)))
        return Success(None)


@dataclass
class SlowGateway:
    inner: DummyPaymentGateway
    delay: float = 0.05

    async def charge(self, request: ChargeRequest) -> Result[GatewayCharge, CheckoutError]:
        await asyncio.sleep(self.delay)
        return await self.inner.charge(request)


@pytest.fixture()
def state() -> InMemoryState:
    return InMemoryState(
        products={p.product_id: p for p in catalog_products()},
        shipping={s.shipping_id: s for s in catalog_shipping()},
        taxes={t.tax_id: t for t in catalog_taxes()},
        customer_emails={CUSTOMER: CUSTOMER_EMAIL},
    )


@pytest.fixture()
def gateway() -> DummyPaymentGateway:
    return DummyPaymentGateway(
        decline_tokens={"tok_declined"}, unreachable_tokens={"tok_unreachable"}
    )


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def settings() -> Settings:
    return Settings(gateway_timeout_seconds=1.0, notification_timeout_seconds=0.5)


@pytest.fixture()
def usecases(
    settings: Settings,
    state: InMemoryState,
    gateway: DummyPaymentGateway,
    mailer: RecordingMailer,
) -> UseCases:
    return build_usecases(settings, state=state, payment=gateway, transport=mailer)


@pytest.fixture()
def place_scenario_order(
    usecases: UseCases,
) -> Callable[..., Awaitable[str]]:
    """2 x T-Shirt ($10) + 1 x Mug ($5, discounted to $4), standard shipping,
    8.333% tax: subtotal 24.00, tax 2.00, total 29.00."""

    async def _place(
        cart_id: str = "cart-1", customer_id: str = CUSTOMER, tax_id: int = SALES_TAX
    ) -> str:
        await usecases.cart.add_item(AddItemCommand(cart_id, TSHIRT, 2))
        await usecases.cart.add_item(AddItemCommand(cart_id, MUG, 1))
        receipt = await usecases.place_order.place_order(
            PlaceOrderCommand(customer_id, cart_id, STANDARD_SHIPPING, tax_id)
        )
        return str(receipt.unwrap().order_id.value)

    return _place


@pytest.fixture()
def slow_gateway(gateway: DummyPaymentGateway) -> SlowGateway:
    return SlowGateway(gateway)

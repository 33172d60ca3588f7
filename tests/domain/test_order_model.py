from __future__ import annotations

import pytest

from storefront_checkout.core.domain.model.cart import Cart, CartId, CartItem
from storefront_checkout.core.domain.model.money import Money
from storefront_checkout.core.domain.model.order import (
    CustomerId,
    Order,
    OrderId,
    OrderStatus,
    can_transition,
    now_utc,
)


def _order(
    status: OrderStatus = OrderStatus.CREATED, failure_reason: str | None = None
) -> Order:
    return Order(
        order_id=OrderId.new(),
        customer_id=CustomerId("c-1"),
        shipping_id=1,
        tax_id=1,
        items=(),
        subtotal=Money.zero(),
        shipping_cost=Money.zero(),
        tax_amount=Money.zero(),
        total=Money.zero(),
        created_at=now_utc(),
        status=status,
        failure_reason=failure_reason,
    )


@pytest.mark.parametrize(
    ("current", "target", "allowed"),
    [
        (OrderStatus.CREATED, OrderStatus.PAID, True),
        (OrderStatus.CREATED, OrderStatus.PAYMENT_FAILED, True),
        (OrderStatus.PAYMENT_FAILED, OrderStatus.PAID, True),
        (OrderStatus.PAID, OrderStatus.PAYMENT_FAILED, False),
        (OrderStatus.PAID, OrderStatus.PAID, False),
        (OrderStatus.PAID, OrderStatus.CREATED, False),
    ],
)
def test_status_transitions(current: OrderStatus, target: OrderStatus, allowed: bool) -> None:
    assert can_transition(current, target) is allowed


def test_paid_order_cannot_fail() -> None:
    with pytest.raises(ValueError):
        _order(OrderStatus.PAID).transitioned(OrderStatus.PAYMENT_FAILED, reason="x")


def test_declined_order_is_final() -> None:
    failed = _order().transitioned(OrderStatus.PAYMENT_FAILED, reason="card_declined")

    assert failed.failure_reason == "card_declined"
    assert not failed.accepts_settlement()
    with pytest.raises(ValueError):
        failed.transitioned(OrderStatus.PAID)


def test_unreachable_gateway_failure_stays_open_for_retry() -> None:
    failed = _order().transitioned(
        OrderStatus.PAYMENT_FAILED, reason="PAYMENT_GATEWAY_UNREACHABLE"
    )

    assert failed.accepts_settlement()
    assert failed.transitioned(OrderStatus.PAID).failure_reason is None


@pytest.mark.parametrize(
    ("status", "reason", "accepts"),
    [
        (OrderStatus.CREATED, None, True),
        (OrderStatus.PAID, None, False),
        (OrderStatus.PAYMENT_FAILED, "card_declined", False),
        (OrderStatus.PAYMENT_FAILED, "PAYMENT_GATEWAY_UNREACHABLE", True),
    ],
)
def test_accepts_settlement(status: OrderStatus, reason: str | None, accepts: bool) -> None:
    assert _order(status, reason).accepts_settlement() is accepts


def test_cart_edits_keep_the_version_they_were_read_at() -> None:
    item = CartItem(1, "T-Shirt", 1, Money.of("10.00"))
    cart = Cart(CartId("c"), version=4).with_item(item).with_quantity(1, 3)

    assert cart.version == 4


def test_cart_merges_quantities_for_same_product() -> None:
    item = CartItem(1, "T-Shirt", 1, Money.of("10.00"))
    cart = Cart(CartId("c")).with_item(item).with_item(item)

    assert len(cart.items) == 1
    assert cart.items[0].quantity == 2
    assert cart.without_item(1).is_empty()

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Tuple
from uuid import UUID, uuid4

from storefront_checkout.core.domain.model.errors import (
    OrderAlreadySettled,
    PaymentGatewayUnreachable,
)
from storefront_checkout.core.domain.model.money import Money


@dataclass(frozen=True)
class OrderId:
    value: UUID

    @staticmethod
    def new() -> "OrderId":
        return OrderId(uuid4())

    @staticmethod
    def parse(raw: str) -> "OrderId":
        return OrderId(UUID(raw))


@dataclass(frozen=True)
class CustomerId:
    value: str


class OrderStatus(str, Enum):
    CREATED = "created"
    PAID = "paid"
    PAYMENT_FAILED = "payment_failed"


# created -> paid | payment_failed. A payment_failed order whose gateway could
# not be reached may be settled again (caller-driven retry); any other
# payment_failed order is final.
_ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.CREATED: frozenset({OrderStatus.PAID, OrderStatus.PAYMENT_FAILED}),
    OrderStatus.PAYMENT_FAILED: frozenset({OrderStatus.PAID, OrderStatus.PAYMENT_FAILED}),
    OrderStatus.PAID: frozenset(),
}

# failure_reason values that leave a payment_failed order open for another attempt
RETRYABLE_FAILURE_REASONS = frozenset({PaymentGatewayUnreachable.code})


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in _ALLOWED_TRANSITIONS[current]


@dataclass(frozen=True)
class OrderLineItem:
    """Snapshot of a cart line at order-creation time."""

    product_id: int
    product_name: str
    quantity: int
    unit_cost: Money

    def subtotal(self) -> Money:
        return self.unit_cost * self.quantity


@dataclass(frozen=True)
class Order:
    order_id: OrderId
    customer_id: CustomerId
    shipping_id: int
    tax_id: int
    items: Tuple[OrderLineItem, ...]
    subtotal: Money
    shipping_cost: Money
    tax_amount: Money
    total: Money
    created_at: datetime
    status: OrderStatus = OrderStatus.CREATED
    failure_reason: str | None = None

    def accepts_settlement(self) -> bool:
        if self.status is OrderStatus.CREATED:
            return True
        return (
            self.status is OrderStatus.PAYMENT_FAILED
            and self.failure_reason in RETRYABLE_FAILURE_REASONS
        )

    def transitioned(self, target: OrderStatus, reason: str | None = None) -> "Order":
        if not self.accepts_settlement() or not can_transition(self.status, target):
            raise ValueError(f"invalid_transition: {self.status.value} -> {target.value}")
        return replace(self, status=target, failure_reason=reason)


@dataclass(frozen=True)
class Charge:
    charge_id: str
    order_id: OrderId
    amount_minor: int
    currency: str
    created_at: datetime


@dataclass(frozen=True)
class Settlement:
    """A recorded charge together with the order it paid."""

    order: Order
    charge: Charge


@dataclass(frozen=True)
class ConfirmationRecord:
    order_id: OrderId
    recipient: str
    delivered: bool
    attempted_at: datetime
    error: str | None = None


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def already_settled(status: OrderStatus, order_id: str) -> OrderAlreadySettled:
    if status is OrderStatus.PAID:
        message = "order has already been paid"
    else:
        message = "order payment failed permanently; place a new order"
    return OrderAlreadySettled(message=message, order_id=order_id)

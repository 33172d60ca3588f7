from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    OrderNotFound,
    ValidationError,
)
from storefront_checkout.core.domain.model.order import CustomerId, OrderId
from storefront_checkout.core.domain.service.notification import NotificationDispatcher
from storefront_checkout.core.domain.service.settlement import (
    PaymentSettlementCoordinator,
)
from storefront_checkout.core.ports.inbound.pay_order import (
    PayOrderCommand,
    PayOrderUseCase,
    PaymentOutcome,
)
from storefront_checkout.core.ports.outbound.customers import CustomerDirectory
from storefront_checkout.core.ports.outbound.orders import OrderRepository


@dataclass(frozen=True)
class PayOrderDeps:
    orders: OrderRepository
    customers: CustomerDirectory
    settlement: PaymentSettlementCoordinator
    notifications: NotificationDispatcher


@dataclass(frozen=True)
class PayOrderService(PayOrderUseCase):
    """settle -> notify. A failed notification is reported as a warning only."""

    deps: PayOrderDeps

    async def pay_order(
        self, command: PayOrderCommand
    ) -> Result[PaymentOutcome, CheckoutError]:
        v = _validate_command(command)
        if isinstance(v, Failure):
            return v
        order_id = v.unwrap()
        customer_id = CustomerId(command.customer_id.strip())

        owned = await self.deps.orders.get(order_id)
        if isinstance(owned, Failure):
            return owned
        if owned.unwrap().customer_id != customer_id:
            return Failure(
                OrderNotFound(message="order not found", order_id=str(order_id.value))
            )

        email = await self._payer_email(command, customer_id)
        if isinstance(email, Failure):
            return email
        payer_email = email.unwrap()

        settled = await self.deps.settlement.settle(
            order_id, command.payment_token, payer_email
        )
        if isinstance(settled, Failure):
            return settled
        order, charge = settled.unwrap().order, settled.unwrap().charge

        notified = await self.deps.notifications.notify(order, charge, payer_email)
        warnings = (notified.failure(),) if isinstance(notified, Failure) else ()

        return Success(
            PaymentOutcome(
                order=order, charge=charge, payer_email=payer_email, warnings=warnings
            )
        )

    async def _payer_email(
        self, command: PayOrderCommand, customer_id: CustomerId
    ) -> Result[str, CheckoutError]:
        if command.email is not None:
            return Success(command.email.strip())
        return await self.deps.customers.get_email(customer_id)


def _validate_command(cmd: PayOrderCommand) -> Result[OrderId, CheckoutError]:
    if not cmd.customer_id.strip():
        return Failure(ValidationError("customer_id is required"))
    if not cmd.payment_token.strip():
        return Failure(ValidationError("payment_token is required"))
    if cmd.email is not None and "@" not in cmd.email:
        return Failure(ValidationError("email must be a valid address"))
    try:
        return Success(OrderId(UUID(cmd.order_id)))
    except ValueError:
        return Failure(ValidationError("order_id must be a valid UUID"))

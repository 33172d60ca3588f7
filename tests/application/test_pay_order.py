from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import timedelta

from returns.result import Failure, Result, Success

from storefront_checkout.adapters.outbound.dummy_payment import DummyPaymentGateway
from storefront_checkout.adapters.outbound.in_memory_settlements import (
    InMemorySettlementClaims,
)
from storefront_checkout.adapters.outbound.in_memory_state import InMemoryState
from storefront_checkout.bootstrap import UseCases, build_usecases
from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    CustomerNotFound,
    NotificationFailed,
    OrderAlreadySettled,
    OrderNotFound,
    PaymentDeclined,
    PaymentGatewayUnreachable,
    StorageUnavailable,
    ValidationError,
)
from storefront_checkout.core.domain.model.order import (
    Order,
    OrderId,
    OrderStatus,
    now_utc,
)
from storefront_checkout.core.ports.inbound.pay_order import PayOrderCommand
from storefront_checkout.core.ports.outbound.orders import OrderRepository
from storefront_checkout.core.ports.outbound.settlements import SettlementClaim


def _pay(order_id: str, token: str = "tok_visa", customer: str = "c-1", email=None):
    return PayOrderCommand(
        order_id=order_id, customer_id=customer, payment_token=token, email=email
    )


def test_successful_payment_marks_order_paid(
    usecases: UseCases, state: InMemoryState, gateway: DummyPaymentGateway, mailer,
    place_scenario_order,
) -> None:
    async def scenario():
        order_id = await place_scenario_order()
        return order_id, await usecases.pay_order.pay_order(_pay(order_id))

    order_id, result = asyncio.run(scenario())

    outcome = result.unwrap()
    assert outcome.charge.amount_minor == 2900
    assert outcome.charge.currency == "USD"
    assert outcome.order.status is OrderStatus.PAID
    assert outcome.warnings == ()
    assert state.orders[order_id].status is OrderStatus.PAID
    assert state.charges[order_id].charge_id == outcome.charge.charge_id

    request = gateway.requests[0]
    assert request.amount_minor == 2900
    assert request.currency == "usd"
    assert request.receipt_email == "jane@example.com"

    assert [(to, template) for to, template, _ in mailer.sent] == [
        ("jane@example.com", "order_confirmation")
    ]
    assert mailer.sent[0][2]["charge_id"] == outcome.charge.charge_id


def test_paying_twice_charges_once(
    usecases: UseCases, state: InMemoryState, gateway: DummyPaymentGateway,
    place_scenario_order,
) -> None:
    async def scenario():
        order_id = await place_scenario_order()
        first = await usecases.pay_order.pay_order(_pay(order_id))
        second = await usecases.pay_order.pay_order(_pay(order_id))
        return first, second

    first, second = asyncio.run(scenario())

    assert isinstance(first, Success)
    assert isinstance(second.failure(), OrderAlreadySettled)
    assert len(gateway.requests) == 1
    assert len(state.charges) == 1


def test_concurrent_payments_charge_once(
    settings, state: InMemoryState, gateway: DummyPaymentGateway, slow_gateway, mailer,
    place_scenario_order,
) -> None:
    usecases = build_usecases(settings, state=state, payment=slow_gateway, transport=mailer)

    async def scenario():
        order_id = await place_scenario_order()
        return await asyncio.gather(
            usecases.pay_order.pay_order(_pay(order_id)),
            usecases.pay_order.pay_order(_pay(order_id)),
        )

    results = asyncio.run(scenario())

    assert sum(isinstance(r, Success) for r in results) == 1
    losers = [r.failure() for r in results if isinstance(r, Failure)]
    assert isinstance(losers[0], OrderAlreadySettled)
    assert len(gateway.requests) == 1
    assert len(state.charges) == 1
    assert state.claims == {}


def test_declined_payment_marks_order_failed_without_charge(
    usecases: UseCases, state: InMemoryState, mailer, place_scenario_order
) -> None:
    async def scenario():
        order_id = await place_scenario_order()
        return order_id, await usecases.pay_order.pay_order(_pay(order_id, "tok_declined"))

    order_id, result = asyncio.run(scenario())

    err = result.failure()
    assert isinstance(err, PaymentDeclined)
    assert err.reason == "card_declined"
    assert state.orders[order_id].status is OrderStatus.PAYMENT_FAILED
    assert state.orders[order_id].failure_reason == "card_declined"
    assert state.charges == {}
    assert mailer.sent == []


def test_declined_order_cannot_be_charged_again(
    usecases: UseCases, state: InMemoryState, gateway: DummyPaymentGateway,
    place_scenario_order,
) -> None:
    async def scenario():
        order_id = await place_scenario_order()
        declined = await usecases.pay_order.pay_order(_pay(order_id, "tok_declined"))
        return order_id, declined, await usecases.pay_order.pay_order(_pay(order_id))

    order_id, declined, retried = asyncio.run(scenario())

    assert isinstance(declined.failure(), PaymentDeclined)
    assert isinstance(retried.failure(), OrderAlreadySettled)
    assert len(gateway.requests) == 1
    assert state.orders[order_id].status is OrderStatus.PAYMENT_FAILED
    assert state.orders[order_id].failure_reason == "card_declined"
    assert state.charges == {}


def test_unreachable_gateway_failure_can_be_retried(
    usecases: UseCases, state: InMemoryState, gateway: DummyPaymentGateway,
    place_scenario_order,
) -> None:
    async def scenario():
        order_id = await place_scenario_order()
        await usecases.pay_order.pay_order(_pay(order_id, "tok_unreachable"))
        return order_id, await usecases.pay_order.pay_order(_pay(order_id))

    order_id, retried = asyncio.run(scenario())

    assert isinstance(retried, Success)
    assert state.orders[order_id].status is OrderStatus.PAID
    assert state.orders[order_id].failure_reason is None
    keys = {r.idempotency_key for r in gateway.requests}
    assert len(keys) == 2


def test_unreachable_gateway_is_transient(
    usecases: UseCases, state: InMemoryState, place_scenario_order
) -> None:
    async def scenario():
        order_id = await place_scenario_order()
        return order_id, await usecases.pay_order.pay_order(
            _pay(order_id, "tok_unreachable")
        )

    order_id, result = asyncio.run(scenario())

    assert isinstance(result.failure(), PaymentGatewayUnreachable)
    assert result.failure().category == "transient"
    assert state.orders[order_id].status is OrderStatus.PAYMENT_FAILED
    assert state.orders[order_id].failure_reason == "PAYMENT_GATEWAY_UNREACHABLE"
    assert state.charges == {}


def test_gateway_timeout_is_unreachable(
    settings, state: InMemoryState, slow_gateway, mailer, place_scenario_order
) -> None:
    usecases = build_usecases(settings, state=state, payment=slow_gateway, transport=mailer)
    settlement = usecases.pay_order.deps.settlement

    async def scenario():
        order_id = await place_scenario_order()
        return await settlement.settle(
            OrderId.parse(order_id), "tok_visa", timeout=0.001
        )

    result = asyncio.run(scenario())

    assert isinstance(result.failure(), PaymentGatewayUnreachable)
    assert state.charges == {}


def test_notification_failure_is_only_a_warning(
    usecases: UseCases, state: InMemoryState, mailer, place_scenario_order
) -> None:
    mailer.fail = True

    async def scenario():
        order_id = await place_scenario_order()
        return order_id, await usecases.pay_order.pay_order(_pay(order_id))

    order_id, result = asyncio.run(scenario())

    outcome = result.unwrap()
    assert [type(w) for w in outcome.warnings] == [NotificationFailed]
    assert state.orders[order_id].status is OrderStatus.PAID
    assert len(state.charges) == 1


def test_crashing_transport_is_only_a_warning(
    usecases: UseCases, mailer, place_scenario_order
) -> None:
    mailer.crash = True

    async def scenario():
        order_id = await place_scenario_order()
        return await usecases.pay_order.pay_order(_pay(order_id))

    outcome = asyncio.run(scenario()).unwrap()

    assert outcome.order.status is OrderStatus.PAID
    assert outcome.warnings[0].code == "NOTIFICATION_FAILED"


def test_explicit_email_overrides_directory(
    usecases: UseCases, gateway: DummyPaymentGateway, mailer, place_scenario_order
) -> None:
    async def scenario():
        order_id = await place_scenario_order()
        return await usecases.pay_order.pay_order(
            _pay(order_id, email="billing@example.org")
        )

    outcome = asyncio.run(scenario()).unwrap()

    assert outcome.payer_email == "billing@example.org"
    assert gateway.requests[0].receipt_email == "billing@example.org"
    assert mailer.sent[0][0] == "billing@example.org"


def test_customer_without_email_is_rejected_before_charging(
    usecases: UseCases, state: InMemoryState, gateway: DummyPaymentGateway,
    place_scenario_order,
) -> None:
    async def scenario():
        order_id = await place_scenario_order(customer_id="c-unknown")
        return await usecases.pay_order.pay_order(_pay(order_id, customer="c-unknown"))

    result = asyncio.run(scenario())

    assert isinstance(result.failure(), CustomerNotFound)
    assert gateway.requests == []


def test_other_customers_order_is_not_found(
    usecases: UseCases, gateway: DummyPaymentGateway, place_scenario_order
) -> None:
    async def scenario():
        order_id = await place_scenario_order()
        return await usecases.pay_order.pay_order(_pay(order_id, customer="c-2"))

    assert isinstance(asyncio.run(scenario()).failure(), OrderNotFound)
    assert gateway.requests == []


def test_malformed_order_id_is_validation_error(usecases: UseCases) -> None:
    result = asyncio.run(usecases.pay_order.pay_order(_pay("not-a-uuid")))
    assert isinstance(result.failure(), ValidationError)


def test_held_claim_rejects_and_stale_claim_is_taken_over(
    usecases: UseCases, state: InMemoryState, gateway: DummyPaymentGateway,
    place_scenario_order,
) -> None:
    async def place():
        return await place_scenario_order()

    order_id = asyncio.run(place())

    state.claims[order_id] = SettlementClaim(OrderId.parse(order_id), "other", now_utc())
    held = asyncio.run(usecases.pay_order.pay_order(_pay(order_id)))
    assert isinstance(held.failure(), OrderAlreadySettled)
    assert gateway.requests == []

    state.claims[order_id] = SettlementClaim(
        OrderId.parse(order_id), "crashed", now_utc() - timedelta(hours=1)
    )
    taken_over = asyncio.run(usecases.pay_order.pay_order(_pay(order_id)))
    assert isinstance(taken_over, Success)
    assert state.claims == {}


def test_expired_claim_release_leaves_the_new_holder_alone(
    usecases: UseCases, state: InMemoryState, place_scenario_order
) -> None:
    claims = InMemorySettlementClaims(state)

    async def scenario():
        oid = OrderId.parse(await place_scenario_order())
        stale = (await claims.acquire(oid, ttl_seconds=60)).unwrap()
        await asyncio.sleep(0.01)
        current = (await claims.acquire(oid, ttl_seconds=0)).unwrap()
        await claims.release(stale)
        blocked = await claims.acquire(oid, ttl_seconds=60)
        await claims.release(current)
        return blocked, await claims.acquire(oid, ttl_seconds=60)

    blocked, after_release = asyncio.run(scenario())

    assert isinstance(blocked.failure(), OrderAlreadySettled)
    assert isinstance(after_release, Success)


@dataclass
class _ReadsOnce:
    inner: OrderRepository
    reads: int = 0

    async def get(self, order_id: OrderId) -> Result[Order, CheckoutError]:
        self.reads += 1
        if self.reads > 1:
            return Failure(StorageUnavailable("order store went away"))
        return await self.inner.get(order_id)


def test_charged_payment_is_reported_without_rereading_the_order(
    usecases: UseCases, state: InMemoryState, place_scenario_order
) -> None:
    orders = _ReadsOnce(usecases.pay_order.deps.orders)
    pay_order = replace(
        usecases.pay_order, deps=replace(usecases.pay_order.deps, orders=orders)
    )

    async def scenario():
        order_id = await place_scenario_order()
        return order_id, await pay_order.pay_order(_pay(order_id))

    order_id, result = asyncio.run(scenario())

    outcome = result.unwrap()
    assert outcome.order.status is OrderStatus.PAID
    assert outcome.charge.charge_id == state.charges[order_id].charge_id
    assert orders.reads == 1

"""Payment settlement.

State machine over the order status::

    created         --charge ok-->      paid
    created         --charge failed-->  payment_failed
    payment_failed  --charge ok-->      paid            (only after PAYMENT_GATEWAY_UNREACHABLE)
    paid            --*-->              OrderAlreadySettled
    payment_failed  --*-->              OrderAlreadySettled  (any other failure)

The gateway is called first. The local status write happens only once the
gateway has answered, and no lock is held across the call: a settlement claim
row keyed by order id serializes concurrent attempts instead.

An order left in ``created`` after a crash between gateway success and the
local write has to be reconciled against the gateway by an external job.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from uuid import uuid4

import structlog
from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    PaymentDeclined,
    PaymentGatewayUnreachable,
    ValidationError,
)
from storefront_checkout.core.domain.model.order import (
    Charge,
    Order,
    OrderId,
    Settlement,
    already_settled,
    now_utc,
)
from storefront_checkout.core.ports.outbound.orders import OrderRepository
from storefront_checkout.core.ports.outbound.payment import (
    ChargeRequest,
    GatewayCharge,
    PaymentGateway,
)
from storefront_checkout.core.ports.outbound.settlements import SettlementClaims

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SettlementDeps:
    orders: OrderRepository
    payment: PaymentGateway
    claims: SettlementClaims
    gateway_timeout_seconds: float = 10.0
    claim_ttl_seconds: int = 120


@dataclass(frozen=True)
class PaymentSettlementCoordinator:
    deps: SettlementDeps

    async def settle(
        self,
        order_id: OrderId,
        payment_token: str,
        payer_email: str | None = None,
        timeout: float | None = None,
    ) -> Result[Settlement, CheckoutError]:
        if not payment_token.strip():
            return Failure(ValidationError("payment_token is required"))

        log = logger.bind(order_id=str(order_id.value))

        loaded = await self._load_unsettled(order_id)
        if isinstance(loaded, Failure):
            log.info("settlement_rejected", code=loaded.failure().code)
            return loaded

        claimed = await self.deps.claims.acquire(order_id, self.deps.claim_ttl_seconds)
        if isinstance(claimed, Failure):
            log.info("settlement_rejected", code=claimed.failure().code)
            return claimed
        claim = claimed.unwrap()

        try:
            # another attempt may have finished between the first read and the claim
            reloaded = await self._load_unsettled(order_id)
            if isinstance(reloaded, Failure):
                log.info("settlement_rejected", code=reloaded.failure().code)
                return reloaded
            return await self._charge_and_record(
                reloaded.unwrap(), payment_token, payer_email, timeout, log
            )
        finally:
            await self.deps.claims.release(claim)

    async def _load_unsettled(self, order_id: OrderId) -> Result[Order, CheckoutError]:
        got = await self.deps.orders.get(order_id)
        if isinstance(got, Failure):
            return got
        order = got.unwrap()
        if not order.accepts_settlement():
            return Failure(already_settled(order.status, str(order_id.value)))
        return Success(order)

    async def _charge_and_record(
        self,
        order: Order,
        payment_token: str,
        payer_email: str | None,
        timeout: float | None,
        log: structlog.BoundLogger,
    ) -> Result[Settlement, CheckoutError]:
        request = ChargeRequest(
            amount_minor=order.total.minor_units(),
            currency=order.total.currency.lower(),
            token=payment_token,
            description=f"Order {order.order_id.value}",
            idempotency_key=uuid4().hex,
            receipt_email=payer_email,
        )
        outcome = await self._call_gateway(request, timeout)

        if isinstance(outcome, Failure):
            err = outcome.failure()
            # non-decline failures store their code so a retry can recognise them
            reason = err.reason if isinstance(err, PaymentDeclined) else err.code
            marked = await self.deps.orders.mark_payment_failed(order.order_id, reason)
            if isinstance(marked, Failure):
                log.error(
                    "payment_failure_not_recorded",
                    code=marked.failure().code,
                    error=str(marked.failure()),
                )
            log.warning("payment_failed", code=err.code, reason=reason)
            return outcome

        gateway_charge: GatewayCharge = outcome.unwrap()
        charge = Charge(
            charge_id=gateway_charge.charge_id,
            order_id=order.order_id,
            amount_minor=request.amount_minor,
            currency=order.total.currency,
            created_at=now_utc(),
        )
        recorded = await self.deps.orders.record_payment(charge)
        if isinstance(recorded, Failure):
            # money moved at the gateway but the local write lost; reconciliation
            # has to pick this charge up.
            log.error(
                "charge_recorded_after_conflict",
                charge_id=charge.charge_id,
                code=recorded.failure().code,
                error=str(recorded.failure()),
            )
            return recorded

        log.info(
            "payment_settled",
            charge_id=charge.charge_id,
            amount_minor=charge.amount_minor,
        )
        return Success(Settlement(order=recorded.unwrap(), charge=charge))

    async def _call_gateway(
        self, request: ChargeRequest, timeout: float | None
    ) -> Result[GatewayCharge, CheckoutError]:
        limit = timeout if timeout is not None else self.deps.gateway_timeout_seconds
        try:
            return await asyncio.wait_for(self.deps.payment.charge(request), limit)
        except asyncio.TimeoutError:
            return Failure(
                PaymentGatewayUnreachable(f"payment gateway timed out after {limit}s")
            )

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import structlog
from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.errors import CheckoutError, NotificationFailed
from storefront_checkout.core.domain.model.order import (
    Charge,
    ConfirmationRecord,
    Order,
    now_utc,
)
from storefront_checkout.core.ports.outbound.notification import NotificationTransport

logger = structlog.get_logger(__name__)

CONFIRMATION_TEMPLATE = "order_confirmation"


@dataclass(frozen=True)
class NotificationDeps:
    transport: NotificationTransport
    timeout_seconds: float = 5.0


@dataclass(frozen=True)
class NotificationDispatcher:
    """Best-effort order confirmation. Failures come back as a value, never raised."""

    deps: NotificationDeps

    async def notify(
        self,
        order: Order,
        charge: Charge,
        recipient_email: str,
        timeout: float | None = None,
    ) -> Result[ConfirmationRecord, NotificationFailed]:
        limit = timeout if timeout is not None else self.deps.timeout_seconds
        oid = str(order.order_id.value)
        log = logger.bind(order_id=oid, charge_id=charge.charge_id)

        try:
            sent = await asyncio.wait_for(
                self.deps.transport.send(
                    recipient_email, CONFIRMATION_TEMPLATE, _context(order, charge)
                ),
                limit,
            )
        except asyncio.TimeoutError:
            sent = Failure(NotificationFailed(f"send timed out after {limit}s", order_id=oid))
        except Exception as e:  # noqa: BLE001
            log.exception("notification_transport_crashed")
            sent = Failure(NotificationFailed(str(e) or type(e).__name__, order_id=oid))

        if isinstance(sent, Failure):
            err = _as_notification_failed(sent.failure(), oid)
            log.warning("notification_failed", code=err.code, error=err.message)
            return Failure(err)

        log.info("notification_sent", template=CONFIRMATION_TEMPLATE)
        return Success(
            ConfirmationRecord(
                order_id=order.order_id,
                recipient=recipient_email,
                delivered=True,
                attempted_at=now_utc(),
            )
        )


def _as_notification_failed(err: CheckoutError, order_id: str) -> NotificationFailed:
    return NotificationFailed(
        message=f"confirmation not delivered: {err.message}",
        order_id=order_id,
    )


def _context(order: Order, charge: Charge) -> dict[str, Any]:
    return {
        "order_id": str(order.order_id.value),
        "total": str(order.total.amount),
        "currency": order.total.currency,
        "charge_id": charge.charge_id,
        "items": [
            {
                "name": li.product_name,
                "quantity": li.quantity,
                "unit_cost": str(li.unit_cost.amount),
                "subtotal": str(li.subtotal().amount),
            }
            for li in order.items
        ],
    }

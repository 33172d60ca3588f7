"""Stripe charges API client (``POST /v1/charges``)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog
from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    PaymentDeclined,
    PaymentGatewayUnreachable,
)
from storefront_checkout.core.ports.outbound.payment import (
    ChargeRequest,
    GatewayCharge,
    PaymentGateway,
)

logger = structlog.get_logger(__name__)


def build_stripe_client(
    api_key: str, base_url: str, timeout_seconds: float
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url,
        auth=(api_key, ""),
        timeout=timeout_seconds,
    )


@dataclass(frozen=True)
class StripePaymentGateway(PaymentGateway):
    client: httpx.AsyncClient

    async def charge(self, request: ChargeRequest) -> Result[GatewayCharge, CheckoutError]:
        form: dict[str, Any] = {
            "amount": request.amount_minor,
            "currency": request.currency,
            "source": request.token,
            "description": request.description,
        }
        if request.receipt_email:
            form["receipt_email"] = request.receipt_email

        try:
            response = await self.client.post(
                "/v1/charges",
                data=form,
                headers={"Idempotency-Key": request.idempotency_key},
            )
        except httpx.TimeoutException:
            return Failure(PaymentGatewayUnreachable("payment gateway timed out"))
        except httpx.TransportError as e:
            return Failure(PaymentGatewayUnreachable(f"payment gateway unreachable: {e}"))

        if response.status_code >= 500 or response.status_code == 429:
            logger.warning("stripe_unavailable", status=response.status_code)
            return Failure(
                PaymentGatewayUnreachable(
                    f"payment gateway returned {response.status_code}"
                )
            )

        if response.status_code in (401, 403):
            # the account or API key was refused; the card was never looked at
            logger.error("stripe_auth_rejected", status=response.status_code)
            return Failure(
                PaymentGatewayUnreachable(
                    f"payment gateway rejected the credentials ({response.status_code})"
                )
            )

        body = _json(response)
        if response.status_code >= 400:
            error = body.get("error") or {}
            reason = error.get("decline_code") or error.get("code") or "declined"
            return Failure(
                PaymentDeclined(
                    message=error.get("message") or "payment declined", reason=reason
                )
            )

        status = body.get("status", "")
        if status != "succeeded":
            reason = body.get("failure_code") or status or "unknown"
            return Failure(
                PaymentDeclined(
                    message=body.get("failure_message") or "charge not successful",
                    reason=reason,
                )
            )
        return Success(GatewayCharge(charge_id=body["id"], status=status))


def _json(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}

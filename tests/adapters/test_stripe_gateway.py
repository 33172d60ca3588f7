from __future__ import annotations

import asyncio
from urllib.parse import parse_qs

import httpx

from storefront_checkout.adapters.outbound.stripe_payment import StripePaymentGateway
from storefront_checkout.core.domain.model.errors import (
    PaymentDeclined,
    PaymentGatewayUnreachable,
)
from storefront_checkout.core.ports.outbound.payment import ChargeRequest

REQUEST = ChargeRequest(
    amount_minor=2900,
    currency="usd",
    token="tok_visa",
    description="Order 1",
    idempotency_key="idem-1",
    receipt_email="jane@example.com",
)


def _charge(handler):
    async def run():
        async with httpx.AsyncClient(
            base_url="https://stripe.test",
            auth=("sk_test", ""),
            transport=httpx.MockTransport(handler),
        ) as client:
            return await StripePaymentGateway(client).charge(REQUEST)

    return asyncio.run(run())


def test_successful_charge_sends_form_and_idempotency_key() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "ch_123", "status": "succeeded"})

    result = _charge(handler)

    assert result.unwrap().charge_id == "ch_123"
    request = seen[0]
    assert request.url.path == "/v1/charges"
    assert request.headers["Idempotency-Key"] == "idem-1"
    assert request.headers["Authorization"].startswith("Basic ")
    form = parse_qs(request.content.decode())
    assert form == {
        "amount": ["2900"],
        "currency": ["usd"],
        "source": ["tok_visa"],
        "description": ["Order 1"],
        "receipt_email": ["jane@example.com"],
    }


def test_card_error_is_declined_with_reason() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            402,
            json={
                "error": {
                    "type": "card_error",
                    "code": "card_declined",
                    "decline_code": "insufficient_funds",
                    "message": "Your card has insufficient funds.",
                }
            },
        )

    err = _charge(handler).failure()

    assert isinstance(err, PaymentDeclined)
    assert err.reason == "insufficient_funds"


def test_non_succeeded_status_is_declined() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"id": "ch_1", "status": "failed", "failure_code": "expired_card"}
        )

    err = _charge(handler).failure()

    assert isinstance(err, PaymentDeclined)
    assert err.reason == "expired_card"


def test_server_errors_and_rate_limits_are_unreachable() -> None:
    for status in (500, 503, 429):
        result = _charge(lambda request, s=status: httpx.Response(s, text="busy"))
        assert isinstance(result.failure(), PaymentGatewayUnreachable)


def test_transport_errors_are_unreachable() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    def slow(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    assert isinstance(_charge(refuse).failure(), PaymentGatewayUnreachable)
    assert isinstance(_charge(slow).failure(), PaymentGatewayUnreachable)


def test_rejected_credentials_are_unreachable_not_declined() -> None:
    for status in (401, 403):
        result = _charge(
            lambda request, s=status: httpx.Response(
                s,
                json={
                    "error": {
                        "type": "invalid_request_error",
                        "message": "Invalid API Key provided: sk_test_***",
                    }
                },
            )
        )
        assert isinstance(result.failure(), PaymentGatewayUnreachable)

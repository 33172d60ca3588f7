from __future__ import annotations

from typing import Any, Sequence

import structlog
from fastapi import FastAPI, Header, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from returns.result import Success

from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    ConflictError,
    EmptyCart,
    InvalidCartState,
    NotFoundError,
    OrderPersistenceFailed,
    PaymentDeclined,
    TransientError,
    ValidationError,
)
from storefront_checkout.core.domain.model.money import Money
from storefront_checkout.core.ports.inbound.cart import (
    AddItemCommand,
    CartUseCase,
    CartView,
    UpdateItemCommand,
)
from storefront_checkout.core.ports.inbound.get_order import (
    GetOrderQuery,
    GetOrderUseCase,
)
from storefront_checkout.core.ports.inbound.list_orders import (
    ListOrdersQuery,
    ListOrdersUseCase,
)
from storefront_checkout.core.ports.inbound.pay_order import (
    PayOrderCommand,
    PayOrderUseCase,
)
from storefront_checkout.core.ports.inbound.place_order import (
    PlaceOrderCommand,
    PlaceOrderUseCase,
)
from storefront_checkout.utils.logging import add_context, clear_context

logger = structlog.get_logger(__name__)

# ---- HTTP DTOs (adapter layer) ---------------------------------------------


class AddItemRequest(BaseModel):
    cart_id: str = Field(min_length=1, max_length=64, examples=["3f2a9c1e"])
    product_id: int = Field(gt=0, examples=[1])
    quantity: int = Field(1, gt=0, examples=[2])


class UpdateItemRequest(BaseModel):
    quantity: int = Field(gt=0, examples=[3])


class PlaceOrderRequest(BaseModel):
    cart_id: str = Field(min_length=1, max_length=64, examples=["3f2a9c1e"])
    shipping_id: int = Field(gt=0, examples=[1])
    tax_id: int = Field(gt=0, examples=[1])


class PayOrderRequest(BaseModel):
    payment_token: str = Field(min_length=1, examples=["tok_visa"])
    email: str | None = Field(None, min_length=3, examples=["jane@example.com"])


class CartIdResponse(BaseModel):
    cart_id: str


class CartLineOut(BaseModel):
    product_id: int
    name: str
    quantity: int
    price: str
    discounted_price: str | None
    subtotal: str


class CartResponse(BaseModel):
    cart_id: str
    items: list[CartLineOut]
    total: str
    currency: str


class OrderReceiptResponse(BaseModel):
    order_id: str
    total: str
    currency: str
    status: str


class OrderLineOut(BaseModel):
    product_id: int
    product_name: str
    unit_cost: str
    quantity: int
    subtotal: str


class OrderDetailsResponse(BaseModel):
    order_id: str
    customer_id: str
    status: str
    subtotal: str
    shipping_cost: str
    tax: str
    total: str
    currency: str
    created_at: str
    charge_id: str | None
    lines: list[OrderLineOut]


class OrderSummaryOut(BaseModel):
    order_id: str
    status: str
    total: str
    currency: str
    created_at: str


class OrderListResponse(BaseModel):
    offset: int
    limit: int
    items: list[OrderSummaryOut]


class BillingOut(BaseModel):
    payer_email: str
    charge_id: str


class PaymentResponse(BaseModel):
    charge_id: str
    order_id: str
    status: str
    amount_minor: int
    currency: str
    billing: BillingOut
    warnings: list[str]


class ErrorResponse(BaseModel):
    code: str
    category: str
    type: str
    message: str
    details: Any = None


def _map_error_to_http(err: CheckoutError) -> tuple[int, ErrorResponse]:
    body = ErrorResponse(
        code=err.code,
        category=err.category,
        type=type(err).__name__,
        message=err.message,
    )

    if isinstance(err, (EmptyCart, InvalidCartState)):
        return 422, body

    if isinstance(err, ValidationError):
        return 400, body

    if isinstance(err, NotFoundError):
        return 404, body

    if isinstance(err, ConflictError):
        return 409, body

    if isinstance(err, TransientError):
        return 503, body

    if isinstance(err, PaymentDeclined):
        body.details = {"reason": err.reason}
        return 402, body

    if isinstance(err, OrderPersistenceFailed):
        return 500, body

    return 500, body


def mask_email(email: str) -> str:
    local, _, domain = email.partition("@")
    if not domain:
        return "***"
    return f"{local[:1]}***@{domain}"


def _amount(money: Money) -> str:
    return str(money.amount)


def _cart_response(view: CartView) -> CartResponse:
    return CartResponse(
        cart_id=view.cart_id.value,
        items=[
            CartLineOut(
                product_id=ln.product_id,
                name=ln.name,
                quantity=ln.quantity,
                price=_amount(ln.price),
                discounted_price=(
                    _amount(ln.discounted_price) if ln.discounted_price else None
                ),
                subtotal=_amount(ln.subtotal),
            )
            for ln in view.lines
        ],
        total=_amount(view.total),
        currency=view.total.currency,
    )


def _warning_codes(warnings: Sequence[CheckoutError]) -> list[str]:
    return [w.code for w in warnings]


def create_app(
    cart_uc: CartUseCase,
    place_order_uc: PlaceOrderUseCase,
    pay_order_uc: PayOrderUseCase,
    get_order_uc: GetOrderUseCase,
    list_orders_uc: ListOrdersUseCase,
    lifespan: Any = None,
) -> FastAPI:
    app = FastAPI(title="storefront_checkout", lifespan=lifespan)

    # --- request log context ---------------------------------------------------

    @app.middleware("http")
    async def request_log_context(request: Request, call_next: Any) -> Any:
        clear_context()
        add_context(method=request.method, path=request.url.path)
        try:
            return await call_next(request)
        finally:
            clear_context()

    # --- exception handlers ----------------------------------------------------

    @app.exception_handler(CheckoutError)
    async def handle_domain_error(_: Request, exc: CheckoutError) -> JSONResponse:
        status, body = _map_error_to_http(exc)
        return JSONResponse(status_code=status, content=body.model_dump())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        body = ErrorResponse(
            code=ValidationError.code,
            category=ValidationError.category,
            type="RequestValidationError",
            message="invalid request",
            details=jsonable_encoder(exc.errors()),
        )
        return JSONResponse(status_code=400, content=body.model_dump())

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", path=request.url.path, exc_info=exc)
        body = ErrorResponse(
            code="INTERNAL_ERROR",
            category="permanent",
            type=type(exc).__name__,
            message="internal server error",
        )
        return JSONResponse(status_code=500, content=body.model_dump())

    # --- routes --------------------------------------------------------------

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    # cart

    @app.get("/shoppingcart/generateUniqueId", response_model=CartIdResponse)
    def generate_cart_id() -> Any:
        return CartIdResponse(cart_id=cart_uc.generate_cart_id().value)

    @app.post(
        "/shoppingcart/add",
        response_model=CartResponse,
        responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    )
    async def add_item(req: AddItemRequest) -> Any:
        result = await cart_uc.add_item(
            AddItemCommand(
                cart_id=req.cart_id, product_id=req.product_id, quantity=req.quantity
            )
        )
        if isinstance(result, Success):
            return _cart_response(result.unwrap())
        raise result.failure()

    @app.get("/shoppingcart/{cart_id}", response_model=CartResponse)
    async def get_cart(cart_id: str) -> Any:
        result = await cart_uc.get_cart(cart_id)
        if isinstance(result, Success):
            return _cart_response(result.unwrap())
        raise result.failure()

    @app.put(
        "/shoppingcart/{cart_id}/items/{product_id}",
        response_model=CartResponse,
        responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    )
    async def update_item(cart_id: str, product_id: int, req: UpdateItemRequest) -> Any:
        result = await cart_uc.update_item(
            UpdateItemCommand(cart_id=cart_id, product_id=product_id, quantity=req.quantity)
        )
        if isinstance(result, Success):
            return _cart_response(result.unwrap())
        raise result.failure()

    @app.delete(
        "/shoppingcart/{cart_id}/items/{product_id}",
        response_model=CartResponse,
        responses={404: {"model": ErrorResponse}},
    )
    async def remove_item(cart_id: str, product_id: int) -> Any:
        result = await cart_uc.remove_item(cart_id, product_id)
        if isinstance(result, Success):
            return _cart_response(result.unwrap())
        raise result.failure()

    @app.delete("/shoppingcart/{cart_id}", response_model=CartResponse)
    async def empty_cart(cart_id: str) -> Any:
        result = await cart_uc.empty_cart(cart_id)
        if isinstance(result, Success):
            return _cart_response(result.unwrap())
        raise result.failure()

    # orders

    @app.post(
        "/orders",
        response_model=OrderReceiptResponse,
        status_code=201,
        responses={
            400: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
            422: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        },
    )
    async def place_order(
        req: PlaceOrderRequest,
        response: Response,
        customer_id: str = Header(..., alias="X-Customer-Id", min_length=1),
    ) -> Any:
        add_context(customer_id=customer_id, cart_id=req.cart_id)
        result = await place_order_uc.place_order(
            PlaceOrderCommand(
                customer_id=customer_id,
                cart_id=req.cart_id,
                shipping_id=req.shipping_id,
                tax_id=req.tax_id,
            )
        )

        if isinstance(result, Success):
            receipt = result.unwrap()
            order_id = str(receipt.order_id.value)
            response.headers["Location"] = f"/orders/{order_id}"
            return OrderReceiptResponse(
                order_id=order_id,
                total=_amount(receipt.total),
                currency=receipt.total.currency,
                status=receipt.status.value,
            )

        raise result.failure()

    @app.get(
        "/orders",
        response_model=OrderListResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def list_orders(
        offset: int = Query(0, ge=0),
        limit: int = Query(50, ge=1, le=100),
        customer_id: str = Header(..., alias="X-Customer-Id", min_length=1),
    ) -> Any:
        add_context(customer_id=customer_id)
        result = await list_orders_uc.list_orders(
            ListOrdersQuery(customer_id=customer_id, offset=offset, limit=limit)
        )

        if isinstance(result, Success):
            return OrderListResponse(
                offset=offset,
                limit=limit,
                items=[
                    OrderSummaryOut(
                        order_id=str(v.order_id.value),
                        status=v.status.value,
                        total=_amount(v.total),
                        currency=v.total.currency,
                        created_at=v.created_at.isoformat(),
                    )
                    for v in result.unwrap()
                ],
            )

        raise result.failure()

    @app.get(
        "/orders/{order_id}",
        response_model=OrderDetailsResponse,
        responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    )
    async def get_order(
        order_id: str,
        customer_id: str = Header(..., alias="X-Customer-Id", min_length=1),
    ) -> Any:
        add_context(customer_id=customer_id, order_id=order_id)
        result = await get_order_uc.get_order(
            GetOrderQuery(order_id=order_id, customer_id=customer_id)
        )

        if isinstance(result, Success):
            view = result.unwrap()
            return OrderDetailsResponse(
                order_id=str(view.order_id.value),
                customer_id=view.customer_id.value,
                status=view.status.value,
                subtotal=_amount(view.subtotal),
                shipping_cost=_amount(view.shipping_cost),
                tax=_amount(view.tax_amount),
                total=_amount(view.total),
                currency=view.total.currency,
                created_at=view.created_at.isoformat(),
                charge_id=view.charge_id,
                lines=[
                    OrderLineOut(
                        product_id=ln.product_id,
                        product_name=ln.product_name,
                        unit_cost=_amount(ln.unit_cost),
                        quantity=ln.quantity,
                        subtotal=_amount(ln.subtotal),
                    )
                    for ln in view.lines
                ],
            )

        raise result.failure()

    @app.post(
        "/orders/{order_id}/payment",
        response_model=PaymentResponse,
        responses={
            400: {"model": ErrorResponse},
            402: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        },
    )
    async def pay_order(
        order_id: str,
        req: PayOrderRequest,
        customer_id: str = Header(..., alias="X-Customer-Id", min_length=1),
    ) -> Any:
        add_context(customer_id=customer_id, order_id=order_id)
        result = await pay_order_uc.pay_order(
            PayOrderCommand(
                order_id=order_id,
                customer_id=customer_id,
                payment_token=req.payment_token,
                email=req.email,
            )
        )

        if isinstance(result, Success):
            outcome = result.unwrap()
            charge = outcome.charge
            return PaymentResponse(
                charge_id=charge.charge_id,
                order_id=str(outcome.order.order_id.value),
                status=outcome.order.status.value,
                amount_minor=charge.amount_minor,
                currency=charge.currency,
                billing=BillingOut(
                    payer_email=mask_email(outcome.payer_email),
                    charge_id=charge.charge_id,
                ),
                warnings=_warning_codes(outcome.warnings),
            )

        raise result.failure()

    return app

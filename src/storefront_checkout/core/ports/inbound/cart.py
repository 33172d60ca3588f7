from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from returns.result import Result

from storefront_checkout.core.domain.model.cart import Cart, CartId
from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.money import Money


@dataclass(frozen=True)
class AddItemCommand:
    cart_id: str
    product_id: int
    quantity: int = 1


@dataclass(frozen=True)
class UpdateItemCommand:
    cart_id: str
    product_id: int
    quantity: int


@dataclass(frozen=True)
class CartLineView:
    product_id: int
    name: str
    quantity: int
    price: Money
    discounted_price: Money | None
    subtotal: Money


@dataclass(frozen=True)
class CartView:
    cart_id: CartId
    lines: Sequence[CartLineView]
    total: Money


class CartUseCase(Protocol):
    def generate_cart_id(self) -> CartId: ...

    async def add_item(self, command: AddItemCommand) -> Result[CartView, CheckoutError]: ...

    async def get_cart(self, cart_id: str) -> Result[CartView, CheckoutError]: ...

    async def update_item(
        self, command: UpdateItemCommand
    ) -> Result[CartView, CheckoutError]: ...

    async def remove_item(
        self, cart_id: str, product_id: int
    ) -> Result[CartView, CheckoutError]: ...

    async def empty_cart(self, cart_id: str) -> Result[CartView, CheckoutError]: ...


class CartStoreUseCase(Protocol):
    async def load_validated_cart(self, cart_id: CartId) -> Result[Cart, CheckoutError]: ...

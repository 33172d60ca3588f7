from __future__ import annotations

from dataclasses import dataclass, replace

from returns.result import Failure, Result, Success

from storefront_checkout.adapters.outbound.in_memory_state import InMemoryState
from storefront_checkout.core.domain.model.cart import Cart, CartId
from storefront_checkout.core.domain.model.errors import (
    CartAlreadyCheckedOut,
    CartModified,
    CartNotFound,
    CheckoutError,
)
from storefront_checkout.core.ports.outbound.carts import CartRepository


@dataclass
class InMemoryCartRepository(CartRepository):
    state: InMemoryState

    async def get(self, cart_id: CartId) -> Result[Cart, CheckoutError]:
        cart = self.state.carts.get(cart_id.value)
        if cart is None:
            return Failure(CartNotFound(message="cart not found", cart_id=cart_id.value))
        return Success(cart)

    async def save(self, cart: Cart) -> Result[Cart, CheckoutError]:
        key = cart.cart_id.value
        if key in self.state.consumed_carts:
            return Failure(
                CartAlreadyCheckedOut(
                    message="cart was already checked out", cart_id=key
                )
            )
        stored = self.state.carts.get(key)
        current = stored.version if stored is not None else 0
        if current != cart.version:
            return Failure(
                CartModified(message="cart changed since it was read", cart_id=key)
            )
        saved = replace(cart, version=current + 1)
        self.state.carts[key] = saved
        return Success(saved)

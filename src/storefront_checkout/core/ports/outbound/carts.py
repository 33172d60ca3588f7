from __future__ import annotations

from typing import Protocol

from returns.result import Result

from storefront_checkout.core.domain.model.cart import Cart, CartId
from storefront_checkout.core.domain.model.errors import CheckoutError


class CartRepository(Protocol):
    async def get(self, cart_id: CartId) -> Result[Cart, CheckoutError]:
        """Failure(CartNotFound) when the cart does not exist (or was consumed)."""
        ...

    async def save(self, cart: Cart) -> Result[Cart, CheckoutError]:
        """
        Compare-and-set on ``cart.version``; returns the stored cart with the
        bumped version.

        Failure(CartModified) when the stored version moved on since the cart
        was read, Failure(CartAlreadyCheckedOut) when the id was consumed by a
        checkout.
        """
        ...

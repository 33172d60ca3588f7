from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.cart import Cart, CartId, CartItem
from storefront_checkout.core.domain.model.errors import (
    CartItemNotFound,
    CartModified,
    CartNotFound,
    CheckoutError,
    EmptyCart,
    ValidationError,
)
from storefront_checkout.core.domain.model.money import fold_money
from storefront_checkout.core.domain.service.pricing import line_subtotal
from storefront_checkout.core.ports.inbound.cart import (
    AddItemCommand,
    CartLineView,
    CartStoreUseCase,
    CartUseCase,
    CartView,
    UpdateItemCommand,
)
from storefront_checkout.core.ports.outbound.carts import CartRepository
from storefront_checkout.core.ports.outbound.catalog import CatalogRepository

_SAVE_ATTEMPTS = 3


@dataclass(frozen=True)
class CartStoreAccessor(CartStoreUseCase):
    carts: CartRepository

    async def load_validated_cart(self, cart_id: CartId) -> Result[Cart, CheckoutError]:
        got = await self.carts.get(cart_id)
        if isinstance(got, Failure):
            return got
        cart = got.unwrap()
        if cart.is_empty():
            return Failure(EmptyCart(message="cart has no items", cart_id=cart_id.value))
        return Success(cart)


@dataclass(frozen=True)
class CartDeps:
    carts: CartRepository
    catalog: CatalogRepository
    currency: str = "USD"


@dataclass(frozen=True)
class CartService(CartUseCase):
    deps: CartDeps

    def generate_cart_id(self) -> CartId:
        return CartId.new()

    async def add_item(self, command: AddItemCommand) -> Result[CartView, CheckoutError]:
        v = _validate_cart_id(command.cart_id)
        if isinstance(v, Failure):
            return v
        if command.quantity <= 0:
            return Failure(ValidationError("quantity must be > 0"))

        product_got = await self.deps.catalog.get_product(command.product_id)
        if isinstance(product_got, Failure):
            return product_got
        product = product_got.unwrap()

        item = CartItem(
            product_id=product.product_id,
            name=product.name,
            quantity=command.quantity,
            unit_price=product.price,
            discounted_price=product.discounted_price,
        )
        return await self._mutate(v.unwrap(), lambda cart: Success(cart.with_item(item)))

    async def get_cart(self, cart_id: str) -> Result[CartView, CheckoutError]:
        v = _validate_cart_id(cart_id)
        if isinstance(v, Failure):
            return v
        got = await self.deps.carts.get(v.unwrap())
        if isinstance(got, Failure) and isinstance(got.failure(), CartNotFound):
            return Success(self._to_view(Cart(v.unwrap())))
        return got.map(self._to_view)

    async def update_item(
        self, command: UpdateItemCommand
    ) -> Result[CartView, CheckoutError]:
        if command.quantity <= 0:
            return Failure(ValidationError("quantity must be > 0"))
        v = _validate_cart_id(command.cart_id)
        if isinstance(v, Failure):
            return v

        def change(cart: Cart) -> Result[Cart, CheckoutError]:
            if cart.find(command.product_id) is None:
                return Failure(_item_not_found(command.cart_id, command.product_id))
            return Success(cart.with_quantity(command.product_id, command.quantity))

        return await self._mutate(
            v.unwrap(),
            change,
            missing=_item_not_found(command.cart_id, command.product_id),
        )

    async def remove_item(
        self, cart_id: str, product_id: int
    ) -> Result[CartView, CheckoutError]:
        v = _validate_cart_id(cart_id)
        if isinstance(v, Failure):
            return v

        def change(cart: Cart) -> Result[Cart, CheckoutError]:
            if cart.find(product_id) is None:
                return Failure(_item_not_found(cart_id, product_id))
            return Success(cart.without_item(product_id))

        return await self._mutate(
            v.unwrap(), change, missing=_item_not_found(cart_id, product_id)
        )

    async def empty_cart(self, cart_id: str) -> Result[CartView, CheckoutError]:
        v = _validate_cart_id(cart_id)
        if isinstance(v, Failure):
            return v
        missing = CartNotFound(message="cart not found", cart_id=v.unwrap().value)
        emptied = await self._mutate(
            v.unwrap(), lambda cart: Success(cart.emptied()), missing=missing
        )
        if isinstance(emptied, Failure) and emptied.failure() is missing:
            return Success(self._to_view(Cart(v.unwrap())))
        return emptied

    # ---- helpers -----------------------------------------------------------

    async def _mutate(
        self,
        cart_id: CartId,
        change: Callable[[Cart], Result[Cart, CheckoutError]],
        missing: CheckoutError | None = None,
    ) -> Result[CartView, CheckoutError]:
        """
        read -> change -> compare-and-set save, re-read on CartModified.

        ``missing`` is returned when no cart is stored; without it a new cart
        is started.
        """
        saved: Result[Cart, CheckoutError] = Failure(
            CartModified(message="cart kept changing", cart_id=cart_id.value)
        )
        for _ in range(_SAVE_ATTEMPTS):
            got = await self.deps.carts.get(cart_id)
            if isinstance(got, Failure):
                if not isinstance(got.failure(), CartNotFound):
                    return got
                if missing is not None:
                    return Failure(missing)
                got = Success(Cart(cart_id))

            changed = change(got.unwrap())
            if isinstance(changed, Failure):
                return changed

            saved = await self.deps.carts.save(changed.unwrap())
            if isinstance(saved, Failure) and isinstance(saved.failure(), CartModified):
                continue
            break
        return saved.map(self._to_view)

    def _to_view(self, cart: Cart) -> CartView:
        lines = tuple(
            CartLineView(
                product_id=item.product_id,
                name=item.name,
                quantity=item.quantity,
                price=item.unit_price,
                discounted_price=item.discounted_price,
                subtotal=line_subtotal(item),
            )
            for item in cart.items
        )
        return CartView(
            cart_id=cart.cart_id,
            lines=lines,
            total=fold_money((ln.subtotal for ln in lines), currency=self.deps.currency),
        )


def _validate_cart_id(raw: str) -> Result[CartId, CheckoutError]:
    cart_id = raw.strip()
    if not cart_id:
        return Failure(ValidationError("cart_id is required"))
    if len(cart_id) > 64:
        return Failure(ValidationError("cart_id must be at most 64 characters"))
    return Success(CartId(cart_id))


def _item_not_found(cart_id: str, product_id: int) -> CartItemNotFound:
    return CartItemNotFound(
        message="item not in cart", cart_id=cart_id, product_id=product_id
    )

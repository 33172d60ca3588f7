from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Tuple
from uuid import uuid4

from storefront_checkout.core.domain.model.money import Money


@dataclass(frozen=True)
class CartId:
    value: str

    @staticmethod
    def new() -> "CartId":
        return CartId(uuid4().hex)


@dataclass(frozen=True)
class CartItem:
    product_id: int
    name: str
    quantity: int
    unit_price: Money
    discounted_price: Money | None = None


@dataclass(frozen=True)
class Cart:
    """``version`` counts stored writes; 0 means never saved. A write or a
    checkout succeeds only against the version it was built from."""

    cart_id: CartId
    items: Tuple[CartItem, ...] = ()
    version: int = 0

    def is_empty(self) -> bool:
        return not self.items

    def find(self, product_id: int) -> CartItem | None:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def with_item(self, item: CartItem) -> "Cart":
        existing = self.find(item.product_id)
        if existing is None:
            return replace(self, items=self.items + (item,))
        merged = replace(item, quantity=existing.quantity + item.quantity)
        return self._replace_item(merged)

    def with_quantity(self, product_id: int, quantity: int) -> "Cart":
        existing = self.find(product_id)
        if existing is None:
            return self
        return self._replace_item(replace(existing, quantity=quantity))

    def without_item(self, product_id: int) -> "Cart":
        return replace(
            self, items=tuple(i for i in self.items if i.product_id != product_id)
        )

    def emptied(self) -> "Cart":
        return replace(self, items=())

    def _replace_item(self, item: CartItem) -> "Cart":
        return replace(
            self,
            items=tuple(
                item if i.product_id == item.product_id else i for i in self.items
            ),
        )

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from storefront_checkout.core.domain.model.money import Money


@dataclass(frozen=True)
class Product:
    product_id: int
    name: str
    price: Money
    discounted_price: Money | None = None
    stock: int | None = None  # None: stock is not tracked


@dataclass(frozen=True)
class ShippingOption:
    shipping_id: int
    label: str
    cost: Money


@dataclass(frozen=True)
class TaxOption:
    tax_id: int
    label: str
    percentage: Decimal
    applies_to_shipping: bool = False

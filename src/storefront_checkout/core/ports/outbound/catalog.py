from __future__ import annotations

from typing import Protocol

from returns.result import Result

from storefront_checkout.core.domain.model.catalog import (
    Product,
    ShippingOption,
    TaxOption,
)
from storefront_checkout.core.domain.model.errors import CheckoutError


class CatalogRepository(Protocol):
    async def get_product(self, product_id: int) -> Result[Product, CheckoutError]: ...

    async def get_shipping(
        self, shipping_id: int
    ) -> Result[ShippingOption, CheckoutError]: ...

    async def get_tax(self, tax_id: int) -> Result[TaxOption, CheckoutError]: ...

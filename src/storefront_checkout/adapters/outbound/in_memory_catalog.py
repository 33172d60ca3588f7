from __future__ import annotations

from dataclasses import dataclass

from returns.result import Failure, Result, Success

from storefront_checkout.adapters.outbound.in_memory_state import InMemoryState
from storefront_checkout.core.domain.model.catalog import (
    Product,
    ShippingOption,
    TaxOption,
)
from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    CustomerNotFound,
    ProductNotFound,
    ShippingNotFound,
    TaxNotFound,
)
from storefront_checkout.core.domain.model.order import CustomerId
from storefront_checkout.core.ports.outbound.catalog import CatalogRepository
from storefront_checkout.core.ports.outbound.customers import CustomerDirectory


@dataclass
class InMemoryCatalog(CatalogRepository):
    state: InMemoryState

    async def get_product(self, product_id: int) -> Result[Product, CheckoutError]:
        product = self.state.products.get(product_id)
        if product is None:
            return Failure(
                ProductNotFound(
                    message=f"product {product_id} does not exist", product_id=product_id
                )
            )
        return Success(product)

    async def get_shipping(
        self, shipping_id: int
    ) -> Result[ShippingOption, CheckoutError]:
        option = self.state.shipping.get(shipping_id)
        if option is None:
            return Failure(
                ShippingNotFound(
                    message=f"shipping option {shipping_id} does not exist",
                    shipping_id=shipping_id,
                )
            )
        return Success(option)

    async def get_tax(self, tax_id: int) -> Result[TaxOption, CheckoutError]:
        option = self.state.taxes.get(tax_id)
        if option is None:
            return Failure(
                TaxNotFound(message=f"tax option {tax_id} does not exist", tax_id=tax_id)
            )
        return Success(option)


@dataclass
class InMemoryCustomerDirectory(CustomerDirectory):
    state: InMemoryState

    async def get_email(self, customer_id: CustomerId) -> Result[str, CheckoutError]:
        email = self.state.customer_emails.get(customer_id.value)
        if email is None:
            return Failure(
                CustomerNotFound(
                    message="customer has no email on file", customer_id=customer_id.value
                )
            )
        return Success(email)

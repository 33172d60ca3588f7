from __future__ import annotations

from typing import Protocol

from returns.result import Result

from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.order import CustomerId


class CustomerDirectory(Protocol):
    async def get_email(self, customer_id: CustomerId) -> Result[str, CheckoutError]: ...

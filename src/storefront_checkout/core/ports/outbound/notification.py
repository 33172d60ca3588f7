from __future__ import annotations

from typing import Any, Mapping, Protocol

from returns.result import Result

from storefront_checkout.core.domain.model.errors import CheckoutError


class NotificationTransport(Protocol):
    async def send(
        self, to: str, template: str, context: Mapping[str, Any]
    ) -> Result[None, CheckoutError]: ...

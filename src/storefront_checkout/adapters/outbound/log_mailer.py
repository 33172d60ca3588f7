from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import structlog
from returns.result import Result, Success

from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.ports.outbound.notification import NotificationTransport

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LoggingMailer(NotificationTransport):
    """Development transport: writes the message to the log instead of sending it."""

    sender: str

    async def send(
        self, to: str, template: str, context: Mapping[str, Any]
    ) -> Result[None, CheckoutError]:
        logger.info(
            "mail_sent",
            sender=self.sender,
            to=to,
            template=template,
            order_id=context.get("order_id"),
            total=context.get("total"),
        )
        return Success(None)

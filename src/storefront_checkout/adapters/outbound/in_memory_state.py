from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Set

from storefront_checkout.core.domain.model.cart import Cart
from storefront_checkout.core.domain.model.catalog import (
    Product,
    ShippingOption,
    TaxOption,
)
from storefront_checkout.core.domain.model.order import Charge, Order
from storefront_checkout.core.ports.outbound.settlements import SettlementClaim


@dataclass
class InMemoryState:
    """Shared tables for the in-memory adapters (keyed by string/int ids)."""

    products: Dict[int, Product] = field(default_factory=dict)
    shipping: Dict[int, ShippingOption] = field(default_factory=dict)
    taxes: Dict[int, TaxOption] = field(default_factory=dict)
    customer_emails: Dict[str, str] = field(default_factory=dict)
    carts: Dict[str, Cart] = field(default_factory=dict)
    consumed_carts: Set[str] = field(default_factory=set)
    orders: Dict[str, Order] = field(default_factory=dict)
    charges: Dict[str, Charge] = field(default_factory=dict)  # order_id -> charge
    claims: Dict[str, SettlementClaim] = field(default_factory=dict)

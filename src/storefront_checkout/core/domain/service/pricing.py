"""Pricing engine.

Pure functions: cart lines + shipping + tax selection -> priced breakdown.
Tax is charged on the item subtotal only, unless the tax option explicitly
applies to shipping as well.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from returns.pipeline import flow
from returns.pointfree import bind, map_
from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.cart import CartItem
from storefront_checkout.core.domain.model.catalog import ShippingOption, TaxOption
from storefront_checkout.core.domain.model.errors import CheckoutError, InvalidCartState
from storefront_checkout.core.domain.model.money import Money, fold_money


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    name: str
    quantity: int
    unit_cost: Money
    subtotal: Money


@dataclass(frozen=True)
class PriceBreakdown:
    lines: Tuple[PricedLine, ...]
    subtotal: Money
    shipping: Money
    tax: Money
    total: Money


def effective_unit_price(item: CartItem) -> Money:
    """Discounted price when present, positive, and below the unit price."""
    discount = item.discounted_price
    if discount is None or discount.amount <= 0:
        return item.unit_price
    if discount < item.unit_price:
        return discount
    return item.unit_price


def line_subtotal(item: CartItem) -> Money:
    return effective_unit_price(item) * item.quantity


def price_cart(
    items: Sequence[CartItem],
    shipping: ShippingOption,
    tax: TaxOption,
) -> Result[PriceBreakdown, CheckoutError]:
    return flow(
        tuple(items),
        _validate_quantities,
        map_(_price_lines),
        bind(lambda lines: _totals(lines, shipping, tax)),
    )


def _validate_quantities(
    items: Tuple[CartItem, ...],
) -> Result[Tuple[CartItem, ...], CheckoutError]:
    for i, item in enumerate(items):
        if item.quantity <= 0:
            return Failure(
                InvalidCartState(
                    f"items[{i}].quantity must be > 0 (product {item.product_id})"
                )
            )
    return Success(items)


def _price_lines(items: Tuple[CartItem, ...]) -> Tuple[PricedLine, ...]:
    return tuple(
        PricedLine(
            product_id=item.product_id,
            name=item.name,
            quantity=item.quantity,
            unit_cost=effective_unit_price(item),
            subtotal=line_subtotal(item),
        )
        for item in items
    )


def _totals(
    lines: Tuple[PricedLine, ...],
    shipping: ShippingOption,
    tax: TaxOption,
) -> Result[PriceBreakdown, CheckoutError]:
    currency = shipping.cost.currency
    try:
        subtotal = fold_money((ln.subtotal for ln in lines), currency=currency)
        taxable = subtotal + shipping.cost if tax.applies_to_shipping else subtotal
        tax_amount = taxable.percent(tax.percentage)
        total = subtotal + shipping.cost + tax_amount
    except ValueError as e:
        return Failure(InvalidCartState(str(e)))
    return Success(
        PriceBreakdown(
            lines=lines,
            subtotal=subtotal,
            shipping=shipping.cost,
            tax=tax_amount,
            total=total,
        )
    )

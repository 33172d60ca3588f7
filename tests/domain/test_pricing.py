from __future__ import annotations

from decimal import Decimal

from returns.result import Failure, Success

from storefront_checkout.core.domain.model.cart import CartItem
from storefront_checkout.core.domain.model.catalog import ShippingOption, TaxOption
from storefront_checkout.core.domain.model.errors import InvalidCartState
from storefront_checkout.core.domain.model.money import Money
from storefront_checkout.core.domain.service.pricing import (
    effective_unit_price,
    line_subtotal,
    price_cart,
)

STANDARD = ShippingOption(1, "Standard", Money.of("3.00"))
SALES_TAX = TaxOption(1, "Sales tax", Decimal("8.333"))


def _item(price: str, discounted: str | None = None, quantity: int = 1) -> CartItem:
    return CartItem(
        product_id=1,
        name="thing",
        quantity=quantity,
        unit_price=Money.of(price),
        discounted_price=Money.of(discounted) if discounted is not None else None,
    )


def test_discount_used_when_lower_than_price() -> None:
    assert effective_unit_price(_item("5.00", "4.00")) == Money.of("4.00")


def test_zero_discount_is_ignored() -> None:
    assert effective_unit_price(_item("5.00", "0")) == Money.of("5.00")


def test_negative_discount_is_ignored() -> None:
    assert effective_unit_price(_item("5.00", "-1.00")) == Money.of("5.00")
    assert line_subtotal(_item("5.00", "-1.00", quantity=2)) == Money.of("10.00")


def test_discount_not_below_price_is_ignored() -> None:
    assert effective_unit_price(_item("5.00", "6.00")) == Money.of("5.00")
    assert effective_unit_price(_item("5.00", "5.00")) == Money.of("5.00")


def test_line_subtotal_multiplies_effective_price() -> None:
    assert line_subtotal(_item("5.00", "4.00", quantity=3)) == Money.of("12.00")


def test_checkout_scenario_totals() -> None:
    items = [
        CartItem(1, "T-Shirt", 2, Money.of("10.00")),
        CartItem(2, "Coffee Mug", 1, Money.of("5.00"), Money.of("4.00")),
    ]

    result = price_cart(items, STANDARD, SALES_TAX)

    assert isinstance(result, Success)
    priced = result.unwrap()
    assert priced.subtotal == Money.of("24.00")
    assert priced.shipping == Money.of("3.00")
    assert priced.tax == Money.of("2.00")
    assert priced.total == Money.of("29.00")
    assert priced.total.minor_units() == 2900
    assert [ln.unit_cost for ln in priced.lines] == [Money.of("10.00"), Money.of("4.00")]


def test_tax_excludes_shipping_by_default() -> None:
    tax = TaxOption(2, "VAT", Decimal("10"))
    priced = price_cart([_item("10.00")], STANDARD, tax).unwrap()
    assert priced.tax == Money.of("1.00")


def test_tax_includes_shipping_when_option_says_so() -> None:
    tax = TaxOption(3, "VAT", Decimal("10"), applies_to_shipping=True)
    priced = price_cart([_item("10.00")], STANDARD, tax).unwrap()
    assert priced.tax == Money.of("1.30")
    assert priced.total == Money.of("14.30")


def test_tax_rounds_half_up_to_cents() -> None:
    tax = TaxOption(4, "odd", Decimal("12.5"))
    priced = price_cart([_item("0.10")], ShippingOption(2, "free", Money.zero()), tax).unwrap()
    # 0.10 * 12.5% = 0.0125 -> 0.01
    assert priced.tax == Money.of("0.01")


def test_non_positive_quantity_is_invalid_cart_state() -> None:
    result = price_cart([_item("10.00", quantity=0)], STANDARD, SALES_TAX)

    assert isinstance(result, Failure)
    assert isinstance(result.failure(), InvalidCartState)


def test_currency_mismatch_is_invalid_cart_state() -> None:
    euro_shipping = ShippingOption(9, "EU", Money.of("3.00", "EUR"))
    result = price_cart([_item("10.00")], euro_shipping, SALES_TAX)

    assert isinstance(result, Failure)
    assert isinstance(result.failure(), InvalidCartState)

from __future__ import annotations

import asyncio

from storefront_checkout.bootstrap import UseCases
from storefront_checkout.core.domain.model.errors import OrderNotFound, ValidationError
from storefront_checkout.core.domain.model.money import Money
from storefront_checkout.core.domain.model.order import OrderStatus
from storefront_checkout.core.ports.inbound.get_order import GetOrderQuery
from storefront_checkout.core.ports.inbound.list_orders import ListOrdersQuery
from storefront_checkout.core.ports.inbound.pay_order import PayOrderCommand


def test_get_order_shows_breakdown_and_charge(
    usecases: UseCases, place_scenario_order
) -> None:
    async def scenario():
        order_id = await place_scenario_order()
        before = await usecases.get_order.get_order(GetOrderQuery(order_id, "c-1"))
        await usecases.pay_order.pay_order(PayOrderCommand(order_id, "c-1", "tok_visa"))
        after = await usecases.get_order.get_order(GetOrderQuery(order_id, "c-1"))
        return before.unwrap(), after.unwrap()

    before, after = asyncio.run(scenario())

    assert before.status is OrderStatus.CREATED
    assert before.charge_id is None
    assert before.subtotal == Money.of("24.00")
    assert before.shipping_cost == Money.of("3.00")
    assert before.tax_amount == Money.of("2.00")
    assert before.total == Money.of("29.00")
    assert [ln.subtotal for ln in before.lines] == [Money.of("20.00"), Money.of("4.00")]

    assert after.status is OrderStatus.PAID
    assert after.charge_id is not None and after.charge_id.startswith("ch_")


def test_get_order_hides_other_customers_orders(
    usecases: UseCases, place_scenario_order
) -> None:
    async def scenario():
        order_id = await place_scenario_order()
        return await usecases.get_order.get_order(GetOrderQuery(order_id, "c-2"))

    assert isinstance(asyncio.run(scenario()).failure(), OrderNotFound)


def test_get_order_rejects_malformed_id(usecases: UseCases) -> None:
    result = asyncio.run(usecases.get_order.get_order(GetOrderQuery("123", "c-1")))
    assert isinstance(result.failure(), ValidationError)


def test_list_orders_newest_first_and_paged(
    usecases: UseCases, place_scenario_order
) -> None:
    async def scenario():
        ids = [await place_scenario_order(f"cart-{i}") for i in range(3)]
        await place_scenario_order("cart-other", customer_id="c-2")
        page = await usecases.list_orders.list_orders(ListOrdersQuery("c-1", 0, 2))
        rest = await usecases.list_orders.list_orders(ListOrdersQuery("c-1", 2, 2))
        return ids, page.unwrap(), rest.unwrap()

    ids, page, rest = asyncio.run(scenario())

    listed = [str(v.order_id.value) for v in (*page, *rest)]
    assert sorted(listed) == sorted(ids)
    assert len(page) == 2 and len(rest) == 1
    assert page[0].created_at >= page[1].created_at >= rest[0].created_at


def test_list_orders_validates_paging(usecases: UseCases) -> None:
    for query in (
        ListOrdersQuery("c-1", -1, 10),
        ListOrdersQuery("c-1", 0, 0),
        ListOrdersQuery("c-1", 0, 101),
        ListOrdersQuery(" ", 0, 10),
    ):
        result = asyncio.run(usecases.list_orders.list_orders(query))
        assert isinstance(result.failure(), ValidationError)

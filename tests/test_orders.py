import asyncio
import re
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select

from kungfu import Ok

from conftest import err, ok

from storefront import auth as A
from storefront.cart import CartOwner, cart_snapshot
from storefront.db import (
    AdminLogTable,
    DiscountTable,
    OrderTable,
    VariantTable,
)
from storefront.orders import (
    PlaceOrder,
    allocate_order_number,
    create_order,
    format_order_number,
    get_user_order,
    list_user_orders,
    update_order_status,
)

ORDER_NUMBER = re.compile(r"^ORD-\d{8}-\d{4}$")


async def _count(factory, model) -> int:
    async with factory() as session:
        return await session.scalar(select(func.count()).select_from(model)) or 0


# ═══════════════════════════════════════════════════════════════════════════════
# Numbering
# ═══════════════════════════════════════════════════════════════════════════════


def test_format_order_number():
    assert format_order_number("20250301", 7) == "ORD-20250301-0007"


async def test_numbers_are_sequential_per_day(factory):
    day = datetime(2025, 3, 1, 10, 30)
    numbers = []
    for _ in range(3):
        async with factory() as session, session.begin():
            numbers.append(await allocate_order_number(session, day))

    async with factory() as session, session.begin():
        next_day = await allocate_order_number(session, datetime(2025, 3, 2, 0, 5))

    assert numbers == ["ORD-20250301-0001", "ORD-20250301-0002", "ORD-20250301-0003"]
    assert next_day == "ORD-20250302-0001"


async def test_concurrent_allocations_never_collide(factory):
    day = datetime(2025, 3, 1, 12, 0)

    async def allocate() -> str:
        async with factory() as session, session.begin():
            return await allocate_order_number(session, day)

    numbers = await asyncio.gather(*(allocate() for _ in range(8)))
    assert len(set(numbers)) == 8
    assert sorted(numbers)[-1] == "ORD-20250301-0008"


# ═══════════════════════════════════════════════════════════════════════════════
# Creation
# ═══════════════════════════════════════════════════════════════════════════════


async def test_order_uses_stored_prices_and_discount(place_order, seed, factory):
    await seed.discount("SAVE10")
    placed = await place_order(quantity=2, discount_code="save10")
    order = placed.order

    assert ORDER_NUMBER.match(order.order_number)
    assert order.status == "pending"
    assert order.payment_status == "pending"
    assert order.subtotal == 59998
    assert order.discount == 6000
    assert order.discount_code == "SAVE10"
    assert order.tax == 8100
    assert order.shipping == 0
    assert order.total == 62098
    assert order.address.city == "Cape Town"

    [item] = order.items
    assert item.quantity == 2
    assert item.unit_price == 29999
    assert item.subtotal == 59998
    assert item.details["sku"] == placed.variant.sku

    async with factory() as session:
        cart = await cart_snapshot(session, CartOwner(user_id=placed.user.id))
        variant = await session.get(VariantTable, placed.variant.id)
        discount = await session.scalar(select(DiscountTable).where(DiscountTable.code == "SAVE10"))

    assert cart.lines == ()
    # Stock moves only when the payment completes.
    assert variant is not None and variant.stock == 10
    assert discount is not None and discount.used_count == 1


async def test_shipping_cost_is_charged(seed, settings, factory):
    user = await seed.user()
    address = await seed.address(user)
    variant = await seed.variant(price=10000)
    await seed.fill_cart(user, variant, 1)

    order = ok(
        await create_order(
            factory,
            settings,
            A.Customer(user.id),
            PlaceOrder(address.id, shipping_cost=Decimal("99.00")),
        )
    )
    assert order.shipping == 9900
    assert order.total == 10000 + 1500 + 9900


async def test_guests_cannot_order(settings, factory):
    error = err(await create_order(factory, settings, A.Guest("sess-1"), PlaceOrder(1)))
    assert error.code == "UNAUTHENTICATED"
    assert error.status == 401


async def test_address_must_belong_to_the_customer(seed, settings, factory):
    owner = await seed.user()
    other = await seed.user()
    address = await seed.address(owner)
    variant = await seed.variant()
    await seed.fill_cart(other, variant, 1)

    error = err(
        await create_order(factory, settings, A.Customer(other.id), PlaceOrder(address.id))
    )
    assert error.code == "ADDRESS_NOT_FOUND"


async def test_empty_cart_is_rejected(seed, settings, factory):
    user = await seed.user()
    address = await seed.address(user)
    error = err(await create_order(factory, settings, A.Customer(user.id), PlaceOrder(address.id)))
    assert error.code == "CART_EMPTY"


async def test_failed_checkout_writes_nothing(seed, settings, factory):
    user = await seed.user()
    address = await seed.address(user)
    variant = await seed.variant(stock=5)
    await seed.fill_cart(user, variant, 3)
    await seed.discount("SAVE10")

    async with factory() as session, session.begin():
        row = await session.get(VariantTable, variant.id)
        assert row is not None
        row.stock = 1

    error = err(
        await create_order(
            factory,
            settings,
            A.Customer(user.id),
            PlaceOrder(address.id, discount_code="SAVE10"),
        )
    )
    assert error.code == "INSUFFICIENT_STOCK"

    assert await _count(factory, OrderTable) == 0
    async with factory() as session:
        cart = await cart_snapshot(session, CartOwner(user_id=user.id))
        discount = await session.scalar(select(DiscountTable).where(DiscountTable.code == "SAVE10"))
    assert [line.quantity for line in cart.lines] == [3]
    assert discount is not None and discount.used_count == 0


async def test_last_discount_use_goes_to_one_order(seed, settings, factory):
    await seed.discount("LASTONE", usage_limit=1)
    variant = await seed.variant(stock=10)
    shoppers = []
    for _ in range(2):
        user = await seed.user()
        address = await seed.address(user)
        await seed.fill_cart(user, variant, 1)
        shoppers.append((user, address))

    results = await asyncio.gather(
        *(
            create_order(
                factory,
                settings,
                A.Customer(user.id),
                PlaceOrder(address.id, discount_code="LASTONE"),
            )
            for user, address in shoppers
        )
    )

    codes = sorted("ok" if isinstance(r, Ok) else err(r).code for r in results)
    assert codes == ["USAGE_LIMIT_REACHED", "ok"]
    assert await _count(factory, OrderTable) == 1


# ═══════════════════════════════════════════════════════════════════════════════
# Queries & admin
# ═══════════════════════════════════════════════════════════════════════════════


async def test_customers_only_see_their_orders(place_order, seed, factory):
    placed = await place_order()
    stranger = await seed.user()

    async with factory() as session:
        page = await list_user_orders(session, A.Customer(placed.user.id))
        mine = ok(await get_user_order(session, A.Customer(placed.user.id), placed.order.id))
        theirs = err(await get_user_order(session, A.Customer(stranger.id), placed.order.id))
        empty = await list_user_orders(session, A.Customer(stranger.id))

    assert [o.order_number for o in page.items] == [placed.order.order_number]
    assert page.total == 1
    assert len(mine.items) == 1
    assert theirs.status == 403
    assert empty.items == []


async def test_status_change_is_stamped_and_audited(place_order, factory):
    placed = await place_order()
    admin = A.Admin(99)

    async with factory() as session, session.begin():
        shipped = ok(await update_order_status(session, admin, placed.order.id, "shipped"))
        invalid = err(await update_order_status(session, admin, placed.order.id, "lost"))

    assert shipped.status == "shipped"
    assert shipped.shipped_at is not None
    assert invalid.code == "INVALID_STATUS"

    async with factory() as session:
        log = await session.scalar(select(AdminLogTable))
    assert log is not None
    assert log.admin_id == 99
    assert log.action == "update_order_status"
    assert log.details["to"] == "shipped"

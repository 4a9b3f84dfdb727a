import asyncio

from conftest import err, ok

from storefront import auth as A
from storefront.cart import (
    CartOwner,
    add_item,
    cart_snapshot,
    clear_cart,
    find_cart,
    merge_guest_cart,
    remove_item,
    update_item,
    validate_cart,
)
from storefront.db import ProductTable, VariantTable, atomic


def test_owner_of_principal():
    assert ok(CartOwner.of(A.Customer(7))) == CartOwner(user_id=7)
    assert ok(CartOwner.of(A.Guest("abc"))) == CartOwner(session_id="abc")
    minted = ok(CartOwner.of(A.Guest()))
    assert minted.user_id is None and minted.session_id
    assert err(CartOwner.of(A.Admin(1))).code == "NO_CART"


async def test_adding_twice_merges_the_line(seed, factory):
    user = await seed.user()
    variant = await seed.variant(price=29999, stock=10)
    owner = CartOwner(user_id=user.id)

    ok(await atomic(factory, lambda s: add_item(s, owner, variant.id, 1)))
    cart = ok(await atomic(factory, lambda s: add_item(s, owner, variant.id, 2)))

    [line] = cart.lines
    assert line.quantity == 3
    assert line.unit_price == 29999
    assert line.line_total == 89997
    assert cart.subtotal == 89997
    assert cart.item_count == 3


async def test_concurrent_adds_sum_into_one_line(seed, factory):
    user = await seed.user()
    variant = await seed.variant(stock=10)
    owner = CartOwner(user_id=user.id)

    await asyncio.gather(
        *(atomic(factory, lambda s: add_item(s, owner, variant.id, 1)) for _ in range(2))
    )

    async with factory() as session:
        cart = await cart_snapshot(session, owner)
    assert [line.quantity for line in cart.lines] == [2]


async def test_add_past_stock_leaves_cart_unchanged(seed, factory):
    user = await seed.user()
    variant = await seed.variant(stock=3, name="Straight Frontal")
    owner = CartOwner(user_id=user.id)

    ok(await atomic(factory, lambda s: add_item(s, owner, variant.id, 2)))
    error = err(await atomic(factory, lambda s: add_item(s, owner, variant.id, 2)))
    assert error.code == "INSUFFICIENT_STOCK"
    assert error.message == "Insufficient stock for Straight Frontal. Available: 3"

    async with factory() as session:
        cart = await cart_snapshot(session, owner)
    assert [line.quantity for line in cart.lines] == [2]


async def test_add_rejects_bad_input(seed, factory):
    user = await seed.user()
    hidden = await seed.variant(active=False)
    owner = CartOwner(user_id=user.id)

    assert err(await atomic(factory, lambda s: add_item(s, owner, 999, 1))).status == 404
    assert err(await atomic(factory, lambda s: add_item(s, owner, hidden.id, 1))).code == (
        "PRODUCT_UNAVAILABLE"
    )
    assert err(await atomic(factory, lambda s: add_item(s, owner, hidden.id, 0))).code == (
        "INVALID_QUANTITY"
    )


async def test_update_and_remove_lines(seed, factory):
    user = await seed.user()
    stranger = await seed.user()
    first = await seed.variant(stock=5)
    second = await seed.variant(stock=5)
    owner = CartOwner(user_id=user.id)

    ok(await atomic(factory, lambda s: add_item(s, owner, first.id, 1)))
    cart = ok(await atomic(factory, lambda s: add_item(s, owner, second.id, 1)))
    by_variant = {line.variant_id: line.item_id for line in cart.lines}

    cart = ok(await atomic(factory, lambda s: update_item(s, owner, by_variant[first.id], 4)))
    assert {line.variant_id: line.quantity for line in cart.lines} == {first.id: 4, second.id: 1}

    error = err(await atomic(factory, lambda s: update_item(s, owner, by_variant[first.id], 6)))
    assert error.code == "INSUFFICIENT_STOCK"
    assert err(
        await atomic(factory, lambda s: update_item(s, owner, by_variant[first.id], -1))
    ).code == "INVALID_QUANTITY"

    foreign = CartOwner(user_id=stranger.id)
    assert err(
        await atomic(factory, lambda s: remove_item(s, foreign, by_variant[first.id]))
    ).code == "CART_ITEM_NOT_FOUND"

    cart = ok(await atomic(factory, lambda s: update_item(s, owner, by_variant[first.id], 0)))
    assert [line.variant_id for line in cart.lines] == [second.id]

    cart = ok(await atomic(factory, lambda s: remove_item(s, owner, by_variant[second.id])))
    assert cart.lines == ()


async def test_clear_cart(seed, factory):
    user = await seed.user()
    variant = await seed.variant()
    await seed.fill_cart(user, variant, 2)
    owner = CartOwner(user_id=user.id)

    cart = ok(await atomic(factory, lambda s: clear_cart(s, owner)))
    assert cart.lines == ()

    guest = ok(await atomic(factory, lambda s: clear_cart(s, CartOwner(session_id="nobody"))))
    assert guest.cart_id is None


async def test_validation_reports_errors_and_warnings(seed, factory):
    user = await seed.user()
    gone = await seed.variant(stock=5, name="Deep Wave Wig")
    sold_out = await seed.variant(stock=5, name="Water Wave Bundle")
    short = await seed.variant(stock=5, name="Loose Wave Closure")
    fine = await seed.variant(stock=5)
    for variant in (gone, sold_out, short, fine):
        await seed.fill_cart(user, variant, 3)

    async with factory() as session, session.begin():
        product = await session.get(ProductTable, gone.product_id)
        assert product is not None
        product.active = False
        for variant_id, stock in ((sold_out.id, 0), (short.id, 2)):
            row = await session.get(VariantTable, variant_id)
            assert row is not None
            row.stock = stock

    async with factory() as session:
        result = await validate_cart(session, CartOwner(user_id=user.id))

    assert not result.valid
    assert sorted(result.errors) == [
        "Deep Wave Wig is no longer available",
        "Water Wave Bundle is out of stock",
    ]
    assert result.warnings == ["Loose Wave Closure: Only 2 available (requested 3)"]


async def test_merge_moves_guest_lines_capped_at_stock(seed, factory):
    user = await seed.user()
    shared = await seed.variant(stock=4)
    guest_only = await seed.variant(stock=10)
    guest = CartOwner(session_id="guest-123")

    await seed.fill_cart(user, shared, 2)
    ok(await atomic(factory, lambda s: add_item(s, guest, shared.id, 3)))
    ok(await atomic(factory, lambda s: add_item(s, guest, guest_only.id, 1)))

    cart = ok(await atomic(factory, lambda s: merge_guest_cart(s, "guest-123", user.id)))
    assert {line.variant_id: line.quantity for line in cart.lines} == {
        shared.id: 4,
        guest_only.id: 1,
    }

    async with factory() as session:
        assert await find_cart(session, guest) is None


async def test_merge_without_guest_cart_returns_user_cart(seed, factory):
    user = await seed.user()
    variant = await seed.variant()
    await seed.fill_cart(user, variant, 1)

    cart = ok(await atomic(factory, lambda s: merge_guest_cart(s, "missing", user.id)))
    assert [line.quantity for line in cart.lines] == [1]

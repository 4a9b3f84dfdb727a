from datetime import datetime
from decimal import Decimal

from conftest import err, ok

from storefront import auth as A
from storefront.audit import list_admin_logs
from storefront.catalog import (
    ProductDraft,
    ProductPatch,
    VariantDraft,
    VariantPatch,
    create_product,
    create_variant,
    deactivate_product,
    deactivate_variant,
    get_product,
    list_products,
    low_stock,
    slugify,
    update_product,
    update_variant,
    validate_price,
)
from storefront.discounts import (
    DiscountDraft,
    DiscountPatch,
    create_discount,
    deactivate_discount,
    list_discounts,
    update_discount,
    validate_discount,
)

ADMIN = A.Admin(9, "manager")


# ═══════════════════════════════════════════════════════════════════════════════
# Shopper reads
# ═══════════════════════════════════════════════════════════════════════════════


async def test_listing_shows_active_products_only(seed, factory):
    await seed.product("Body Wave Bundle")
    await seed.product("Kinky Curly Wig")
    await seed.product("Retired Closure", active=False)

    async with factory() as session:
        everything = await list_products(session)
        curly = await list_products(session, search="curly")
        paged = await list_products(session, page=2, limit=1)

    assert {p.name for p in everything.items} == {"Body Wave Bundle", "Kinky Curly Wig"}
    assert [p.name for p in curly.items] == ["Kinky Curly Wig"]
    assert paged.total == 2
    assert paged.total_pages == 2
    assert len(paged.items) == 1


async def test_product_detail_hides_inactive_variants(seed, factory):
    product = await seed.product()
    shown = await seed.variant(product=product)
    await seed.variant(product=product, active=False)
    hidden_product = await seed.product(active=False)

    async with factory() as session:
        detail = ok(await get_product(session, product.id))
        admin_view = ok(await get_product(session, product.id, include_inactive=True))
        missing = err(await get_product(session, hidden_product.id))

    assert [v.id for v in detail.variants] == [shown.id]
    assert len(admin_view.variants) == 2
    assert missing.code == "PRODUCT_NOT_FOUND"


# ═══════════════════════════════════════════════════════════════════════════════
# Product & variant admin
# ═══════════════════════════════════════════════════════════════════════════════


def test_slugify():
    assert slugify("  Brazilian Body Wave (18\") ") == "brazilian-body-wave-18"


def test_validate_price():
    assert ok(validate_price(Decimal("299.99"))) == 29999
    assert ok(validate_price(Decimal("0"))) == 0
    assert err(validate_price(Decimal("-1"))).code == "INVALID_PRICE"
    assert err(validate_price(Decimal("1.005"), "Sale price")).message == (
        "Sale price must have at most 2 decimal places"
    )


async def test_product_lifecycle(factory):
    async with factory() as session, session.begin():
        product = ok(
            await create_product(session, ADMIN, ProductDraft("Deep Wave Frontal", category="wigs"))
        )
        duplicate = err(await create_product(session, ADMIN, ProductDraft("deep wave frontal")))
        blank = err(await create_product(session, ADMIN, ProductDraft("  ")))

    assert product.slug == "deep-wave-frontal"
    assert duplicate.code == "SLUG_TAKEN"
    assert blank.status == 400

    async with factory() as session, session.begin():
        renamed = ok(
            await update_product(session, ADMIN, product.id, ProductPatch(name="Deep Wave Wig"))
        )
        ok(await deactivate_product(session, ADMIN, product.id))
        assert err(await deactivate_product(session, ADMIN, 999)).status == 404

    assert renamed.name == "Deep Wave Wig"
    assert renamed.slug == "deep-wave-frontal"

    async with factory() as session:
        assert err(await get_product(session, product.id)).status == 404
        logs = await list_admin_logs(session, admin_id=ADMIN.admin_id)
    assert [entry.action for entry in logs.items] == [
        "delete_product",
        "update_product",
        "create_product",
    ]
    assert logs.items[1].details == {"name": "Deep Wave Wig"}


async def test_variant_lifecycle(seed, factory):
    product = await seed.product()

    async with factory() as session, session.begin():
        variant = ok(
            await create_variant(
                session,
                ADMIN,
                product.id,
                VariantDraft(" BW-18 ", Decimal("1299.00"), stock=4, sale_price=Decimal("999.50")),
            )
        )
        taken = err(
            await create_variant(session, ADMIN, product.id, VariantDraft("BW-18", Decimal("1")))
        )
        no_product = err(
            await create_variant(session, ADMIN, 999, VariantDraft("X-1", Decimal("1")))
        )
        bad_stock = err(
            await create_variant(
                session, ADMIN, product.id, VariantDraft("BW-20", Decimal("1"), stock=-2)
            )
        )

    assert variant.sku == "BW-18"
    assert (variant.price, variant.sale_price, variant.stock) == (129900, 99950, 4)
    assert taken.code == "SKU_TAKEN"
    assert no_product.code == "PRODUCT_NOT_FOUND"
    assert bad_stock.code == "INVALID_STOCK"

    async with factory() as session, session.begin():
        updated = ok(
            await update_variant(
                session, ADMIN, variant.id, VariantPatch(clear_sale_price=True, stock=12)
            )
        )
        bad_price = err(
            await update_variant(session, ADMIN, variant.id, VariantPatch(price=Decimal("-5")))
        )
        ok(await deactivate_variant(session, ADMIN, variant.id))

    assert updated.sale_price is None
    assert updated.stock == 12
    assert bad_price.code == "INVALID_PRICE"

    async with factory() as session:
        detail = ok(await get_product(session, product.id))
    assert detail.variants == ()


async def test_low_stock_report(seed, factory):
    low = await seed.variant(stock=2)
    empty = await seed.variant(stock=0)
    await seed.variant(stock=50)
    await seed.variant(stock=1, active=False)

    async with factory() as session:
        rows = await low_stock(session, 5)

    assert [variant.id for _, variant in rows] == [empty.id, low.id]
    assert rows[0][0].id == empty.product_id


# ═══════════════════════════════════════════════════════════════════════════════
# Discount admin
# ═══════════════════════════════════════════════════════════════════════════════


async def test_create_discount_normalizes_and_validates(factory):
    async with factory() as session, session.begin():
        created = ok(
            await create_discount(
                session,
                ADMIN,
                DiscountDraft(
                    " winter15 ",
                    "percentage",
                    Decimal("15"),
                    min_purchase=Decimal("500.00"),
                    usage_limit=100,
                ),
            )
        )
        duplicate = err(
            await create_discount(session, ADMIN, DiscountDraft("WINTER15", "fixed", Decimal("5")))
        )
        too_big = err(
            await create_discount(session, ADMIN, DiscountDraft("X", "percentage", Decimal("101")))
        )
        bad_type = err(
            await create_discount(session, ADMIN, DiscountDraft("Y", "bogo", Decimal("1")))
        )
        zero_limit = err(
            await create_discount(
                session, ADMIN, DiscountDraft("Z", "fixed", Decimal("1"), usage_limit=0)
            )
        )

    assert created.code == "WINTER15"
    assert created.value == Decimal("15.00")
    assert created.min_purchase == 50000
    assert created.used_count == 0
    assert duplicate.code == "DUPLICATE_CODE"
    assert too_big.message == "Percentage discount cannot exceed 100"
    assert bad_type.code == "INVALID_TYPE"
    assert zero_limit.code == "INVALID_USAGE_LIMIT"


async def test_created_discount_applies_at_checkout(factory):
    async with factory() as session, session.begin():
        ok(
            await create_discount(
                session, ADMIN, DiscountDraft("FLAT50", "fixed", Decimal("50.00"))
            )
        )

    async with factory() as session:
        quote = ok(await validate_discount(session, "flat50", Decimal("300.00")))
    assert quote.discount_amount == 5000
    assert quote.final_total == 25000


async def test_update_and_deactivate_discount(seed, factory):
    first = await seed.discount("FIRST")
    await seed.discount("SECOND")

    async with factory() as session, session.begin():
        updated = ok(
            await update_discount(
                session,
                ADMIN,
                first.id,
                DiscountPatch(type="fixed", value=Decimal("25.00"), expires_at=datetime(2030, 1, 1)),
            )
        )
        clash = err(await update_discount(session, ADMIN, first.id, DiscountPatch(code="second")))
        missing = err(await update_discount(session, ADMIN, 999, DiscountPatch(active=False)))
        ok(await deactivate_discount(session, ADMIN, first.id))

    assert updated.type == "fixed"
    assert updated.value == Decimal("25.00")
    assert updated.expires_at == datetime(2030, 1, 1)
    assert clash.code == "DUPLICATE_CODE"
    assert missing.code == "DISCOUNT_NOT_FOUND"

    async with factory() as session:
        active = await list_discounts(session, active=True)
        by_code = await list_discounts(session, sort="code", order="asc")
        rejected = err(await validate_discount(session, "FIRST", Decimal("1000.00")))

    assert [d.code for d in active.items] == ["SECOND"]
    assert [d.code for d in by_code.items] == ["FIRST", "SECOND"]
    assert rejected.code == "DISCOUNT_NOT_FOUND"

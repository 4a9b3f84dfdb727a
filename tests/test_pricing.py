from datetime import timedelta
from decimal import Decimal

from conftest import err, ok

from storefront._types import now, round_cents, to_cents
from storefront.catalog import LineRequest, price_lines
from storefront.checkout import compute_totals, quote_checkout
from storefront.db import DiscountTable
from storefront.discounts import (
    check_discount,
    claim_discount_use,
    discount_amount,
    validate_discount,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════


def test_round_cents_is_half_up():
    assert round_cents(Decimal("0.5")) == 1
    assert round_cents(Decimal("2.5")) == 3
    assert round_cents(Decimal("8099.7")) == 8100
    assert to_cents("299.99") == 29999
    assert to_cents(Decimal("0.005")) == 1


# ═══════════════════════════════════════════════════════════════════════════════
# Pricing engine
# ═══════════════════════════════════════════════════════════════════════════════


async def test_prices_come_from_the_database(seed, factory):
    variant = await seed.variant(price=29999)
    async with factory() as session:
        priced = ok(await price_lines(session, [LineRequest(variant.id, 2)]))

    assert priced.subtotal == 59998
    assert priced.lines[0].unit_price == 29999
    assert priced.lines[0].line_subtotal == 59998
    assert priced.item_count == 2


async def test_sale_price_wins(seed, factory):
    variant = await seed.variant(price=29999, sale_price=24999)
    async with factory() as session:
        priced = ok(await price_lines(session, [LineRequest(variant.id, 1)]))
    assert priced.subtotal == 24999


async def test_invalid_quantities_are_rejected(seed, factory):
    variant = await seed.variant()
    async with factory() as session:
        for quantity in (0, -1, 1.5, "2", True):
            error = err(await price_lines(session, [LineRequest(variant.id, quantity)]))
            assert error.code == "INVALID_QUANTITY"


async def test_inactive_variant_or_product_is_not_found(seed, factory):
    hidden_variant = await seed.variant(active=False)
    hidden_product = await seed.variant(product_active=False)
    async with factory() as session:
        for variant_id in (hidden_variant.id, hidden_product.id, 9999):
            error = err(await price_lines(session, [LineRequest(variant_id, 1)]))
            assert error.code == "VARIANT_NOT_FOUND"
            assert error.status == 404


async def test_insufficient_stock_names_the_product(seed, factory):
    variant = await seed.variant(stock=1, name="Kinky Curl Closure")
    async with factory() as session:
        error = err(await price_lines(session, [LineRequest(variant.id, 3)]))
    assert error.code == "INSUFFICIENT_STOCK"
    assert error.message == "Insufficient stock for Kinky Curl Closure. Available: 1"


async def test_first_bad_line_fails_the_whole_request(seed, factory):
    good = await seed.variant()
    async with factory() as session:
        error = err(
            await price_lines(session, [LineRequest(good.id, 1), LineRequest(4242, 1)])
        )
    assert error.message == "Product variant 4242 not found or inactive"


# ═══════════════════════════════════════════════════════════════════════════════
# Totals
# ═══════════════════════════════════════════════════════════════════════════════


def test_totals_round_discount_before_tax():
    totals = ok(compute_totals(59998, 6000, 0, Decimal("0.15")))
    assert totals.taxable == 53998
    assert totals.tax == 8100
    assert totals.total == 62098


def test_shipping_is_added_untaxed():
    totals = ok(compute_totals(10000, 0, 9900, Decimal("0.15")))
    assert totals.tax == 1500
    assert totals.total == 10000 + 1500 + 9900


def test_negative_shipping_is_rejected():
    assert err(compute_totals(10000, 0, -1, Decimal("0.15"))).code == "INVALID_SHIPPING"


def test_discount_never_exceeds_subtotal():
    totals = ok(compute_totals(5000, 8000, 0, Decimal("0.15")))
    assert totals.discount == 5000
    assert totals.total == 0


# ═══════════════════════════════════════════════════════════════════════════════
# Discounts
# ═══════════════════════════════════════════════════════════════════════════════


def _row(**overrides) -> DiscountTable:
    values = dict(
        code="SAVE10",
        type="percentage",
        value_hundredths=1000,
        min_purchase_cents=None,
        usage_limit=None,
        used_count=0,
        expires_at=None,
        active=True,
    )
    values.update(overrides)
    return DiscountTable(**values)


def test_percentage_and_fixed_amounts():
    assert discount_amount(_row(), 59998) == 6000
    assert discount_amount(_row(type="fixed", value_hundredths=5000), 59998) == 5000
    assert discount_amount(_row(type="fixed", value_hundredths=5000), 3000) == 3000


def test_checks_run_in_order():
    at = now()

    expired_and_small = _row(expires_at=at - timedelta(days=1), min_purchase_cents=100000)
    assert err(check_discount(expired_and_small, 500, at)).code == "DISCOUNT_EXPIRED"

    used_up_and_small = _row(min_purchase_cents=100000, usage_limit=1, used_count=1)
    error = err(check_discount(used_up_and_small, 500, at))
    assert error.code == "MINIMUM_NOT_MET"
    assert error.message == "Minimum purchase of R1000.00 required"

    used_up = _row(usage_limit=1, used_count=1)
    assert err(check_discount(used_up, 500, at)).code == "USAGE_LIMIT_REACHED"

    assert err(check_discount(_row(active=False), 500, at)).code == "DISCOUNT_NOT_FOUND"
    assert err(check_discount(None, 500, at)).code == "DISCOUNT_NOT_FOUND"


async def test_validate_is_case_insensitive(seed, factory):
    await seed.discount("SAVE10")
    async with factory() as session:
        quote = ok(await validate_discount(session, "  save10 ", Decimal("599.98")))

    assert quote.code == "SAVE10"
    assert quote.discount_amount == 6000
    assert quote.final_total == 53998


async def test_validate_rejects_bad_input(factory):
    async with factory() as session:
        blank = err(await validate_discount(session, "  ", Decimal("100")))
        negative = err(await validate_discount(session, "SAVE10", Decimal("-1")))
        unknown = err(await validate_discount(session, "NOPE", Decimal("100")))
    assert blank.status == 400
    assert negative.status == 400
    assert unknown.code == "DISCOUNT_NOT_FOUND"


async def test_claim_stops_at_the_usage_limit(seed, factory):
    discount = await seed.discount(usage_limit=1)
    async with factory() as session, session.begin():
        ok(await claim_discount_use(session, discount.id))
        assert err(await claim_discount_use(session, discount.id)).code == "USAGE_LIMIT_REACHED"

    async with factory() as session:
        row = await session.get(DiscountTable, discount.id)
        assert row is not None
        assert row.used_count == 1


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout quote
# ═══════════════════════════════════════════════════════════════════════════════


async def test_quote_with_discount(seed, factory):
    variant = await seed.variant(price=29999)
    await seed.discount("SAVE10")
    async with factory() as session:
        quote = ok(
            await quote_checkout(
                session,
                (LineRequest(variant.id, 2),),
                vat_rate=Decimal("0.15"),
                discount_code="save10",
            )
        )

    assert quote.discount is not None
    assert quote.discount.code == "SAVE10"
    assert quote.totals.subtotal == 59998
    assert quote.totals.discount == 6000
    assert quote.totals.tax == 8100
    assert quote.totals.total == 62098


async def test_quote_fails_on_bad_discount(seed, factory):
    variant = await seed.variant(price=5000)
    await seed.discount("SAVE10", min_purchase_cents=10000)
    async with factory() as session:
        error = err(
            await quote_checkout(
                session,
                (LineRequest(variant.id, 1),),
                vat_rate=Decimal("0.15"),
                discount_code="SAVE10",
            )
        )
    assert error.code == "MINIMUM_NOT_MET"


async def test_quote_of_nothing_is_an_empty_cart(factory):
    async with factory() as session:
        error = err(await quote_checkout(session, (), vat_rate=Decimal("0.15")))
    assert error.code == "CART_EMPTY"

from decimal import Decimal

from kungfu import Error

from conftest import err, ok

from storefront import auth as A
from storefront.db import OrderTable
from storefront.newsletter import (
    CSV_HEADER,
    export_subscribers_csv,
    list_subscribers,
    subscribe,
    unsubscribe,
    verify_subscription,
)
from storefront.returns import create_return, list_returns, list_user_returns, update_return_status
from storefront.reviews import (
    approve_review,
    delete_review,
    list_reviews,
    mark_helpful,
    product_reviews,
    reject_review,
    submit_review,
    update_review,
)

ADMIN = A.Admin(1)


async def _set_order(factory, order_id: int, **values) -> None:
    async with factory() as session, session.begin():
        row = await session.get(OrderTable, order_id)
        assert row is not None
        for key, value in values.items():
            setattr(row, key, value)


# ═══════════════════════════════════════════════════════════════════════════════
# Returns
# ═══════════════════════════════════════════════════════════════════════════════


async def test_only_delivered_orders_can_be_returned(place_order, factory):
    placed = await place_order()
    customer = A.Customer(placed.user.id)

    async with factory() as session, session.begin():
        error = err(await create_return(session, customer, placed.order.id, "Wrong colour"))
    assert error.code == "ORDER_NOT_DELIVERED"

    await _set_order(factory, placed.order.id, status="delivered")
    async with factory() as session, session.begin():
        request = ok(
            await create_return(
                session, customer, placed.order.id, "  Wrong colour ", [{"item_id": 1}]
            )
        )
        duplicate = err(await create_return(session, customer, placed.order.id, "Again"))
        blank = err(await create_return(session, customer, placed.order.id, " "))

    assert request.status == "requested"
    assert request.reason == "Wrong colour"
    assert request.items == [{"item_id": 1}]
    assert duplicate.code == "RETURN_EXISTS"
    assert blank.code == "REASON_REQUIRED"


async def test_return_for_someone_elses_order(place_order, seed, factory):
    placed = await place_order()
    stranger = await seed.user()
    await _set_order(factory, placed.order.id, status="delivered")

    async with factory() as session, session.begin():
        error = err(await create_return(session, A.Customer(stranger.id), placed.order.id, "x"))
    assert error.code == "ORDER_NOT_FOUND"


async def test_return_lifecycle(place_order, factory):
    placed = await place_order()
    customer = A.Customer(placed.user.id)
    await _set_order(factory, placed.order.id, status="delivered")

    async with factory() as session, session.begin():
        request = ok(await create_return(session, customer, placed.order.id, "Too short"))

    async with factory() as session, session.begin():
        approved = ok(
            await update_return_status(session, ADMIN, request.id, "approved", admin_notes="ok")
        )
        too_much = err(
            await update_return_status(
                session, ADMIN, request.id, "refunded", refund_amount=Decimal("10000.00")
            )
        )
        missing = err(await update_return_status(session, ADMIN, request.id, "refunded"))
        refunded = ok(
            await update_return_status(
                session, ADMIN, request.id, "refunded", refund_amount=Decimal("150.50")
            )
        )

    assert approved.status == "approved"
    assert approved.admin_notes == "ok"
    assert too_much.code == "INVALID_REFUND_AMOUNT"
    assert missing.code == "INVALID_REFUND_AMOUNT"
    assert refunded.status == "refunded"
    assert refunded.refund_amount == 15050

    async with factory() as session, session.begin():
        closed = err(await update_return_status(session, ADMIN, request.id, "approved"))
        reopened = ok(await create_return(session, customer, placed.order.id, "Another issue"))
    assert closed.code == "RETURN_CLOSED"
    assert reopened.status == "requested"

    async with factory() as session:
        mine = await list_user_returns(session, customer)
        refunded_only = await list_returns(session, status="refunded")
    assert mine.total == 2
    assert [r.id for r in refunded_only.items] == [request.id]


async def test_refunds_across_returns_stay_within_the_order_total(place_order, factory):
    placed = await place_order(quantity=2)
    customer = A.Customer(placed.user.id)
    await _set_order(factory, placed.order.id, status="delivered")

    async def refund(amount: str):
        async with factory() as session, session.begin():
            request = ok(await create_return(session, customer, placed.order.id, "Shedding"))
            result = await update_return_status(
                session, ADMIN, request.id, "refunded", refund_amount=Decimal(amount)
            )
            match result:
                case Error(_):
                    # Close it so the next return can be filed.
                    ok(await update_return_status(session, ADMIN, request.id, "rejected"))
            return result

    assert placed.order.total == 68998
    ok(await refund("600.00"))
    over = err(await refund("100.00"))
    rest = ok(await refund("89.98"))
    nothing_left = err(await refund("0.01"))

    assert over.code == "INVALID_REFUND_AMOUNT"
    assert over.message == "Only R89.98 of this order is left to refund"
    assert rest.refund_amount == 8998
    assert nothing_left.message == "Only R0.00 of this order is left to refund"


# ═══════════════════════════════════════════════════════════════════════════════
# Reviews
# ═══════════════════════════════════════════════════════════════════════════════


async def test_reviews_need_approval(seed, factory):
    product = await seed.product()
    author = A.Customer((await seed.user()).id)

    async with factory() as session, session.begin():
        review = ok(
            await submit_review(
                session, author, product.id, rating=5, title=" Lovely ", body="Soft and full."
            )
        )
        again = err(await submit_review(session, author, product.id, rating=4, title="t", body="b"))

    assert not review.is_approved
    assert not review.verified_purchase
    assert review.title == "Lovely"
    assert again.code == "ALREADY_REVIEWED"

    async with factory() as session:
        public = await product_reviews(session, product.id)
    assert public.review_count == 0
    assert public.average_rating is None

    async with factory() as session, session.begin():
        ok(await approve_review(session, ADMIN, review.id))
        assert ok(await mark_helpful(session, review.id)) == 1
        assert ok(await mark_helpful(session, review.id)) == 2

    async with factory() as session:
        public = await product_reviews(session, product.id)
    assert public.review_count == 1
    assert public.average_rating == 5.0
    assert public.page.items[0].helpful_count == 2


async def test_review_validation(seed, factory):
    product = await seed.product()
    author = A.Customer((await seed.user()).id)

    async with factory() as session, session.begin():
        for rating, title, body, code in (
            (0, "t", "b", "INVALID_RATING"),
            (6, "t", "b", "INVALID_RATING"),
            (True, "t", "b", "INVALID_RATING"),
            (3, " ", "b", "INVALID_TITLE"),
            (3, "x" * 201, "b", "INVALID_TITLE"),
            (3, "t", "  ", "INVALID_BODY"),
        ):
            error = err(
                await submit_review(
                    session, author, product.id, rating=rating, title=title, body=body
                )
            )
            assert error.code == code
        missing = err(await submit_review(session, author, 999, rating=3, title="t", body="b"))
    assert missing.code == "PRODUCT_NOT_FOUND"


async def test_purchase_marks_review_verified(place_order, factory):
    placed = await place_order()
    await _set_order(factory, placed.order.id, payment_status="paid")
    customer = A.Customer(placed.user.id)

    async with factory() as session, session.begin():
        review = ok(
            await submit_review(
                session, customer, placed.variant.product_id, rating=4, title="Nice", body="Good"
            )
        )
    assert review.verified_purchase


async def test_editing_and_deleting_own_reviews(seed, factory):
    product = await seed.product()
    author = A.Customer((await seed.user()).id)
    other = A.Customer((await seed.user()).id)

    async with factory() as session, session.begin():
        review = ok(
            await submit_review(session, author, product.id, rating=3, title="Ok", body="Fine")
        )
        ok(await approve_review(session, ADMIN, review.id))

    async with factory() as session, session.begin():
        edited = ok(await update_review(session, author, review.id, rating=5))
        forbidden = err(await update_review(session, other, review.id, rating=1))
        not_yours = err(await delete_review(session, other, review.id))

    assert edited.rating == 5
    assert edited.title == "Ok"
    assert not edited.is_approved
    assert forbidden.status == 403
    assert not_yours.code == "NOT_REVIEW_OWNER"

    async with factory() as session, session.begin():
        # Helpful votes only count on approved reviews.
        assert err(await mark_helpful(session, review.id)).status == 404
        ok(await delete_review(session, author, review.id))


async def test_moderation_queue(seed, factory):
    product = await seed.product()
    authors = [A.Customer((await seed.user()).id) for _ in range(3)]
    async with factory() as session, session.begin():
        ids = []
        for author in authors:
            review = ok(
                await submit_review(session, author, product.id, rating=4, title="t", body="b")
            )
            ids.append(review.id)
        ok(await approve_review(session, ADMIN, ids[0]))
        ok(await reject_review(session, ADMIN, ids[1]))
        assert err(await reject_review(session, ADMIN, ids[1])).status == 404

    async with factory() as session:
        pending = await list_reviews(session, approved=False)
        approved = await list_reviews(session, approved=True, product_id=product.id)
    assert [r.id for r in pending.items] == [ids[2]]
    assert [r.id for r in approved.items] == [ids[0]]


# ═══════════════════════════════════════════════════════════════════════════════
# Newsletter
# ═══════════════════════════════════════════════════════════════════════════════


async def test_double_opt_in(factory, mailer):
    async with factory() as session, session.begin():
        message = ok(
            await subscribe(
                session, mailer, " Reader@Example.com ", frontend_url="http://shop.test"
            )
        )
    assert message == "Please check your email to confirm your subscription"

    [mail] = mailer.tagged("newsletter_verification")
    assert mail.to == "reader@example.com"
    token = mail.body.rsplit("token=", 1)[1]

    async with factory() as session, session.begin():
        again = ok(await subscribe(session, mailer, "reader@example.com", frontend_url="x"))
        verified = ok(await verify_subscription(session, token))
        twice = ok(await verify_subscription(session, token))
        bad = err(await verify_subscription(session, "nope"))

    assert again.startswith("A verification email has already been sent")
    assert verified.startswith("Email verified successfully")
    assert twice.startswith("Email already verified")
    assert bad.code == "INVALID_TOKEN"
    assert len(mailer.sent) == 1


async def test_unsubscribe_and_resubscribe(factory, mailer):
    async with factory() as session, session.begin():
        ok(await subscribe(session, mailer, "fan@example.com", frontend_url="x"))
        token = mailer.sent[-1].body.rsplit("token=", 1)[1]
        ok(await verify_subscription(session, token))
        assert ok(await unsubscribe(session, "FAN@example.com")) == (
            "Successfully unsubscribed from newsletter"
        )
        assert ok(await unsubscribe(session, "fan@example.com")).startswith("Email is not")

    async with factory() as session:
        assert (await list_subscribers(session, status="unsubscribed")).total == 1
        assert (await list_subscribers(session, status="verified")).total == 0

    async with factory() as session, session.begin():
        ok(await subscribe(session, mailer, "fan@example.com", frontend_url="x"))

    async with factory() as session:
        pending = await list_subscribers(session, status="pending")
    assert [s.email for s in pending.items] == ["fan@example.com"]
    assert len(mailer.sent) == 2


async def test_subscribe_rejects_bad_email(factory, mailer):
    async with factory() as session, session.begin():
        assert err(await subscribe(session, mailer, "", frontend_url="x")).code == "EMAIL_REQUIRED"
        assert err(await subscribe(session, mailer, "not-an-email", frontend_url="x")).code == (
            "INVALID_EMAIL"
        )
    assert mailer.sent == []


async def test_csv_export(factory, mailer):
    async with factory() as session, session.begin():
        for email in ("a@example.com", "b@example.com"):
            ok(await subscribe(session, mailer, email, frontend_url="x"))
        token = mailer.sent[0].body.rsplit("token=", 1)[1]
        ok(await verify_subscription(session, token))

    async with factory() as session:
        verified = await export_subscribers_csv(session, status="verified")
        everyone = await export_subscribers_csv(session, status="bogus")
        active = await export_subscribers_csv(session, status="active")

    lines = verified.splitlines()
    assert lines[0] == ",".join(CSV_HEADER)
    assert len(lines) == 2
    assert lines[1].startswith("a@example.com,Yes,")
    assert len(everyone.splitlines()) == 3
    assert active == verified

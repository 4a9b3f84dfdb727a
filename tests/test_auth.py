from datetime import timedelta

import jwt
import pytest

from conftest import err, ok

from storefront import auth as A
from storefront.db import UserTable


async def _resolve(settings, factory, authorization, session_id=None):
    async with factory() as session:
        return await A.resolve_principal(settings, session, authorization, session_id)


def _bearer(token: str) -> str:
    return f"Bearer {token}"


# ═══════════════════════════════════════════════════════════════════════════════
# Principals
# ═══════════════════════════════════════════════════════════════════════════════


async def test_no_token_is_a_guest(settings, factory):
    assert ok(await _resolve(settings, factory, None, "cart-1")) == A.Guest("cart-1")
    assert ok(await _resolve(settings, factory, "Basic abc")) == A.Guest()
    assert ok(await _resolve(settings, factory, "Bearer ")) == A.Guest()


async def test_customer_token(settings, factory, seed):
    user = await seed.user()
    token = A.issue_token(settings, user.id)

    principal = ok(await _resolve(settings, factory, _bearer(token), "cart-1"))
    assert principal == A.Customer(user.id, "cart-1")


@pytest.mark.parametrize("role", ["admin", "super_admin", "manager"])
async def test_admin_token(settings, factory, role):
    token = A.issue_token(settings, 3, role=role)
    assert ok(await _resolve(settings, factory, _bearer(token))) == A.Admin(3, role)


async def test_admin_secret_without_admin_role_is_rejected(settings, factory):
    token = A.issue_token(settings, 3, role="viewer")
    assert err(await _resolve(settings, factory, _bearer(token))).code == "INVALID_TOKEN"


async def test_expired_and_invalid_tokens(settings, factory, seed):
    user = await seed.user()
    expired = A.issue_token(settings, user.id, ttl=timedelta(seconds=-30))
    expired_admin = A.issue_token(settings, 1, role="admin", ttl=timedelta(seconds=-30))
    forged = jwt.encode({"id": user.id}, "not-the-secret", algorithm=A.ALGORITHM)

    assert err(await _resolve(settings, factory, _bearer(expired))).code == "TOKEN_EXPIRED"
    assert err(await _resolve(settings, factory, _bearer(expired_admin))).code == (
        "TOKEN_EXPIRED"
    )
    invalid = err(await _resolve(settings, factory, _bearer(forged)))
    assert invalid.code == "INVALID_TOKEN"
    assert invalid.status == 401
    assert err(await _resolve(settings, factory, "Bearer garbage")).code == "INVALID_TOKEN"


async def test_token_for_deleted_user(settings, factory):
    token = A.issue_token(settings, 4242)
    assert err(await _resolve(settings, factory, _bearer(token))).code == "USER_NOT_FOUND"


def test_role_guards():
    assert ok(A.require_customer(A.Customer(1))) == A.Customer(1)
    assert err(A.require_customer(A.Guest())).status == 401
    assert err(A.require_admin(A.Customer(1))).status == 401
    assert ok(A.require_super_admin(A.Admin(1, "super_admin"))).is_super
    assert err(A.require_super_admin(A.Admin(1, "manager"))).status == 403
    assert err(A.require_super_admin(A.Guest())).status == 401


def test_bearer_token_parsing():
    assert A.bearer_token("Bearer abc ") == "abc"
    assert A.bearer_token("bearer abc") is None
    assert A.bearer_token(None) is None


# ═══════════════════════════════════════════════════════════════════════════════
# Passwords
# ═══════════════════════════════════════════════════════════════════════════════


def test_password_hashing():
    stored = A.hash_password("correct horse")
    assert stored.startswith("pbkdf2_sha256$")
    assert A.check_password("correct horse", stored)
    assert not A.check_password("wrong horse", stored)
    assert not A.check_password("anything", None)
    assert not A.check_password("anything", "plaintext")
    assert A.hash_password("pw", salt="s") == A.hash_password("pw", salt="s")


async def test_reset_token_is_single_use(seed, factory):
    user = await seed.user()

    async with factory() as session, session.begin():
        raw = await A.issue_reset_token(session, user.id)

    async with factory() as session, session.begin():
        assert ok(await A.reset_password(session, raw, "new-password-1")) == user.id
        again = err(await A.reset_password(session, raw, "new-password-2"))
    assert again.code == "INVALID_RESET_TOKEN"

    async with factory() as session:
        row = await session.get(UserTable, user.id)
    assert A.check_password("new-password-1", row.password_hash)


async def test_expired_or_unknown_reset_token(seed, factory):
    user = await seed.user()

    async with factory() as session, session.begin():
        raw = await A.issue_reset_token(session, user.id, ttl=timedelta(seconds=-1))

    async with factory() as session, session.begin():
        assert err(await A.consume_reset_token(session, raw)).code == "INVALID_RESET_TOKEN"
        assert err(await A.consume_reset_token(session, "unknown")).code == (
            "INVALID_RESET_TOKEN"
        )


async def test_weak_password_keeps_the_token(seed, factory):
    user = await seed.user()

    async with factory() as session, session.begin():
        raw = await A.issue_reset_token(session, user.id)
        assert err(await A.reset_password(session, raw, "short")).code == "WEAK_PASSWORD"
        assert ok(await A.reset_password(session, raw, "long-enough")) == user.id


async def test_reset_request_mails_known_users_only(seed, factory, mailer):
    user = await seed.user()

    async with factory() as session, session.begin():
        await A.request_password_reset(
            session, mailer, f"  {user.email.upper()} ", frontend_url="http://shop.test"
        )
        await A.request_password_reset(
            session, mailer, "nobody@example.com", frontend_url="http://shop.test"
        )

    [mail] = mailer.tagged("password_reset")
    assert mail.to == user.email
    assert "http://shop.test/reset-password?token=" in mail.body
    raw = mail.body.rsplit("token=", 1)[1]

    async with factory() as session, session.begin():
        assert ok(await A.consume_reset_token(session, raw)) == user.id

import hashlib

import httpx
import pytest

from conftest import err, ok

from storefront.config import Settings
from storefront.payments import (
    Notification,
    build_payment_data,
    check_amount,
    check_source,
    generate_signature,
    signature_matches,
    signature_string,
    validate_with_server,
)

FIELDS = {
    "merchant_id": "10000100",
    "amount": "100.00",
    "item_name": "Order ORD 1",
    "email_address": "a+b@x.co",
    "empty": "",
    "signature": "abc",
}
EXPECTED = "amount=100.00&email_address=a%2Bb%40x.co&item_name=Order+ORD+1&merchant_id=10000100"


# ═══════════════════════════════════════════════════════════════════════════════
# Signatures
# ═══════════════════════════════════════════════════════════════════════════════


def test_signature_string_is_sorted_and_encoded():
    assert signature_string(FIELDS) == EXPECTED


def test_passphrase_is_appended_last():
    assert signature_string(FIELDS, "my pass") == EXPECTED + "&passphrase=my+pass"


def test_signature_is_md5_of_the_string():
    assert generate_signature(FIELDS) == hashlib.md5(EXPECTED.encode()).hexdigest()


def test_signature_ignores_the_signature_field_and_blanks():
    other = dict(FIELDS, signature="something else", empty=None)
    assert generate_signature(other) == generate_signature(FIELDS)


def test_signature_matches():
    good = generate_signature(FIELDS, "secret")
    assert signature_matches(FIELDS, good, "secret")
    assert signature_matches(FIELDS, good.upper(), "secret")
    assert not signature_matches(FIELDS, good, "other")
    assert not signature_matches(FIELDS, None, "secret")
    assert not signature_matches(FIELDS, "", "secret")


# ═══════════════════════════════════════════════════════════════════════════════
# Checks
# ═══════════════════════════════════════════════════════════════════════════════


def test_source_ip_is_enforced_outside_local_environments(settings):
    assert ok(check_source(settings, "10.0.0.1")) is None

    production = settings.with_(environment="production")
    assert ok(check_source(production, "197.97.145.144")) is None
    error = err(check_source(production, "10.0.0.1"))
    assert error.code == "UNTRUSTED_SOURCE"
    assert error.message == "Invalid source IP: 10.0.0.1"


@pytest.mark.parametrize(
    ("claimed", "accepted"),
    [("100.00", True), ("100.01", True), ("99.99", True), ("100.02", False), ("abc", False)],
)
def test_amount_tolerates_one_cent(claimed, accepted):
    notification = Notification({"amount_gross": claimed})
    result = check_amount(10000, notification)
    if accepted:
        ok(result)
    else:
        assert err(result).code == "AMOUNT_MISMATCH"


# ═══════════════════════════════════════════════════════════════════════════════
# Outbound form
# ═══════════════════════════════════════════════════════════════════════════════


def test_payment_data_needs_merchant_credentials():
    error = err(
        build_payment_data(
            Settings(),
            order_id=1,
            order_number="ORD-20250301-0001",
            reference="ORD-20250301-0001_1",
            amount=10000,
            name="Thandi",
            email="t@example.com",
        )
    )
    assert error.code == "GATEWAY_NOT_CONFIGURED"


def test_payment_data_is_signed(settings):
    data = ok(
        build_payment_data(
            settings,
            order_id=12,
            order_number="ORD-20250301-0001",
            reference="ORD-20250301-0001_1740000000000",
            amount=62098,
            name=None,
            email="t@example.com",
        )
    )
    assert data["amount"] == "620.98"
    assert data["m_payment_id"] == "ORD-20250301-0001_1740000000000"
    assert data["notify_url"] == "http://api.test/api/payments/payfast/notify"
    assert data["name_first"] == "Customer"
    assert data["custom_str1"] == "12"
    assert signature_matches(data, data["signature"], settings.payfast_passphrase)


# ═══════════════════════════════════════════════════════════════════════════════
# Server validation
# ═══════════════════════════════════════════════════════════════════════════════


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_server_validation_accepts_valid(settings):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="VALID")

    async with _client(handler) as client:
        ok(await validate_with_server(client, settings, Notification({"m_payment_id": "x"})))

    assert str(seen[0].url) == "https://sandbox.payfast.co.za/eng/query/validate"
    assert b"m_payment_id=x" in seen[0].content


async def test_server_validation_rejects_anything_else(settings):
    async with _client(lambda request: httpx.Response(200, text="INVALID")) as client:
        error = err(await validate_with_server(client, settings, Notification({})))
    assert error.code == "SERVER_VALIDATION_FAILED"


async def test_server_validation_timeout_is_a_failure(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    async with _client(handler) as client:
        error = err(await validate_with_server(client, settings, Notification({})))
    assert error.message == "Server verification failed: ReadTimeout"

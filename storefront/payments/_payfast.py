"""
PayFast wire protocol.

Signatures are MD5 over `key=value` pairs joined with `&`, keys sorted,
empty values and the `signature` field skipped, values trimmed and
encoded like JavaScript's encodeURIComponent with spaces as `+`, and an
optional `&passphrase=...` suffix. The gateway computes the same string,
so this must stay bit-for-bit stable.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import quote_plus

import httpx

from kungfu import Result, Ok, Error

from storefront._types import Cents, format_amount, parse_amount, to_cents
from storefront.config import Settings
from storefront.errors import Errors, GatewayError, ShopError

log = logging.getLogger(__name__)

# Gateway notification servers.
PAYFAST_IPS = frozenset(
    {
        "197.97.145.144",
        "41.74.179.194",
        "41.74.179.195",
        "41.74.179.196",
        "41.74.179.197",
        "41.74.179.198",
        "41.74.179.199",
        "197.97.145.145",
    }
)

LIVE_HOST = "www.payfast.co.za"
SANDBOX_HOST = "sandbox.payfast.co.za"

# Characters encodeURIComponent leaves alone.
_UNRESERVED = "-_.!~*'()"

# Largest tolerated gap between claimed and stored amount.
AMOUNT_EPSILON = 1


def _encode(value: object) -> str:
    return quote_plus(str(value).strip(), safe=_UNRESERVED)


def signature_string(data: Mapping[str, object], passphrase: str | None = None) -> str:
    pairs = [
        f"{key}={_encode(data[key])}"
        for key in sorted(data)
        if key != "signature" and data[key] is not None and str(data[key]) != ""
    ]
    payload = "&".join(pairs)
    if passphrase:
        payload += f"&passphrase={_encode(passphrase)}"
    return payload


def generate_signature(data: Mapping[str, object], passphrase: str | None = None) -> str:
    return hashlib.md5(signature_string(data, passphrase).encode("utf-8")).hexdigest()


def signature_matches(
    data: Mapping[str, object], signature: object, passphrase: str | None = None
) -> bool:
    if not isinstance(signature, str) or not signature:
        return False
    return hmac.compare_digest(generate_signature(data, passphrase), signature.lower())


def host(settings: Settings) -> str:
    return LIVE_HOST if settings.payfast_live else SANDBOX_HOST


def payment_url(settings: Settings) -> str:
    return f"https://{host(settings)}/eng/process"


def validate_url(settings: Settings) -> str:
    return f"https://{host(settings)}/eng/query/validate"


# ═══════════════════════════════════════════════════════════════════════════════
# Outbound
# ═══════════════════════════════════════════════════════════════════════════════


def build_payment_data(
    settings: Settings,
    *,
    order_id: int,
    order_number: str,
    reference: str,
    amount: Cents,
    name: str | None,
    email: str | None,
) -> Result[dict[str, str], ShopError]:
    """Signed form fields for the hosted payment page."""
    if not settings.payfast_merchant_id or not settings.payfast_merchant_key:
        return Error(Errors.gateway_not_configured())

    data = {
        "merchant_id": settings.payfast_merchant_id,
        "merchant_key": settings.payfast_merchant_key,
        "return_url": settings.payfast_return_url or f"{settings.frontend_url}/payment/success",
        "cancel_url": f"{settings.frontend_url}/payment/cancel",
        "notify_url": f"{settings.backend_url}/api/payments/payfast/notify",
        "name_first": name or "Customer",
        "email_address": email or "customer@example.com",
        "m_payment_id": reference,
        "amount": format_amount(amount),
        "item_name": f"Order {order_number}",
        "item_description": f"Payment for order {order_number}",
        "custom_str1": str(order_id),
        "custom_str2": order_number,
    }
    data["signature"] = generate_signature(data, settings.payfast_passphrase)
    return Ok(data)


# ═══════════════════════════════════════════════════════════════════════════════
# Inbound (ITN)
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Notification:
    """A verified-shape ITN. Nothing here is trusted until checked."""

    fields: dict[str, str]

    @property
    def reference(self) -> str:
        return self.fields.get("m_payment_id", "")

    @property
    def transaction_id(self) -> str:
        return self.fields.get("pf_payment_id", "")

    @property
    def payment_status(self) -> str:
        return self.fields.get("payment_status", "")

    @property
    def signature(self) -> str:
        return self.fields.get("signature", "")

    @property
    def amount_gross(self) -> str:
        return self.fields.get("amount_gross", "")

    @property
    def is_complete(self) -> bool:
        return self.payment_status == "COMPLETE"

    @property
    def key(self) -> str:
        return f"itn:{self.reference}:{self.transaction_id}"


def check_source(settings: Settings, address: str | None) -> Result[None, GatewayError]:
    """IP allow-list, enforced outside development and testing."""
    if settings.enforce_gateway_ips and address not in PAYFAST_IPS:
        return Error(Errors.untrusted_source(address))
    return Ok(None)


def check_signature(settings: Settings, notification: Notification) -> Result[None, GatewayError]:
    if not signature_matches(
        notification.fields, notification.signature, settings.payfast_passphrase
    ):
        return Error(Errors.invalid_signature())
    return Ok(None)


def check_amount(expected: Cents, notification: Notification) -> Result[None, GatewayError]:
    received = parse_amount(notification.amount_gross)
    if received is None or abs(to_cents(received) - expected) > AMOUNT_EPSILON:
        return Error(Errors.amount_mismatch(expected, notification.amount_gross))
    return Ok(None)


async def validate_with_server(
    client: httpx.AsyncClient, settings: Settings, notification: Notification
) -> Result[None, GatewayError]:
    """
    Ask the gateway to confirm the notification it sent.

    Bounded by `payfast_verify_timeout`; a timeout or transport failure is a
    failed validation, never a hang.
    """
    try:
        response = await client.post(
            validate_url(settings),
            data=notification.fields,
            timeout=settings.payfast_verify_timeout,
        )
    except httpx.HTTPError as e:
        log.warning("payfast validation request failed: %s", e)
        return Error(Errors.server_validation_failed(type(e).__name__))

    body = response.text.strip()
    if response.status_code != 200 or body != "VALID":
        return Error(Errors.server_validation_failed(body or str(response.status_code)))
    return Ok(None)


__all__ = (
    "PAYFAST_IPS",
    "AMOUNT_EPSILON",
    "signature_string",
    "generate_signature",
    "signature_matches",
    "payment_url",
    "validate_url",
    "build_payment_data",
    "Notification",
    "check_source",
    "check_signature",
    "check_amount",
    "validate_with_server",
)

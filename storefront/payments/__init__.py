"""
Payments — PayFast checkout, ITN verification and refunds.

    service = PaymentService(session_factory, settings, alerts=LoggingAlertSink())

    match await service.create_payment(principal, order_id):
        case Ok(checkout):
            checkout.payfast_url, checkout.payment_data  # signed form fields

    # webhook: never raises, always followed by a 200 "OK"
    await service.acknowledge(form_fields, source_ip)

A notification is applied at most once per (m_payment_id, pf_payment_id);
stock is consumed only when a payment completes.
"""

from storefront.payments._alerts import (
    PaymentAlert,
    AlertSink,
    LoggingAlertSink,
    MemoryAlertSink,
)
from storefront.payments._payfast import (
    PAYFAST_IPS,
    AMOUNT_EPSILON,
    signature_string,
    generate_signature,
    signature_matches,
    payment_url,
    validate_url,
    build_payment_data,
    Notification,
    check_source,
    check_signature,
    check_amount,
    validate_with_server,
)
from storefront.payments._service import (
    NOTIFICATION_TTL_HOURS,
    Payment,
    PaymentCheckout,
    ApplyOutcome,
    NotificationResult,
    Shortfall,
    consume_stock,
    PaymentService,
)

__all__ = (
    # Alerts
    "PaymentAlert",
    "AlertSink",
    "LoggingAlertSink",
    "MemoryAlertSink",
    # PayFast
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
    # Service
    "NOTIFICATION_TTL_HOURS",
    "Payment",
    "PaymentCheckout",
    "ApplyOutcome",
    "NotificationResult",
    "Shortfall",
    "consume_stock",
    "PaymentService",
)

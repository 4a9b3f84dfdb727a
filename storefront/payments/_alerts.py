"""
Alerts — payment problems that must reach a human.

The notification webhook always acknowledges the gateway, so a failure
inside it would otherwise be invisible. Every such failure becomes an
explicit `PaymentAlert` on an `AlertSink`.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

log = logging.getLogger("storefront.alerts")


@dataclass(frozen=True, slots=True)
class PaymentAlert:
    kind: str
    message: str
    reference: str | None = None
    details: dict[str, Any] = field(default_factory=dict[str, Any])


class AlertSink(Protocol):
    async def alert(self, alert: PaymentAlert) -> None: ...


class LoggingAlertSink:
    async def alert(self, alert: PaymentAlert) -> None:
        log.critical(
            "payment alert [%s] reference=%s: %s %s",
            alert.kind,
            alert.reference,
            alert.message,
            alert.details or "",
        )


@dataclass
class MemoryAlertSink:
    """Collects alerts in memory (tests)."""

    alerts: list[PaymentAlert] = field(default_factory=list[PaymentAlert])

    async def alert(self, alert: PaymentAlert) -> None:
        self.alerts.append(alert)

    def kinds(self) -> list[str]:
        return [a.kind for a in self.alerts]


__all__ = ("PaymentAlert", "AlertSink", "LoggingAlertSink", "MemoryAlertSink")

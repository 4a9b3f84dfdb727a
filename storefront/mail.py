"""
Mail — outbound email as an external collaborator.

Templating and delivery live outside this service; the backend only decides
*when* a message goes out and what it is about.

    mailer = LoggingMailer()
    await mailer.send(Message(to="a@b.co", subject="Order ORD-20250101-0001", body="..."))
"""

import logging
from dataclasses import dataclass, field
from typing import Protocol

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Message:
    to: str
    subject: str
    body: str
    tag: str = "general"


class Mailer(Protocol):
    async def send(self, message: Message) -> None: ...


class LoggingMailer:
    """Writes messages to the log instead of a mail server."""

    async def send(self, message: Message) -> None:
        log.info("mail[%s] to=%s subject=%r", message.tag, message.to, message.subject)


@dataclass
class MemoryMailer:
    """Collects messages in memory (tests)."""

    sent: list[Message] = field(default_factory=list[Message])

    async def send(self, message: Message) -> None:
        self.sent.append(message)

    def tagged(self, tag: str) -> list[Message]:
        return [m for m in self.sent if m.tag == tag]


__all__ = ("Message", "Mailer", "LoggingMailer", "MemoryMailer")

"""
Idempotency policy.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum, auto


class OnPending(Enum):
    """
    What a call does when it finds another call holding the same key.

    WAIT: poll until the holder completes and return its result.
    FAIL: return CONFLICT immediately.
    """

    WAIT = auto()
    FAIL = auto()


WAIT = OnPending.WAIT
FAIL = OnPending.FAIL


@dataclass(frozen=True, slots=True)
class Policy:
    """
    Immutable, fluent.

        policy = Policy().with_ttl(hours=24).with_on_pending(WAIT).with_wait_timeout(seconds=5)
    """

    result_ttl: timedelta | None = None
    conflict_strategy: OnPending = OnPending.WAIT
    pending_wait_timeout: timedelta = timedelta(seconds=30)
    poll_interval: timedelta = timedelta(milliseconds=100)
    # Failed runs are forgotten by default so the next delivery retries.
    persist_failed: bool = False

    def with_ttl(
        self,
        *,
        seconds: float = 0,
        minutes: float = 0,
        hours: float = 0,
    ) -> Policy:
        total = seconds + minutes * 60 + hours * 3600
        return replace(self, result_ttl=timedelta(seconds=total) if total > 0 else None)

    def with_on_pending(self, strategy: OnPending) -> Policy:
        return replace(self, conflict_strategy=strategy)

    def with_wait_timeout(self, *, seconds: float) -> Policy:
        return replace(self, pending_wait_timeout=timedelta(seconds=seconds))

    def with_poll_interval(self, *, seconds: float) -> Policy:
        return replace(self, poll_interval=timedelta(seconds=seconds))

    def with_store_failed(self, store: bool = True) -> Policy:
        return replace(self, persist_failed=store)


__all__ = ("OnPending", "WAIT", "FAIL", "Policy")

"""
Idempotency — run an operation at most once per key.

    from storefront import idempotency as I

    executor = (
        I.idempotent(apply_notification)
        .key(lambda n: n.key)
        .store(I.MemoryStore())
        .policy(I.Policy().with_ttl(hours=24))
        .build()
    )
    match await executor.run(notification):
        case Ok(I.IdempotencyResult(value=v, from_cache=True)):
            ...  # replay, nothing ran

Backed by a nodnod graph: the stored record's state picks one case of the
polymorphic `IdempotencyOutcome` (cached, pending, fresh run, store error).
"""

from storefront.idempotency._types import (
    RecordState,
    IdempotencyRecord,
    IdempotencyResult,
    IdempotencyError,
    IdempotencyErrorKind,
)
from storefront.idempotency._store import Store, StoreError, MemoryStore
from storefront.idempotency._policy import Policy, OnPending, WAIT, FAIL
from storefront.idempotency._sqlalchemy import (
    IdempotencyMixin,
    IdempotencyStatus,
    SQLAlchemyStore,
)
from storefront.idempotency._graph import IdempotencySpec, run_idempotent
from storefront.idempotency._builder import idempotent, Idempotent, IdempotentExecutor

__all__ = (
    # Types
    "RecordState",
    "IdempotencyRecord",
    "IdempotencyResult",
    "IdempotencyError",
    "IdempotencyErrorKind",
    # Store
    "Store",
    "StoreError",
    "MemoryStore",
    "IdempotencyMixin",
    "IdempotencyStatus",
    "SQLAlchemyStore",
    # Policy
    "Policy",
    "OnPending",
    "WAIT",
    "FAIL",
    # API
    "IdempotencySpec",
    "run_idempotent",
    "idempotent",
    "Idempotent",
    "IdempotentExecutor",
)

"""
Idempotency graph — record-state routing as nodnod nodes.

    IdempotencySpec (injected)
         │
         ▼
    FetchRecordNode
         │
         ├── CompletedRecordNode ──┐
         ├── FailedRecordNode ─────┤
         ├── PendingRecordNode ────┼── IdempotencyOutcome (@polymorphic)
         ├── NoRecordNode ─────────┤             │
         └── StoreErrorNode ───────┘             ▼
                                          FinalResultNode

Each state node raises NodeError unless the fetched record is in its state,
so exactly one family of outcome cases applies.

No `from __future__ import annotations`: nodnod reads the hints at runtime.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from nodnod import NodeError, polymorphic, case

from kungfu import Result, Ok, Error

from storefront import graph as G
from storefront.idempotency._policy import OnPending, Policy
from storefront.idempotency._store import Store, StoreError
from storefront.idempotency._types import (
    IdempotencyError,
    IdempotencyErrorKind,
    IdempotencyRecord,
    IdempotencyResult,
    RecordState,
)


@dataclass(frozen=True)
class IdempotencySpec:
    key: str
    input_value: Any
    operation: Callable[[Any], Awaitable[Result[Any, Any]]]
    store: Store
    policy: Policy


# ═══════════════════════════════════════════════════════════════════════════════
# Fetch
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class FetchRecordNode:
    def __init__(
        self,
        spec: IdempotencySpec,
        record: IdempotencyRecord | None,
        store_error: StoreError | None = None,
    ) -> None:
        self.spec = spec
        self.record = record
        self.store_error = store_error

    @classmethod
    async def __compose__(cls, spec: IdempotencySpec) -> "FetchRecordNode":
        match await spec.store.get(spec.key):
            case Ok(record):
                return cls(spec, record)
            case Error(err):
                return cls(spec, None, store_error=err)


# ═══════════════════════════════════════════════════════════════════════════════
# State nodes
# ═══════════════════════════════════════════════════════════════════════════════


def _record_in(fetch: FetchRecordNode, state: RecordState) -> IdempotencyRecord:
    record = fetch.record
    if record is None or record.state != state:
        raise NodeError(f"Not {state.name.lower()}")
    return record


@G.node
class CompletedRecordNode:
    def __init__(self, spec: IdempotencySpec, record: IdempotencyRecord) -> None:
        self.spec = spec
        self.record = record

    @classmethod
    def __compose__(cls, fetch: FetchRecordNode) -> "CompletedRecordNode":
        return cls(fetch.spec, _record_in(fetch, RecordState.COMPLETED))


@G.node
class FailedRecordNode:
    def __init__(self, spec: IdempotencySpec, record: IdempotencyRecord) -> None:
        self.spec = spec
        self.record = record

    @classmethod
    def __compose__(cls, fetch: FetchRecordNode) -> "FailedRecordNode":
        return cls(fetch.spec, _record_in(fetch, RecordState.FAILED))


@G.node
class PendingRecordNode:
    def __init__(self, spec: IdempotencySpec, record: IdempotencyRecord) -> None:
        self.spec = spec
        self.record = record

    @classmethod
    def __compose__(cls, fetch: FetchRecordNode) -> "PendingRecordNode":
        return cls(fetch.spec, _record_in(fetch, RecordState.PENDING))


@G.node
class NoRecordNode:
    def __init__(self, spec: IdempotencySpec) -> None:
        self.spec = spec

    @classmethod
    def __compose__(cls, fetch: FetchRecordNode) -> "NoRecordNode":
        if fetch.store_error is not None:
            raise NodeError("Store error")
        if fetch.record is not None:
            raise NodeError("Record exists")
        return cls(fetch.spec)


@G.node
class StoreErrorNode:
    def __init__(self, error: StoreError) -> None:
        self.error = error

    @classmethod
    def __compose__(cls, fetch: FetchRecordNode) -> "StoreErrorNode":
        if fetch.store_error is None:
            raise NodeError("No store error")
        return cls(fetch.store_error)


# ═══════════════════════════════════════════════════════════════════════════════
# Outcome
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class OutcomeOk:
    value: Any
    from_cache: bool
    key: str


@dataclass(frozen=True)
class OutcomeError:
    kind: IdempotencyErrorKind
    message: str
    original_error: Any = None


type Outcome = OutcomeOk | OutcomeError


def _store_failure(err: StoreError) -> OutcomeError:
    return OutcomeError(IdempotencyErrorKind.STORE_ERROR, err.message, err.cause)


async def _execute(spec: IdempotencySpec) -> Outcome:
    """Run the operation while holding the key, then record the result."""
    try:
        result = await spec.operation(spec.input_value)
    except Exception as e:
        await spec.store.delete(spec.key)
        return OutcomeError(IdempotencyErrorKind.EXECUTION, str(e), e)

    match result:
        case Ok(value):
            match await spec.store.set_completed(spec.key, value, spec.policy.result_ttl):
                case Error(err):
                    return _store_failure(err)
                case Ok(_):
                    return OutcomeOk(value, from_cache=False, key=spec.key)
        case Error(err):
            if spec.policy.persist_failed:
                await spec.store.set_failed(spec.key, err, spec.policy.result_ttl)
            else:
                await spec.store.delete(spec.key)
            return OutcomeError(
                IdempotencyErrorKind.EXECUTION, "Operation returned Error", err
            )


async def _claim_and_execute(spec: IdempotencySpec) -> Outcome:
    match await spec.store.set_pending(spec.key, spec.policy.result_ttl):
        case Error(err):
            return _store_failure(err)
        case Ok(acquired) if not acquired:
            # Lost the race for the key; report whatever the winner produced.
            match await spec.store.get(spec.key):
                case Ok(record) if record is not None and record.state == RecordState.COMPLETED:
                    return OutcomeOk(record.value, from_cache=True, key=spec.key)
                case _:
                    return OutcomeError(IdempotencyErrorKind.CONFLICT, "Race conflict")
        case _:
            return await _execute(spec)


@polymorphic[Outcome]
class IdempotencyOutcome:
    @case
    def store_error(cls, node: StoreErrorNode) -> Outcome:
        return _store_failure(node.error)

    @case
    def cached_completed(cls, node: CompletedRecordNode) -> Outcome:
        return OutcomeOk(node.record.value, from_cache=True, key=node.spec.key)

    @case
    def cached_failed(cls, node: FailedRecordNode) -> Outcome:
        return OutcomeError(
            IdempotencyErrorKind.EXECUTION, "Cached failure", node.record.error
        )

    @case
    def pending_conflict(cls, node: PendingRecordNode) -> Outcome:
        if node.spec.policy.conflict_strategy != OnPending.FAIL:
            raise NodeError("Policy not FAIL")
        return OutcomeError(
            IdempotencyErrorKind.CONFLICT, f"Pending conflict: {node.spec.key}"
        )

    @case
    async def pending_wait(cls, node: PendingRecordNode) -> Outcome:
        spec = node.spec
        if spec.policy.conflict_strategy != OnPending.WAIT:
            raise NodeError("Policy not WAIT")

        interval = spec.policy.poll_interval.total_seconds()
        deadline = spec.policy.pending_wait_timeout.total_seconds()
        waited = 0.0
        while waited < deadline:
            await asyncio.sleep(interval)
            waited += interval
            match await spec.store.get(spec.key):
                case Error(err):
                    return _store_failure(err)
                case Ok(record) if record is None:
                    # Holder failed and released the key: take it over.
                    return await _claim_and_execute(spec)
                case Ok(record) if record.state == RecordState.COMPLETED:
                    return OutcomeOk(record.value, from_cache=True, key=spec.key)
                case Ok(record) if record.state == RecordState.FAILED:
                    return OutcomeError(
                        IdempotencyErrorKind.EXECUTION,
                        "Operation failed while waiting",
                        record.error,
                    )
                case Ok(_):
                    pass

        return OutcomeError(
            IdempotencyErrorKind.TIMEOUT, "Timeout waiting for pending operation"
        )

    @case
    async def execute_new(cls, node: NoRecordNode) -> Outcome:
        return await _claim_and_execute(node.spec)


# ═══════════════════════════════════════════════════════════════════════════════
# Final
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class FinalResultNode:
    def __init__(self, outcome: Outcome) -> None:
        self.outcome = outcome

    @classmethod
    def __compose__(cls, outcome: IdempotencyOutcome) -> "FinalResultNode":
        return cls(outcome.value)

    def to_result(self) -> Result[IdempotencyResult[Any], IdempotencyError[Any]]:
        match self.outcome:
            case OutcomeOk(value=v, from_cache=fc, key=k):
                return Ok(IdempotencyResult(value=v, from_cache=fc, key=k))
            case OutcomeError(kind=kind, message=msg, original_error=orig):
                return Error(IdempotencyError(kind=kind, message=msg, original_error=orig))


async def run_idempotent(
    spec: IdempotencySpec,
) -> Result[IdempotencyResult[Any], IdempotencyError[Any]]:
    node = await G.run(FinalResultNode).inject(spec)
    return node.to_result()


__all__ = (
    "IdempotencySpec",
    "Outcome",
    "OutcomeOk",
    "OutcomeError",
    "FetchRecordNode",
    "CompletedRecordNode",
    "FailedRecordNode",
    "PendingRecordNode",
    "NoRecordNode",
    "StoreErrorNode",
    "IdempotencyOutcome",
    "FinalResultNode",
    "run_idempotent",
)

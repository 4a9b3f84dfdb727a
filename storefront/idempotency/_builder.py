"""
Idempotency builder — fluent API over the graph.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any

from kungfu import LazyCoroResult, Result

from storefront.idempotency._policy import Policy
from storefront.idempotency._store import MemoryStore, Store
from storefront.idempotency._types import IdempotencyError, IdempotencyResult

type KeyFn[K] = Callable[[K], str]


@dataclass(frozen=True, slots=True)
class Idempotent[K, T, E]:
    _operation: Callable[[K], Awaitable[Result[T, E]]]
    _key_fn: KeyFn[K] | None = None
    _store: Store | None = None
    _policy: Policy = Policy()

    def key(self, fn: KeyFn[K]) -> Idempotent[K, T, E]:
        return replace(self, _key_fn=fn)

    def store(self, s: Store) -> Idempotent[K, T, E]:
        return replace(self, _store=s)

    def policy(self, p: Policy) -> Idempotent[K, T, E]:
        return replace(self, _policy=p)

    def build(self) -> IdempotentExecutor[K, T, E]:
        if self._key_fn is None:
            raise ValueError("key() is required")
        return IdempotentExecutor(
            operation=self._operation,
            key_fn=self._key_fn,
            store=self._store if self._store is not None else MemoryStore(),
            policy=self._policy,
        )


@dataclass(frozen=True, slots=True)
class IdempotentExecutor[K, T, E]:
    operation: Callable[[K], Awaitable[Result[T, E]]]
    key_fn: KeyFn[K]
    store: Store
    policy: Policy

    def run(self, input_val: K) -> LazyCoroResult[IdempotencyResult[T], IdempotencyError[E]]:
        from storefront.idempotency._graph import IdempotencySpec, run_idempotent

        spec = IdempotencySpec(
            key=self.key_fn(input_val),
            input_value=input_val,
            operation=self.operation,
            store=self.store,
            policy=self.policy,
        )

        async def execute() -> Result[IdempotencyResult[Any], IdempotencyError[Any]]:
            return await run_idempotent(spec)

        return LazyCoroResult(execute)


def idempotent[K, T, E](
    operation: Callable[[K], Awaitable[Result[T, E]]],
) -> Idempotent[K, T, E]:
    """
    Wrap an operation so each key runs at most once.

        executor = (
            I.idempotent(apply_notification)
            .key(lambda n: f"itn:{n.reference}:{n.transaction_id}")
            .store(store.with_pending(notification))
            .policy(I.Policy().with_on_pending(I.WAIT))
            .build()
        )
        result = await executor.run(notification)
    """
    return Idempotent(_operation=operation)


__all__ = ("Idempotent", "IdempotentExecutor", "idempotent")

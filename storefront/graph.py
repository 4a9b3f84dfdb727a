"""
Graph — thin runner over nodnod.

    from storefront import graph as G

    @G.node
    class PricedCartNode:
        def __init__(self, priced: PricedCart) -> None:
            self.priced = priced

        @classmethod
        async def __compose__(cls, request: CheckoutRequestNode) -> "PricedCartNode":
            ...

    totals = await G.compose(TotalsNode, checkout_request)

Dependencies are discovered from the target's `__compose__` signature, so
modules defining nodes must not use `from __future__ import annotations`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import Scope, Value, EventLoopAgent, Node
from nodnod import scalar_node as node


# ═══════════════════════════════════════════════════════════════════════════════
# Run — awaitable builder
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Run[T]:
    """
    Pending execution of a target node.

        node = await G.run(FinalResultNode).inject(spec)
        node = await G.run(TotalsNode).inject_as(CheckoutRequest, request)
    """

    target: type[T]
    injections: tuple[tuple[type[Any], Any], ...] = ()

    def inject(self, value: object) -> Run[T]:
        """Inject a value under its runtime type."""
        return self.inject_as(cast(type[Any], type(value)), value)

    def inject_as[V](self, typ: type[V], value: V) -> Run[T]:
        return Run(self.target, (*self.injections, (typ, value)))

    def __await__(self) -> Any:
        return self._execute().__await__()

    async def _execute(self) -> T:
        agent = EventLoopAgent.build({cast(type[Node[Any, Any]], self.target)})

        scope = Scope(detail="storefront")
        async with scope:
            for typ, value in self.injections:
                scope.push(Value(typ, value))

            run_agent = cast(
                Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
                getattr(agent, "run"),
            )
            await run_agent(scope, {})

            produced = scope.get(self.target)
            if produced is None:
                raise KeyError(f"{self.target.__name__} was not produced")
            return cast(T, produced.value)


def run[T](target: type[T]) -> Run[T]:
    return Run(target)


async def compose[T](target: type[T], *inputs: object) -> T:
    """One-shot: inject every input under its runtime type and run."""
    pending = run(target)
    for value in inputs:
        pending = pending.inject(value)
    return await pending


__all__ = ("node", "Run", "run", "compose")

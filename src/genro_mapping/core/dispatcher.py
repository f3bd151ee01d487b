# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Dispatcher - drives one request through resolution and the chain protocol.

::

    dispatcher = Dispatcher(registry)
    result = dispatcher.dispatch(context)
    if not result.matched:
        ...  # not found: a normal outcome
    elif not result.handled:
        ...  # an interceptor short-circuited (see REJECTION_ATTRIBUTE)
    else:
        render(result.value)

Internal errors (matcher faults, missing adapters, failing handlers or hooks)
propagate to the caller's central error handler after after-completion has
run for every started interceptor.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .adapters import AdapterRegistry
from .chain import ExecutionChain
from .registry import MappingRegistry

if TYPE_CHECKING:  # pragma: no cover
    from .context import RequestContext

__all__ = ["Dispatcher", "DispatchResult"]


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of ``Dispatcher.dispatch()``.

    Attributes:
        matched: False when no matcher claimed the request.
        handled: True when the handler ran to completion.
        value: Handler result.
        chain: The resolved chain (``None`` when not matched).
    """

    matched: bool
    handled: bool = False
    value: Any = None
    chain: ExecutionChain | None = None


class Dispatcher:
    """Resolve a request and run its execution chain."""

    __slots__ = ("registry", "adapters")

    def __init__(self, registry: MappingRegistry, adapters: AdapterRegistry | None = None) -> None:
        self.registry = registry
        self.adapters = adapters or AdapterRegistry()

    def dispatch(self, context: RequestContext) -> DispatchResult:
        chain = self.registry.resolve(context)
        if chain is None:
            return DispatchResult(matched=False)
        adapter = self.adapters.adapter_for(chain.handler)
        outcome = chain.execute(context, lambda handler: adapter.handle(context, handler))
        return DispatchResult(
            matched=True, handled=outcome.handled, value=outcome.value, chain=chain
        )

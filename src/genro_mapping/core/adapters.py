# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Handler adapters - invoking opaque handler references.

Matchers return any object as a handler. The dispatcher never assumes a
shape: it asks an ``AdapterRegistry`` for the first adapter whose
``supports(handler)`` is true and lets it invoke the handler.

Objects
-------
``HandlerMethod``
    Dataclass describing a named handler function. Fields:
        - ``name``: logical handler name
        - ``func``: callable invoked by ``HandlerMethodAdapter``
        - ``metadata``: mutable dict interceptors may read (e.g. ``auth_rule``)

``HandlerMethodAdapter``
    Calls ``func(context, **uri_template_variables)``. A template variable
    named ``context`` is not passed as keyword; it stays readable through
    ``context.match_metadata.uri_template_variables``.

``CallableAdapter``
    Calls ``handler(context)`` for any other callable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from genro_mapping.exceptions import NoAdapterFound

from .attributes import URI_TEMPLATE_VARIABLES

if TYPE_CHECKING:  # pragma: no cover
    from .context import RequestContext

__all__ = [
    "HandlerMethod",
    "HandlerAdapter",
    "HandlerMethodAdapter",
    "CallableAdapter",
    "AdapterRegistry",
]


@dataclass
class HandlerMethod:
    """A named handler function with metadata.

    Attributes:
        name: Logical handler name.
        func: Callable invoked by ``HandlerMethodAdapter``.
        metadata: Mutable dict for interceptors to read annotations from.
    """

    name: str
    func: Callable
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def of(cls, func: Callable, *, name: str | None = None, **metadata: Any) -> HandlerMethod:
        return cls(name=name or func.__name__, func=func, metadata=dict(metadata))


class HandlerAdapter(ABC):
    """Knows how to invoke one kind of handler reference."""

    @abstractmethod
    def supports(self, handler: Any) -> bool: ...

    @abstractmethod
    def handle(self, context: RequestContext, handler: Any) -> Any: ...


class HandlerMethodAdapter(HandlerAdapter):
    def supports(self, handler: Any) -> bool:
        return isinstance(handler, HandlerMethod)

    def handle(self, context: RequestContext, handler: Any) -> Any:
        variables = context.get_attribute(URI_TEMPLATE_VARIABLES) or {}
        # "context" is the positional slot; read such a variable from the metadata
        kwargs = {name: value for name, value in variables.items() if name != "context"}
        return handler.func(context, **kwargs)


class CallableAdapter(HandlerAdapter):
    def supports(self, handler: Any) -> bool:
        return callable(handler)

    def handle(self, context: RequestContext, handler: Any) -> Any:
        return handler(context)


class AdapterRegistry:
    """Ordered handler adapters; the first supporting adapter wins."""

    __slots__ = ("_adapters",)

    def __init__(self, adapters: Iterable[HandlerAdapter] | None = None) -> None:
        if adapters is None:
            adapters = (HandlerMethodAdapter(), CallableAdapter())
        self._adapters: list[HandlerAdapter] = list(adapters)

    def add(self, adapter: HandlerAdapter, *, first: bool = False) -> AdapterRegistry:
        if not isinstance(adapter, HandlerAdapter):
            raise TypeError("adapter must be a HandlerAdapter instance")
        if first:
            self._adapters.insert(0, adapter)
        else:
            self._adapters.append(adapter)
        return self

    @property
    def adapters(self) -> tuple[HandlerAdapter, ...]:
        return tuple(self._adapters)

    def adapter_for(self, handler: Any) -> HandlerAdapter:
        """Return the adapter for ``handler``.

        Raises:
            NoAdapterFound: if no adapter supports the handler.
        """
        for adapter in self._adapters:
            if adapter.supports(handler):
                return adapter
        raise NoAdapterFound(handler)

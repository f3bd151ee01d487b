# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""RouteMatcher - strategy deciding whether and how a request maps to a handler.

``RouteMatcher`` is the minimal contract every matcher implements, so external
packages can contribute matchers without depending on ``AbstractRouteMatcher``.

Contract
--------
- ``match(context)`` returns an ``ExecutionChain`` or ``None``. ``None`` is the
  normal "not mine" answer and never an error.
- Exceptions are reserved for internal faults (broken matcher state, a failing
  dependency).
- A matcher may publish any subset of the mapping attributes on the context
  when it matches, and must leave the context untouched when it declines.
- ``order`` is the priority rank: lower is consulted first, ``None`` last.

AbstractRouteMatcher
--------------------
Base for concrete matchers. Subclasses implement ``lookup_handler(context)``;
the base class provides:

- attribute rollback: ``lookup_handler`` runs inside
  ``context.attribute_scope()``, so writes vanish when it declines or raises;
- the ``default_handler`` fallback;
- ``BEST_MATCHING_HANDLER`` publication;
- interceptors, given as instances, ``MappedInterceptor`` or registered
  interceptor codes, configured with ``<code>_<option>`` keyword arguments::

      PathPatternMatcher(
          interceptors=["logging", "auth"],
          logging_before=False,
          auth_rule="admin",
      )

- ``freeze()``: after startup no registration is accepted.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from genro_toolbox import dictExtract

from .attributes import BEST_MATCHING_HANDLER, LOOKUP_PATH
from .chain import ExecutionChain
from .interceptor import (
    HandlerInterceptor,
    MappedInterceptor,
    create_interceptor,
)
from .paths import request_path

if TYPE_CHECKING:  # pragma: no cover
    from .context import RequestContext

__all__ = ["RouteMatcher", "AbstractRouteMatcher"]


class RouteMatcher(ABC):
    """Minimal interface for route matchers.

    Attributes:
        name: Matcher name for identification and debugging.
        order: Priority rank; lower first, ``None`` means lowest priority.
    """

    name: str | None = None
    order: int | None = None

    @abstractmethod
    def match(self, context: RequestContext) -> ExecutionChain | None:
        """Return an execution chain for ``context`` or ``None`` to decline."""
        ...

    def freeze(self) -> None:  # pragma: no cover - optional hook
        """Called once by the registry when startup registration ends."""
        return None


class AbstractRouteMatcher(RouteMatcher):
    """Route matcher with interceptors, default handler and rollback."""

    __slots__ = ("name", "order", "default_handler", "_interceptors", "_frozen")

    def __init__(
        self,
        name: str | None = None,
        *,
        order: int | None = None,
        interceptors: Iterable[HandlerInterceptor | MappedInterceptor | str] = (),
        default_handler: Any = None,
        **options: Any,
    ) -> None:
        if order is not None and (isinstance(order, bool) or not isinstance(order, int)):
            raise TypeError(f"order must be an int or None, got {type(order).__name__}")
        self.name = name or type(self).__name__
        self.order = order
        self.default_handler = default_handler
        self._interceptors: list[HandlerInterceptor | MappedInterceptor] = []
        self._frozen = False
        codes = [item for item in interceptors if isinstance(item, str)]
        consumed: set[str] = set()
        for code in codes:
            prefix = f"{code}_"
            consumed.update(key for key in options if key.startswith(prefix))
        unknown = set(options) - consumed
        if unknown:
            raise TypeError(f"Unexpected matcher options: {', '.join(sorted(unknown))}")
        for item in interceptors:
            if isinstance(item, str):
                config = dictExtract(options, f"{item}_", slice_prefix=True, pop=False)
                self.add_interceptor(item, **config)
            else:
                self.add_interceptor(item)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} order={self.order}>"

    # ------------------------------------------------------------------
    # Configuration (startup only)
    # ------------------------------------------------------------------
    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def _check_not_frozen(self, operation: str) -> None:
        if self._frozen:
            raise RuntimeError(f"Cannot {operation} on matcher '{self.name}' after freeze()")

    def add_interceptor(
        self,
        interceptor: HandlerInterceptor | MappedInterceptor | str,
        *,
        include: Iterable[str] = (),
        exclude: Iterable[str] = (),
        **config: Any,
    ) -> AbstractRouteMatcher:
        """Append an interceptor (instance, mapped, or registered code).

        Args:
            interceptor: Instance, ``MappedInterceptor`` or interceptor code.
            include: Lookup path patterns the interceptor applies to.
            exclude: Lookup path patterns the interceptor never applies to.
            **config: Configuration for an interceptor given by code.

        Returns:
            self (for method chaining).
        """
        self._check_not_frozen("add interceptors")
        if isinstance(interceptor, str):
            interceptor = create_interceptor(interceptor, **config)
        elif config:
            raise TypeError("Configuration options require an interceptor code")
        if include or exclude:
            if isinstance(interceptor, MappedInterceptor):
                raise TypeError("MappedInterceptor already carries include/exclude patterns")
            interceptor = MappedInterceptor(interceptor, include=include, exclude=exclude)
        self._interceptors.append(interceptor)
        return self

    @property
    def interceptors(self) -> tuple[HandlerInterceptor | MappedInterceptor, ...]:
        return tuple(self._interceptors)

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------
    @abstractmethod
    def lookup_handler(self, context: RequestContext) -> Any:
        """Return the handler for ``context`` or ``None``.

        May publish mapping attributes on ``context``; they are rolled back
        when this method returns ``None`` or raises.
        """
        ...

    def match(self, context: RequestContext) -> ExecutionChain | None:
        with context.attribute_scope() as scope:
            handler = self.lookup_handler(context)
            if handler is None:
                handler = self.default_handler
            if handler is None:
                scope.discard()
                return None
            best = handler.handler if isinstance(handler, ExecutionChain) else handler
            context.set_attribute(BEST_MATCHING_HANDLER, best)
            return self.build_chain(handler, context)

    def build_chain(self, handler: Any, context: RequestContext) -> ExecutionChain:
        """Wrap ``handler`` with the interceptors applicable to ``context``."""
        split = request_path(context)
        lookup_path = context.get_attribute(LOOKUP_PATH)
        if split.trailing_slash and lookup_path and not lookup_path.endswith("/"):
            split = split.without_trailing_slash()
        selected: list[HandlerInterceptor] = []
        for item in self._interceptors:
            if isinstance(item, MappedInterceptor):
                if item.matches(split):
                    selected.append(item.interceptor)
            else:
                selected.append(item)
        return ExecutionChain(handler, selected)

# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""MappingRegistry - ordered collection of route matchers.

Matchers are added at startup and kept sorted by priority rank: ascending
``order``, matchers without a rank last, registration order among equals.
The first call to ``resolve()`` (or an explicit ``freeze()``) fixes the
sequence; afterwards the registry is read-only and safe to share between
concurrent requests without locking.

Resolution
----------
``resolve(context)`` consults matchers in order and returns the first
``ExecutionChain``. Later matchers are never consulted once one matches.

- every matcher declines: ``None`` (a normal outcome, not an error);
- a matcher raises: the error propagates at once and no further matcher is
  tried. Errors other than ``MappingError`` are wrapped in ``MatcherError``
  with the original chained as ``__cause__``.

After a match the registry seals the context's mapping attributes so nothing
later in the request can overwrite them.

Example::

    registry = MappingRegistry([api_matcher, static_matcher])
    chain = registry.resolve(context)
    if chain is None:
        ...  # respond not-found or try another strategy
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from genro_mapping.exceptions import MappingError, MatcherError

from .chain import ExecutionChain
from .matcher import RouteMatcher

if TYPE_CHECKING:  # pragma: no cover
    from .context import RequestContext

__all__ = ["MappingRegistry"]

logger = logging.getLogger("genro_mapping.registry")


def _rank(matcher: RouteMatcher) -> tuple[int, int]:
    order = getattr(matcher, "order", None)
    return (1, 0) if order is None else (0, order)


class MappingRegistry:
    """Route matchers consulted in priority order."""

    __slots__ = ("_pending", "_matchers", "_frozen")

    def __init__(self, matchers: Iterable[RouteMatcher] = ()) -> None:
        self._pending: list[RouteMatcher] = []
        self._matchers: tuple[RouteMatcher, ...] = ()
        self._frozen = False
        for matcher in matchers:
            self.add(matcher)

    def __len__(self) -> int:
        return len(self._pending)

    def __repr__(self) -> str:
        names = ", ".join(repr(m) for m in self.matchers)
        return f"<MappingRegistry [{names}]>"

    def add(self, matcher: RouteMatcher) -> MappingRegistry:
        """Add a matcher. Only allowed before ``freeze()``.

        Raises:
            TypeError: if ``matcher`` has no ``match`` method.
            RuntimeError: after ``freeze()``.
        """
        if self._frozen:
            raise RuntimeError("Cannot add matchers after the registry is frozen")
        if not callable(getattr(matcher, "match", None)):
            raise TypeError(f"Matcher must implement match(context), got {type(matcher).__name__}")
        self._pending.append(matcher)
        # sorted() is stable: equal ranks keep registration order
        self._matchers = tuple(sorted(self._pending, key=_rank))
        return self

    @property
    def matchers(self) -> tuple[RouteMatcher, ...]:
        """Matchers in consultation order."""
        return self._matchers

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Fix the matcher sequence and freeze every matcher. Idempotent."""
        if self._frozen:
            return
        self._frozen = True
        for matcher in self._matchers:
            freeze = getattr(matcher, "freeze", None)
            if callable(freeze):
                freeze()
        logger.debug("Registry frozen with %d matcher(s): %r", len(self._matchers), self._matchers)

    def resolve(self, context: RequestContext) -> ExecutionChain | None:
        """Return the chain from the first matching matcher, or ``None``."""
        if not self._frozen:
            self.freeze()
        for matcher in self._matchers:
            try:
                chain = matcher.match(context)
            except MappingError:
                raise
            except Exception as exc:
                raise MatcherError(matcher) from exc
            if chain is not None:
                if not isinstance(chain, ExecutionChain):
                    raise MatcherError(
                        matcher, f"Matcher returned {type(chain).__name__}, expected ExecutionChain"
                    )
                logger.debug("%r matched %r -> %r", matcher, context, chain.handler)
                context.seal_mapping_attributes()
                return chain
        logger.debug("No matcher matched %r", context)
        return None

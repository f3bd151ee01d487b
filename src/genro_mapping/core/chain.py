# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""ExecutionChain - a resolved handler plus its ordered interceptors.

One chain is produced per successful match and consumed by exactly one
request. ``handler`` and ``interceptors`` are fixed at construction; the
chain only records which interceptors have started so cleanup can be
delivered to exactly those.

Invocation protocol
-------------------
::

    pre (registration order) -> handler -> post (reverse) -> after-completion (reverse)

- a pre-hook returning False short-circuits: no handler, no further
  pre-hooks, no post-hooks;
- a raising handler or hook skips the remaining post-hooks;
- after-completion runs for every interceptor whose pre-hook ran (including
  the one that returned False or raised), in reverse order, on every exit
  path; a failing cleanup hook is logged and never stops its siblings.

``execute(context, invoke)`` runs the whole protocol. ``started(context)`` is
the context-manager form for callers that invoke the handler themselves::

    with chain.started(context) as proceed:
        if proceed:
            result = call_handler(chain.handler)
            chain.run_post(context, result)

Disabled ``BaseInterceptor`` instances are skipped entirely and never count
as started.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from genro_mapping.exceptions import AfterCompletionError

from .interceptor import HandlerInterceptor

if TYPE_CHECKING:  # pragma: no cover
    from .context import RequestContext

__all__ = ["ExecutionChain", "ChainResult"]

logger = logging.getLogger("genro_mapping.chain")


@dataclass(frozen=True)
class ChainResult:
    """Outcome of ``ExecutionChain.execute()``.

    Attributes:
        handled: False when a pre-hook short-circuited the request.
        value: Handler result (``None`` when not handled).
    """

    handled: bool
    value: Any = None


def _is_enabled(interceptor: HandlerInterceptor) -> bool:
    return bool(getattr(interceptor, "enabled", True))


class ExecutionChain:
    """Handler reference plus ordered interceptors for one request."""

    __slots__ = (
        "_handler",
        "_interceptors",
        "_started",
        "_pre_ran",
        "_completed",
        "after_completion_errors",
    )

    def __init__(self, handler: Any, interceptors: Iterable[HandlerInterceptor] = ()) -> None:
        extra = tuple(interceptors)
        if isinstance(handler, ExecutionChain):
            extra = handler.interceptors + extra
            handler = handler.handler
        if handler is None:
            raise ValueError("ExecutionChain requires a handler")
        self._handler = handler
        self._interceptors: tuple[HandlerInterceptor, ...] = extra
        self._started: list[HandlerInterceptor] = []
        self._pre_ran = False
        self._completed = False
        self.after_completion_errors: list[tuple[HandlerInterceptor, BaseException]] = []

    def __repr__(self) -> str:
        return f"<ExecutionChain handler={self._handler!r} interceptors={len(self._interceptors)}>"

    @property
    def handler(self) -> Any:
        return self._handler

    @property
    def interceptors(self) -> tuple[HandlerInterceptor, ...]:
        return self._interceptors

    @property
    def started_interceptors(self) -> tuple[HandlerInterceptor, ...]:
        """Interceptors whose pre-hook ran, in execution order."""
        return tuple(self._started)

    # ------------------------------------------------------------------
    # Hook phases
    # ------------------------------------------------------------------
    def run_pre(self, context: RequestContext) -> bool:
        """Run pre-hooks in order; return False at the first rejection."""
        if self._pre_ran:
            raise RuntimeError("ExecutionChain pre-hooks already ran; chains serve one request")
        self._pre_ran = True
        for interceptor in self._interceptors:
            if not _is_enabled(interceptor):
                continue
            self._started.append(interceptor)
            if not interceptor.pre_handle(context, self._handler):
                logger.debug("%r short-circuited %r", interceptor, context)
                return False
        return True

    def run_post(self, context: RequestContext, result: Any) -> None:
        """Run post-hooks in reverse registration order."""
        for interceptor in reversed(self._started):
            interceptor.post_handle(context, self._handler, result)

    def run_after_completion(
        self, context: RequestContext, error: BaseException | None = None
    ) -> None:
        """Run after-completion for started interceptors, in reverse. Runs once."""
        if self._completed:
            return
        self._completed = True
        for interceptor in reversed(self._started):
            try:
                interceptor.after_completion(context, self._handler, error)
            except Exception as exc:
                logger.exception("after_completion failed in %r for %r", interceptor, context)
                self.after_completion_errors.append((interceptor, exc))

    def raise_for_cleanup(self) -> None:
        """Raise ``AfterCompletionError`` if any cleanup hook failed."""
        if self.after_completion_errors:
            raise AfterCompletionError(self.after_completion_errors)

    # ------------------------------------------------------------------
    # Protocol
    # ------------------------------------------------------------------
    @contextmanager
    def started(self, context: RequestContext) -> Iterator[bool]:
        """Run pre-hooks on entry and after-completion on every exit path."""
        error: BaseException | None = None
        try:
            yield self.run_pre(context)
        except BaseException as exc:
            error = exc
            raise
        finally:
            self.run_after_completion(context, error)

    def execute(self, context: RequestContext, invoke: Callable[[Any], Any]) -> ChainResult:
        """Run the full protocol, calling ``invoke(handler)`` for the handler."""
        with self.started(context) as proceed:
            if not proceed:
                return ChainResult(handled=False)
            value = invoke(self._handler)
            self.run_post(context, value)
            return ChainResult(handled=True, value=value)

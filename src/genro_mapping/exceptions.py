# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Exceptions for Genro Mapping.

Every exception here signals an *internal error*: a fault in a matcher, a
pattern, an adapter or a chain component. "No handler matched" is never an
exception; it is reported as ``None`` by ``MappingRegistry.resolve()``.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "MappingError",
    "MatcherError",
    "InvalidPattern",
    "MappingAttributeLocked",
    "NoAdapterFound",
    "AfterCompletionError",
]


class MappingError(Exception):
    """Base for all genro-mapping internal errors."""


class MatcherError(MappingError):
    """Raised when a route matcher fails for a reason other than "no route".

    The original exception is chained as ``__cause__``.

    Attributes:
        matcher: The matcher that failed.
    """

    def __init__(self, matcher: Any, message: str | None = None) -> None:
        self.matcher = matcher
        label = getattr(matcher, "name", None) or type(matcher).__name__
        super().__init__(message or f"Matcher '{label}' failed")


class InvalidPattern(MappingError, ValueError):
    """Raised when a path pattern cannot be compiled.

    Attributes:
        pattern: The offending pattern string.
    """

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        super().__init__(f"Invalid pattern {pattern!r}: {reason}")


class MappingAttributeLocked(MappingError):
    """Raised when a sealed mapping attribute is overwritten or removed.

    Attributes:
        name: The namespaced attribute name.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Mapping attribute '{name}' is sealed for this request")


class NoAdapterFound(MappingError):
    """Raised when no handler adapter supports a resolved handler.

    Attributes:
        handler: The handler reference nobody can invoke.
    """

    def __init__(self, handler: Any) -> None:
        self.handler = handler
        super().__init__(f"No adapter for handler {handler!r}")


class AfterCompletionError(MappingError):
    """Aggregates failures raised by after-completion hooks.

    Cleanup failures never interrupt sibling cleanups. They are collected on
    the chain and surfaced through this exception only on explicit request.

    Attributes:
        errors: List of ``(interceptor, exception)`` pairs in hook order.
    """

    def __init__(self, errors: list[tuple[Any, BaseException]]) -> None:
        self.errors = list(errors)
        names = ", ".join(type(interceptor).__name__ for interceptor, _ in self.errors)
        super().__init__(f"{len(self.errors)} after-completion hook(s) failed: {names}")

# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""PathPatternMatcher - URL pattern to handler mapping.

Handlers are registered against path patterns at startup::

    matcher = PathPatternMatcher("pages", order=10)
    matcher.register("/", home)
    matcher.register("/docs/**", docs)
    matcher.register("/users/{id:int}", user_detail)

Resolution
----------
1. exact patterns are looked up directly by lookup path;
2. otherwise every pattern is tried and the most specific match wins
   (``PathPattern.specificity()``), registration order breaking ties;
3. with ``trailing_slash_match=True`` a path ending in ``/`` is retried
   without the slash.

On a match the matcher publishes ``LOOKUP_PATH``, ``BEST_MATCHING_PATTERN``,
``PATH_WITHIN_MAPPING``, ``URI_TEMPLATE_VARIABLES`` and, when matrix content
was bound to a template variable, ``MATRIX_VARIABLES``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .attributes import (
    BEST_MATCHING_PATTERN,
    LOOKUP_PATH,
    MATRIX_VARIABLES,
    PATH_WITHIN_MAPPING,
    URI_TEMPLATE_VARIABLES,
)
from .matcher import AbstractRouteMatcher
from .paths import PathMatch, PathPattern, SplitPath, lookup_path_for, request_path

if TYPE_CHECKING:  # pragma: no cover
    from .context import RequestContext

__all__ = ["PathPatternMatcher", "expose_path_match"]


def expose_path_match(context: RequestContext, lookup_path: str, match: PathMatch) -> None:
    """Publish the path-related mapping attributes of ``match``."""
    context.set_attribute(LOOKUP_PATH, lookup_path)
    context.set_attribute(BEST_MATCHING_PATTERN, match.pattern)
    context.set_attribute(PATH_WITHIN_MAPPING, match.path_within_mapping)
    context.set_attribute(URI_TEMPLATE_VARIABLES, dict(match.uri_variables))
    if match.matrix_variables:
        context.set_attribute(MATRIX_VARIABLES, dict(match.matrix_variables))


class PathPatternMatcher(AbstractRouteMatcher):
    """Maps URL path patterns to handlers."""

    __slots__ = ("root_handler", "trailing_slash_match", "_exact", "_patterns")

    def __init__(
        self,
        name: str | None = None,
        *,
        mappings: dict[str, Any] | None = None,
        root_handler: Any = None,
        trailing_slash_match: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(name, **kwargs)
        self.root_handler = root_handler
        self.trailing_slash_match = bool(trailing_slash_match)
        self._exact: dict[str, Any] = {}
        self._patterns: list[tuple[PathPattern, Any]] = []
        for pattern, handler in (mappings or {}).items():
            self.register(pattern, handler)

    def register(
        self, pattern: str | PathPattern, handler: Any, *, replace: bool = False
    ) -> PathPatternMatcher:
        """Register ``handler`` for ``pattern``.

        Raises:
            ValueError: on pattern collision when ``replace`` is False, or a
                ``None`` handler.
            InvalidPattern: when the pattern cannot be compiled.
            RuntimeError: after ``freeze()``.
        """
        self._check_not_frozen("register handlers")
        if handler is None:
            raise ValueError(f"Handler for pattern {pattern!r} cannot be None")
        compiled = pattern if isinstance(pattern, PathPattern) else PathPattern(pattern)
        existing = [index for index, (known, _) in enumerate(self._patterns) if known == compiled]
        if existing and not replace:
            raise ValueError(f"Pattern collision: {compiled.pattern}")
        if existing:
            self._patterns[existing[0]] = (compiled, handler)
        else:
            self._patterns.append((compiled, handler))
        if compiled.is_exact:
            self._exact[compiled.pattern] = handler
        return self

    @property
    def mappings(self) -> dict[str, Any]:
        """Registered pattern -> handler, in registration order."""
        return {pattern.pattern: handler for pattern, handler in self._patterns}

    def lookup_handler(self, context: RequestContext) -> Any:
        lookup_path = lookup_path_for(context)
        split = request_path(context)
        handler = self._lookup(context, lookup_path, split)
        retry = self.trailing_slash_match and len(lookup_path) > 1 and lookup_path.endswith("/")
        if handler is None and retry:
            handler = self._lookup(context, lookup_path.rstrip("/"), split.without_trailing_slash())
        return handler

    def _lookup(self, context: RequestContext, lookup_path: str, split: SplitPath) -> Any:
        # a decoded "/" inside a segment never equals a literal path
        exact = not any("/" in value for value in split.values)
        handler = self._exact.get(lookup_path) if exact else None
        if handler is None and lookup_path == "/" and self.root_handler is not None:
            handler = self.root_handler
        if handler is not None:
            expose_path_match(
                context,
                lookup_path,
                PathMatch(pattern=lookup_path, path_within_mapping=lookup_path),
            )
            return handler

        best: tuple[tuple[int, ...], PathMatch, Any] | None = None
        for pattern, candidate in self._patterns:
            if pattern.is_exact:
                continue
            match = pattern.match(split)
            if match is None:
                continue
            key = pattern.specificity()
            if best is None or key < best[0]:
                best = (key, match, candidate)
        if best is None:
            return None
        _, match, handler = best
        expose_path_match(context, lookup_path, match)
        return handler

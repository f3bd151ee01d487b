# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""RequestMappingMatcher - handlers selected by request conditions.

A ``RequestMapping`` combines conditions that must all hold:

- ``patterns``: path patterns (empty = every path);
- ``methods``: request methods (empty = every method; ``HEAD`` also
  matches ``GET`` mappings);
- ``params`` / ``headers``: expressions ``name``, ``!name``, ``name=value``
  and ``name!=value``;
- ``consumes``: media types accepted in ``Content-Type``;
- ``produces``: media types the handler can produce, checked against
  ``Accept``.

Example::

    matcher = RequestMappingMatcher("api", order=0)
    matcher.register(
        RequestMapping(patterns="/books/{isbn}", methods="GET", produces="application/json"),
        get_book,
    )

When several mappings match, the one with the most specific pattern wins,
then the one with more conditions, then the first registered.

On a match the path attributes are published as by ``PathPatternMatcher``,
plus ``PRODUCIBLE_MEDIA_TYPES`` when the mapping declares ``produces`` and
``INTROSPECT_TYPE_LEVEL_MAPPING`` when the mapping requests it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, field_validator

from .attributes import INTROSPECT_TYPE_LEVEL_MAPPING, PRODUCIBLE_MEDIA_TYPES
from .matcher import AbstractRouteMatcher
from .media_types import is_compatible, normalize_media_type, parse_accept
from .paths import PathMatch, PathPattern, SplitPath, lookup_path_for, request_path
from .url_matcher import expose_path_match

if TYPE_CHECKING:  # pragma: no cover
    from .context import RequestContext

__all__ = ["RequestMapping", "RequestMappingMatcher"]

_DEFAULT_CONTENT_TYPE = "application/octet-stream"


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(chunk.strip() for chunk in value.split(",") if chunk.strip())
    return tuple(value)


class RequestMapping(BaseModel):
    """Immutable set of request conditions for one handler."""

    model_config = ConfigDict(frozen=True)

    patterns: tuple[str, ...] = ()
    methods: frozenset[str] = frozenset()
    params: tuple[str, ...] = ()
    headers: tuple[str, ...] = ()
    consumes: tuple[str, ...] = ()
    produces: tuple[str, ...] = ()
    introspect_type_level: bool = False
    name: str | None = None

    @field_validator("patterns", "params", "headers", mode="before")
    @classmethod
    def _split(cls, value: Any) -> tuple[str, ...]:
        return _as_tuple(value)

    @field_validator("methods", mode="before")
    @classmethod
    def _upper_methods(cls, value: Any) -> frozenset[str]:
        return frozenset(method.upper() for method in _as_tuple(value))

    @field_validator("consumes", "produces", mode="before")
    @classmethod
    def _media_types(cls, value: Any) -> tuple[str, ...]:
        return tuple(normalize_media_type(item) for item in _as_tuple(value))

    @property
    def condition_count(self) -> int:
        return (
            len(self.methods)
            + len(self.params)
            + len(self.headers)
            + len(self.consumes)
            + len(self.produces)
        )


@dataclass(frozen=True)
class _Expression:
    """Parsed ``name``, ``!name``, ``name=value`` or ``name!=value``."""

    name: str
    value: str | None
    negated: bool

    @classmethod
    def parse(cls, expression: str) -> _Expression:
        if "!=" in expression:
            name, value = expression.split("!=", 1)
            return cls(name.strip(), value.strip(), True)
        if "=" in expression:
            name, value = expression.split("=", 1)
            return cls(name.strip(), value.strip(), False)
        if expression.startswith("!"):
            return cls(expression[1:].strip(), None, True)
        return cls(expression.strip(), None, False)

    def holds(self, actual: str | None) -> bool:
        if self.value is None:
            present = actual is not None
            return not present if self.negated else present
        matched = actual == self.value
        return not matched if self.negated else matched


@dataclass(frozen=True)
class _Registration:
    mapping: RequestMapping
    handler: Any
    patterns: tuple[PathPattern, ...]
    params: tuple[_Expression, ...]
    headers: tuple[_Expression, ...]


class RequestMappingMatcher(AbstractRouteMatcher):
    """Maps request conditions (path, method, headers, media types) to handlers."""

    __slots__ = ("_registrations",)

    def __init__(self, name: str | None = None, **kwargs: Any) -> None:
        super().__init__(name, **kwargs)
        self._registrations: list[_Registration] = []

    def register(
        self, mapping: RequestMapping | dict[str, Any], handler: Any
    ) -> RequestMappingMatcher:
        """Register ``handler`` under ``mapping``.

        Raises:
            ValueError: on a ``None`` handler or a duplicate mapping.
            pydantic.ValidationError: when a dict mapping is invalid.
            RuntimeError: after ``freeze()``.
        """
        self._check_not_frozen("register handlers")
        if handler is None:
            raise ValueError("Handler cannot be None")
        if not isinstance(mapping, RequestMapping):
            mapping = RequestMapping(**mapping)
        if any(known.mapping == mapping for known in self._registrations):
            raise ValueError(f"Duplicate request mapping: {mapping!r}")
        self._registrations.append(
            _Registration(
                mapping=mapping,
                handler=handler,
                patterns=tuple(PathPattern(p) for p in mapping.patterns),
                params=tuple(_Expression.parse(p) for p in mapping.params),
                headers=tuple(_Expression.parse(h) for h in mapping.headers),
            )
        )
        return self

    @property
    def mappings(self) -> list[tuple[RequestMapping, Any]]:
        return [(item.mapping, item.handler) for item in self._registrations]

    # ------------------------------------------------------------------
    # Conditions
    # ------------------------------------------------------------------
    def _method_matches(self, mapping: RequestMapping, method: str) -> bool:
        if not mapping.methods or method in mapping.methods:
            return True
        return method == "HEAD" and "GET" in mapping.methods

    def _consumes_matches(self, mapping: RequestMapping, context: RequestContext) -> bool:
        if not mapping.consumes:
            return True
        try:
            raw = context.header("Content-Type") or _DEFAULT_CONTENT_TYPE
            content_type = normalize_media_type(raw)
        except ValueError:
            return False
        return any(is_compatible(content_type, accepted) for accepted in mapping.consumes)

    def _produces_matches(self, mapping: RequestMapping, accepted: list[str]) -> bool:
        if not mapping.produces:
            return True
        return any(
            is_compatible(candidate, wanted) for candidate in mapping.produces for wanted in accepted
        )

    def _path_match(
        self, item: _Registration, lookup_path: str, split: SplitPath
    ) -> tuple[tuple[int, ...], PathMatch] | None:
        if not item.patterns:
            # pattern-less mappings match every path, after any pattern
            return (2,), PathMatch(pattern=lookup_path, path_within_mapping=lookup_path)
        best: tuple[tuple[int, ...], PathMatch] | None = None
        for pattern in item.patterns:
            found = pattern.match(split)
            if found is not None and (best is None or pattern.specificity() < best[0]):
                best = (pattern.specificity(), found)
        return best

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def lookup_handler(self, context: RequestContext) -> Any:
        lookup_path = lookup_path_for(context)
        split = request_path(context)
        accepted = parse_accept(context.header("Accept"))

        best: tuple[tuple[Any, ...], _Registration, PathMatch] | None = None
        for index, item in enumerate(self._registrations):
            mapping = item.mapping
            if not self._method_matches(mapping, context.method):
                continue
            if not all(expr.holds(context.param(expr.name)) for expr in item.params):
                continue
            if not all(expr.holds(context.header(expr.name)) for expr in item.headers):
                continue
            if not self._consumes_matches(mapping, context):
                continue
            if not self._produces_matches(mapping, accepted):
                continue
            path_result = self._path_match(item, lookup_path, split)
            if path_result is None:
                continue
            specificity, found = path_result
            key = (specificity, -mapping.condition_count, index)
            if best is None or key < best[0]:
                best = (key, item, found)

        if best is None:
            return None
        _, item, found = best
        expose_path_match(context, lookup_path, found)
        if item.mapping.produces:
            context.set_attribute(PRODUCIBLE_MEDIA_TYPES, frozenset(item.mapping.produces))
        if item.mapping.introspect_type_level:
            context.set_attribute(INTROSPECT_TYPE_LEVEL_MAPPING, True)
        return item.handler

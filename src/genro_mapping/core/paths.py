# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Path patterns, lookup paths and matrix variables.

Lookup path
-----------
``lookup_path_for(context)`` derives the path used for matching from the raw
request path: query string and ``context_path`` prefix removed, duplicate
slashes collapsed, each segment percent-decoded. Matrix content (``;name=v``)
is stripped from every segment unless ``remove_semicolon_content=False``.

Patterns match a ``SplitPath`` (``request_path(context)``): the raw path is
split on ``?``, ``/`` and ``;`` first and each piece decoded afterwards, so
``%2F``, ``%3B`` and ``%3F`` stay part of the value they encode.

Pattern syntax
--------------
Patterns are split on ``/``. Each segment is one of:

- a literal: ``users``
- a template variable: ``{id}``, optionally typed or constrained:
  ``{id:int}``, ``{slug:[a-z-]+}``; literal text may surround it
  (``{name}.json``)
- a catch-all variable: ``{rest:path}`` (last segment only)
- ``*`` for exactly one segment, ``**`` for zero or more trailing segments
  (last segment only)
- a literal with ``*`` / ``?`` wildcards: ``*.html``, ``file?``

Example::

    pattern = PathPattern("/shop/{category}/**")
    match = pattern.match("/shop/cars;color=red,blue/sedan/4")
    match.uri_variables         # {"category": "cars"}
    match.matrix_variables      # {"category": {"color": ["red", "blue"]}}
    match.path_within_mapping   # "cars/sedan/4"
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from fnmatch import translate
from typing import TYPE_CHECKING
from urllib.parse import unquote

from genro_mapping.exceptions import InvalidPattern

if TYPE_CHECKING:  # pragma: no cover
    from .context import RequestContext

__all__ = [
    "CONVERTERS",
    "PathMatch",
    "PathPattern",
    "PathSegment",
    "SplitPath",
    "lookup_path_for",
    "parse_matrix_variables",
    "request_path",
    "split_path",
]

# Regex for each named converter usable as ``{name:converter}``.
# Values are matched one decoded segment at a time, so "/" may appear in them.
CONVERTERS: dict[str, str] = {
    "str": r".+",
    "int": r"\d+",
    "float": r"\d+(?:\.\d+)?",
    "uuid": r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}",
}

_VARIABLE_RE = re.compile(r"\{([^{}:]+)(?::((?:[^{}]|\{[^{}]*\})+))?\}")


@dataclass(frozen=True)
class PathSegment:
    """One path segment: decoded value plus its decoded matrix variables."""

    value: str
    matrix: dict[str, list[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class SplitPath:
    """Request path already split on ``/`` and ``;``, every piece decoded.

    Splitting happens on the raw text, so encoded delimiters (``%2F``,
    ``%3B``, ``%3F``) stay inside the value they belong to.
    """

    segments: tuple[PathSegment, ...] = ()
    trailing_slash: bool = False

    @property
    def values(self) -> list[str]:
        return [segment.value for segment in self.segments]

    def without_trailing_slash(self) -> SplitPath:
        return SplitPath(self.segments, False)


def _strip_prefix(path: str, prefix: str) -> str:
    path = path.split("?", 1)[0]
    if prefix and (path == prefix or path.startswith(prefix + "/")):
        path = path[len(prefix) :]
    return path


def _matrix_from_params(params: list[str]) -> dict[str, list[str]]:
    result: dict[str, list[str]] = {}
    for chunk in params:
        chunk = chunk.strip()
        if not chunk:
            continue
        name, _, raw = chunk.partition("=")
        values = result.setdefault(unquote(name.strip()), [])
        values.extend(unquote(value.strip()) for value in raw.split(",") if value.strip())
    return result


def split_path(path: str, context_path: str = "") -> SplitPath:
    """Split a raw (still encoded) request path into decoded segments."""
    path = _strip_prefix(path, context_path)
    segments = []
    for chunk in path.split("/"):
        if not chunk:
            continue
        value, *params = chunk.split(";")
        segments.append(PathSegment(unquote(value), _matrix_from_params(params)))
    return SplitPath(tuple(segments), path.endswith("/") and bool(segments))


def request_path(context: RequestContext) -> SplitPath:
    """Return the split lookup path of ``context``."""
    return split_path(context.path, context.context_path)


def lookup_path_for(context: RequestContext, *, remove_semicolon_content: bool = True) -> str:
    """Return the decoded lookup path of ``context`` as text.

    The text form is for display and exact lookups; pattern matching works on
    ``request_path()`` so decoded delimiters are never split again.
    """
    path = _strip_prefix(context.path, context.context_path)
    segments = []
    for segment in path.split("/"):
        if not segment:
            continue
        parts = [unquote(part) for part in segment.split(";")]
        if remove_semicolon_content:
            segments.append(parts[0])
        else:
            segments.append(";".join(parts))
    lookup = "/" + "/".join(segments)
    if path.endswith("/") and segments:
        lookup += "/"
    return lookup


def parse_matrix_variables(segment: str) -> dict[str, list[str]]:
    """Parse ``name=v1,v2;other=v3`` matrix content of one raw path segment.

    Anything before the first ``;`` is the segment value and is ignored.
    """
    return _matrix_from_params(segment.split(";")[1:])


@dataclass(frozen=True)
class PathMatch:
    """Result of a successful ``PathPattern.match()``."""

    pattern: str
    uri_variables: dict[str, str] = field(default_factory=dict)
    matrix_variables: dict[str, dict[str, list[str]]] = field(default_factory=dict)
    path_within_mapping: str = ""


@dataclass(frozen=True)
class _Segment:
    kind: str  # "literal", "regex", "any", "tail"
    text: str
    regex: re.Pattern[str] | None = None
    variables: tuple[str, ...] = ()
    wildcards: int = 0


class PathPattern:
    """Compiled path pattern with template variables and wildcards.

    Patterns are compiled once and are safe to share between threads.
    """

    __slots__ = (
        "pattern",
        "_segments",
        "_tail_variable",
        "_variable_count",
        "_wildcards",
        "_literal_length",
        "_trailing_slash",
    )

    def __init__(self, pattern: str) -> None:
        if not isinstance(pattern, str):
            raise TypeError(f"Pattern must be a string, got {type(pattern).__name__}")
        normalized = "/" + pattern.strip().lstrip("/")
        self.pattern = normalized
        self._trailing_slash = normalized.endswith("/") and normalized != "/"
        self._tail_variable: str | None = None
        self._segments = self._compile(normalized)
        self._variable_count = sum(len(seg.variables) for seg in self._segments) + (
            1 if self._tail_variable else 0
        )
        self._wildcards = sum(seg.wildcards for seg in self._segments)
        self._literal_length = sum(
            len(_VARIABLE_RE.sub("", seg.text)) for seg in self._segments if seg.kind != "tail"
        )

    def __repr__(self) -> str:
        return f"PathPattern({self.pattern!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, PathPattern) and other.pattern == self.pattern

    def __hash__(self) -> int:
        return hash(self.pattern)

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------
    def _compile(self, pattern: str) -> tuple[_Segment, ...]:
        if pattern.count("{") != pattern.count("}"):
            raise InvalidPattern(pattern, "unbalanced braces")
        parts = [part for part in pattern.split("/") if part]
        seen: set[str] = set()
        segments: list[_Segment] = []
        for index, part in enumerate(parts):
            is_last = index == len(parts) - 1
            if part == "**":
                if not is_last:
                    raise InvalidPattern(pattern, "'**' must be the last segment")
                segments.append(_Segment("tail", part, wildcards=2))
                continue
            if part == "*":
                segments.append(_Segment("any", part, wildcards=1))
                continue
            variables = _VARIABLE_RE.findall(part)
            if not variables:
                if "*" in part or "?" in part:
                    wildcards = part.count("*") + part.count("?")
                    regex = re.compile(translate(part))
                    segments.append(_Segment("regex", part, regex=regex, wildcards=wildcards))
                else:
                    segments.append(_Segment("literal", part))
                continue
            names = []
            for name, constraint in variables:
                name = name.strip()
                if name in seen:
                    raise InvalidPattern(pattern, f"duplicate variable {name!r}")
                seen.add(name)
                names.append(name)
                if constraint == "path":
                    if not is_last or _VARIABLE_RE.fullmatch(part) is None:
                        raise InvalidPattern(pattern, f"catch-all {{{name}:path}} must be the whole last segment")
                    self._tail_variable = name
            if self._tail_variable is not None:
                segments.append(_Segment("tail", part, wildcards=2))
                continue
            segments.append(
                _Segment("regex", part, regex=self._segment_regex(pattern, part), variables=tuple(names))
            )
        return tuple(segments)

    def _segment_regex(self, pattern: str, part: str) -> re.Pattern[str]:
        chunks: list[str] = []
        position = 0
        for found in _VARIABLE_RE.finditer(part):
            chunks.append(self._literal_regex(part[position : found.start()]))
            name, constraint = found.group(1).strip(), found.group(2)
            body = CONVERTERS.get(constraint or "str", constraint)
            chunks.append(f"(?P<{name}>{body})")
            position = found.end()
        chunks.append(self._literal_regex(part[position:]))
        try:
            return re.compile("".join(chunks), re.DOTALL)
        except re.error as exc:
            raise InvalidPattern(pattern, str(exc)) from exc

    @staticmethod
    def _literal_regex(text: str) -> str:
        return "".join(
            ".*" if char == "*" else "." if char == "?" else re.escape(char)
            for char in text
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def is_exact(self) -> bool:
        """True when the pattern has no variables and no wildcards."""
        return all(seg.kind == "literal" for seg in self._segments)

    @property
    def variable_names(self) -> tuple[str, ...]:
        names = [name for seg in self._segments for name in seg.variables]
        if self._tail_variable:
            names.append(self._tail_variable)
        return tuple(names)

    def specificity(self) -> tuple[int, int, int, int, int]:
        """Sort key: smaller means more specific.

        Catch-all patterns sort last, then by wildcard weight, variable count
        and finally longer literal text first.
        """
        catch_all = 1 if self.pattern in ("/**", "/{" + (self._tail_variable or "") + ":path}") else 0
        has_tail = 1 if self._segments and self._segments[-1].kind == "tail" else 0
        return (catch_all, has_tail, self._wildcards, self._variable_count, -self._literal_length)

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------
    def match(self, path: str | SplitPath) -> PathMatch | None:
        """Match a raw request path or an already split path.

        A string is split with ``split_path()`` first, so it is read as raw
        (percent-encoded) text.
        """
        split = path if isinstance(path, SplitPath) else split_path(path)
        if self._trailing_slash != split.trailing_slash and not (
            self._segments and self._segments[-1].kind == "tail"
        ):
            return None
        values = split.values
        variables: dict[str, str] = {}
        matrix: dict[str, dict[str, list[str]]] = {}
        within_start: int | None = None

        for index, segment in enumerate(self._segments):
            if segment.kind == "tail":
                if within_start is None:
                    within_start = index
                if self._tail_variable is not None:
                    remaining = values[index:]
                    if not remaining:
                        return None
                    variables[self._tail_variable] = "/".join(remaining)
                return self._build(variables, matrix, values, within_start)
            if index >= len(values):
                return None
            value = values[index]
            if segment.kind == "literal":
                if value != segment.text:
                    return None
                continue
            if within_start is None:
                within_start = index
            if segment.kind == "any":
                continue
            found = segment.regex.fullmatch(value)  # type: ignore[union-attr]
            if found is None:
                return None
            for name in segment.variables:
                variables[name] = found.group(name)
                if split.segments[index].matrix:
                    matrix[name] = dict(split.segments[index].matrix)

        if len(values) != len(self._segments):
            return None
        return self._build(variables, matrix, values, within_start)

    def _build(
        self,
        variables: dict[str, str],
        matrix: dict[str, dict[str, list[str]]],
        values: list[str],
        within_start: int | None,
    ) -> PathMatch:
        if within_start is None:
            within = "/" + "/".join(values)
        else:
            within = "/".join(values[within_start:])
        return PathMatch(
            pattern=self.pattern,
            uri_variables=variables,
            matrix_variables=matrix,
            path_within_mapping=within,
        )

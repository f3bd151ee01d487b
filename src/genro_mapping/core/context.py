# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""RequestContext - per-request identity and attribute bag.

The transport creates one ``RequestContext`` per inbound request and passes it
by reference through matching and dispatch. Nothing in this package looks a
context up from ambient state.

The context carries:

- request identity owned by the transport: ``method``, ``path``, ``headers``,
  ``query`` and an optional ``context_path`` prefix stripped before lookup;
- a mutable attribute bag (``get_attribute`` / ``set_attribute`` / ...);
- the cancellation flag the transport may raise on client disconnect.

Mapping attributes
------------------
Names listed in ``MAPPING_ATTRIBUTES`` are written by route matchers. Once the
registry accepts a match it calls ``seal_mapping_attributes()``: the variable
and media type containers become read-only views (the handler reference is
left as the matcher set it) and any later write or removal of those names raises
``MappingAttributeLocked``.

Attribute scopes
----------------
``attribute_scope()`` lets a matcher write tentatively. Writes made inside the
scope are rolled back on exception or on ``scope.discard()``, which is how a
declining matcher leaves the context untouched.

Example::

    context = RequestContext("GET", "/users/42", headers={"Accept": "text/html"})
    chain = registry.resolve(context)
    if chain is not None:
        context.match_metadata.uri_template_variables  # {"id": "42"}
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from types import MappingProxyType
from typing import Any

from genro_toolbox import dictExtract

from genro_mapping.exceptions import MappingAttributeLocked

from .attributes import (
    MAPPING_ATTRIBUTES,
    MATRIX_VARIABLES,
    NAMESPACE,
    PRODUCIBLE_MEDIA_TYPES,
    URI_TEMPLATE_VARIABLES,
    MatchMetadata,
)

__all__ = ["RequestContext", "AttributeScope"]

_MISSING = object()

# Container-valued mapping attributes; the handler reference stays as set
_FROZEN_ON_SEAL = frozenset({URI_TEMPLATE_VARIABLES, MATRIX_VARIABLES, PRODUCIBLE_MEDIA_TYPES})


def _freeze(value: Any) -> Any:
    """Return a read-only view of container values."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (set, frozenset)):
        return frozenset(value)
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


class AttributeScope:
    """Tentative attribute writes on a ``RequestContext``.

    Records the previous value of every attribute written while the scope is
    open so the writes can be undone.
    """

    __slots__ = ("_context", "_saved", "discarded")

    def __init__(self, context: RequestContext) -> None:
        self._context = context
        self._saved: dict[str, Any] = {}
        self.discarded = False

    def _remember(self, name: str) -> None:
        if name not in self._saved:
            self._saved[name] = self._context._attributes.get(name, _MISSING)

    def discard(self) -> None:
        """Undo every write made inside this scope."""
        attributes = self._context._attributes
        for name, previous in self._saved.items():
            if previous is _MISSING:
                attributes.pop(name, None)
            else:
                attributes[name] = previous
        self._saved.clear()
        self.discarded = True


class RequestContext:
    """Request identity plus a request-scoped attribute bag.

    Attributes:
        method: Upper-cased request method.
        path: Raw request path as delivered by the transport.
        headers: Header mapping (use ``header()`` for case-insensitive reads).
        query: Query parameters, name -> list of values.
        context_path: Application prefix stripped before lookup.
    """

    __slots__ = (
        "method",
        "path",
        "headers",
        "query",
        "context_path",
        "_header_index",
        "_attributes",
        "_scopes",
        "_sealed",
        "_cancel_reason",
        "_cancelled",
    )

    def __init__(
        self,
        method: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
        *,
        context_path: str = "",
    ) -> None:
        self.method = method.upper()
        self.path = path or "/"
        self.headers: dict[str, str] = dict(headers or {})
        self.query: dict[str, list[str]] = {
            name: list(value) if isinstance(value, (list, tuple)) else [value]
            for name, value in (query or {}).items()
        }
        self.context_path = context_path.rstrip("/")
        self._header_index = {name.lower(): value for name, value in self.headers.items()}
        self._attributes: dict[str, Any] = {}
        self._scopes: list[AttributeScope] = []
        self._sealed = False
        self._cancelled = False
        self._cancel_reason: str | None = None

    def __repr__(self) -> str:
        return f"<RequestContext {self.method} {self.path}>"

    # ------------------------------------------------------------------
    # Identity helpers
    # ------------------------------------------------------------------
    def header(self, name: str, default: str | None = None) -> str | None:
        """Return a header value, case-insensitively."""
        return self._header_index.get(name.lower(), default)

    def param(self, name: str, default: str | None = None) -> str | None:
        """Return the first value of a query parameter."""
        values = self.query.get(name)
        return values[0] if values else default

    # ------------------------------------------------------------------
    # Attribute bag
    # ------------------------------------------------------------------
    def get_attribute(self, name: str, default: Any = None) -> Any:
        return self._attributes.get(name, default)

    def has_attribute(self, name: str) -> bool:
        return name in self._attributes

    def attribute_names(self) -> list[str]:
        return list(self._attributes)

    def set_attribute(self, name: str, value: Any) -> None:
        """Set an attribute; sealed mapping attributes cannot be overwritten."""
        self._check_writable(name)
        for scope in self._scopes:
            scope._remember(name)
        self._attributes[name] = value

    def remove_attribute(self, name: str) -> Any:
        """Remove an attribute and return its value (``None`` if absent)."""
        self._check_writable(name)
        for scope in self._scopes:
            scope._remember(name)
        return self._attributes.pop(name, None)

    def _check_writable(self, name: str) -> None:
        if self._sealed and name in MAPPING_ATTRIBUTES:
            raise MappingAttributeLocked(name)

    def mapping_attributes(self) -> dict[str, Any]:
        """Return the mapping attributes present, keyed by short name."""
        return dictExtract(self._attributes, NAMESPACE, slice_prefix=True, pop=False)

    @property
    def match_metadata(self) -> MatchMetadata:
        return MatchMetadata.from_context(self)

    # ------------------------------------------------------------------
    # Matching support
    # ------------------------------------------------------------------
    @contextmanager
    def attribute_scope(self) -> Iterator[AttributeScope]:
        """Open a scope whose writes are undone on error or ``discard()``."""
        scope = AttributeScope(self)
        self._scopes.append(scope)
        try:
            yield scope
        except BaseException:
            scope.discard()
            raise
        finally:
            self._scopes.remove(scope)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal_mapping_attributes(self) -> None:
        """Freeze the mapping attributes set so far. Idempotent."""
        if self._sealed:
            return
        for name in _FROZEN_ON_SEAL & self._attributes.keys():
            self._attributes[name] = _freeze(self._attributes[name])
        self._sealed = True

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------
    def cancel(self, reason: str | None = None) -> None:
        """Mark the request as cancelled (e.g. client disconnect)."""
        self._cancelled = True
        self._cancel_reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def cancel_reason(self) -> str | None:
        return self._cancel_reason

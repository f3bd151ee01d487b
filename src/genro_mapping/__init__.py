# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Genro Mapping - request-to-handler resolution layer for Python.

Given a request context, decide which handler processes it, assemble the
ordered interceptor chain around that handler, and expose routing metadata
(lookup path, matched pattern, path and matrix variables, producible media
types) to later stages.

Public exports:
    - ``RequestContext``: Per-request identity and attribute bag
    - ``MappingRegistry``: Route matchers consulted in priority order
    - ``PathPatternMatcher`` / ``RequestMappingMatcher``: Built-in matchers
    - ``ExecutionChain``: Handler plus interceptors with the hook protocol
    - ``BaseInterceptor``: Base class for registrable interceptors
    - ``Dispatcher``: Runs resolution and the chain protocol end to end

Interceptor registration happens lazily via ``import_module`` to avoid cycles.
Built-in interceptors (logging, auth, cancellation) are auto-registered on
first import.

Example::

    from genro_mapping import (
        Dispatcher, HandlerMethod, MappingRegistry, PathPatternMatcher, RequestContext,
    )

    def show_user(context, id):
        return {"id": id}

    matcher = PathPatternMatcher("users", order=0, interceptors=["logging"])
    matcher.register("/users/{id}", HandlerMethod.of(show_user))
    dispatcher = Dispatcher(MappingRegistry([matcher]))

    result = dispatcher.dispatch(RequestContext("GET", "/users/42"))
    result.value  # {"id": "42"}
"""

from importlib import import_module

__version__ = "0.1.0"

from . import core
from .core import (
    AbstractRouteMatcher,
    AdapterRegistry,
    BaseInterceptor,
    ChainResult,
    Dispatcher,
    DispatchResult,
    ExecutionChain,
    HandlerAdapter,
    HandlerInterceptor,
    HandlerMethod,
    MappedInterceptor,
    MappingRegistry,
    MatchMetadata,
    PathPattern,
    PathPatternMatcher,
    RequestContext,
    RequestMapping,
    RequestMappingMatcher,
    RouteMatcher,
    available_interceptors,
    create_interceptor,
    register_interceptor,
)
from .core import attributes
from .exceptions import (
    AfterCompletionError,
    InvalidPattern,
    MappingAttributeLocked,
    MappingError,
    MatcherError,
    NoAdapterFound,
)

# Import interceptors to trigger auto-registration (lazy to avoid cycles)
for _interceptor in ("logging", "auth", "cancellation"):
    import_module(f"{__name__}.interceptors.{_interceptor}")
del _interceptor

__all__ = [
    "AbstractRouteMatcher",
    "AdapterRegistry",
    "AfterCompletionError",
    "BaseInterceptor",
    "ChainResult",
    "Dispatcher",
    "DispatchResult",
    "ExecutionChain",
    "HandlerAdapter",
    "HandlerInterceptor",
    "HandlerMethod",
    "InvalidPattern",
    "MappedInterceptor",
    "MappingAttributeLocked",
    "MappingError",
    "MappingRegistry",
    "MatchMetadata",
    "MatcherError",
    "NoAdapterFound",
    "PathPattern",
    "PathPatternMatcher",
    "RequestContext",
    "RequestMapping",
    "RequestMappingMatcher",
    "RouteMatcher",
    "attributes",
    "available_interceptors",
    "core",
    "create_interceptor",
    "register_interceptor",
]

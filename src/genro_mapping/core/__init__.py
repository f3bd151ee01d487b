# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Core runtime aggregator for Genro Mapping.

Exposes the resolution building blocks from a single module.

Public API:
    - ``RequestContext``: per-request identity and attribute bag
    - ``RouteMatcher`` / ``AbstractRouteMatcher``: matcher contract and base
    - ``PathPatternMatcher`` / ``RequestMappingMatcher``: concrete matchers
    - ``MappingRegistry``: matchers consulted in priority order
    - ``ExecutionChain``: handler plus interceptors with the hook protocol
    - ``HandlerInterceptor`` / ``BaseInterceptor`` / ``MappedInterceptor``
    - ``Dispatcher`` and the handler adapters

Importing this module performs only imports; it does not register
interceptors or build registries.
"""

from .adapters import (
    AdapterRegistry,
    CallableAdapter,
    HandlerAdapter,
    HandlerMethod,
    HandlerMethodAdapter,
)
from .attributes import MatchMetadata
from .chain import ChainResult, ExecutionChain
from .context import RequestContext
from .dispatcher import Dispatcher, DispatchResult
from .interceptor import (
    BaseInterceptor,
    HandlerInterceptor,
    MappedInterceptor,
    available_interceptors,
    create_interceptor,
    register_interceptor,
)
from .matcher import AbstractRouteMatcher, RouteMatcher
from .paths import PathMatch, PathPattern
from .registry import MappingRegistry
from .request_mapping import RequestMapping, RequestMappingMatcher
from .url_matcher import PathPatternMatcher

__all__ = [
    "AbstractRouteMatcher",
    "AdapterRegistry",
    "BaseInterceptor",
    "CallableAdapter",
    "ChainResult",
    "Dispatcher",
    "DispatchResult",
    "ExecutionChain",
    "HandlerAdapter",
    "HandlerInterceptor",
    "HandlerMethod",
    "HandlerMethodAdapter",
    "MappedInterceptor",
    "MappingRegistry",
    "MatchMetadata",
    "PathMatch",
    "PathPattern",
    "PathPatternMatcher",
    "RequestContext",
    "RequestMapping",
    "RequestMappingMatcher",
    "RouteMatcher",
    "available_interceptors",
    "create_interceptor",
    "register_interceptor",
]

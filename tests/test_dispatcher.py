# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""End-to-end tests: registry resolution, adapters and chain execution."""

from __future__ import annotations

import pytest

from genro_mapping import (
    AdapterRegistry,
    Dispatcher,
    HandlerAdapter,
    HandlerInterceptor,
    HandlerMethod,
    MappingRegistry,
    NoAdapterFound,
    PathPatternMatcher,
    RequestContext,
    RequestMapping,
    RequestMappingMatcher,
    attributes,
)
from genro_mapping.core.adapters import CallableAdapter, HandlerMethodAdapter


def show_user(context, id):
    return {"id": id, "pattern": context.match_metadata.best_matching_pattern}


def test_handler_method_receives_uri_variables():
    matcher = PathPatternMatcher("users", order=0)
    matcher.register("/users/{id}", HandlerMethod.of(show_user))
    dispatcher = Dispatcher(MappingRegistry([matcher]))

    result = dispatcher.dispatch(RequestContext("GET", "/users/42"))

    assert result.matched and result.handled
    assert result.value == {"id": "42", "pattern": "/users/{id}"}
    assert result.chain.handler.name == "show_user"


def test_plain_callable_receives_context():
    matcher = PathPatternMatcher()
    matcher.register("/ping", lambda context: f"pong {context.method}")
    result = Dispatcher(MappingRegistry([matcher])).dispatch(RequestContext("get", "/ping"))
    assert result.value == "pong GET"


def test_no_match_is_not_an_error():
    dispatcher = Dispatcher(MappingRegistry([PathPatternMatcher()]))
    result = dispatcher.dispatch(RequestContext("GET", "/missing"))
    assert result.matched is False
    assert result.handled is False
    assert result.chain is None


def test_short_circuit_reports_not_handled():
    class Deny(HandlerInterceptor):
        def pre_handle(self, context, handler):
            return False

    calls = []
    matcher = PathPatternMatcher(interceptors=[Deny()])
    matcher.register("/x", lambda context: calls.append("ran"))
    result = Dispatcher(MappingRegistry([matcher])).dispatch(RequestContext("GET", "/x"))
    assert result.matched is True
    assert result.handled is False
    assert calls == []


def test_missing_adapter_raises_before_hooks_run():
    events = []

    class Tracking(HandlerInterceptor):
        def pre_handle(self, context, handler):
            events.append("pre")
            return True

    matcher = PathPatternMatcher(interceptors=[Tracking()])
    matcher.register("/opaque", object())
    dispatcher = Dispatcher(MappingRegistry([matcher]))
    with pytest.raises(NoAdapterFound):
        dispatcher.dispatch(RequestContext("GET", "/opaque"))
    assert events == []


def test_custom_adapter_first():
    class StringAdapter(HandlerAdapter):
        def supports(self, handler):
            return isinstance(handler, str)

        def handle(self, context, handler):
            return handler.format(**context.match_metadata.uri_template_variables)

    adapters = AdapterRegistry().add(StringAdapter(), first=True)
    assert isinstance(adapters.adapters[0], StringAdapter)
    matcher = PathPatternMatcher()
    matcher.register("/hello/{name}", "Hello {name}")
    result = Dispatcher(MappingRegistry([matcher]), adapters).dispatch(
        RequestContext("GET", "/hello/ada")
    )
    assert result.value == "Hello ada"


def test_adapter_registry_validation():
    registry = AdapterRegistry([])
    with pytest.raises(TypeError):
        registry.add(object())  # type: ignore[arg-type]
    with pytest.raises(NoAdapterFound) as excinfo:
        registry.adapter_for(len)
    assert excinfo.value.handler is len
    default = AdapterRegistry()
    assert isinstance(default.adapter_for(HandlerMethod.of(show_user)), HandlerMethodAdapter)
    assert isinstance(default.adapter_for(show_user), CallableAdapter)
    assert HandlerMethodAdapter().supports(HandlerMethod.of(show_user))
    assert not HandlerMethodAdapter().supports(show_user)


def test_interceptors_see_metadata_and_handler_unchanged():
    seen = {}

    class Inspect(HandlerInterceptor):
        def pre_handle(self, context, handler):
            seen["handler"] = handler
            seen["best"] = context.get_attribute(attributes.BEST_MATCHING_HANDLER)
            seen["produces"] = context.match_metadata.producible_media_types
            return True

    handler = HandlerMethod.of(lambda context, isbn: {"isbn": isbn}, name="get_book")
    matcher = RequestMappingMatcher("api", order=0, interceptors=[Inspect()])
    matcher.register(
        RequestMapping(patterns="/books/{isbn}", methods="GET", produces="application/json"),
        handler,
    )
    result = Dispatcher(MappingRegistry([matcher])).dispatch(
        RequestContext("GET", "/books/978", headers={"Accept": "application/json"})
    )

    assert result.value == {"isbn": "978"}
    assert seen["handler"] is handler
    assert seen["best"] is handler
    assert seen["produces"] == frozenset({"application/json"})


def test_priority_across_matcher_kinds():
    api = RequestMappingMatcher("api", order=0)
    api.register(RequestMapping(patterns="/api/**", methods="GET"), lambda context: "api")
    pages = PathPatternMatcher("pages", order=10)
    pages.register("/**", lambda context: "page")
    dispatcher = Dispatcher(MappingRegistry([pages, api]))

    assert dispatcher.dispatch(RequestContext("GET", "/api/x")).value == "api"
    assert dispatcher.dispatch(RequestContext("POST", "/api/x")).value == "page"
    assert dispatcher.dispatch(RequestContext("GET", "/index")).value == "page"


def test_handler_error_propagates_after_cleanup():
    events = []

    class Cleanup(HandlerInterceptor):
        def after_completion(self, context, handler, error):
            events.append(type(error).__name__)

    def failing(context):
        raise LookupError("gone")

    matcher = PathPatternMatcher(interceptors=[Cleanup()])
    matcher.register("/fail", failing)
    with pytest.raises(LookupError):
        Dispatcher(MappingRegistry([matcher])).dispatch(RequestContext("GET", "/fail"))
    assert events == ["LookupError"]


def test_handler_method_metadata_is_mutable():
    method = HandlerMethod.of(show_user, auth_rule="admin")
    method.metadata["logging_before"] = False
    assert method.metadata == {"auth_rule": "admin", "logging_before": False}


def test_variable_named_context_stays_in_metadata():
    def show(context, **kwargs):
        return kwargs, context.match_metadata.uri_template_variables["context"]

    matcher = PathPatternMatcher()
    matcher.register("/x/{context}/{id}", HandlerMethod.of(show))
    result = Dispatcher(MappingRegistry([matcher])).dispatch(RequestContext("GET", "/x/admin/7"))
    assert result.value == ({"id": "7"}, "admin")

# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Tests for the built-in interceptors and the interceptor registry."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from genro_mapping import (
    BaseInterceptor,
    Dispatcher,
    HandlerMethod,
    MappingRegistry,
    PathPatternMatcher,
    RequestContext,
    available_interceptors,
    create_interceptor,
    register_interceptor,
)
from genro_mapping.interceptors.auth import (
    AUTH_TAGS_ATTRIBUTE,
    REJECTION_ATTRIBUTE,
    AuthInterceptor,
)
from genro_mapping.interceptors.cancellation import CancellationInterceptor
from genro_mapping.interceptors.logging import LoggingInterceptor


class DummyLogger:
    def __init__(self):
        self.records = []
        self.errors = []

    def has_handlers(self):
        return True

    # Compatibility alias
    hasHandlers = has_handlers  # noqa: N815

    def info(self, message):
        self.records.append(message)

    def error(self, message):
        self.errors.append(message)


def _dispatch(matcher, path="/x", **kwargs):
    context = RequestContext("GET", path, **kwargs)
    return context, Dispatcher(MappingRegistry([matcher])).dispatch(context)


# ----------------------------------------------------------------------
# Registry
# ----------------------------------------------------------------------
def test_builtin_interceptors_registered():
    registered = available_interceptors()
    assert registered["logging"] is LoggingInterceptor
    assert registered["auth"] is AuthInterceptor
    assert registered["cancellation"] is CancellationInterceptor


def test_register_interceptor_validation():
    class NoCode(BaseInterceptor):
        pass

    with pytest.raises(ValueError, match="missing interceptor_code"):
        register_interceptor(NoCode)
    with pytest.raises(TypeError):
        register_interceptor(object)  # type: ignore[arg-type]

    class Clash(BaseInterceptor):
        interceptor_code = "logging"

    with pytest.raises(ValueError, match="already registered"):
        register_interceptor(Clash)
    # re-registering the same class is a no-op
    register_interceptor(LoggingInterceptor)


def test_register_with_explicit_name():
    class Audit(BaseInterceptor):
        interceptor_code = "audit_test"
        interceptor_description = "Audit trail"

    register_interceptor(Audit, name="audit_alias")
    assert isinstance(create_interceptor("audit_alias"), Audit)
    assert "audit_test" not in available_interceptors()


def test_create_interceptor_errors():
    with pytest.raises(TypeError):
        create_interceptor(LoggingInterceptor)  # type: ignore[arg-type]
    with pytest.raises(ValueError, match="Available interceptors"):
        create_interceptor("nope")


# ----------------------------------------------------------------------
# Configuration
# ----------------------------------------------------------------------
def test_configure_validates_and_stores():
    class Throttle(BaseInterceptor):
        interceptor_code = "throttle_test"

        def configure(self, enabled: bool = True, limit: int = 10):
            pass  # Storage handled by wrapper

    interceptor = Throttle(limit=5)
    assert interceptor.configuration() == {"enabled": True, "limit": 5}
    with pytest.raises(ValidationError):
        Throttle(limit="many")
    with pytest.raises(ValidationError):
        Throttle(unknown=True)


def test_flags_toggle_enabled():
    interceptor = create_interceptor("logging", flags="enabled:off")
    assert interceptor.enabled is False
    assert "logging" in repr(interceptor)


# ----------------------------------------------------------------------
# Logging
# ----------------------------------------------------------------------
def test_logging_interceptor_logs_start_and_end():
    logger = DummyLogger()
    matcher = PathPatternMatcher(interceptors=[LoggingInterceptor(logger=logger)])
    matcher.register("/x", HandlerMethod.of(lambda context: "ok", name="hello"))

    context, result = _dispatch(matcher)

    assert result.value == "ok"
    assert logger.records[0] == "hello start"
    assert logger.records[1].startswith("hello end (")
    assert logger.errors == []
    assert not any("logging.start" in name for name in context.attribute_names())


def test_logging_interceptor_respects_handler_metadata():
    logger = DummyLogger()
    matcher = PathPatternMatcher(interceptors=[LoggingInterceptor(logger=logger)])
    matcher.register("/x", HandlerMethod.of(lambda context: "ok", name="quiet", logging_before=False))
    _dispatch(matcher)
    assert len(logger.records) == 1
    assert logger.records[0].startswith("quiet end")


def test_logging_interceptor_reports_failures():
    logger = DummyLogger()
    matcher = PathPatternMatcher(interceptors=[LoggingInterceptor(logger=logger)])

    def broken(context):
        raise RuntimeError("kaput")

    matcher.register("/x", broken)
    with pytest.raises(RuntimeError):
        _dispatch(matcher)
    assert logger.records == ["broken start"]
    assert "broken failed" in logger.errors[0]
    assert "kaput" in logger.errors[0]


def test_logging_interceptor_print_fallback(capsys):
    matcher = PathPatternMatcher(interceptors=["logging"], logging_print=True, logging_after=False)
    matcher.register("/x", HandlerMethod.of(lambda context: None, name="printed"))
    _dispatch(matcher)
    assert "printed start" in capsys.readouterr().out


# ----------------------------------------------------------------------
# Auth
# ----------------------------------------------------------------------
def _admin_matcher():
    matcher = PathPatternMatcher("admin", interceptors=["auth"], auth_rule="admin")
    matcher.register("/admin/users", HandlerMethod.of(lambda context: "users"))
    matcher.register("/admin/audit", HandlerMethod.of(lambda context: "audit", auth_rule="admin&internal"))
    matcher.register("/admin/open", HandlerMethod.of(lambda context: "open", auth_rule=""))
    return matcher


def test_auth_allows_matching_tags_from_header():
    _, result = _dispatch(_admin_matcher(), "/admin/users", headers={"X-Auth-Tags": "admin,staff"})
    assert result.handled and result.value == "users"


def test_auth_rejects_without_tags():
    context, result = _dispatch(_admin_matcher(), "/admin/users")
    assert result.matched and not result.handled
    assert context.get_attribute(REJECTION_ATTRIBUTE) == "not_authenticated"


def test_auth_rejects_insufficient_tags():
    context, result = _dispatch(_admin_matcher(), "/admin/audit", headers={"X-Auth-Tags": "admin"})
    assert not result.handled
    assert context.get_attribute(REJECTION_ATTRIBUTE) == "not_authorized"


def test_auth_uses_context_attribute_over_header():
    matcher = _admin_matcher()
    context = RequestContext("GET", "/admin/audit", headers={"X-Auth-Tags": "guest"})
    context.set_attribute(AUTH_TAGS_ATTRIBUTE, {"admin", "internal"})
    result = Dispatcher(MappingRegistry([matcher])).dispatch(context)
    assert result.value == "audit"


def test_auth_handler_metadata_can_open_route():
    _, result = _dispatch(_admin_matcher(), "/admin/open")
    assert result.value == "open"


def test_auth_rule_rejects_comma():
    with pytest.raises(ValueError, match="Comma not allowed"):
        AuthInterceptor(rule="admin,staff")
    interceptor = AuthInterceptor()
    with pytest.raises(ValueError):
        interceptor.rule_for(HandlerMethod.of(len, auth_rule="a,b"))


def test_auth_custom_header():
    interceptor = AuthInterceptor(rule="admin", header="X-Roles")
    context = RequestContext("GET", "/", headers={"x-roles": "admin"})
    assert interceptor.deny_reason(context, HandlerMethod.of(len)) == ""


# ----------------------------------------------------------------------
# Cancellation
# ----------------------------------------------------------------------
def test_cancelled_request_is_short_circuited():
    calls = []
    matcher = PathPatternMatcher(interceptors=["cancellation"])
    matcher.register("/x", lambda context: calls.append("ran"))
    context = RequestContext("GET", "/x")
    context.cancel("client disconnected")

    result = Dispatcher(MappingRegistry([matcher])).dispatch(context)

    assert not result.handled
    assert calls == []
    assert context.get_attribute(REJECTION_ATTRIBUTE) == "cancelled"


def test_active_request_passes_cancellation_check():
    matcher = PathPatternMatcher(interceptors=["cancellation"])
    matcher.register("/x", lambda context: "ok")
    _, result = _dispatch(matcher)
    assert result.value == "ok"

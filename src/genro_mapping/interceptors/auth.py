# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""AuthInterceptor - Authorization interceptor with tag-based access control.

The interceptor evaluates an authorization rule against the tags of the
current user before the handler runs. A rejection is a normal short-circuit:
``pre_handle`` returns False and records the reason on the context under
``REJECTION_ATTRIBUTE`` so the transport can answer 401 or 403.

Usage::

    from genro_mapping import HandlerMethod, PathPatternMatcher

    matcher = PathPatternMatcher("admin", interceptors=["auth"], auth_rule="admin")
    matcher.register("/admin/users", HandlerMethod.of(list_users))
    matcher.register("/admin/audit", HandlerMethod.of(audit, auth_rule="admin&internal"))

User tags are read from the ``AUTH_TAGS_ATTRIBUTE`` context attribute (set by
an authentication layer) or, failing that, from the ``X-Auth-Tags`` header.
Both hold a comma-separated list (or any iterable) of tags.

Rule syntax:
    - ``|`` : OR (user must have at least one)
    - ``&`` : AND (user must have all)
    - ``!`` : NOT (user must not have)
    - ``()`` : grouping

NOTE: Comma is NOT allowed in the rule. Use ``|`` for OR, ``&`` for AND.

Rejection reasons:
    - ``"not_authenticated"``: a rule applies but the user has no tags (401)
    - ``"not_authorized"``: tags provided but the rule does not hold (403)
"""

from __future__ import annotations

from typing import Any

from genro_toolbox import tags_match

from genro_mapping.core.context import RequestContext
from genro_mapping.core.interceptor import BaseInterceptor, register_interceptor

__all__ = ["AuthInterceptor", "AUTH_TAGS_ATTRIBUTE", "REJECTION_ATTRIBUTE"]

AUTH_TAGS_ATTRIBUTE = "genro_mapping.auth.tags"
REJECTION_ATTRIBUTE = "genro_mapping.rejection"
AUTH_TAGS_HEADER = "X-Auth-Tags"


class AuthInterceptor(BaseInterceptor):
    """Authorization interceptor with tag-based access control."""

    interceptor_code = "auth"
    interceptor_description = "Authorization interceptor with tag-based access control"

    def configure(  # type: ignore[override]
        self,
        *,
        rule: str = "",
        enabled: bool = True,
        header: str = AUTH_TAGS_HEADER,
    ) -> None:
        """Define the authorization rule applied to every handler.

        Args:
            rule: Boolean rule expression (e.g., "admin&internal", "!guest").
                  Use ``|`` for OR, ``&`` for AND. Comma is not allowed.
            enabled: Whether the interceptor is enabled (default True)
            header: Request header carrying the user tags.

        Raises:
            ValueError: If rule contains comma (use ``|`` for OR instead).
        """
        _check_rule(rule)
        pass  # Storage handled by wrapper

    def rule_for(self, handler: Any) -> str:
        """Return the rule for ``handler``: per-handler metadata wins."""
        metadata = getattr(handler, "metadata", None)
        if isinstance(metadata, dict) and "auth_rule" in metadata:
            rule = metadata["auth_rule"] or ""
            _check_rule(rule)
            return rule
        return self._config.get("rule", "")

    def user_tags(self, context: RequestContext) -> set[str]:
        raw = context.get_attribute(AUTH_TAGS_ATTRIBUTE)
        if raw is None:
            raw = context.header(self._config.get("header", AUTH_TAGS_HEADER))
        if not raw:
            return set()
        values = raw.split(",") if isinstance(raw, str) else raw
        return {v.strip() for v in values if v and v.strip()}

    def deny_reason(self, context: RequestContext, handler: Any) -> str:
        """Return "" when access is allowed, else the rejection reason."""
        rule = self.rule_for(handler)
        if not rule:
            return ""
        tags = self.user_tags(context)
        if not tags:
            return "not_authenticated"
        if tags_match(rule, tags):
            return ""
        return "not_authorized"

    def pre_handle(self, context: RequestContext, handler: Any) -> bool:
        reason = self.deny_reason(context, handler)
        if reason:
            context.set_attribute(REJECTION_ATTRIBUTE, reason)
            return False
        return True


def _check_rule(rule: str) -> None:
    if "," in rule:
        raise ValueError(
            f"Comma not allowed in auth_rule: {rule!r}. "
            "Use '|' for OR (e.g., 'admin|manager') or '&' for AND (e.g., 'admin&hr')."
        )


register_interceptor(AuthInterceptor)

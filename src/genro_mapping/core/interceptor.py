# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Interceptor contract and registry for Genro Mapping.

Objects
-------
``HandlerInterceptor``
    Three lifecycle hooks invoked around a handler call. All hooks have
    no-op defaults, so subclasses override only what they need:

        - ``pre_handle(context, handler) -> bool``: return False to
          short-circuit (handler, remaining pre-hooks and all post-hooks are
          skipped; after-completion still runs for started interceptors)
        - ``post_handle(context, handler, result)``: after a successful handler
        - ``after_completion(context, handler, error)``: always, for every
          interceptor whose pre-hook ran

``BaseInterceptor``
    Registrable interceptor with configuration helpers. Required class
    attributes:

        - ``interceptor_code``: unique identifier used for registration
        - ``interceptor_description``: human-readable description

    Constructor signature: ``BaseInterceptor(**config)``

``MappedInterceptor``
    Wraps an interceptor with include/exclude path patterns so it applies
    only to matching lookup paths.

Example::

    from genro_mapping import BaseInterceptor, register_interceptor

    class TimingInterceptor(BaseInterceptor):
        interceptor_code = "timing"
        interceptor_description = "Records handler timing"

        def configure(self, enabled: bool = True, header: str = "X-Time"):
            pass  # Storage handled by wrapper

        def pre_handle(self, context, handler):
            context.set_attribute("timing.start", time.perf_counter())
            return True

    register_interceptor(TimingInterceptor)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from functools import wraps
from typing import TYPE_CHECKING, Any

from pydantic import validate_call

from .paths import PathPattern, SplitPath

if TYPE_CHECKING:  # pragma: no cover
    from .context import RequestContext

__all__ = [
    "HandlerInterceptor",
    "BaseInterceptor",
    "MappedInterceptor",
    "register_interceptor",
    "available_interceptors",
    "create_interceptor",
]

_INTERCEPTOR_REGISTRY: dict[str, type[BaseInterceptor]] = {}


class HandlerInterceptor:
    """Hook interface invoked around a handler call."""

    __slots__ = ()

    def pre_handle(self, context: RequestContext, handler: Any) -> bool:
        return True

    def post_handle(self, context: RequestContext, handler: Any, result: Any) -> None:
        return None

    def after_completion(
        self, context: RequestContext, handler: Any, error: BaseException | None
    ) -> None:
        return None


def _wrap_configure(original_configure: Callable) -> Callable:
    """Wrap an interceptor's configure() to handle flags, validation and storage."""
    validated = validate_call(original_configure)

    @wraps(original_configure)
    def wrapper(self: BaseInterceptor, *, flags: str | None = None, **kwargs: Any) -> None:
        if flags:
            kwargs.update(self._parse_flags(flags))
        validated(self, **kwargs)
        self._config.update(kwargs)

    return wrapper


class BaseInterceptor(HandlerInterceptor):
    """Registrable interceptor with validated configuration.

    Subclass this and define your configuration schema in ``configure()``;
    the keyword options are validated by pydantic and stored on the instance.
    """

    __slots__ = ("name", "_config")

    interceptor_code: str = ""
    interceptor_description: str = ""

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "configure" in cls.__dict__:
            cls.configure = _wrap_configure(cls.__dict__["configure"])  # type: ignore[method-assign]

    def __init__(self, **config: Any) -> None:
        self.name = self.interceptor_code or type(self).__name__
        self._config: dict[str, Any] = {"enabled": True}
        self.configure(**config)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"

    def configure(self, *, flags: str | None = None, enabled: bool = True) -> None:
        """Override to define accepted configuration parameters.

        The wrapper added by ``__init_subclass__`` parses ``flags`` (e.g.
        ``"enabled,before:off"``), validates the options against this
        signature and stores them.
        """
        options: dict[str, Any] = {"enabled": enabled}
        if flags:
            options.update(self._parse_flags(flags))
        self._config.update(options)

    def configuration(self) -> dict[str, Any]:
        """Return a copy of the current configuration."""
        return dict(self._config)

    @property
    def enabled(self) -> bool:
        return bool(self._config.get("enabled", True))

    def _parse_flags(self, flags: str) -> dict[str, bool]:
        """Parse flag string like "enabled,before:off" into boolean dict."""
        mapping: dict[str, bool] = {}
        for chunk in flags.split(","):
            chunk = chunk.strip()
            if not chunk:
                continue
            if ":" in chunk:
                name, value = chunk.split(":", 1)
                mapping[name.strip()] = value.strip().lower() != "off"
            else:
                mapping[chunk] = True
        return mapping


class MappedInterceptor:
    """Interceptor restricted to lookup paths by include/exclude patterns.

    An empty ``include`` means "every path". Excludes win over includes.
    """

    __slots__ = ("interceptor", "include", "exclude")

    def __init__(
        self,
        interceptor: HandlerInterceptor,
        include: Iterable[str] = (),
        exclude: Iterable[str] = (),
    ) -> None:
        self.interceptor = interceptor
        self.include = tuple(PathPattern(p) for p in include)
        self.exclude = tuple(PathPattern(p) for p in exclude)

    def matches(self, path: str | SplitPath) -> bool:
        """Check a raw request path or an already split one."""
        if any(pattern.match(path) for pattern in self.exclude):
            return False
        if not self.include:
            return True
        return any(pattern.match(path) for pattern in self.include)


# ----------------------------------------------------------------------
# Global registry
# ----------------------------------------------------------------------
def register_interceptor(interceptor_class: type[BaseInterceptor], name: str | None = None) -> None:
    """Register an interceptor class globally.

    Args:
        interceptor_class: A BaseInterceptor subclass with interceptor_code.
        name: Optional override name. An explicit name may replace an
              existing registration; the default code may not.

    Raises:
        TypeError: If interceptor_class is not a BaseInterceptor subclass.
        ValueError: If interceptor_code is missing or the code is taken.
    """
    if not isinstance(interceptor_class, type) or not issubclass(
        interceptor_class, BaseInterceptor
    ):
        raise TypeError("interceptor_class must be a BaseInterceptor subclass")
    if not getattr(interceptor_class, "interceptor_code", None):
        raise ValueError(
            f"Interceptor {interceptor_class.__name__} not following standards: "
            "missing interceptor_code"
        )
    code = name or interceptor_class.interceptor_code
    if name is None:
        existing = _INTERCEPTOR_REGISTRY.get(code)
        if existing is not None and existing is not interceptor_class:
            raise ValueError(f"Interceptor '{code}' already registered")
    _INTERCEPTOR_REGISTRY[code] = interceptor_class


def available_interceptors() -> dict[str, type[BaseInterceptor]]:
    """Return a copy of the global interceptor registry."""
    return dict(_INTERCEPTOR_REGISTRY)


def create_interceptor(code: str, **config: Any) -> BaseInterceptor:
    """Instantiate a registered interceptor by code."""
    if not isinstance(code, str):
        raise TypeError(f"Interceptor must be referenced by name string, got {type(code).__name__}")
    interceptor_class = _INTERCEPTOR_REGISTRY.get(code)
    if interceptor_class is None:
        available = ", ".join(sorted(_INTERCEPTOR_REGISTRY)) or "none"
        raise ValueError(
            f"Unknown interceptor '{code}'. Register it first. Available interceptors: {available}"
        )
    return interceptor_class(**config)

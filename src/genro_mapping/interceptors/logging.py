# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Logging interceptor for Genro Mapping.

Logs handler calls with configurable start/end messages and timing.

Configuration
-------------
Accepted keys (interceptor-level, or per handler through
``HandlerMethod.metadata`` with a ``logging_`` prefix):
    - ``enabled``: Gate the interceptor entirely (default True)
    - ``before``: Log "start" message (default True)
    - ``after``: Log "end" message with timing (default True)
    - ``log``: Use logger.info() when available (default True)
    - ``print``: Always use print() (default False)

Handler failures are always reported from ``after_completion``.

Example::

    from genro_mapping import HandlerMethod, PathPatternMatcher

    matcher = PathPatternMatcher("api", interceptors=["logging"], logging_before=False)
    matcher.register("/quiet", HandlerMethod.of(quiet, logging_after=False))
"""

from __future__ import annotations

import logging
import time
from typing import Any

from genro_toolbox import dictExtract

from genro_mapping.core.context import RequestContext
from genro_mapping.core.interceptor import BaseInterceptor, register_interceptor

__all__ = ["LoggingInterceptor"]

_START_ATTRIBUTE = "genro_mapping.interceptors.logging.start"
_DEFAULTS = {"enabled": True, "before": True, "after": True, "log": True, "print": False}


def handler_label(handler: Any) -> str:
    return getattr(handler, "name", None) or getattr(handler, "__name__", None) or repr(handler)


class LoggingInterceptor(BaseInterceptor):
    """Logging interceptor with configurable start/end messages and timing."""

    interceptor_code = "logging"
    interceptor_description = "Logs handler calls with timing"

    __slots__ = ("_logger",)

    def __init__(self, *, logger: logging.Logger | None = None, **cfg: Any) -> None:
        self._logger = logger or logging.getLogger("genro_mapping")
        super().__init__(**cfg)

    def configure(  # type: ignore[override]
        self,
        enabled: bool = True,
        before: bool = True,
        after: bool = True,
        log: bool = True,
        print: bool = False,  # noqa: A002
    ):
        """Configure logging interceptor options.

        Args:
            enabled: Enable/disable the interceptor entirely.
            before: Log "{handler} start" before execution.
            after: Log "{handler} end (X ms)" after execution.
            log: Use logger.info() when handlers available.
            print: Always use print() instead of logger.
        """
        pass  # stored by the wrapper

    def _emit(self, message: str, options: dict[str, bool], *, error: bool = False) -> None:
        """Send ``message`` to stdout or the logger according to ``options``."""
        if not (options["print"] or options["log"]):
            return
        if options["print"] or not self._logger.hasHandlers():
            print(message)
        elif error:
            self._logger.error(message)
        else:
            self._logger.info(message)

    def _options_for(self, handler: Any) -> dict[str, bool]:
        """Interceptor options overridden by ``logging_*`` handler metadata."""
        options = _DEFAULTS | self.configuration()
        metadata = getattr(handler, "metadata", None)
        if isinstance(metadata, dict):
            options.update(dictExtract(metadata, "logging_", slice_prefix=True, pop=False))
            flags = options.pop("flags", None)
            if isinstance(flags, str):
                options.update(self._parse_flags(flags))
        return {key: bool(options.get(key, default)) for key, default in _DEFAULTS.items()}

    def _start_key(self) -> str:
        return f"{_START_ATTRIBUTE}.{id(self)}"

    def _elapsed_ms(self, context: RequestContext) -> float | None:
        started = context.get_attribute(self._start_key())
        return None if started is None else (time.perf_counter() - started) * 1000

    def pre_handle(self, context: RequestContext, handler: Any) -> bool:
        options = self._options_for(handler)
        if options["enabled"]:
            if options["before"]:
                self._emit(f"{handler_label(handler)} start", options)
            context.set_attribute(self._start_key(), time.perf_counter())
        return True

    def post_handle(self, context: RequestContext, handler: Any, result: Any) -> None:
        elapsed = self._elapsed_ms(context)
        options = self._options_for(handler)
        if elapsed is not None and options["after"]:
            self._emit(f"{handler_label(handler)} end ({elapsed:.2f} ms)", options)

    def after_completion(
        self, context: RequestContext, handler: Any, error: BaseException | None
    ) -> None:
        elapsed = self._elapsed_ms(context)
        context.remove_attribute(self._start_key())
        if error is not None and elapsed is not None:
            message = f"{handler_label(handler)} failed ({elapsed:.2f} ms): {error!r}"
            self._emit(message, self._options_for(handler), error=True)


register_interceptor(LoggingInterceptor)

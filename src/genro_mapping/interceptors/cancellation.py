# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Cancellation interceptor for Genro Mapping.

Short-circuits requests the transport has already cancelled (client gone)
so the handler never starts for them. Interceptors registered after it see
no pre-hook; those registered before it still get ``after_completion``.

The rejection reason ``"cancelled"`` is recorded under
``REJECTION_ATTRIBUTE`` like any other short-circuit.
"""

from __future__ import annotations

import logging
from typing import Any

from genro_mapping.core.context import RequestContext
from genro_mapping.core.interceptor import BaseInterceptor, register_interceptor

from .auth import REJECTION_ATTRIBUTE

__all__ = ["CancellationInterceptor"]

logger = logging.getLogger("genro_mapping.cancellation")


class CancellationInterceptor(BaseInterceptor):
    """Skip handlers of cancelled requests."""

    interceptor_code = "cancellation"
    interceptor_description = "Short-circuits requests cancelled by the transport"

    def pre_handle(self, context: RequestContext, handler: Any) -> bool:
        if not context.cancelled:
            return True
        reason = context.cancel_reason or "no reason"
        logger.info("Skipping %r: request cancelled (%s)", context, reason)
        context.set_attribute(REJECTION_ATTRIBUTE, "cancelled")
        return False

    def after_completion(
        self, context: RequestContext, handler: Any, error: BaseException | None
    ) -> None:
        if context.cancelled and error is not None:
            logger.debug("Request %r cancelled while handling: %r", context, error)


register_interceptor(CancellationInterceptor)

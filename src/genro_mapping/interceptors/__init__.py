# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Built-in interceptors for Genro Mapping.

Note: Do not import concrete interceptors here to keep imports side-effect
free. Concrete interceptor modules (logging, auth, cancellation) self-register
when imported via the main genro_mapping package.
"""

__all__: list[str] = []

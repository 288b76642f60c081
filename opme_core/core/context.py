# opme_core/core/context.py

import contextvars

# Request-scoped values picked up by the JSON log formatter.
correlation_id_ctx = contextvars.ContextVar("correlation_id", default=None)
tenant_id_ctx = contextvars.ContextVar("tenant_id", default=None)

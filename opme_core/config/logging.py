# opme_core/config/logging.py

import json
import logging
from datetime import datetime, timezone

from opme_core.core.context import correlation_id_ctx, tenant_id_ctx

# Attributes set via logger.x(..., extra={...}) that end up in the JSON record.
_EXTRA_FIELDS = (
    "cache_key",
    "chain_id",
    "block_index",
    "break_index",
    "violation",
    "attempt",
    "compliance_alert",
)


class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "correlation_id": correlation_id_ctx.get(),
            "tenant_id": tenant_id_ctx.get(),
        }
        for name in _EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_record[name] = value
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)


def configure_logging(log_level: str):
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

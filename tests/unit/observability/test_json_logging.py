"""JsonFormatter: request context and audit/cache extras in every line."""

import json
import logging

from opme_core.config.logging import JsonFormatter
from opme_core.core.context import correlation_id_ctx, tenant_id_ctx


def make_record(msg, **extra):
    record = logging.LogRecord("opme_core.test", logging.ERROR, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_includes_context_and_extras():
    c_token = correlation_id_ctx.set("corr-1")
    t_token = tenant_id_ctx.set("hospital-1")
    try:
        line = JsonFormatter().format(
            make_record("Audit chain integrity violation", chain_id="hospital-1", break_index=4, compliance_alert=True)
        )
    finally:
        correlation_id_ctx.reset(c_token)
        tenant_id_ctx.reset(t_token)
    data = json.loads(line)
    assert data["level"] == "ERROR"
    assert data["correlation_id"] == "corr-1"
    assert data["tenant_id"] == "hospital-1"
    assert data["break_index"] == 4
    assert data["compliance_alert"] is True


def test_unset_extras_omitted():
    data = json.loads(JsonFormatter().format(make_record("Cache write failed")))
    assert "cache_key" not in data
    assert data["correlation_id"] is None

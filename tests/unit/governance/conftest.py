"""Fixtures for audit trail tests: ticking clock, in-memory chain repository, trail."""

from datetime import datetime, timedelta, timezone

import pytest

from opme_core.governance.audit_repository import InMemoryAuditChainRepository
from opme_core.governance.audit_trail import AuditTrail
from opme_core.observability.metrics import MetricsCollector

CHAIN = "tenant-a"


class TickingClock:
    """UTC clock that moves forward one second per reading."""

    def __init__(self, start: datetime = datetime(2026, 1, 5, 9, 30, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def repository():
    return InMemoryAuditChainRepository()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def trail(repository, metrics, clock):
    return AuditTrail(
        repository,
        default_chain_id=CHAIN,
        retry_backoff_seconds=0,
        metrics=metrics,
        clock=clock,
    )


@pytest.fixture
async def product_chain(trail):
    """Create, update and approve product P1 by actor U1."""
    await trail.append("create", "product", "P1", "U1", {"name": "Stent 3mm"})
    await trail.append(
        "update",
        "product",
        "P1",
        "U1",
        {"kind": "change", "before": {"price": 10}, "after": {"price": 12}, "changed_fields": ["price"]},
    )
    await trail.append("approve", "product", "P1", "U1", {"kind": "approval", "decision": "approved"})
    return trail

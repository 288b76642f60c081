"""Fixtures for API unit tests: in-memory audit repository and cache, AsyncClient."""

import pytest
from httpx import ASGITransport, AsyncClient

from opme_core.cache.backend import InMemoryCacheBackend
from opme_core.cache.cache_layer import CacheLayer
from opme_core.governance.audit_repository import InMemoryAuditChainRepository
from opme_core.main import app
from opme_core.observability.metrics import MetricsCollector


@pytest.fixture
def audit_repository():
    return InMemoryAuditChainRepository()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def cache_layer(metrics):
    return CacheLayer(InMemoryCacheBackend(), metrics=metrics)


@pytest.fixture
def app_with_overrides(audit_repository, cache_layer, metrics):
    """App with Postgres, Redis and signing overridden for testing."""
    from opme_core.api import dependencies

    app.dependency_overrides[dependencies.get_audit_repository] = lambda: audit_repository
    app.dependency_overrides[dependencies.get_cache_layer] = lambda: cache_layer
    app.dependency_overrides[dependencies.get_metrics] = lambda: metrics
    app.dependency_overrides[dependencies.get_bundle_signer] = lambda: None
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(app_with_overrides):
    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def tenant_headers():
    return {"X-Tenant-ID": "hospital-1", "X-Actor-ID": "U1"}

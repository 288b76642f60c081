"""API middleware: correlation ID propagation, tenant required, request context reset."""

import pytest
from httpx import AsyncClient

from opme_core.core.context import correlation_id_ctx, tenant_id_ctx


@pytest.mark.asyncio
async def test_correlation_id_generated(client: AsyncClient):
    r = await client.get("/health", headers={"X-Tenant-ID": "t1"})
    assert r.status_code == 200
    assert r.headers["X-Correlation-ID"]


@pytest.mark.asyncio
async def test_correlation_id_preserved_when_passed(client: AsyncClient):
    r = await client.get("/health", headers={"X-Tenant-ID": "t1", "X-Correlation-ID": "corr-123"})
    assert r.headers.get("X-Correlation-ID") == "corr-123"
    assert r.json()["correlation_id"] == "corr-123"


@pytest.mark.asyncio
async def test_tenant_required_on_audit_routes(client: AsyncClient):
    r = await client.get("/audit/verify")
    assert r.status_code == 400
    assert r.json()["detail"] == "X-Tenant-ID header is required"


@pytest.mark.asyncio
async def test_blank_tenant_rejected(client: AsyncClient):
    r = await client.get("/health", headers={"X-Tenant-ID": "   "})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_context_vars_reset_after_request(client: AsyncClient):
    await client.get("/health", headers={"X-Tenant-ID": "t1", "X-Correlation-ID": "c1"})
    assert tenant_id_ctx.get() is None
    assert correlation_id_ctx.get() is None

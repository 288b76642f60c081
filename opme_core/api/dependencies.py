"""FastAPI dependency injection: metrics, cache layer, audit trail, tenant, correlation_id, actor."""

from typing import Annotated, Optional

from fastapi import Depends, Header, Request

from opme_core.cache.backend import CacheBackend, InMemoryCacheBackend
from opme_core.cache.cache_layer import CacheLayer
from opme_core.cache.policy import TTLPolicy
from opme_core.config.settings import get_settings
from opme_core.governance.audit_repository import AuditChainRepository
from opme_core.governance.audit_trail import AuditTrail
from opme_core.governance.signing import BundleSigner
from opme_core.infrastructure.cache.redis_client import RedisClient
from opme_core.infrastructure.database.audit_repository_db import DbAuditChainRepository
from opme_core.infrastructure.database.session import get_session_factory
from opme_core.observability.metrics import MetricsCollector
from opme_core.scalability.circuit_breaker import CircuitBreaker

_metrics: MetricsCollector | None = None
_cache_layer: CacheLayer | None = None
_audit_repository: AuditChainRepository | None = None
_signer: BundleSigner | None = None


def get_metrics() -> MetricsCollector:
    """Return singleton metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_cache_layer() -> CacheLayer:
    """Return singleton cache layer. Hit counters and circuit state live here.

    Backed by Redis, or by process memory when redis_url is empty.
    """
    global _cache_layer
    if _cache_layer is None:
        settings = get_settings()
        backend: CacheBackend
        if settings.redis_url:
            backend = RedisClient()
        else:
            backend = InMemoryCacheBackend(max_entries=settings.cache_local_max_entries)
        _cache_layer = CacheLayer(
            backend,
            policy=TTLPolicy(),
            metrics=get_metrics(),
            circuit_breaker=CircuitBreaker(
                failure_threshold=settings.cache_circuit_failure_threshold,
                recovery_timeout_seconds=settings.cache_circuit_recovery_seconds,
                name="cache",
            ),
            timeout_seconds=settings.backing_store_timeout_seconds,
        )
    return _cache_layer


def get_audit_repository() -> AuditChainRepository:
    """Return singleton DB-backed audit chain repository."""
    global _audit_repository
    if _audit_repository is None:
        _audit_repository = DbAuditChainRepository(get_session_factory())
    return _audit_repository


def get_bundle_signer() -> Optional[BundleSigner]:
    """Return the export signer when a signing seed is configured."""
    global _signer
    settings = get_settings()
    if _signer is None and settings.audit_export_signing_seed:
        _signer = BundleSigner.from_seed_hex(settings.audit_export_signing_seed)
    return _signer


def get_audit_trail(
    repository: Annotated[AuditChainRepository, Depends(get_audit_repository)],
    metrics: Annotated[MetricsCollector, Depends(get_metrics)],
    signer: Annotated[Optional[BundleSigner], Depends(get_bundle_signer)],
) -> AuditTrail:
    """Build AuditTrail with injected repository and settings. Holds no chain state."""
    settings = get_settings()
    return AuditTrail(
        repository,
        default_chain_id=settings.audit_default_chain_id,
        max_retries=settings.audit_append_max_retries,
        retry_backoff_seconds=settings.audit_append_retry_backoff_seconds,
        timeout_seconds=settings.backing_store_timeout_seconds,
        metrics=metrics,
        signer=signer,
    )


def get_tenant_id(request: Request) -> str:
    """Extract tenant_id from request.state (set by middleware). Also the audit chain partition."""
    return request.state.tenant_id


def get_correlation_id(request: Request) -> str:
    """Extract correlation_id from request.state (set by middleware)."""
    return getattr(request.state, "correlation_id", "") or ""


def get_actor_id(
    x_actor_id: Annotated[Optional[str], Header(alias="X-Actor-ID")] = None,
) -> Optional[str]:
    """Identity of the user or agent performing the request, when the caller supplies one."""
    if x_actor_id is None or not x_actor_id.strip():
        return None
    return x_actor_id.strip()

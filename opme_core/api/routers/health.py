# opme_core/api/routers/health.py

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from opme_core.api.dependencies import get_metrics
from opme_core.config.settings import get_settings
from opme_core.observability.metrics import MetricsCollector

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Health check with tenant and correlation ID from request state."""
    settings = get_settings()
    return {
        "status": "ok",
        "tenant_id": request.state.tenant_id,
        "correlation_id": request.state.correlation_id,
        "environment": settings.environment,
        "version": settings.version,
    }


@router.get("/metrics")
async def metrics(collector: Annotated[MetricsCollector, Depends(get_metrics)]):
    """Cache and audit counters plus latency histograms."""
    return collector.export_metrics()

# opme_core/main.py

import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from opme_core.api.middleware import (
    CorrelationIdMiddleware,
    RequestLogMiddleware,
    TenantContextMiddleware,
)
from opme_core.api.routers import audit, cache, health
from opme_core.cache.exceptions import CacheError
from opme_core.config.logging import configure_logging
from opme_core.config.settings import get_settings
from opme_core.governance.exceptions import (
    AuditPersistenceError,
    GovernanceError,
    InvalidAuditRecordError,
    InvalidRangeError,
    RegulatedActionNotConfirmedError,
)

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    debug=settings.debug,
)

# Middleware order: last added runs first (outermost). Request flow: CorrelationId -> TenantContext -> RequestLog.
app.add_middleware(RequestLogMiddleware)
app.add_middleware(TenantContextMiddleware)
app.add_middleware(CorrelationIdMiddleware)


@app.exception_handler(InvalidAuditRecordError)
async def invalid_audit_record_handler(request, exc: InvalidAuditRecordError):
    return JSONResponse(status_code=422, content={"detail": exc.message})


@app.exception_handler(InvalidRangeError)
async def invalid_range_handler(request, exc: InvalidRangeError):
    return JSONResponse(status_code=422, content={"detail": exc.message})


@app.exception_handler(AuditPersistenceError)
async def audit_persistence_error_handler(request, exc: AuditPersistenceError):
    # The regulated action is not complete; the operator must see this.
    return JSONResponse(status_code=503, content={"detail": exc.message})


@app.exception_handler(RegulatedActionNotConfirmedError)
async def regulated_action_not_confirmed_handler(request, exc: RegulatedActionNotConfirmedError):
    return JSONResponse(
        status_code=503,
        content={"detail": exc.message, "compensated": exc.compensated},
    )


@app.exception_handler(GovernanceError)
async def governance_error_handler(request, exc: GovernanceError):
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.exception_handler(CacheError)
async def cache_error_handler(request, exc: CacheError):
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request, exc: Exception):
    logger.exception("Unhandled error")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Routers: /health, /metrics, /audit, /cache
app.include_router(health.router)
app.include_router(audit.router, prefix="/audit")
app.include_router(cache.router, prefix="/cache")

"""Audit router: append, browse, verify, export, statistics. The tenant is the chain partition."""

from datetime import datetime
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response

from opme_core.api.dependencies import get_actor_id, get_audit_trail, get_tenant_id
from opme_core.api.schemas import AppendBlockRequest, AuditBlockResponse
from opme_core.governance.audit_models import AuditAction, AuditEntityType, AuditQuery
from opme_core.governance.audit_trail import AuditTrail
from opme_core.governance.export import ExportBundle, verify_bundle

router = APIRouter()


@router.post("/blocks", status_code=201, response_model=AuditBlockResponse)
async def append_block(
    body: AppendBlockRequest,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
    trail: Annotated[AuditTrail, Depends(get_audit_trail)],
):
    """Append a block to the tenant's chain. 503 when the block could not be persisted."""
    actor = body.actor_id or actor_id
    if not actor:
        return JSONResponse(
            status_code=400,
            content={"detail": "actor_id or X-Actor-ID header is required"},
        )
    block = await trail.append(
        body.action_type,
        body.entity_type,
        body.entity_id,
        actor,
        body.payload,
        chain_id=tenant_id,
    )
    return AuditBlockResponse.from_block(block)


@router.get("/blocks", response_model=List[AuditBlockResponse])
async def query_blocks(
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    trail: Annotated[AuditTrail, Depends(get_audit_trail)],
    action_type: Optional[AuditAction] = None,
    entity_type: Optional[AuditEntityType] = None,
    entity_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    query = AuditQuery(
        start=start,
        end=end,
        action_type=action_type.value if action_type else None,
        entity_type=entity_type.value if entity_type else None,
        entity_id=entity_id,
        actor_id=actor_id,
        limit=limit,
        offset=offset,
    )
    blocks = await trail.query_blocks(query, chain_id=tenant_id)
    return [AuditBlockResponse.from_block(b) for b in blocks]


@router.get("/blocks/{index}", response_model=AuditBlockResponse)
async def get_block(
    index: int,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    trail: Annotated[AuditTrail, Depends(get_audit_trail)],
):
    block = await trail.get_block(index, chain_id=tenant_id)
    if block is None:
        return JSONResponse(status_code=404, content={"detail": f"Block {index} not found"})
    return AuditBlockResponse.from_block(block)


@router.get("/verify")
async def verify_chain(
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    trail: Annotated[AuditTrail, Depends(get_audit_trail)],
    from_index: Annotated[Optional[int], Query(ge=0)] = None,
    to_index: Annotated[Optional[int], Query(ge=0)] = None,
):
    """Integrity report for the tenant's chain. A break is a 200 with valid=false, not an error."""
    result = await trail.verify_chain(from_index, to_index, chain_id=tenant_id)
    return result.to_dict()


@router.get("/export")
async def export_range(
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
    trail: Annotated[AuditTrail, Depends(get_audit_trail)],
    from_index: Annotated[int, Query(ge=0)],
    to_index: Annotated[int, Query(ge=0)],
):
    """Export bundle for auditors. The export is itself recorded when X-Actor-ID is present."""
    bundle = await trail.export_range(from_index, to_index, chain_id=tenant_id, exported_by=actor_id)
    return Response(content=bundle.to_json(), media_type="application/json")


@router.get("/statistics")
async def statistics(
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    trail: Annotated[AuditTrail, Depends(get_audit_trail)],
):
    stats = await trail.get_statistics(chain_id=tenant_id)
    head = await trail.get_head(chain_id=tenant_id)
    return {
        **stats.to_dict(),
        "head_index": head.last_index if head else None,
        "head_hash": head.last_hash if head else None,
    }


@router.post("/export/verify")
async def verify_export(bundle: ExportBundle):
    """Recheck a previously exported bundle using only its own contents."""
    return verify_bundle(bundle).to_dict()

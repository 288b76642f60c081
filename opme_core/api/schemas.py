"""Pydantic request/response schemas for the audit and cache routers."""

import json
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from opme_core.governance.audit_models import AuditAction, AuditBlock, AuditEntityType


class AppendBlockRequest(BaseModel):
    """Request schema for appending an audit block. actor_id falls back to X-Actor-ID."""

    action_type: AuditAction
    entity_type: AuditEntityType
    entity_id: str = Field(..., min_length=1)
    actor_id: Optional[str] = Field(None, min_length=1)
    payload: Optional[Dict[str, Any]] = Field(None, description="Tagged payload (with `kind`) or free-form details")

    @field_validator("payload")
    @classmethod
    def payload_must_be_json_serializable(cls, v: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if v is None:
            return v
        try:
            json.dumps(v, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise ValueError("payload must be JSON-serializable") from e
        return v


class AuditBlockResponse(BaseModel):
    chain_id: str
    index: int
    timestamp: datetime
    action_type: str
    entity_type: str
    entity_id: str
    actor_id: str
    payload: Dict[str, Any]
    previous_hash: str
    hash: str
    canonical_version: int

    @classmethod
    def from_block(cls, block: AuditBlock) -> "AuditBlockResponse":
        return cls(
            chain_id=block.chain_id,
            index=block.index,
            timestamp=block.timestamp,
            action_type=block.action_type,
            entity_type=block.entity_type,
            entity_id=block.entity_id,
            actor_id=block.actor_id,
            payload=block.payload,
            previous_hash=block.previous_hash,
            hash=block.hash,
            canonical_version=block.canonical_version,
        )

"""
Canonical encoding and digest of audit blocks.

Version 1: SHA-256 over UTF-8 JSON of the eight hashed fields with sorted keys,
no insignificant whitespace, non-ASCII kept verbatim, NaN/Infinity rejected,
timestamp as ISO 8601 UTC with microseconds and a `Z` suffix. The same
function serves append, verification, and offline bundle checks; a change to
any rule requires a new version so older blocks keep verifying.
"""

import hashlib
import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping

from opme_core.governance.audit_models import AuditBlock
from opme_core.governance.exceptions import InvalidAuditRecordError

CANONICAL_VERSION = 1

GENESIS_PREVIOUS_HASH = "0" * 64

HASHED_FIELDS = (
    "index",
    "timestamp",
    "action_type",
    "entity_type",
    "entity_id",
    "actor_id",
    "payload",
    "previous_hash",
)

CANONICALIZATION_RULES: Dict[int, Dict[str, Any]] = {
    1: {
        "version": 1,
        "digest": "sha256",
        "encoding": "utf-8 json",
        "fields": list(HASHED_FIELDS),
        "json": {
            "sort_keys": True,
            "separators": [",", ":"],
            "ensure_ascii": False,
            "allow_nan": False,
        },
        "timestamp_format": "%Y-%m-%dT%H:%M:%S.%fZ (UTC)",
        "genesis_previous_hash": GENESIS_PREVIOUS_HASH,
    },
}


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def canonical_json(data: Any) -> bytes:
    """Deterministic JSON bytes. Raises InvalidAuditRecordError for unencodable values."""
    try:
        text = json.dumps(
            data,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise InvalidAuditRecordError(f"Value is not canonically encodable: {e}") from e
    return text.encode("utf-8")


def _v1_fields(
    *,
    index: int,
    timestamp: datetime,
    action_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str,
    payload: Mapping[str, Any],
    previous_hash: str,
) -> Dict[str, Any]:
    return {
        "index": int(index),
        "timestamp": format_timestamp(timestamp),
        "action_type": str(action_type),
        "entity_type": str(entity_type),
        "entity_id": str(entity_id),
        "actor_id": str(actor_id),
        "payload": dict(payload),
        "previous_hash": str(previous_hash),
    }


_ENCODERS: Dict[int, Callable[..., Dict[str, Any]]] = {1: _v1_fields}


def compute_hash(version: int = CANONICAL_VERSION, **fields: Any) -> str:
    """Digest of the hashed fields under the given canonicalization version."""
    encoder = _ENCODERS.get(version)
    if encoder is None:
        raise InvalidAuditRecordError(f"Unknown canonicalization version: {version}")
    return hashlib.sha256(canonical_json(encoder(**fields))).hexdigest()


def compute_block_hash(block: AuditBlock) -> str:
    """Recompute a block's digest from its stored fields (ignores block.hash)."""
    return compute_hash(
        block.canonical_version,
        index=block.index,
        timestamp=block.timestamp,
        action_type=block.action_type,
        entity_type=block.entity_type,
        entity_id=block.entity_id,
        actor_id=block.actor_id,
        payload=block.payload,
        previous_hash=block.previous_hash,
    )


def checksum(items: Any) -> str:
    """SHA-256 of the canonical JSON of an arbitrary structure (used for export bundles)."""
    return hashlib.sha256(canonical_json(items)).hexdigest()

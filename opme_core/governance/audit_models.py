"""Immutable audit block, chain head, and verification result models. Domain-level immutability."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    VIEW = "view"
    ACCESS = "access"
    EXPORT = "export"
    IMPORT = "import"
    LOGIN = "login"
    LOGOUT = "logout"
    APPROVE = "approve"
    REJECT = "reject"
    SIGN = "sign"
    TRANSFER = "transfer"
    DISPENSE = "dispense"
    RETURN = "return"
    ALERT = "alert"


class AuditEntityType(str, Enum):
    SURGERY = "surgery"
    PRODUCT = "product"
    PATIENT = "patient"
    PHYSICIAN = "physician"
    USER = "user"
    CONTRACT = "contract"
    INVOICE = "invoice"
    LOT = "lot"
    INVENTORY = "inventory"
    FINANCIAL = "financial"
    COMPLIANCE = "compliance"
    TRAINING = "training"
    CERTIFICATE = "certificate"
    API_REQUEST = "api_request"
    SYSTEM = "system"


class ViolationKind(str, Enum):
    HASH_MISMATCH = "hash_mismatch"
    CHAIN_LINKAGE = "chain_linkage"


def ensure_utc(value: datetime) -> datetime:
    """Stores that drop tzinfo (e.g. SQLite) hand back naive UTC datetimes."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class AuditBlock:
    """
    One link of the audit chain. action_type and entity_type hold the enum values
    as plain strings so a tampered row still loads and fails verification.
    """

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
    canonical_version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for export and JSON responses."""
        return {
            "chain_id": self.chain_id,
            "index": self.index,
            "timestamp": self.timestamp.isoformat(),
            "action_type": self.action_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "payload": self.payload,
            "previous_hash": self.previous_hash,
            "hash": self.hash,
            "canonical_version": self.canonical_version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditBlock":
        timestamp = data["timestamp"]
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
        return cls(
            chain_id=data["chain_id"],
            index=int(data["index"]),
            timestamp=ensure_utc(timestamp),
            action_type=data["action_type"],
            entity_type=data["entity_type"],
            entity_id=data["entity_id"],
            actor_id=data["actor_id"],
            payload=data["payload"],
            previous_hash=data["previous_hash"],
            hash=data["hash"],
            canonical_version=int(data.get("canonical_version", 1)),
        )


@dataclass(frozen=True)
class ChainHead:
    """Implicit chain state: last index and hash of a partition. Read fresh on every append."""

    chain_id: str
    last_index: int
    last_hash: str


@dataclass(frozen=True)
class ChainBreak:
    """First (or subsequent) point where a chain fails verification."""

    index: int
    kind: ViolationKind
    detail: str

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "kind": self.kind.value, "detail": self.detail}


@dataclass(frozen=True)
class VerificationResult:
    chain_id: str
    from_index: int
    to_index: int
    blocks_checked: int
    breaks: List[ChainBreak] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.breaks

    @property
    def first_break(self) -> Optional[ChainBreak]:
        return self.breaks[0] if self.breaks else None

    @property
    def invalid_blocks(self) -> int:
        return len({b.index for b in self.breaks})

    def to_dict(self) -> Dict[str, Any]:
        first = self.first_break
        return {
            "chain_id": self.chain_id,
            "valid": self.valid,
            "from_index": self.from_index,
            "to_index": self.to_index,
            "blocks_checked": self.blocks_checked,
            "invalid_blocks": self.invalid_blocks,
            "first_break": first.to_dict() if first else None,
            "breaks": [b.to_dict() for b in self.breaks],
        }


@dataclass(frozen=True)
class AuditQuery:
    """Filters for browsing a chain. All optional; limit/offset paginate in index order."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    action_type: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    actor_id: Optional[str] = None
    limit: int = 100
    offset: int = 0

    def matches(self, block: AuditBlock) -> bool:
        if self.start is not None and block.timestamp < ensure_utc(self.start):
            return False
        if self.end is not None and block.timestamp > ensure_utc(self.end):
            return False
        if self.action_type is not None and block.action_type != self.action_type:
            return False
        if self.entity_type is not None and block.entity_type != self.entity_type:
            return False
        if self.entity_id is not None and block.entity_id != self.entity_id:
            return False
        if self.actor_id is not None and block.actor_id != self.actor_id:
            return False
        return True


@dataclass(frozen=True)
class AuditStatistics:
    chain_id: str
    total_blocks: int
    action_distribution: Dict[str, int]
    entity_distribution: Dict[str, int]
    last_block_time: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chain_id": self.chain_id,
            "total_blocks": self.total_blocks,
            "action_distribution": dict(self.action_distribution),
            "entity_distribution": dict(self.entity_distribution),
            "last_block_time": self.last_block_time.isoformat() if self.last_block_time else None,
        }

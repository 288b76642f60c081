# opme_core/infrastructure/database/models.py

import uuid

from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from opme_core.infrastructure.database.session import Base


class AuditBlockRow(Base):
    """One persisted audit block. Rows are inserted once and never updated or deleted."""

    __tablename__ = "audit_blocks"
    __table_args__ = (
        UniqueConstraint("chain_id", "block_index", name="uq_audit_blocks_chain_index"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    chain_id = Column(String, nullable=False, index=True)
    block_index = Column(BigInteger, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    action_type = Column(String, nullable=False, index=True)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=False, index=True)
    actor_id = Column(String, nullable=False, index=True)
    payload = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    previous_hash = Column(String(64), nullable=False)
    hash = Column(String(64), nullable=False, index=True)
    canonical_version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AuditChainHeadRow(Base):
    """Chain head marker: the row every append compares-and-swaps."""

    __tablename__ = "audit_chain_heads"

    chain_id = Column(String, primary_key=True)
    last_index = Column(BigInteger, nullable=False)
    last_hash = Column(String(64), nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

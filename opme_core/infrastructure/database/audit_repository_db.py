"""DB-backed audit chain repository. Appends are a compare-and-swap on the audit_chain_heads row."""

from typing import List, Optional

from sqlalchemy import desc, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from opme_core.governance.audit_models import (
    AuditBlock,
    AuditQuery,
    AuditStatistics,
    ChainHead,
    ensure_utc,
)
from opme_core.governance.exceptions import ChainHeadConflictError
from opme_core.infrastructure.database.models import AuditBlockRow, AuditChainHeadRow


def _to_block(row: AuditBlockRow) -> AuditBlock:
    return AuditBlock(
        chain_id=row.chain_id,
        index=row.block_index,
        timestamp=ensure_utc(row.timestamp),
        action_type=row.action_type,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        actor_id=row.actor_id,
        payload=row.payload,
        previous_hash=row.previous_hash,
        hash=row.hash,
        canonical_version=row.canonical_version,
    )


def _to_row(block: AuditBlock) -> AuditBlockRow:
    return AuditBlockRow(
        chain_id=block.chain_id,
        block_index=block.index,
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


class DbAuditChainRepository:
    """
    Persists audit blocks to PostgreSQL (or SQLite in tests). Implements AuditChainRepository.

    The head row update is conditioned on the head read by the caller; under
    read-committed isolation a concurrent winner makes the losing UPDATE match
    zero rows. The unique (chain_id, block_index) constraint backs this up.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_head(self, chain_id: str) -> Optional[ChainHead]:
        async with self._session_factory() as session:
            row = await session.get(AuditChainHeadRow, chain_id)
            if row is None:
                return None
            return ChainHead(chain_id=row.chain_id, last_index=row.last_index, last_hash=row.last_hash)

    async def append_block(self, block: AuditBlock, expected_head: Optional[ChainHead]) -> None:
        expected_index = 0 if expected_head is None else expected_head.last_index + 1
        if block.index != expected_index:
            raise ChainHeadConflictError(
                f"Chain {block.chain_id}: block index {block.index} does not follow head ({expected_index})"
            )
        try:
            async with self._session_factory() as session, session.begin():
                if expected_head is None:
                    session.add(
                        AuditChainHeadRow(
                            chain_id=block.chain_id,
                            last_index=block.index,
                            last_hash=block.hash,
                        )
                    )
                    await session.flush()
                else:
                    stmt = (
                        update(AuditChainHeadRow)
                        .where(
                            AuditChainHeadRow.chain_id == block.chain_id,
                            AuditChainHeadRow.last_index == expected_head.last_index,
                            AuditChainHeadRow.last_hash == expected_head.last_hash,
                        )
                        .values(last_index=block.index, last_hash=block.hash)
                    )
                    result = await session.execute(stmt)
                    if result.rowcount != 1:
                        raise ChainHeadConflictError(
                            f"Chain {block.chain_id} head moved since index {expected_head.last_index}"
                        )
                session.add(_to_row(block))
                await session.flush()
        except IntegrityError as e:
            raise ChainHeadConflictError(
                f"Chain {block.chain_id}: block {block.index} already written"
            ) from e

    async def list_blocks(self, chain_id: str, from_index: int, to_index: int) -> List[AuditBlock]:
        stmt = (
            select(AuditBlockRow)
            .where(
                AuditBlockRow.chain_id == chain_id,
                AuditBlockRow.block_index >= from_index,
                AuditBlockRow.block_index <= to_index,
            )
            .order_by(AuditBlockRow.block_index)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_to_block(row) for row in result.scalars().all()]

    async def get_block_by_hash(self, chain_id: str, block_hash: str) -> Optional[AuditBlock]:
        stmt = select(AuditBlockRow).where(
            AuditBlockRow.chain_id == chain_id,
            AuditBlockRow.hash == block_hash,
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            row = result.scalars().first()
            return _to_block(row) if row is not None else None

    async def query_blocks(self, chain_id: str, query: AuditQuery) -> List[AuditBlock]:
        stmt = select(AuditBlockRow).where(AuditBlockRow.chain_id == chain_id)
        if query.start is not None:
            stmt = stmt.where(AuditBlockRow.timestamp >= query.start)
        if query.end is not None:
            stmt = stmt.where(AuditBlockRow.timestamp <= query.end)
        if query.action_type is not None:
            stmt = stmt.where(AuditBlockRow.action_type == query.action_type)
        if query.entity_type is not None:
            stmt = stmt.where(AuditBlockRow.entity_type == query.entity_type)
        if query.entity_id is not None:
            stmt = stmt.where(AuditBlockRow.entity_id == query.entity_id)
        if query.actor_id is not None:
            stmt = stmt.where(AuditBlockRow.actor_id == query.actor_id)
        stmt = stmt.order_by(AuditBlockRow.block_index).offset(query.offset).limit(query.limit)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_to_block(row) for row in result.scalars().all()]

    async def statistics(self, chain_id: str) -> AuditStatistics:
        async with self._session_factory() as session:
            actions = await session.execute(
                select(AuditBlockRow.action_type, func.count())
                .where(AuditBlockRow.chain_id == chain_id)
                .group_by(AuditBlockRow.action_type)
            )
            entities = await session.execute(
                select(AuditBlockRow.entity_type, func.count())
                .where(AuditBlockRow.chain_id == chain_id)
                .group_by(AuditBlockRow.entity_type)
            )
            last = await session.execute(
                select(AuditBlockRow.timestamp)
                .where(AuditBlockRow.chain_id == chain_id)
                .order_by(desc(AuditBlockRow.block_index))
                .limit(1)
            )
            action_distribution = {name: count for name, count in actions.all()}
            entity_distribution = {name: count for name, count in entities.all()}
            last_time = last.scalar_one_or_none()
        return AuditStatistics(
            chain_id=chain_id,
            total_blocks=sum(action_distribution.values()),
            action_distribution=action_distribution,
            entity_distribution=entity_distribution,
            last_block_time=ensure_utc(last_time) if last_time is not None else None,
        )

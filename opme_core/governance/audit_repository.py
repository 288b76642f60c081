"""Audit chain repository protocol. Governance layer depends on this; infrastructure implements it."""

from collections import Counter
from typing import Dict, List, Optional, Protocol

from opme_core.governance.audit_models import (
    AuditBlock,
    AuditQuery,
    AuditStatistics,
    ChainHead,
)
from opme_core.governance.exceptions import ChainHeadConflictError


class AuditChainRepository(Protocol):
    """Append-only storage for hash-chained audit blocks, partitioned by chain_id."""

    async def get_head(self, chain_id: str) -> Optional[ChainHead]:
        """Current head of the chain, or None when the chain has no blocks."""
        ...

    async def append_block(self, block: AuditBlock, expected_head: Optional[ChainHead]) -> None:
        """
        Persist block and advance the head, atomically and only if the head still
        equals expected_head. Raise ChainHeadConflictError otherwise. No update or
        delete operation exists.
        """
        ...

    async def list_blocks(self, chain_id: str, from_index: int, to_index: int) -> List[AuditBlock]:
        """Blocks with from_index <= index <= to_index in storage order."""
        ...

    async def get_block_by_hash(self, chain_id: str, block_hash: str) -> Optional[AuditBlock]:
        ...

    async def query_blocks(self, chain_id: str, query: AuditQuery) -> List[AuditBlock]:
        ...

    async def statistics(self, chain_id: str) -> AuditStatistics:
        ...


class InMemoryAuditChainRepository:
    """
    Process-local repository. The head comparison and the write happen with no
    await between them, which makes the conditional write atomic on the event loop.
    """

    def __init__(self) -> None:
        self._blocks: Dict[str, List[AuditBlock]] = {}
        self._heads: Dict[str, ChainHead] = {}

    async def get_head(self, chain_id: str) -> Optional[ChainHead]:
        return self._heads.get(chain_id)

    async def append_block(self, block: AuditBlock, expected_head: Optional[ChainHead]) -> None:
        current = self._heads.get(block.chain_id)
        if current != expected_head:
            raise ChainHeadConflictError(
                f"Chain {block.chain_id} head moved: expected {expected_head}, found {current}"
            )
        next_index = 0 if current is None else current.last_index + 1
        if block.index != next_index:
            raise ChainHeadConflictError(
                f"Chain {block.chain_id}: block index {block.index} does not follow head ({next_index})"
            )
        self._blocks.setdefault(block.chain_id, []).append(block)
        self._heads[block.chain_id] = ChainHead(
            chain_id=block.chain_id, last_index=block.index, last_hash=block.hash
        )

    async def list_blocks(self, chain_id: str, from_index: int, to_index: int) -> List[AuditBlock]:
        return [
            b for b in self._blocks.get(chain_id, []) if from_index <= b.index <= to_index
        ]

    async def get_block_by_hash(self, chain_id: str, block_hash: str) -> Optional[AuditBlock]:
        for block in self._blocks.get(chain_id, []):
            if block.hash == block_hash:
                return block
        return None

    async def query_blocks(self, chain_id: str, query: AuditQuery) -> List[AuditBlock]:
        matched = [b for b in self._blocks.get(chain_id, []) if query.matches(b)]
        return matched[query.offset : query.offset + query.limit]

    async def statistics(self, chain_id: str) -> AuditStatistics:
        blocks = self._blocks.get(chain_id, [])
        return AuditStatistics(
            chain_id=chain_id,
            total_blocks=len(blocks),
            action_distribution=dict(Counter(b.action_type for b in blocks)),
            entity_distribution=dict(Counter(b.entity_type for b in blocks)),
            last_block_time=blocks[-1].timestamp if blocks else None,
        )

"""Chain verification over an ordered run of blocks. Pure: shared by the live trail and offline bundles."""

from typing import List, Optional, Sequence, Tuple

from opme_core.governance.audit_models import AuditBlock, ChainBreak, ViolationKind
from opme_core.governance.canonical import GENESIS_PREVIOUS_HASH, compute_block_hash
from opme_core.governance.exceptions import InvalidAuditRecordError


def _recompute(block: AuditBlock) -> Optional[str]:
    try:
        return compute_block_hash(block)
    except (InvalidAuditRecordError, TypeError, ValueError):
        return None


def verify_blocks(
    blocks: Sequence[AuditBlock],
    *,
    start_index: int,
    anchor_hash: Optional[str],
) -> Tuple[List[ChainBreak], int]:
    """
    Check blocks (sorted by stored index) expected to start at start_index.

    anchor_hash is the digest block start_index - 1 should chain to; for
    start_index 0 pass None and the genesis sentinel is required. A block whose
    recomputed digest differs from its stored hash is a HASH_MISMATCH at that
    index; otherwise an index gap or a previous_hash that does not equal the
    prior block's recomputed digest is a CHAIN_LINKAGE break. Returns
    (breaks, next_expected_index).
    """
    breaks: List[ChainBreak] = []
    expected_index = start_index
    previous = GENESIS_PREVIOUS_HASH if start_index == 0 else anchor_hash

    for block in blocks:
        recomputed = _recompute(block)
        if recomputed is None or recomputed != block.hash:
            breaks.append(
                ChainBreak(
                    index=expected_index,
                    kind=ViolationKind.HASH_MISMATCH,
                    detail=f"Block {block.index}: stored hash does not match content (tampering detected)",
                )
            )
        elif block.index != expected_index:
            breaks.append(
                ChainBreak(
                    index=expected_index,
                    kind=ViolationKind.CHAIN_LINKAGE,
                    detail=f"Expected block {expected_index}, found block {block.index} (missing or reordered block)",
                )
            )
        elif previous is not None and block.previous_hash != previous:
            breaks.append(
                ChainBreak(
                    index=expected_index,
                    kind=ViolationKind.CHAIN_LINKAGE,
                    detail=f"Block {block.index}: previous hash does not match block {block.index - 1}",
                )
            )
        previous = recomputed if recomputed is not None else block.hash
        expected_index = block.index + 1

    return breaks, expected_index

"""verify_chain: intact chains, tampered fields, removed or reordered blocks, range handling."""

import dataclasses
import logging
from datetime import timedelta

import pytest

from opme_core.governance.audit_models import ViolationKind
from opme_core.governance.audit_repository import InMemoryAuditChainRepository
from opme_core.governance.audit_trail import AuditTrail
from opme_core.governance.canonical import compute_block_hash
from opme_core.governance.exceptions import InvalidRangeError
from opme_core.observability import metrics as m


@pytest.fixture
async def five_blocks(trail):
    for i in range(5):
        await trail.append("dispense", "lot", f"L-{i}", "U1", {"quantity": i + 1})
    return trail


def stored(repository):
    return repository._blocks["tenant-a"]


async def test_empty_chain_is_valid(trail):
    result = await trail.verify_chain()
    assert result.valid
    assert result.blocks_checked == 0


async def test_empty_chain_with_explicit_range_rejected(trail):
    with pytest.raises(InvalidRangeError):
        await trail.verify_chain(0, 3)


async def test_intact_chain_verifies(five_blocks):
    result = await five_blocks.verify_chain()
    assert result.valid
    assert result.blocks_checked == 5
    assert result.to_dict()["first_break"] is None


async def test_sub_range_verifies_against_anchor(five_blocks):
    result = await five_blocks.verify_chain(2, 4)
    assert result.valid
    assert (result.from_index, result.to_index, result.blocks_checked) == (2, 4, 3)


async def test_to_index_clamped_to_head(five_blocks):
    result = await five_blocks.verify_chain(0, 99)
    assert result.valid
    assert result.to_index == 4


async def test_invalid_ranges_rejected(five_blocks):
    with pytest.raises(InvalidRangeError):
        await five_blocks.verify_chain(-1, 2)
    with pytest.raises(InvalidRangeError):
        await five_blocks.verify_chain(3, 1)


async def test_same_inputs_produce_same_chain(repository, clock):
    """Two chains built from identical appends and clock readings hash identically."""
    other_repository = InMemoryAuditChainRepository()
    start = clock.now
    first = AuditTrail(repository, default_chain_id="tenant-a", clock=clock)
    for i in range(3):
        await first.append("create", "product", f"P{i}", "U1", {"i": i})
    clock.now = start
    second = AuditTrail(other_repository, default_chain_id="tenant-a", clock=clock)
    for i in range(3):
        await second.append("create", "product", f"P{i}", "U1", {"i": i})
    hashes_a = [b.hash for b in await repository.list_blocks("tenant-a", 0, 2)]
    hashes_b = [b.hash for b in await other_repository.list_blocks("tenant-a", 0, 2)]
    assert hashes_a == hashes_b
    assert (await second.verify_chain()).valid


@pytest.mark.parametrize(
    "field,value",
    [
        ("actor_id", "intruder"),
        ("entity_id", "L-999"),
        ("action_type", "return"),
        ("entity_type", "inventory"),
        ("payload", {"kind": "details", "details": {"quantity": 500}}),
        ("previous_hash", "f" * 64),
        ("hash", "e" * 64),
    ],
)
async def test_tampered_field_reported_as_hash_mismatch(five_blocks, repository, field, value):
    blocks = stored(repository)
    blocks[2] = dataclasses.replace(blocks[2], **{field: value})
    result = await five_blocks.verify_chain()
    assert not result.valid
    assert result.first_break.index == 2
    assert result.first_break.kind == ViolationKind.HASH_MISMATCH


async def test_tampered_timestamp_reported(five_blocks, repository):
    blocks = stored(repository)
    blocks[1] = dataclasses.replace(blocks[1], timestamp=blocks[1].timestamp + timedelta(hours=1))
    result = await five_blocks.verify_chain()
    assert result.first_break.index == 1
    assert result.first_break.kind == ViolationKind.HASH_MISMATCH


async def test_tampered_genesis_reported(five_blocks, repository):
    blocks = stored(repository)
    blocks[0] = dataclasses.replace(blocks[0], actor_id="intruder")
    result = await five_blocks.verify_chain()
    assert result.first_break.index == 0
    assert result.first_break.kind == ViolationKind.HASH_MISMATCH


async def test_rehashed_tampering_breaks_linkage(five_blocks, repository):
    """A forger who recomputes the tampered block's hash still breaks the next link."""
    blocks = stored(repository)
    forged = dataclasses.replace(blocks[2], actor_id="intruder")
    blocks[2] = dataclasses.replace(forged, hash=compute_block_hash(forged))
    result = await five_blocks.verify_chain()
    assert result.first_break.index == 3
    assert result.first_break.kind == ViolationKind.CHAIN_LINKAGE


async def test_removed_block_reported_as_linkage(five_blocks, repository):
    del stored(repository)[2]
    result = await five_blocks.verify_chain()
    assert result.first_break.index == 2
    assert result.first_break.kind == ViolationKind.CHAIN_LINKAGE


async def test_reordered_blocks_reported_as_linkage(five_blocks, repository):
    blocks = stored(repository)
    blocks[2], blocks[3] = blocks[3], blocks[2]
    result = await five_blocks.verify_chain()
    assert result.first_break.index == 2
    assert result.first_break.kind == ViolationKind.CHAIN_LINKAGE


async def test_truncated_tail_reported(five_blocks, repository):
    del stored(repository)[4]
    result = await five_blocks.verify_chain()
    assert not result.valid
    assert result.first_break.index == 4
    assert result.first_break.kind == ViolationKind.CHAIN_LINKAGE


async def test_missing_anchor_reported_at_range_start(five_blocks, repository):
    del stored(repository)[1]
    result = await five_blocks.verify_chain(2, 4)
    assert result.first_break.index == 2
    assert result.first_break.kind == ViolationKind.CHAIN_LINKAGE


async def test_violation_logged_as_compliance_alert(five_blocks, repository, metrics, caplog):
    blocks = stored(repository)
    blocks[3] = dataclasses.replace(blocks[3], actor_id="intruder")
    with caplog.at_level(logging.ERROR):
        await five_blocks.verify_chain()
    alerts = [r for r in caplog.records if getattr(r, "compliance_alert", False)]
    assert alerts
    assert alerts[0].break_index == 3
    assert alerts[0].violation == "hash_mismatch"
    assert metrics.counter(m.AUDIT_CHAIN_VIOLATION, tenant_id="tenant-a") == 1


async def test_verification_does_not_repair(five_blocks, repository):
    blocks = stored(repository)
    tampered = dataclasses.replace(blocks[2], actor_id="intruder")
    blocks[2] = tampered
    await five_blocks.verify_chain()
    assert stored(repository)[2] is tampered

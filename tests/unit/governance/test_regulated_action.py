"""RegulatedActionRecorder: action plus audit record, compensation when the record fails."""

import pytest

from opme_core.governance.audit_repository import InMemoryAuditChainRepository
from opme_core.governance.audit_trail import AuditTrail
from opme_core.governance.exceptions import RegulatedActionNotConfirmedError
from opme_core.governance.regulated_action import RegulatedActionRecorder


class UnreachableRepository(InMemoryAuditChainRepository):
    async def append_block(self, block, expected_head):
        raise ConnectionError("database unavailable")


@pytest.fixture
def failing_trail(clock):
    return AuditTrail(UnreachableRepository(), clock=clock)


async def test_action_and_block_returned(trail):
    recorder = RegulatedActionRecorder(trail)

    async def dispense():
        return {"lot": "L-1", "qty": 2}

    result = await recorder.run(
        dispense,
        action_type="dispense",
        entity_type="lot",
        entity_id="L-1",
        actor_id="U1",
        payload=lambda value: {"qty": value["qty"]},
    )
    assert result.value == {"lot": "L-1", "qty": 2}
    assert result.block.index == 0
    assert result.block.payload == {"kind": "details", "details": {"qty": 2}}


async def test_operation_error_appends_nothing(trail):
    recorder = RegulatedActionRecorder(trail)

    async def broken():
        raise RuntimeError("stock system down")

    with pytest.raises(RuntimeError):
        await recorder.run(broken, action_type="dispense", entity_type="lot", entity_id="L-1", actor_id="U1")
    assert await trail.get_head() is None


async def test_audit_failure_compensates_and_raises(failing_trail):
    undone = []

    async def dispense():
        return "reservation-1"

    async def release(value):
        undone.append(value)

    recorder = RegulatedActionRecorder(failing_trail)
    with pytest.raises(RegulatedActionNotConfirmedError) as exc_info:
        await recorder.run(
            dispense,
            action_type="dispense",
            entity_type="lot",
            entity_id="L-1",
            actor_id="U1",
            compensate=release,
        )
    assert exc_info.value.compensated is True
    assert "rolled back" in exc_info.value.message
    assert undone == ["reservation-1"]


async def test_audit_failure_without_compensation_is_unconfirmed(failing_trail):
    async def dispense():
        return 1

    with pytest.raises(RegulatedActionNotConfirmedError) as exc_info:
        await RegulatedActionRecorder(failing_trail).run(
            dispense, action_type="dispense", entity_type="lot", entity_id="L-1", actor_id="U1"
        )
    assert exc_info.value.compensated is False
    assert "left unconfirmed" in exc_info.value.message


async def test_failed_compensation_reported(failing_trail, caplog):
    async def dispense():
        return 1

    async def release(value):
        raise RuntimeError("cannot release")

    with pytest.raises(RegulatedActionNotConfirmedError) as exc_info:
        await RegulatedActionRecorder(failing_trail).run(
            dispense,
            action_type="dispense",
            entity_type="lot",
            entity_id="L-1",
            actor_id="U1",
            compensate=release,
        )
    assert exc_info.value.compensated is False
    assert any(r.levelname == "CRITICAL" for r in caplog.records)

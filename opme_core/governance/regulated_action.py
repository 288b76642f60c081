"""Run a regulated business action together with its audit record. No FastAPI."""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

from opme_core.governance.audit_models import AuditAction, AuditBlock, AuditEntityType
from opme_core.governance.audit_trail import AuditTrail
from opme_core.governance.exceptions import AuditPersistenceError, RegulatedActionNotConfirmedError
from opme_core.governance.payloads import PayloadInput

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegulatedActionResult(Generic[T]):
    value: T
    block: AuditBlock


class RegulatedActionRecorder:
    """
    A regulated action only counts as done once its audit block is persisted.
    If the append fails, the supplied compensation undoes the action and
    RegulatedActionNotConfirmedError is raised; without a compensation the
    action is left for operators to reconcile and the error says so.
    """

    def __init__(self, audit_trail: AuditTrail) -> None:
        self._trail = audit_trail

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        action_type: Union[str, AuditAction],
        entity_type: Union[str, AuditEntityType],
        entity_id: str,
        actor_id: str,
        payload: Union[PayloadInput, Callable[[T], PayloadInput]] = None,
        compensate: Optional[Callable[[T], Awaitable[Any]]] = None,
        chain_id: Optional[str] = None,
    ) -> RegulatedActionResult[T]:
        """
        Await operation, then append its audit block. payload may be a callable
        receiving the operation result. Operation errors propagate unchanged and
        nothing is appended.
        """
        value = await operation()
        body = payload(value) if callable(payload) else payload
        try:
            block = await self._trail.append(
                action_type,
                entity_type,
                entity_id,
                actor_id,
                body,
                chain_id=chain_id,
            )
        except AuditPersistenceError as e:
            compensated = False
            if compensate is not None:
                try:
                    await compensate(value)
                    compensated = True
                except Exception:
                    logger.critical(
                        "Compensation failed for unaudited regulated action %s on %s",
                        action_type,
                        entity_id,
                        exc_info=True,
                        extra={"compliance_alert": True},
                    )
            state = "rolled back" if compensated else "left unconfirmed"
            logger.error(
                "Regulated action %s on %s %s: audit record not persisted",
                action_type,
                entity_id,
                state,
                extra={"compliance_alert": True},
            )
            raise RegulatedActionNotConfirmedError(
                f"Action {action_type} on {entity_id} {state}: {e.message}",
                compensated=compensated,
            ) from e
        return RegulatedActionResult(value=value, block=block)

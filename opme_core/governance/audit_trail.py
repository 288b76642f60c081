"""
Append-only, hash-chained audit trail for regulated actions.

Every append reads the chain head fresh, builds block N = head + 1 linked to
the head's hash, and writes it conditionally on the head being unchanged. A
conflict means another writer won the race, so the append starts over from
the head read; index numbers are never skipped and the chain never forks.
Verification only reports breaks, it never repairs them.
"""

import asyncio
import logging
import random
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, TypeVar, Union

from opme_core.governance.audit_models import (
    AuditAction,
    AuditBlock,
    AuditEntityType,
    AuditQuery,
    AuditStatistics,
    ChainBreak,
    ChainHead,
    VerificationResult,
    ViolationKind,
)
from opme_core.governance.audit_repository import AuditChainRepository
from opme_core.governance.canonical import (
    CANONICAL_VERSION,
    GENESIS_PREVIOUS_HASH,
    canonical_json,
    compute_hash,
)
from opme_core.governance.exceptions import (
    AuditPersistenceError,
    ChainHeadConflictError,
    InvalidAuditRecordError,
    InvalidRangeError,
)
from opme_core.governance.export import ExportBundle, build_bundle
from opme_core.governance.payloads import ExportPayload, PayloadInput, normalize_payload
from opme_core.governance.signing import BundleSigner
from opme_core.governance.verification import verify_blocks
from opme_core.observability import metrics as m
from opme_core.observability.metrics import MetricsCollector

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_value(enum_cls: type, value: Union[str, AuditAction, AuditEntityType], label: str) -> str:
    if isinstance(value, enum_cls):
        return value.value
    try:
        return enum_cls(str(value).strip().lower()).value
    except ValueError as e:
        raise InvalidAuditRecordError(f"Unknown {label}: {value!r}") from e


class AuditTrail:
    """append / verify_chain / export_range over an AuditChainRepository. No FastAPI."""

    def __init__(
        self,
        repository: AuditChainRepository,
        *,
        default_chain_id: str = "default",
        max_retries: int = 5,
        retry_backoff_seconds: float = 0.02,
        timeout_seconds: float = 2.0,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], datetime] = _utcnow,
        logger: Optional[logging.Logger] = None,
        signer: Optional[BundleSigner] = None,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._repo = repository
        self._default_chain_id = default_chain_id
        self._max_retries = max_retries
        self._backoff = retry_backoff_seconds
        self._timeout = timeout_seconds
        self._metrics = metrics or MetricsCollector()
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._signer = signer

    def _chain(self, chain_id: Optional[str]) -> str:
        return chain_id or self._default_chain_id

    async def _call(self, func: Callable[..., Awaitable[T]], *args: Any) -> T:
        return await asyncio.wait_for(func(*args), timeout=self._timeout)

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    def _build_block(
        self,
        head: Optional[ChainHead],
        *,
        chain_id: str,
        action_type: str,
        entity_type: str,
        entity_id: str,
        actor_id: str,
        payload: dict,
    ) -> AuditBlock:
        index = 0 if head is None else head.last_index + 1
        previous_hash = GENESIS_PREVIOUS_HASH if head is None else head.last_hash
        timestamp = self._clock()
        digest = compute_hash(
            CANONICAL_VERSION,
            index=index,
            timestamp=timestamp,
            action_type=action_type,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            payload=payload,
            previous_hash=previous_hash,
        )
        return AuditBlock(
            chain_id=chain_id,
            index=index,
            timestamp=timestamp,
            action_type=action_type,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            payload=payload,
            previous_hash=previous_hash,
            hash=digest,
            canonical_version=CANONICAL_VERSION,
        )

    async def append(
        self,
        action_type: Union[str, AuditAction],
        entity_type: Union[str, AuditEntityType],
        entity_id: str,
        actor_id: str,
        payload: PayloadInput = None,
        *,
        chain_id: Optional[str] = None,
    ) -> AuditBlock:
        """
        Append one block and return it. All-or-nothing: raises AuditPersistenceError
        when no correctly linked block could be persisted. Invalid arguments raise
        InvalidAuditRecordError before the store is touched.
        """
        chain = self._chain(chain_id)
        action = _enum_value(AuditAction, action_type, "action_type")
        entity = _enum_value(AuditEntityType, entity_type, "entity_type")
        if not entity_id or not str(entity_id).strip():
            raise InvalidAuditRecordError("entity_id must be non-empty")
        if not actor_id or not str(actor_id).strip():
            raise InvalidAuditRecordError("actor_id must be non-empty")
        body = normalize_payload(payload)
        canonical_json(body)

        started = time.perf_counter()
        for attempt in range(1, self._max_retries + 1):
            try:
                head = await self._call(self._repo.get_head, chain)
                block = self._build_block(
                    head,
                    chain_id=chain,
                    action_type=action,
                    entity_type=entity,
                    entity_id=str(entity_id),
                    actor_id=str(actor_id),
                    payload=body,
                )
                await self._call(self._repo.append_block, block, head)
            except ChainHeadConflictError:
                self._metrics.increment(m.AUDIT_APPEND_CONFLICT, tenant_id=chain)
                self._logger.debug(
                    "Audit chain head moved, retrying append",
                    extra={"chain_id": chain, "attempt": attempt},
                )
                if self._backoff:
                    await asyncio.sleep(self._backoff * attempt * random.uniform(0.5, 1.5))
                continue
            except InvalidAuditRecordError:
                raise
            except Exception as e:
                self._metrics.increment(m.AUDIT_APPEND_FAILURE, tenant_id=chain)
                self._logger.error(
                    "Audit append failed: %r",
                    e,
                    extra={"chain_id": chain, "attempt": attempt},
                )
                raise AuditPersistenceError(
                    f"Audit block for {action} {entity}:{entity_id} could not be persisted: {e!r}"
                ) from e

            self._metrics.increment(m.AUDIT_APPEND, tenant_id=chain)
            self._metrics.observe_latency(m.AUDIT_APPEND_LATENCY, (time.perf_counter() - started) * 1000)
            self._logger.info(
                "Audit block appended: %s %s:%s",
                action,
                entity,
                entity_id,
                extra={"chain_id": chain, "block_index": block.index},
            )
            return block

        self._metrics.increment(m.AUDIT_APPEND_FAILURE, tenant_id=chain)
        self._logger.error(
            "Audit append gave up after %d head conflicts",
            self._max_retries,
            extra={"chain_id": chain},
        )
        raise AuditPersistenceError(
            f"Audit block for {action} {entity}:{entity_id} not persisted: "
            f"chain head kept moving after {self._max_retries} attempts"
        )

    # ------------------------------------------------------------------
    # Verification and export
    # ------------------------------------------------------------------

    async def get_head(self, chain_id: Optional[str] = None) -> Optional[ChainHead]:
        return await self._call(self._repo.get_head, self._chain(chain_id))

    async def _anchor(self, chain: str, from_index: int) -> Optional[AuditBlock]:
        if from_index == 0:
            return None
        prior = await self._call(self._repo.list_blocks, chain, from_index - 1, from_index - 1)
        return prior[0] if prior else None

    async def verify_chain(
        self,
        from_index: Optional[int] = None,
        to_index: Optional[int] = None,
        *,
        chain_id: Optional[str] = None,
    ) -> VerificationResult:
        """
        Recompute and cross-check every block in [from_index, to_index] (defaults:
        genesis through head). Breaks are reported and logged as compliance alerts.
        """
        chain = self._chain(chain_id)
        head = await self._call(self._repo.get_head, chain)
        start = 0 if from_index is None else from_index
        if start < 0:
            raise InvalidRangeError("from_index must be >= 0")
        if head is None:
            if to_index is not None and to_index >= start:
                raise InvalidRangeError(f"Chain {chain} is empty")
            return VerificationResult(chain_id=chain, from_index=start, to_index=start - 1, blocks_checked=0)
        end = head.last_index if to_index is None else min(to_index, head.last_index)
        if end < start:
            raise InvalidRangeError(f"Invalid range [{start}, {to_index}] for chain ending at {head.last_index}")

        anchor = await self._anchor(chain, start)
        blocks = await self._call(self._repo.list_blocks, chain, start, end)
        breaks, next_index = verify_blocks(
            blocks,
            start_index=start,
            anchor_hash=anchor.hash if anchor is not None else None,
        )
        if start > 0 and anchor is None:
            breaks.insert(
                0,
                ChainBreak(
                    index=start,
                    kind=ViolationKind.CHAIN_LINKAGE,
                    detail=f"Block {start} cannot be linked: block {start - 1} is missing",
                ),
            )
        if next_index <= end:
            breaks.append(
                ChainBreak(
                    index=next_index,
                    kind=ViolationKind.CHAIN_LINKAGE,
                    detail=f"Blocks {next_index}..{end} are missing",
                )
            )
        elif end == head.last_index and blocks and blocks[-1].hash != head.last_hash:
            breaks.append(
                ChainBreak(
                    index=end,
                    kind=ViolationKind.CHAIN_LINKAGE,
                    detail=f"Last block {end} does not match the recorded chain head",
                )
            )

        result = VerificationResult(
            chain_id=chain,
            from_index=start,
            to_index=end,
            blocks_checked=len(blocks),
            breaks=breaks,
        )
        if result.valid:
            self._logger.info(
                "Audit chain verified: blocks %d..%d", start, end, extra={"chain_id": chain}
            )
        else:
            first = result.first_break
            self._metrics.increment(m.AUDIT_CHAIN_VIOLATION, tenant_id=chain)
            self._logger.error(
                "Audit chain integrity violation: %s",
                first.detail,
                extra={
                    "chain_id": chain,
                    "break_index": first.index,
                    "violation": first.kind.value,
                    "compliance_alert": True,
                },
            )
        return result

    async def export_range(
        self,
        from_index: int,
        to_index: int,
        *,
        chain_id: Optional[str] = None,
        exported_by: Optional[str] = None,
    ) -> ExportBundle:
        """
        Bundle blocks [from_index, to_index] for offline verification. When
        exported_by is given the export itself is appended as an export block.
        Bundles are signed when the trail has a signer.
        """
        chain = self._chain(chain_id)
        head = await self._call(self._repo.get_head, chain)
        if from_index < 0 or to_index < from_index:
            raise InvalidRangeError(f"Invalid export range [{from_index}, {to_index}]")
        if head is None or to_index > head.last_index:
            last = "empty" if head is None else f"ends at {head.last_index}"
            raise InvalidRangeError(f"Export range [{from_index}, {to_index}] outside chain {chain} ({last})")

        anchor = await self._anchor(chain, from_index)
        blocks = await self._call(self._repo.list_blocks, chain, from_index, to_index)
        bundle = build_bundle(
            export_id=str(uuid.uuid4()),
            exported_at=self._clock(),
            exported_by=exported_by,
            chain_id=chain,
            from_index=from_index,
            to_index=to_index,
            canonical_version=CANONICAL_VERSION,
            anchor_hash=anchor.hash if anchor is not None else None,
            blocks=blocks,
            signer=self._signer,
        )
        if exported_by:
            await self.append(
                AuditAction.EXPORT,
                AuditEntityType.COMPLIANCE,
                bundle.export_id,
                exported_by,
                ExportPayload(
                    export_id=bundle.export_id,
                    from_index=from_index,
                    to_index=to_index,
                    total_blocks=len(blocks),
                ),
                chain_id=chain,
            )
        return bundle

    # ------------------------------------------------------------------
    # Browsing
    # ------------------------------------------------------------------

    async def get_block(self, index: int, *, chain_id: Optional[str] = None) -> Optional[AuditBlock]:
        blocks = await self._call(self._repo.list_blocks, self._chain(chain_id), index, index)
        return blocks[0] if blocks else None

    async def get_block_by_hash(self, block_hash: str, *, chain_id: Optional[str] = None) -> Optional[AuditBlock]:
        return await self._call(self._repo.get_block_by_hash, self._chain(chain_id), block_hash)

    async def query_blocks(self, query: AuditQuery, *, chain_id: Optional[str] = None) -> List[AuditBlock]:
        return await self._call(self._repo.query_blocks, self._chain(chain_id), query)

    async def get_statistics(self, *, chain_id: Optional[str] = None) -> AuditStatistics:
        return await self._call(self._repo.statistics, self._chain(chain_id))

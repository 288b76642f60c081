"""Export bundles for external auditors and their offline verification."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field

from opme_core.governance.audit_models import AuditBlock, ChainBreak, VerificationResult, ViolationKind
from opme_core.governance.canonical import (
    CANONICALIZATION_RULES,
    canonical_json,
    checksum,
    format_timestamp,
)
from opme_core.governance.signing import BundleSigner, verify_signature
from opme_core.governance.verification import verify_blocks


class ExportBundle(BaseModel):
    """
    Self-contained slice of a chain. anchor_hash is the stored hash of block
    from_index - 1 (None when the slice starts at genesis), which lets the first
    exported block's linkage be checked without the rest of the chain.
    signature/public_key are present when the exporting deployment signs bundles.
    """

    export_id: str
    exported_at: datetime
    exported_by: Optional[str] = None
    chain_id: str
    from_index: int = Field(..., ge=0)
    to_index: int = Field(..., ge=0)
    canonical_version: int
    canonicalization: Dict[str, Any]
    anchor_hash: Optional[str] = None
    blocks: List[Dict[str, Any]]
    checksum: str
    signature: Optional[str] = None
    public_key: Optional[str] = None

    def audit_blocks(self) -> List[AuditBlock]:
        return [AuditBlock.from_dict(b) for b in self.blocks]

    def signing_message(self) -> bytes:
        """Bytes covered by the signature: bundle metadata plus the block checksum."""
        return canonical_json(
            {
                "export_id": self.export_id,
                "exported_at": format_timestamp(self.exported_at),
                "exported_by": self.exported_by,
                "chain_id": self.chain_id,
                "from_index": self.from_index,
                "to_index": self.to_index,
                "canonical_version": self.canonical_version,
                "anchor_hash": self.anchor_hash,
                "checksum": self.checksum,
            }
        )

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)


def build_bundle(
    *,
    export_id: str,
    exported_at: datetime,
    exported_by: Optional[str],
    chain_id: str,
    from_index: int,
    to_index: int,
    canonical_version: int,
    anchor_hash: Optional[str],
    blocks: List[AuditBlock],
    signer: Optional[BundleSigner] = None,
) -> ExportBundle:
    block_dicts = [b.to_dict() for b in blocks]
    bundle = ExportBundle(
        export_id=export_id,
        exported_at=exported_at,
        exported_by=exported_by,
        chain_id=chain_id,
        from_index=from_index,
        to_index=to_index,
        canonical_version=canonical_version,
        canonicalization=CANONICALIZATION_RULES[canonical_version],
        anchor_hash=anchor_hash,
        blocks=block_dicts,
        checksum=checksum(block_dicts),
    )
    if signer is None:
        return bundle
    return bundle.model_copy(
        update={
            "signature": signer.sign(bundle.signing_message()),
            "public_key": signer.public_key_hex,
        }
    )


@dataclass(frozen=True)
class BundleVerificationResult:
    checksum_valid: bool
    signature_valid: Optional[bool]
    chain: VerificationResult

    @property
    def valid(self) -> bool:
        return self.checksum_valid and self.signature_valid is not False and self.chain.valid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "checksum_valid": self.checksum_valid,
            "signature_valid": self.signature_valid,
            "chain": self.chain.to_dict(),
        }


def verify_bundle(
    bundle: Union[ExportBundle, str, bytes, Mapping[str, Any]],
    *,
    trusted_public_key: Optional[str] = None,
) -> BundleVerificationResult:
    """
    Rerun chain verification using nothing but the bundle contents.
    signature_valid is None for unsigned bundles; pass trusted_public_key to
    reject bundles signed by any other key.
    """
    if isinstance(bundle, (str, bytes)):
        bundle = ExportBundle.model_validate_json(bundle)
    elif not isinstance(bundle, ExportBundle):
        bundle = ExportBundle.model_validate(dict(bundle))

    blocks = bundle.audit_blocks()
    breaks, next_index = verify_blocks(
        blocks,
        start_index=bundle.from_index,
        anchor_hash=bundle.anchor_hash,
    )
    if bundle.from_index > 0 and bundle.anchor_hash is None:
        breaks.insert(
            0,
            ChainBreak(
                index=bundle.from_index,
                kind=ViolationKind.CHAIN_LINKAGE,
                detail=f"Bundle has no anchor hash for block {bundle.from_index - 1}",
            ),
        )
    if next_index <= bundle.to_index:
        breaks.append(
            ChainBreak(
                index=next_index,
                kind=ViolationKind.CHAIN_LINKAGE,
                detail=f"Bundle ends at block {next_index - 1}, expected through {bundle.to_index}",
            )
        )
    result = VerificationResult(
        chain_id=bundle.chain_id,
        from_index=bundle.from_index,
        to_index=bundle.to_index,
        blocks_checked=len(blocks),
        breaks=breaks,
    )

    signature_valid: Optional[bool] = None
    if bundle.signature is not None or trusted_public_key is not None:
        public_key = trusted_public_key or bundle.public_key
        signature_valid = bool(
            bundle.signature
            and public_key
            and public_key == (bundle.public_key or public_key)
            and verify_signature(public_key, bundle.signing_message(), bundle.signature)
        )
    return BundleVerificationResult(
        checksum_valid=checksum(bundle.blocks) == bundle.checksum,
        signature_valid=signature_valid,
        chain=result,
    )

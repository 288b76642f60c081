"""Governance: hash-chained audit trail, offline export verification, regulated-action recording. No FastAPI."""

from opme_core.governance.audit_models import (
    AuditAction,
    AuditBlock,
    AuditEntityType,
    AuditQuery,
    ChainBreak,
    ChainHead,
    VerificationResult,
    ViolationKind,
)
from opme_core.governance.audit_repository import AuditChainRepository, InMemoryAuditChainRepository
from opme_core.governance.audit_trail import AuditTrail
from opme_core.governance.export import BundleVerificationResult, ExportBundle, verify_bundle
from opme_core.governance.regulated_action import RegulatedActionRecorder, RegulatedActionResult
from opme_core.governance.signing import BundleSigner, verify_signature

__all__ = [
    "AuditAction",
    "AuditBlock",
    "AuditChainRepository",
    "AuditEntityType",
    "AuditQuery",
    "AuditTrail",
    "BundleSigner",
    "BundleVerificationResult",
    "ChainBreak",
    "ChainHead",
    "ExportBundle",
    "InMemoryAuditChainRepository",
    "RegulatedActionRecorder",
    "RegulatedActionResult",
    "VerificationResult",
    "ViolationKind",
    "verify_bundle",
    "verify_signature",
]

"""Governance-layer exceptions. Typed, no HTTP."""


class GovernanceError(Exception):
    """Base for all governance-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidAuditRecordError(GovernanceError):
    """Raised when append arguments are unusable (unknown action, empty ids, unserializable payload)."""


class InvalidRangeError(GovernanceError):
    """Raised when a verification or export range is malformed or outside the chain."""


class ChainHeadConflictError(GovernanceError):
    """Raised by a repository when the chain head moved between read and conditional write."""


class AuditPersistenceError(GovernanceError):
    """
    Raised when an audit block could not be persisted: store unreachable, write
    rejected, timed out, or head conflicts outlasted the retry budget.
    Fatal for the regulated action that needed the record.
    """


class RegulatedActionNotConfirmedError(GovernanceError):
    """Raised when a regulated action ran but its audit block could not be persisted."""

    def __init__(self, message: str, *, compensated: bool) -> None:
        super().__init__(message)
        self.compensated = compensated

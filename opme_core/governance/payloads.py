"""Audit block payloads: a tagged union on `kind`, with an opaque variant for forward compatibility."""

import base64
from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator
from pydantic_core import PydanticSerializationError

from opme_core.governance.exceptions import InvalidAuditRecordError


class ActorContext(BaseModel):
    """Who was behind the action beyond the bare actor id. Hashed as part of the payload."""

    model_config = {"frozen": True, "extra": "forbid"}

    user_name: Optional[str] = None
    user_role: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class _Payload(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    actor: Optional[ActorContext] = None


class ChangePayload(_Payload):
    """Before/after snapshot of a mutated entity. Either side may be absent (create/delete)."""

    kind: Literal["change"] = "change"
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    changed_fields: list[str] = Field(default_factory=list)


class ApprovalPayload(_Payload):
    kind: Literal["approval"] = "approval"
    decision: Literal["approved", "rejected"]
    reason: Optional[str] = None


class AccessPayload(_Payload):
    kind: Literal["access"] = "access"
    purpose: str = Field(..., min_length=1)
    fields: list[str] = Field(default_factory=list)


class ExportPayload(_Payload):
    kind: Literal["export"] = "export"
    export_id: str
    from_index: int = Field(..., ge=0)
    to_index: int = Field(..., ge=0)
    total_blocks: int = Field(..., ge=0)


class DetailsPayload(_Payload):
    """Free-form details for actions without a dedicated variant."""

    kind: Literal["details"] = "details"
    details: Dict[str, Any] = Field(default_factory=dict)


class OpaquePayload(_Payload):
    """Pre-serialized bytes from a newer or foreign producer, kept verbatim (base64)."""

    kind: Literal["opaque"] = "opaque"
    content_type: str = "application/octet-stream"
    data: str

    @field_validator("data")
    @classmethod
    def data_must_be_base64(cls, v: str) -> str:
        base64.b64decode(v.encode("ascii"), validate=True)
        return v

    @classmethod
    def from_bytes(cls, raw: bytes, content_type: str = "application/octet-stream") -> "OpaquePayload":
        return cls(content_type=content_type, data=base64.b64encode(raw).decode("ascii"))

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.data.encode("ascii"))


AuditPayload = Annotated[
    Union[
        ChangePayload,
        ApprovalPayload,
        AccessPayload,
        ExportPayload,
        DetailsPayload,
        OpaquePayload,
    ],
    Field(discriminator="kind"),
]

_adapter: TypeAdapter = TypeAdapter(AuditPayload)

PayloadInput = Union[_Payload, Mapping[str, Any], None]


def parse_payload(data: Mapping[str, Any]) -> _Payload:
    """Typed view of a stored payload dict. Raises InvalidAuditRecordError for unknown shapes."""
    try:
        return _adapter.validate_python(dict(data))
    except ValidationError as e:
        raise InvalidAuditRecordError(f"Invalid audit payload: {e}") from e


def normalize_payload(payload: PayloadInput) -> Dict[str, Any]:
    """
    Payload as the JSON-mode dict that gets hashed and stored.
    A mapping with a `kind` key is validated against the union; any other
    mapping is wrapped as DetailsPayload; None becomes empty details. An unset
    actor context is left out so payloads without one encode as before.
    """
    if payload is None:
        model: _Payload = DetailsPayload()
    elif isinstance(payload, _Payload):
        model = payload
    elif isinstance(payload, Mapping):
        if "kind" in payload:
            model = parse_payload(payload)
        else:
            try:
                model = DetailsPayload(details=dict(payload))
            except ValidationError as e:
                raise InvalidAuditRecordError(f"Invalid audit payload: {e}") from e
    else:
        raise InvalidAuditRecordError(f"Unsupported payload type: {type(payload).__name__}")
    try:
        body = model.model_dump(mode="json")
    except PydanticSerializationError as e:
        raise InvalidAuditRecordError(f"Audit payload is not JSON-serializable: {e}") from e
    if body.get("actor") is None:
        body.pop("actor", None)
    return body

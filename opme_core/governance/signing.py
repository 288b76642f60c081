"""Ed25519 signing of export bundles. Auditors verify with the public key shipped in the bundle."""

from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from opme_core.governance.exceptions import GovernanceError


class SigningError(GovernanceError):
    """Raised when a signing key is missing or malformed."""


class BundleSigner:
    """Signs bundle metadata with a private key built from a 32-byte hex seed. No global state."""

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key

    @classmethod
    def from_seed_hex(cls, seed_hex: Optional[str]) -> "BundleSigner":
        if not seed_hex or not seed_hex.strip():
            raise SigningError("Export signing seed is required")
        try:
            seed = bytes.fromhex(seed_hex.strip())
            return cls(Ed25519PrivateKey.from_private_bytes(seed))
        except ValueError as e:
            raise SigningError("Export signing seed must be 32 bytes of hex") from e

    @classmethod
    def generate(cls) -> "BundleSigner":
        return cls(Ed25519PrivateKey.generate())

    @property
    def public_key_hex(self) -> str:
        raw = self._private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        return raw.hex()

    def sign(self, message: bytes) -> str:
        return self._private_key.sign(message).hex()


def verify_signature(public_key_hex: str, message: bytes, signature_hex: str) -> bool:
    """True when signature_hex is a valid signature of message under public_key_hex."""
    try:
        public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
        public_key.verify(bytes.fromhex(signature_hex), message)
    except (InvalidSignature, ValueError):
        return False
    return True

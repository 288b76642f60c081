"""Ed25519 bundle signer: seeds, signatures, verification failures."""

import pytest

from opme_core.governance.signing import BundleSigner, SigningError, verify_signature

SEED = "9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60"


def test_seed_gives_stable_public_key():
    assert BundleSigner.from_seed_hex(SEED).public_key_hex == BundleSigner.from_seed_hex(SEED).public_key_hex
    assert len(BundleSigner.from_seed_hex(SEED).public_key_hex) == 64


def test_sign_and_verify():
    signer = BundleSigner.from_seed_hex(SEED)
    signature = signer.sign(b"bundle")
    assert verify_signature(signer.public_key_hex, b"bundle", signature)
    assert not verify_signature(signer.public_key_hex, b"bundle!", signature)


def test_verify_rejects_malformed_inputs():
    signer = BundleSigner.generate()
    assert not verify_signature("zz", b"m", signer.sign(b"m"))
    assert not verify_signature(signer.public_key_hex, b"m", "not-hex")
    assert not verify_signature(signer.public_key_hex, b"m", "00" * 64)


@pytest.mark.parametrize("seed", [None, "", "  ", "abcd", "zz" * 32])
def test_bad_seed_rejected(seed):
    with pytest.raises(SigningError):
        BundleSigner.from_seed_hex(seed)

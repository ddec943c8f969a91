# tests/test_keys.py
import json
import pytest
from pathlib import Path

from paymsg.core.errors import InvalidArgument
from paymsg.crypto.keys import IdentityKeyPair


def test_identity_is_32_raw_bytes():
    kp = IdentityKeyPair.generate()
    assert len(kp.identity) == 32
    assert IdentityKeyPair.from_public_b64url(kp.public_key_b64url()).identity == kp.identity


def test_sign_and_verify():
    kp = IdentityKeyPair.generate()
    sig = kp.sign_bytes(b"payload")
    verifier = IdentityKeyPair.from_identity(kp.identity)
    assert verifier.verify_bytes(sig, b"payload")
    assert not verifier.verify_bytes(sig, b"payload!")
    assert not verifier.can_sign
    with pytest.raises(ValueError):
        verifier.sign_bytes(b"payload")


def test_from_identity_rejects_wrong_length():
    with pytest.raises(InvalidArgument):
        IdentityKeyPair.from_identity(b"\x01" * 31)


def test_save_and_load(tmp_path: Path):
    kp = IdentityKeyPair.generate()
    path = tmp_path / "keys" / "me.key"
    kp.save(path)
    assert IdentityKeyPair.load(path).identity == kp.identity


def test_load_detects_mismatched_identity(tmp_path: Path):
    kp, other = IdentityKeyPair.generate(), IdentityKeyPair.generate()
    path = tmp_path / "me.key"
    kp.save(path)
    data = json.loads(path.read_text())
    data["identity"] = other.public_key_b64url()
    path.write_text(json.dumps(data))
    with pytest.raises(ValueError, match="inconsistent"):
        IdentityKeyPair.load(path)

# paymsg/crypto/keys.py
"""
Ed25519 identity keys. A ledger identity is the 32-byte raw public key.
"""
import json
from pathlib import Path
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from paymsg.core.encoding import b64url_encode, b64url_decode
from paymsg.core.types import require_identity


class IdentityKeyPair:
    """Signing key (optional) plus public key for one ledger identity."""

    def __init__(self, public_key: Ed25519PublicKey, private_key: Optional[Ed25519PrivateKey] = None):
        self._public_key = public_key
        self._private_key = private_key

    @classmethod
    def generate(cls) -> "IdentityKeyPair":
        private_key = Ed25519PrivateKey.generate()
        return cls(private_key.public_key(), private_key)

    @classmethod
    def from_private_bytes(cls, raw: bytes) -> "IdentityKeyPair":
        private_key = Ed25519PrivateKey.from_private_bytes(raw)
        return cls(private_key.public_key(), private_key)

    @classmethod
    def from_identity(cls, identity: bytes) -> "IdentityKeyPair":
        """Verify-only key pair for a known identity."""
        return cls(Ed25519PublicKey.from_public_bytes(require_identity(identity)))

    @classmethod
    def from_public_b64url(cls, value: str) -> "IdentityKeyPair":
        return cls.from_identity(b64url_decode(value))

    @property
    def identity(self) -> bytes:
        return self._public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    @property
    def can_sign(self) -> bool:
        return self._private_key is not None

    def public_key_b64url(self) -> str:
        return b64url_encode(self.identity)

    def sign_bytes(self, data: bytes) -> bytes:
        if self._private_key is None:
            raise ValueError("Key pair has no private key")
        return self._private_key.sign(data)

    def verify_bytes(self, signature: bytes, data: bytes) -> bool:
        try:
            self._public_key.verify(signature, data)
            return True
        except InvalidSignature:
            return False

    # ── key files: {"identity": <b64url>, "private_key": <b64url>}
    def save(self, path: Path) -> None:
        if self._private_key is None:
            raise ValueError("Only key pairs with a private key can be saved")
        raw = self._private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({
            "identity": self.public_key_b64url(),
            "private_key": b64url_encode(raw),
        }, indent=2), encoding="utf-8")
        path.chmod(0o600)

    @classmethod
    def load(cls, path: Path) -> "IdentityKeyPair":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        keypair = cls.from_private_bytes(b64url_decode(data["private_key"]))
        if data.get("identity") and data["identity"] != keypair.public_key_b64url():
            raise ValueError(f"Key file {path} is inconsistent: identity does not match private key")
        return keypair

# paymsg/runtime/auth.py
"""
Signed requests.

The signed payload is the RFC 8785 canonical JSON of
``{"op": ..., "caller": <b64url identity>, "params": {...}}``.
Param values are strings: integers in decimal (u64 does not survive JSON
numbers), byte strings in base64url, content as-is.
"""
from dataclasses import dataclass, field
from typing import Dict

from paymsg.core.canon import canonical_json
from paymsg.core.encoding import b64url_decode, b64url_encode
from paymsg.core.errors import InvalidArgument, Unauthorized
from paymsg.crypto.keys import IdentityKeyPair


@dataclass(frozen=True)
class SignedRequest:
    op: str
    caller: str                                     # b64url identity
    params: Dict[str, str] = field(default_factory=dict)
    signature: str = ""                             # b64url Ed25519 signature

    def payload(self) -> bytes:
        return canonical_json({"op": self.op, "caller": self.caller, "params": dict(self.params)})

    def to_dict(self) -> dict:
        return {"op": self.op, "caller": self.caller, "params": dict(self.params), "signature": self.signature}

    @classmethod
    def from_dict(cls, data: dict) -> "SignedRequest":
        try:
            return cls(
                op=data["op"],
                caller=data["caller"],
                params={k: str(v) for k, v in data.get("params", {}).items()},
                signature=data.get("signature", ""),
            )
        except (KeyError, AttributeError) as e:
            raise InvalidArgument(f"malformed request: {e}") from e


def sign_request(signer: IdentityKeyPair, op: str, **params) -> SignedRequest:
    unsigned = SignedRequest(
        op=op,
        caller=signer.public_key_b64url(),
        params={k: _param(v) for k, v in params.items() if v is not None},
    )
    signature = signer.sign_bytes(unsigned.payload())
    return SignedRequest(unsigned.op, unsigned.caller, unsigned.params, b64url_encode(signature))


def authenticate(request: SignedRequest) -> bytes:
    """Return the caller identity if the signature checks out, else raise Unauthorized."""
    if not request.signature:
        raise Unauthorized("request is not signed")
    try:
        verifier = IdentityKeyPair.from_public_b64url(request.caller)
    except (InvalidArgument, ValueError) as e:
        raise Unauthorized(f"bad caller identity: {e}") from e

    signature = b64url_decode(request.signature)
    if not verifier.verify_bytes(signature, request.payload()):
        raise Unauthorized("signature does not match caller")
    return verifier.identity


def _param(value) -> str:
    if isinstance(value, (bytes, bytearray)):
        return b64url_encode(bytes(value))
    if isinstance(value, bool):
        raise InvalidArgument("boolean params are not supported")
    return str(value)

# paymsg/core/types.py
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional

from paymsg.core.constants import IDENTITY_LEN, U64_MAX
from paymsg.core.encoding import b64url_encode
from paymsg.core.errors import InvalidArgument


def require_identity(value: bytes, name: str = "identity") -> bytes:
    if not isinstance(value, (bytes, bytearray)) or len(value) != IDENTITY_LEN:
        raise InvalidArgument(f"{name} must be {IDENTITY_LEN} bytes")
    return bytes(value)


def require_u64(value: int, name: str = "value") -> int:
    # bool is an int subclass; a price of True is a caller bug
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{name} must be an integer")
    if value < 0 or value > U64_MAX:
        raise InvalidArgument(f"{name} out of range: {value}")
    return value


@dataclass(frozen=True)
class Profile:
    """Price configuration of one recipient identity."""
    owner: bytes                    # 32-byte identity
    price: int                      # smallest currency unit
    created_at: int = 0             # unix seconds, set by the runtime clock

    def to_dict(self) -> dict:
        return {
            "type": "Profile",
            "owner": b64url_encode(self.owner),
            "price": self.price,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class Message:
    """A paid message whose funds sit in escrow until the recipient claims it."""
    sender: bytes
    recipient: bytes
    nonce: int
    amount: int                     # escrowed amount
    content: str
    created_at: int = 0

    def sealed(self) -> "PendingMessage":
        return PendingMessage(
            sender=self.sender,
            recipient=self.recipient,
            nonce=self.nonce,
            amount=self.amount,
            content_len=len(self.content.encode("utf-8")),
            created_at=self.created_at,
        )


@dataclass(frozen=True)
class PendingMessage:
    """What anyone may see of a pending message: everything except its content."""
    sender: bytes
    recipient: bytes
    nonce: int
    amount: int
    content_len: int                # bytes
    created_at: int = 0

    def to_dict(self) -> dict:
        d = asdict(self)
        d["sender"] = b64url_encode(self.sender)
        d["recipient"] = b64url_encode(self.recipient)
        return {"type": "Message", **d}


@dataclass(frozen=True)
class Transfer:
    """Value movement between two balance accounts (identities or record addresses)."""
    source: bytes
    destination: bytes
    amount: int


@dataclass
class Effect:
    """
    Everything one operation does, described but not applied.
    The runtime commits writes and transfers together or not at all.
    """
    writes: Dict[bytes, Optional[bytes]] = field(default_factory=dict)   # None = delete
    creates: Dict[bytes, bytes] = field(default_factory=dict)            # address must be free
    transfers: List[Transfer] = field(default_factory=list)
    result: Optional[str] = None

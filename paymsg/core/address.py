# paymsg/core/address.py
"""
Deterministic record addresses.

An address is the SHA-256 of the seed parts, each length-prefixed, under a
fixed domain tag. Same seeds give the same address; distinct seeds collide
only if SHA-256 does. An occupied address is the only duplicate check the
ledger has.
"""
import hashlib
import struct

from paymsg.core.constants import PROFILE_SEED, MESSAGE_SEED
from paymsg.core.types import require_identity, require_u64

DOMAIN_TAG = b"paymsg:address:v1"


def derive_address(*seeds: bytes) -> bytes:
    h = hashlib.sha256(DOMAIN_TAG)
    for seed in seeds:
        h.update(struct.pack("<H", len(seed)))
        h.update(seed)
    return h.digest()


def nonce_bytes(nonce: int) -> bytes:
    return struct.pack("<Q", require_u64(nonce, "nonce"))


def profile_address(owner: bytes) -> bytes:
    return derive_address(PROFILE_SEED, require_identity(owner, "owner"))


def message_address(recipient: bytes, sender: bytes, nonce: int) -> bytes:
    return derive_address(
        MESSAGE_SEED,
        require_identity(recipient, "recipient"),
        require_identity(sender, "sender"),
        nonce_bytes(nonce),
    )

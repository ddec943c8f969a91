# paymsg/core/layout.py
"""
Fixed binary layout of persisted records (all integers little-endian).

Profile: disc(8) | owner(32) | price u64 | created_at i64
Message: disc(8) | sender(32) | recipient(32) | nonce u64 | amount u64
         | created_at i64 | content_len u32 | content (utf-8)
"""
import hashlib
import struct
from typing import Union

from paymsg.core.constants import MAX_CONTENT_LEN
from paymsg.core.errors import InvalidArgument
from paymsg.core.types import Message, Profile


def discriminator(type_name: str) -> bytes:
    return hashlib.sha256(f"account:{type_name}".encode("ascii")).digest()[:8]


PROFILE_DISC = discriminator("Profile")
MESSAGE_DISC = discriminator("Message")

_PROFILE = struct.Struct("<8s32sQq")
_MESSAGE_HEAD = struct.Struct("<8s32s32sQQqI")

PROFILE_SIZE = _PROFILE.size
MESSAGE_HEAD_SIZE = _MESSAGE_HEAD.size


def encode_profile(profile: Profile) -> bytes:
    return _PROFILE.pack(PROFILE_DISC, profile.owner, profile.price, profile.created_at)


def encode_message(msg: Message) -> bytes:
    body = msg.content.encode("utf-8")
    if len(body) > MAX_CONTENT_LEN:
        raise InvalidArgument(f"content is {len(body)} bytes, max {MAX_CONTENT_LEN}")
    head = _MESSAGE_HEAD.pack(
        MESSAGE_DISC, msg.sender, msg.recipient, msg.nonce, msg.amount, msg.created_at, len(body)
    )
    return head + body


def decode_profile(data: bytes) -> Profile:
    if len(data) != PROFILE_SIZE or data[:8] != PROFILE_DISC:
        raise InvalidArgument("not a Profile record")
    _, owner, price, created_at = _PROFILE.unpack(data)
    return Profile(owner=owner, price=price, created_at=created_at)


def decode_message(data: bytes) -> Message:
    if len(data) < MESSAGE_HEAD_SIZE or data[:8] != MESSAGE_DISC:
        raise InvalidArgument("not a Message record")
    _, sender, recipient, nonce, amount, created_at, length = _MESSAGE_HEAD.unpack_from(data)
    if length > MAX_CONTENT_LEN or len(data) != MESSAGE_HEAD_SIZE + length:
        raise InvalidArgument("Message record has a bad content length")
    try:
        content = data[MESSAGE_HEAD_SIZE:].decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidArgument("Message content is not utf-8") from e
    return Message(
        sender=sender,
        recipient=recipient,
        nonce=nonce,
        amount=amount,
        content=content,
        created_at=created_at,
    )


def decode_record(data: bytes) -> Union[Profile, Message]:
    """Decode any record by its discriminator."""
    disc = data[:8]
    if disc == PROFILE_DISC:
        return decode_profile(data)
    if disc == MESSAGE_DISC:
        return decode_message(data)
    raise InvalidArgument(f"unknown record discriminator {disc.hex()}")

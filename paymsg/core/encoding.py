# paymsg/core/encoding.py
import base64

from paymsg.core.errors import InvalidArgument


def b64url_encode(data: bytes) -> str:
    """Encode bytes to base64url (no padding, URL-safe)."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(s: str) -> bytes:
    """Decode base64url string back to bytes."""
    # Restore padding
    padding = len(s) % 4
    if padding:
        s += "=" * (4 - padding)
    try:
        return base64.urlsafe_b64decode(s)
    except (ValueError, TypeError) as e:
        raise InvalidArgument(f"not valid base64url: {s!r}") from e

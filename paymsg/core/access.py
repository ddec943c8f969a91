# paymsg/core/access.py
import hmac
from enum import Enum

from paymsg.core.errors import Unauthorized


class Access(Enum):
    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"


def authorize(caller: bytes, authorized_id: bytes) -> Access:
    """Does the authenticated caller match the identity stored on the record?"""
    if hmac.compare_digest(bytes(caller), bytes(authorized_id)):
        return Access.AUTHORIZED
    return Access.UNAUTHORIZED


def require_authorized(caller: bytes, authorized_id: bytes, role: str = "owner") -> None:
    if authorize(caller, authorized_id) is not Access.AUTHORIZED:
        raise Unauthorized(f"caller is not the {role}")

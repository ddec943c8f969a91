# paymsg/runtime/__init__.py
"""
Reference ledger runtime: authenticates callers, serializes operations and
commits each operation's Effect as one transaction.
"""

from .auth import SignedRequest, authenticate, sign_request
from .ledger import LedgerRuntime

__all__ = ["LedgerRuntime", "SignedRequest", "authenticate", "sign_request"]

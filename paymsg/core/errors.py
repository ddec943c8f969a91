# paymsg/core/errors.py
"""
Error kinds raised by the escrow core and the reference runtime.
Every one of them is raised before anything is committed.
"""


class PaymsgError(Exception):
    kind = "Error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)


class AlreadyExists(PaymsgError):
    """Duplicate registration, or nonce reused while a message is pending."""
    kind = "AlreadyExists"


class NotFound(PaymsgError):
    kind = "NotFound"


class Unauthorized(PaymsgError):
    kind = "Unauthorized"


class Underpriced(PaymsgError):
    """Amount below the recipient's configured price."""
    kind = "Underpriced"


class InvalidArgument(PaymsgError):
    kind = "InvalidArgument"


class InsufficientFunds(PaymsgError):
    """Raised by the runtime when a transfer source cannot cover the amount."""
    kind = "InsufficientFunds"

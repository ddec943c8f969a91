# paymsg/escrow/__init__.py
"""
Validation and state transitions of the escrow ledger.

Components read a consistent snapshot from a RecordStore and return an
Effect; they never write. Applying the Effect atomically is the runtime's job.
"""

from .profiles import ProfileRegistry
from .messages import MessageEscrow

__all__ = ["ProfileRegistry", "MessageEscrow"]

# paymsg/storage/__init__.py
"""
Storage backends for ledger records and balances.

Records live at derived addresses; balances are kept per 32-byte account,
which is either an identity or a record address (escrow is held by the
message record itself).
"""

import os
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Dict, List, Mapping, Optional, Tuple
from pathlib import Path


def default_db_path() -> Path:
    """PAYMSG_DB_PATH if set, else ~/.paymsg/ledger.db."""
    env_path = os.environ.get("PAYMSG_DB_PATH")
    return Path(env_path) if env_path else Path.home() / ".paymsg" / "ledger.db"


class RecordStore(ABC):
    """Abstract base for all record store implementations."""

    @abstractmethod
    def get(self, address: bytes) -> Optional[bytes]:
        pass

    @abstractmethod
    def scan(self, offset: Optional[int] = None, value: bytes = b"") -> List[Tuple[bytes, bytes]]:
        """All (address, data) pairs, optionally only those with `value` at byte `offset`."""

    @abstractmethod
    def balance_of(self, account: bytes) -> int:
        pass

    @abstractmethod
    def balances(self) -> Dict[bytes, int]:
        pass

    @abstractmethod
    def record_balances(self) -> Dict[bytes, int]:
        """Balances of accounts that are record addresses (escrow held by a record)."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """
        Exclusive transaction. Reads and the commit made inside it see one
        state that no other writer can change until it ends; an exception
        rolls everything back. Nested use joins the outer transaction.
        """

    @abstractmethod
    def commit(
        self,
        writes: Mapping[bytes, Optional[bytes]],
        balances: Mapping[bytes, int],
        creates: Optional[Mapping[bytes, bytes]] = None,
    ) -> None:
        """
        Apply record writes (None deletes), new records and absolute balance
        updates as one transaction: either everything lands or nothing does.
        A create on an occupied address raises AlreadyExists. Balance accounts
        that are written or created addresses in the same commit are tagged
        as record accounts.
        """

    @abstractmethod
    def close(self) -> None:
        pass

    def exists(self, address: bytes) -> bool:
        return self.get(address) is not None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def matches(data: bytes, offset: Optional[int], value: bytes) -> bool:
    if offset is None:
        return True
    return data[offset:offset + len(value)] == value


def create_storage(uri: str) -> RecordStore:
    if uri.startswith("memory://"):
        from .memory import MemoryStorage
        return MemoryStorage()

    elif uri.startswith("sqlite://"):
        from .sqlite import SQLiteStorage
        # Extract everything after sqlite://
        raw_path = uri[len("sqlite://"):]
        if not raw_path:
            raise ValueError("sqlite:// URI needs a path")
        return SQLiteStorage(Path(raw_path).resolve())

    else:
        raise ValueError(f"Unsupported storage URI: {uri}")


from .memory import MemoryStorage
from .sqlite import SQLiteStorage

__all__ = ["RecordStore", "create_storage", "MemoryStorage", "SQLiteStorage"]

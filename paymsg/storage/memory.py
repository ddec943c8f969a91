# paymsg/storage/memory.py
import threading
from contextlib import contextmanager
from typing import Dict, List, Mapping, Optional, Set, Tuple

from paymsg.core.errors import AlreadyExists

from . import RecordStore, matches


class MemoryStorage(RecordStore):
    """In-process store. Commits swap in fully built copies, so a failed commit changes nothing."""

    def __init__(self):
        self._records: Optional[Dict[bytes, bytes]] = {}
        self._balances: Dict[bytes, int] = {}
        self._record_accounts: Set[bytes] = set()
        self._lock = threading.RLock()
        self._depth = 0

    def _check_open(self) -> None:
        if self._records is None:
            raise RuntimeError("Storage is closed")

    @property
    def records(self) -> Dict[bytes, bytes]:
        self._check_open()
        return self._records

    def get(self, address: bytes) -> Optional[bytes]:
        return self.records.get(address)

    def scan(self, offset: Optional[int] = None, value: bytes = b"") -> List[Tuple[bytes, bytes]]:
        return [(a, d) for a, d in self.records.items() if matches(d, offset, value)]

    def balance_of(self, account: bytes) -> int:
        self._check_open()
        return self._balances.get(account, 0)

    def balances(self) -> Dict[bytes, int]:
        self._check_open()
        return dict(self._balances)

    def record_balances(self) -> Dict[bytes, int]:
        self._check_open()
        return {a: amt for a, amt in self._balances.items() if a in self._record_accounts}

    @contextmanager
    def transaction(self):
        with self._lock:
            self._check_open()
            saved = (self._records, self._balances, self._record_accounts)
            self._depth += 1
            try:
                yield self
            except BaseException:
                if self._depth == 1:
                    self._records, self._balances, self._record_accounts = saved
                raise
            finally:
                self._depth -= 1

    def commit(
        self,
        writes: Mapping[bytes, Optional[bytes]],
        balances: Mapping[bytes, int],
        creates: Optional[Mapping[bytes, bytes]] = None,
    ) -> None:
        creates = creates or {}
        with self._lock:
            records = dict(self.records)
            for address, data in creates.items():
                if address in records:
                    raise AlreadyExists("address is already occupied")
                records[address] = bytes(data)
            for address, data in writes.items():
                if data is None:
                    records.pop(address, None)
                else:
                    records[address] = bytes(data)

            new_balances = dict(self._balances)
            record_accounts = set(self._record_accounts)
            for account, amount in balances.items():
                if amount < 0:
                    raise ValueError("balance cannot go negative")
                if amount:
                    new_balances[account] = amount
                    if account in writes or account in creates:
                        record_accounts.add(account)
                else:
                    new_balances.pop(account, None)
                    record_accounts.discard(account)

            self._records, self._balances, self._record_accounts = records, new_balances, record_accounts

    def close(self) -> None:
        self._records = None

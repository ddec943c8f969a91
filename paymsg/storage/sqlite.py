# paymsg/storage/sqlite.py
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from paymsg.core.errors import AlreadyExists

from . import RecordStore, default_db_path

logger = logging.getLogger(__name__)


class SQLiteStorage(RecordStore):
    """SQLite persistent storage for ledger records and balances."""

    def __init__(self, db_path: str | Path | None = None, timeout: float = 30.0):
        if db_path is None:
            db_path = default_db_path()

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = self.db_path.resolve()
        self.timeout = timeout

        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._depth = 0
        self._connect()

    def _connect(self):
        # autocommit mode; transaction() issues BEGIN IMMEDIATE / COMMIT itself
        self._conn = sqlite3.connect(
            str(self.db_path), isolation_level=None, check_same_thread=False, timeout=self.timeout
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_schema()
        logger.debug("opened ledger database %s", self.db_path)

    def _create_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS records (
                address     BLOB    PRIMARY KEY,
                data        BLOB    NOT NULL
            )
        """)
        # u64 amounts do not fit SQLite's signed INTEGER, keep them as decimal text
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS balances (
                account     BLOB    PRIMARY KEY,
                amount      TEXT    NOT NULL,
                is_record   INTEGER NOT NULL DEFAULT 0
            )
        """)

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Storage connection is closed")
        return self._conn

    def get(self, address: bytes) -> Optional[bytes]:
        row = self.conn.execute(
            "SELECT data FROM records WHERE address = ?", (address,)
        ).fetchone()
        return bytes(row[0]) if row else None

    def scan(self, offset: Optional[int] = None, value: bytes = b"") -> List[Tuple[bytes, bytes]]:
        if offset is None:
            cursor = self.conn.execute("SELECT address, data FROM records ORDER BY address")
        else:
            cursor = self.conn.execute(
                "SELECT address, data FROM records WHERE substr(data, ?, ?) = ? ORDER BY address",
                (offset + 1, len(value), value),
            )
        return [(bytes(a), bytes(d)) for a, d in cursor]

    def balance_of(self, account: bytes) -> int:
        row = self.conn.execute(
            "SELECT amount FROM balances WHERE account = ?", (account,)
        ).fetchone()
        return int(row[0]) if row else 0

    def balances(self) -> Dict[bytes, int]:
        cursor = self.conn.execute("SELECT account, amount FROM balances")
        return {bytes(a): int(amt) for a, amt in cursor}

    def record_balances(self) -> Dict[bytes, int]:
        cursor = self.conn.execute("SELECT account, amount FROM balances WHERE is_record = 1")
        return {bytes(a): int(amt) for a, amt in cursor}

    @contextmanager
    def transaction(self):
        with self._lock:
            conn = self.conn
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            # IMMEDIATE takes the write lock up front, so other connections
            # cannot change what this transaction has read before it commits
            conn.execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield self
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            else:
                conn.execute("COMMIT")
            finally:
                self._depth = 0

    def commit(
        self,
        writes: Mapping[bytes, Optional[bytes]],
        balances: Mapping[bytes, int],
        creates: Optional[Mapping[bytes, bytes]] = None,
    ) -> None:
        creates = creates or {}
        with self.transaction():
            conn = self.conn
            for address, data in creates.items():
                try:
                    conn.execute(
                        "INSERT INTO records (address, data) VALUES (?, ?)",
                        (address, bytes(data)),
                    )
                except sqlite3.IntegrityError as e:
                    raise AlreadyExists("address is already occupied") from e
            for address, data in writes.items():
                if data is None:
                    conn.execute("DELETE FROM records WHERE address = ?", (address,))
                else:
                    conn.execute(
                        "INSERT OR REPLACE INTO records (address, data) VALUES (?, ?)",
                        (address, bytes(data)),
                    )
            for account, amount in balances.items():
                if amount < 0:
                    raise ValueError("balance cannot go negative")
                if amount:
                    is_record = int(account in writes or account in creates)
                    conn.execute("""
                        INSERT INTO balances (account, amount, is_record) VALUES (?, ?, ?)
                        ON CONFLICT(account) DO UPDATE SET
                            amount = excluded.amount,
                            is_record = MAX(is_record, excluded.is_record)
                    """, (account, str(amount), is_record))
                else:
                    conn.execute("DELETE FROM balances WHERE account = ?", (account,))

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.debug("closed ledger database %s", self.db_path)

import sqlite3
import threading
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from gavel.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for auction persistence.

    Tables:
    1. auction_meta: key/value record of the auction state and counters.
    2. ledger_entries: per-bidder deposit/withdrawal totals, in registry order.
    3. bids: the append-only bid history.

    Amounts are stored as decimal TEXT since they may exceed SQLite's
    64-bit INTEGER range.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()

        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            self._conn_local.conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False
            )
            self._conn_local.conn.row_factory = sqlite3.Row
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
        return self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS auction_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS ledger_entries (
                    bidder TEXT PRIMARY KEY,
                    position INTEGER NOT NULL,
                    deposited TEXT NOT NULL,
                    withdrawn TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_ledger_position ON ledger_entries(position);")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS bids (
                    seq INTEGER PRIMARY KEY,
                    bidder TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    timestamp INTEGER NOT NULL
                )
            """)

    # =========================================================================
    # Metadata
    # =========================================================================

    def set_meta(self, key: str, value: str):
        conn = self._get_conn()
        with conn:
            conn.execute("INSERT OR REPLACE INTO auction_meta (key, value) VALUES (?, ?)", (key, value))

    def get_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM auction_meta WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None

    def get_all_meta(self) -> Dict[str, str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT key, value FROM auction_meta")
        return {row['key']: row['value'] for row in cursor}

    # =========================================================================
    # Ledger & History
    # =========================================================================

    def get_ledger_entries(self) -> List[Tuple[str, int, int]]:
        """Get all (bidder, deposited, withdrawn) in registry order."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT bidder, deposited, withdrawn FROM ledger_entries ORDER BY position ASC"
        )
        return [(row['bidder'], int(row['deposited']), int(row['withdrawn'])) for row in cursor]

    def get_bids(self) -> List[Tuple[str, int, int]]:
        """Get all (bidder, amount, timestamp) oldest first."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT bidder, amount, timestamp FROM bids ORDER BY seq ASC")
        return [(row['bidder'], int(row['amount']), row['timestamp']) for row in cursor]

    def get_bid_count(self) -> int:
        conn = self._get_conn()
        cursor = conn.execute("SELECT COUNT(*) as cnt FROM bids")
        return cursor.fetchone()['cnt']

    def persist_update(
        self,
        meta: Dict[str, str],
        entries: List[Tuple[int, str, int, int]],
        new_bid: Optional[Tuple[int, str, int, int]] = None,
    ):
        """
        Atomically write one engine operation.

        Args:
            meta: auction_meta rows to upsert
            entries: (position, bidder, deposited, withdrawn) rows to upsert
            new_bid: (seq, bidder, amount, timestamp) of a newly accepted bid
        """
        conn = self._get_conn()
        with conn:
            conn.executemany(
                "INSERT OR REPLACE INTO auction_meta (key, value) VALUES (?, ?)",
                list(meta.items())
            )

            conn.executemany(
                "INSERT OR REPLACE INTO ledger_entries (bidder, position, deposited, withdrawn) VALUES (?, ?, ?, ?)",
                [(bidder, pos, str(dep), str(wd)) for pos, bidder, dep, wd in entries]
            )

            if new_bid is not None:
                seq, bidder, amount, timestamp = new_bid
                conn.execute(
                    "INSERT INTO bids (seq, bidder, amount, timestamp) VALUES (?, ?, ?, ?)",
                    (seq, bidder, str(amount), timestamp)
                )

    def clear(self):
        """Delete every stored row in one transaction."""
        conn = self._get_conn()
        with conn:
            conn.execute("DELETE FROM bids")
            conn.execute("DELETE FROM ledger_entries")
            conn.execute("DELETE FROM auction_meta")

    def close(self):
        if hasattr(self._conn_local, "conn"):
            self._conn_local.conn.close()
            del self._conn_local.conn

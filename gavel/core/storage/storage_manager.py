import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from gavel.core.exceptions import PersistenceError
from gavel.core.storage.sqlite_adapter import SQLiteAdapter
from gavel.utils.logger import get_logger

logger = get_logger("storage.manager")

# Bumped when the persisted layout changes
SCHEMA_VERSION = "1"


class StorageManager:
    """
    Manages persistent storage for one auction.

    Coordinates data persistence using SQLite adapter.
    Handles:
    - Auction record (parties, deadlines, leader, settlement counters)
    - Ledger entries
    - Bid history
    """

    def __init__(self, data_dir: Path, db_name: str = "auction.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        logger.info(f"StorageManager initialized at {self.db_path}")

    # =========================================================================
    # Auction Record
    # =========================================================================

    def has_auction(self) -> bool:
        return self.adapter.get_meta("record") is not None

    def save_update(
        self,
        record: Dict[str, Any],
        entries: List[Tuple[int, str, int, int]],
        new_bid: Optional[Tuple[int, str, int, int]] = None,
    ):
        """
        Persist the auction record together with changed ledger entries.

        The record is a JSON-serializable dict; ints are kept as strings
        when they could overflow JSON consumers. The write is atomic: on
        failure nothing is stored and PersistenceError is raised.
        """
        meta = {
            "schema_version": SCHEMA_VERSION,
            "record": json.dumps(record, sort_keys=True),
        }
        try:
            self.adapter.persist_update(meta, entries, new_bid)
        except sqlite3.Error as e:
            logger.error(f"Failed to persist auction update: {e}")
            raise PersistenceError("Auction update was not stored", {"db": str(self.db_path), "error": str(e)}) from e

    def load_auction(self) -> Optional[Tuple[Dict[str, Any], List[Tuple[str, int, int]], List[Tuple[str, int, int]]]]:
        """
        Load the full persisted auction.

        Returns:
            (record, ledger_rows, bid_rows) or None if nothing was saved
            ledger_rows: List[(bidder, deposited, withdrawn)]
            bid_rows: List[(bidder, amount, timestamp)]
        """
        raw = self.adapter.get_meta("record")
        if raw is None:
            return None

        version = self.adapter.get_meta("schema_version")
        if version != SCHEMA_VERSION:
            raise ValueError(f"Unsupported auction schema version: {version}")

        record = json.loads(raw)
        entries = self.adapter.get_ledger_entries()
        bids = self.adapter.get_bids()

        logger.info(f"Loaded auction: {len(entries)} bidders, {len(bids)} bids")
        return record, entries, bids

    def clear(self):
        """Remove the stored auction so a new one can be created here."""
        self.adapter.clear()
        logger.warning(f"Cleared stored auction at {self.db_path}")

    def bid_count(self) -> int:
        return self.adapter.get_bid_count()

    def close(self):
        self.adapter.close()

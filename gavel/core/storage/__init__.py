"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- The auction record and settlement counters
- Ledger entries
- Bid history
"""

from gavel.core.storage.sqlite_adapter import SQLiteAdapter
from gavel.core.storage.storage_manager import StorageManager

__all__ = ["SQLiteAdapter", "StorageManager"]

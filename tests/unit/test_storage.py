"""
Unit tests for auction storage.

Tests cover:
1. Schema creation and metadata
2. Atomic operation writes
3. Ordered reloads of ledger and bids
"""

import pytest

from gavel.core.exceptions import PersistenceError
from gavel.core.storage import SQLiteAdapter, StorageManager


@pytest.fixture
def adapter(tmp_path):
    return SQLiteAdapter(tmp_path / "nested" / "auction.db")


@pytest.fixture
def storage(tmp_path):
    return StorageManager(data_dir=tmp_path)


class TestSQLiteAdapter:
    """Tests for the SQLite backend."""

    def test_creates_parent_directory(self, tmp_path, adapter):
        assert (tmp_path / "nested" / "auction.db").exists()

    def test_meta_roundtrip(self, adapter):
        adapter.set_meta("k", "v")
        assert adapter.get_meta("k") == "v"
        assert adapter.get_meta("missing") is None
        assert adapter.get_all_meta() == {"k": "v"}

    def test_persist_update(self, adapter):
        adapter.persist_update(
            {"state": "x"},
            [(0, "alice", 100, 0), (1, "bob", 200, 50)],
            (0, "alice", 100, 10),
        )
        assert adapter.get_ledger_entries() == [("alice", 100, 0), ("bob", 200, 50)]
        assert adapter.get_bids() == [("alice", 100, 10)]
        assert adapter.get_bid_count() == 1

    def test_entries_upserted(self, adapter):
        adapter.persist_update({}, [(0, "alice", 100, 0)])
        adapter.persist_update({}, [(0, "alice", 100, 100)])
        assert adapter.get_ledger_entries() == [("alice", 100, 100)]

    def test_amounts_beyond_int64(self, adapter):
        big = 2**200
        adapter.persist_update({}, [(0, "whale", big, 0)], (0, "whale", big, 1))
        assert adapter.get_ledger_entries()[0][1] == big
        assert adapter.get_bids()[0][1] == big

    def test_duplicate_bid_rolls_back_whole_update(self, adapter):
        """A failing write leaves none of the update behind."""
        import sqlite3

        adapter.persist_update({}, [(0, "alice", 100, 0)], (0, "alice", 100, 10))
        with pytest.raises(sqlite3.IntegrityError):
            adapter.persist_update({"marker": "1"}, [(1, "bob", 200, 0)], (0, "bob", 200, 20))
        assert adapter.get_meta("marker") is None
        assert adapter.get_ledger_entries() == [("alice", 100, 0)]


class TestStorageManager:
    """Tests for the storage manager."""

    def test_empty(self, storage):
        assert not storage.has_auction()
        assert storage.load_auction() is None

    def test_save_and_load(self, storage):
        storage.save_update({"owner": "o", "highest_bid": "5"}, [(0, "alice", 5, 0)], (0, "alice", 5, 1))
        assert storage.has_auction()
        record, entries, bids = storage.load_auction()
        assert record == {"owner": "o", "highest_bid": "5"}
        assert entries == [("alice", 5, 0)]
        assert bids == [("alice", 5, 1)]
        assert storage.bid_count() == 1

    def test_rejects_unknown_schema(self, storage):
        storage.save_update({"owner": "o"}, [])
        storage.adapter.set_meta("schema_version", "999")
        with pytest.raises(ValueError):
            storage.load_auction()

    def test_write_failure_raises_persistence_error(self, storage):
        storage.save_update({"owner": "o"}, [], (0, "alice", 5, 1))
        with pytest.raises(PersistenceError):
            storage.save_update({"owner": "changed"}, [], (0, "bob", 6, 2))
        record, _, bids = storage.load_auction()
        assert record == {"owner": "o"}
        assert bids == [("alice", 5, 1)]

    def test_clear(self, storage):
        storage.save_update({"owner": "o"}, [(0, "alice", 5, 0)], (0, "alice", 5, 1))
        storage.clear()
        assert not storage.has_auction()
        assert storage.bid_count() == 0
        assert storage.adapter.get_ledger_entries() == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

"""
Unit tests for the bid history log.

Tests cover:
1. Append order and immutability
2. Parallel-sequence snapshots
3. Restartable iteration
"""

import dataclasses

import pytest

from gavel.core.auction import Bid, BidHistoryLog


@pytest.fixture
def history():
    log = BidHistoryLog()
    log.append("alice", 100, 10)
    log.append("bob", 105, 20)
    log.append("alice", 111, 30)
    return log


class TestBidHistoryLog:
    """Tests for the append-only bid log."""

    def test_empty_log(self):
        """New log has no bids and no latest bid."""
        log = BidHistoryLog()
        assert len(log) == 0
        assert log.latest() is None
        assert len(log.snapshot()) == 0

    def test_append_returns_bid(self):
        """append() returns the recorded Bid."""
        log = BidHistoryLog()
        bid = log.append("alice", 100, 10)
        assert bid == Bid("alice", 100, 10)
        assert log.latest() == bid

    def test_order_preserved(self, history):
        """Bids come back oldest first."""
        assert [b.bidder for b in history] == ["alice", "bob", "alice"]
        assert history.latest().amount == 111

    def test_bids_are_frozen(self, history):
        """Recorded bids cannot be edited."""
        bid = history.bids()[0]
        with pytest.raises(dataclasses.FrozenInstanceError):
            bid.amount = 1

    def test_snapshot_parallel_sequences(self, history):
        """Snapshot exposes three aligned tuples."""
        snap = history.snapshot()
        assert snap.bidders == ("alice", "bob", "alice")
        assert snap.amounts == (100, 105, 111)
        assert snap.timestamps == (10, 20, 30)

    def test_snapshot_unaffected_by_later_bids(self, history):
        """A snapshot is a point-in-time copy."""
        snap = history.snapshot()
        history.append("carol", 200, 40)
        assert len(snap) == 3
        assert len(history.snapshot()) == 4

    def test_iteration_restartable(self, history):
        """Iterating twice yields the same sequence."""
        assert list(history) == list(history)

    def test_bids_by(self, history):
        """Filter by bidder."""
        assert [b.amount for b in history.bids_by("alice")] == [100, 111]
        assert history.bids_by("nobody") == ()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

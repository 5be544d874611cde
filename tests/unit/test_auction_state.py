"""
Unit tests for the auction state machine.

Tests cover:
1. Bid preconditions (deadline, zero, increment)
2. Effects of an accepted bid
3. Anti-sniping extension boundary
4. End transition
"""

import pytest

from gavel.core.auction import AuctionPhase, AuctionState, BidHistoryLog, BidLedger
from gavel.core.config import AuctionConfig
from gavel.core.exceptions import AuctionAlreadyEnded, AuctionNotActive, BidTooLow, ZeroBid


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def config():
    return AuctionConfig()


@pytest.fixture
def parts():
    """Fresh (state, ledger, history) with deadline at t=3600."""
    state = AuctionState(
        owner="owner",
        beneficiary="seller",
        original_deadline=3600,
        current_deadline=3600,
        description="lot",
    )
    return state, BidLedger(), BidHistoryLog()


def place(parts, config, bidder, amount, now):
    state, ledger, history = parts
    return state.accept_bid(bidder, amount, now, ledger, history, config)


# =============================================================================
# Preconditions
# =============================================================================


class TestBidPreconditions:
    """Tests for bid rejection."""

    def test_first_bid_any_positive(self, parts, config):
        outcome = place(parts, config, "alice", 1, 0)
        assert outcome.bid.amount == 1

    def test_zero_bid_rejected(self, parts, config):
        with pytest.raises(ZeroBid):
            place(parts, config, "alice", 0, 0)

    def test_increment_rule(self, parts, config):
        """After 100, minimum is 105: 104 rejected, 105 accepted."""
        place(parts, config, "alice", 100, 0)
        with pytest.raises(BidTooLow) as exc:
            place(parts, config, "bob", 104, 1)
        assert exc.value.details["minimum"] == 105
        place(parts, config, "bob", 105, 2)
        assert parts[0].highest_bid == 105

    def test_increment_floors(self, parts, config):
        """floor(19 * 5 / 100) == 0, so 19 is a valid re-bid at 19."""
        place(parts, config, "alice", 19, 0)
        assert parts[0].minimum_next_bid(config) == 19
        place(parts, config, "bob", 19, 1)
        assert parts[0].highest_bidder == "bob"

    def test_bid_at_deadline_rejected(self, parts, config):
        with pytest.raises(AuctionNotActive):
            place(parts, config, "alice", 100, 3600)

    def test_bid_after_end_rejected(self, parts, config):
        parts[0].end()
        with pytest.raises(AuctionNotActive):
            place(parts, config, "alice", 100, 0)

    def test_rejection_leaves_no_trace(self, parts, config):
        state, ledger, history = parts
        place(parts, config, "alice", 100, 0)
        with pytest.raises(BidTooLow):
            place(parts, config, "bob", 101, 1)
        assert ledger.list_bidders() == ("alice",)
        assert len(history) == 1
        assert state.highest_bidder == "alice"


# =============================================================================
# Effects
# =============================================================================


class TestBidEffects:
    """Tests for accepted bid effects."""

    def test_effects_applied(self, parts, config):
        state, ledger, history = parts
        place(parts, config, "alice", 100, 5)
        assert ledger.balance_of("alice") == 100
        assert state.highest_bidder == "alice"
        assert state.highest_bid == 100
        assert history.latest().timestamp == 5

    def test_outbid_balance_untouched(self, parts, config):
        """Previous leader's balance is only deposits minus withdrawals."""
        state, ledger, _ = parts
        place(parts, config, "alice", 100, 0)
        place(parts, config, "bob", 200, 1)
        assert ledger.balance_of("alice") == 100
        assert ledger.balance_of("bob") == 200

    def test_extension_at_threshold(self, parts, config):
        """Exactly 600s remaining extends by 600s."""
        state = parts[0]
        outcome = place(parts, config, "alice", 100, 3000)
        assert outcome.extended
        assert state.current_deadline == 4200
        assert state.original_deadline == 3600
        assert state.extension_count == 1

    def test_no_extension_above_threshold(self, parts, config):
        """601s remaining leaves the deadline alone."""
        outcome = place(parts, config, "alice", 100, 2999)
        assert not outcome.extended
        assert parts[0].current_deadline == 3600

    def test_repeated_extensions(self, parts, config):
        place(parts, config, "alice", 100, 3500)
        place(parts, config, "bob", 200, 4100)
        assert parts[0].current_deadline == 4800
        assert parts[0].extension_count == 2


# =============================================================================
# Queries and transitions
# =============================================================================


class TestPhase:
    def test_time_remaining(self, parts):
        state = parts[0]
        assert state.time_remaining(600) == 3000
        assert state.time_remaining(3600) == 0
        state.end()
        assert state.time_remaining(0) == 0

    def test_has_expired(self, parts):
        state = parts[0]
        assert not state.has_expired(3599)
        assert state.has_expired(3600)

    def test_end_once(self, parts):
        state = parts[0]
        assert state.phase == AuctionPhase.ACTIVE
        state.end()
        assert state.phase == AuctionPhase.ENDED
        with pytest.raises(AuctionAlreadyEnded):
            state.end()
        assert state.ended

    def test_minimum_next_bid(self, parts, config):
        assert parts[0].minimum_next_bid(config) == 1
        place(parts, config, "alice", 1000, 0)
        assert parts[0].minimum_next_bid(config) == 1050


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

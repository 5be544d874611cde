"""
Unit tests for the bid ledger.

Tests cover:
1. Deposits and bidder registration
2. Debits and reverts
3. Withdrawable excess in each auction phase
4. Balance rule independent of who leads
"""

import pytest

from gavel.core.auction import AuctionState, BidLedger, restore_ledger
from gavel.core.exceptions import InsufficientBalance


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def ledger():
    return BidLedger()


@pytest.fixture
def state():
    """Auction with deadline at t=1000, bob leading at 300."""
    return AuctionState(
        owner="owner",
        beneficiary="seller",
        original_deadline=1000,
        current_deadline=1000,
        description="lot",
        highest_bidder="bob",
        highest_bid=300,
    )


# =============================================================================
# Deposits
# =============================================================================


class TestDeposits:
    """Tests for record_deposit and the bidder registry."""

    def test_first_deposit_registers(self, ledger):
        ledger.record_deposit("alice", 100)
        assert ledger.has_bidder("alice")
        assert ledger.balance_of("alice") == 100

    def test_deposits_accumulate(self, ledger):
        ledger.record_deposit("alice", 100)
        ledger.record_deposit("alice", 150)
        assert ledger.balance_of("alice") == 250
        assert ledger.total_deposited == 250

    def test_registered_once_in_first_bid_order(self, ledger):
        """Repeat bidders keep their original position."""
        ledger.record_deposit("alice", 100)
        ledger.record_deposit("bob", 105)
        ledger.record_deposit("alice", 111)
        ledger.record_deposit("carol", 120)
        assert ledger.list_bidders() == ("alice", "bob", "carol")
        assert len(ledger) == 3

    def test_list_bidders_restartable(self, ledger):
        ledger.record_deposit("alice", 100)
        first = ledger.list_bidders()
        ledger.record_deposit("bob", 200)
        assert first == ("alice",)
        assert ledger.list_bidders() == ("alice", "bob")

    def test_unknown_bidder_balance_zero(self, ledger):
        assert ledger.balance_of("ghost") == 0


# =============================================================================
# Debits
# =============================================================================


class TestDebits:
    """Tests for debit and credit_back."""

    def test_debit_reduces_balance(self, ledger):
        ledger.record_deposit("alice", 100)
        remaining = ledger.debit("alice", 40)
        assert remaining == 60
        assert ledger.balance_of("alice") == 60
        assert ledger.total_deposited == 100

    def test_debit_over_balance_fails(self, ledger):
        ledger.record_deposit("alice", 100)
        with pytest.raises(InsufficientBalance):
            ledger.debit("alice", 101)
        assert ledger.balance_of("alice") == 100

    def test_debit_unknown_bidder_fails(self, ledger):
        with pytest.raises(InsufficientBalance):
            ledger.debit("ghost", 1)

    def test_entry_zeroed_not_removed(self, ledger):
        ledger.record_deposit("alice", 100)
        ledger.debit("alice", 100)
        assert ledger.balance_of("alice") == 0
        assert ledger.list_bidders() == ("alice",)

    def test_credit_back_restores(self, ledger):
        ledger.record_deposit("alice", 100)
        ledger.debit("alice", 100)
        ledger.credit_back("alice", 100)
        assert ledger.balance_of("alice") == 100
        assert ledger.total_deposited == 100

    def test_credit_back_limited_to_withdrawn(self, ledger):
        ledger.record_deposit("alice", 100)
        ledger.debit("alice", 10)
        with pytest.raises(InsufficientBalance):
            ledger.credit_back("alice", 11)

    def test_total_balance(self, ledger):
        ledger.record_deposit("alice", 100)
        ledger.record_deposit("bob", 200)
        ledger.debit("bob", 50)
        assert ledger.total_balance() == 250
        assert ledger.total_withdrawn == 50


# =============================================================================
# Withdrawable excess
# =============================================================================


class TestWithdrawableExcess:
    """Tests for withdrawable_excess across phases."""

    def test_active_leader_keeps_bid_locked(self, ledger, state):
        ledger.record_deposit("bob", 200)
        ledger.record_deposit("bob", 300)
        assert ledger.withdrawable_excess("bob", state, now=500) == 200

    def test_active_leader_floor_zero(self, ledger, state):
        ledger.record_deposit("bob", 300)
        assert ledger.withdrawable_excess("bob", state, now=500) == 0

    def test_active_outbid_full_balance(self, ledger, state):
        """Being outbid leaves the old deposit untouched and withdrawable."""
        ledger.record_deposit("alice", 100)
        ledger.record_deposit("bob", 300)
        assert ledger.balance_of("alice") == 100
        assert ledger.withdrawable_excess("alice", state, now=500) == 100

    def test_expired_not_finalized_leader_still_locked(self, ledger, state):
        ledger.record_deposit("bob", 300)
        assert ledger.withdrawable_excess("bob", state, now=1000) == 0

    def test_ended_loser_full_balance(self, ledger, state):
        ledger.record_deposit("alice", 100)
        state.ended = True
        assert ledger.withdrawable_excess("alice", state, now=2000) == 100

    def test_ended_winner_after_payout_gets_nothing(self, ledger, state):
        ledger.record_deposit("bob", 300)
        ledger.debit("bob", 300)
        state.ended = True
        state.winner_paid = True
        assert ledger.withdrawable_excess("bob", state, now=2000) == 0

    def test_ended_without_payout_winner_locked(self, ledger, state):
        """Emergency-ended auction: winning amount stays in custody."""
        ledger.record_deposit("bob", 300)
        state.ended = True
        assert ledger.withdrawable_excess("bob", state, now=2000) == 0

    def test_unknown_bidder(self, ledger, state):
        assert ledger.withdrawable_excess("ghost", state, now=500) == 0


class TestRestore:
    def test_restore_ledger_keeps_order(self):
        ledger = restore_ledger([("bob", 300, 0), ("alice", 100, 100)])
        assert ledger.list_bidders() == ("bob", "alice")
        assert ledger.balance_of("alice") == 0
        assert ledger.total_deposited == 400


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

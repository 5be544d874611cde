"""
Bid Ledger - Per-bidder balances for the auction.

Accounting Rule:
---------------
A bidder's balance is always

    balance = cumulative deposits - cumulative withdrawals

regardless of who holds the highest bid. Being outbid does not touch the
previous leader's balance; their deposit simply becomes withdrawable.

Registry:
--------
Bidders are registered on their first deposit, exactly once, and listed in
first-bid order. Entries are never removed, only zeroed.

Ordering:
--------
`debit` must commit before the matching outgoing transfer starts. If that
transfer fails, `credit_back` reverts the debit.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple, TYPE_CHECKING

from gavel.core.exceptions import InsufficientBalance
from gavel.utils.logger import get_logger

if TYPE_CHECKING:
    from gavel.core.auction.state import AuctionState

logger = get_logger("ledger")


@dataclass
class LedgerEntry:
    """Running totals for one bidder."""
    bidder: str
    deposited: int = 0
    withdrawn: int = 0

    @property
    def balance(self) -> int:
        return self.deposited - self.withdrawn


class BidLedger:
    """
    Balances of every bidder that has ever deposited.

    Attributes:
        entries: bidder -> LedgerEntry, in first-deposit order
        total_deposited: Value ever deposited by all bidders
    """

    def __init__(self):
        self.entries: Dict[str, LedgerEntry] = {}
        self.total_deposited = 0

    # =========================================================================
    # Mutation
    # =========================================================================

    def record_deposit(self, bidder: str, amount: int) -> LedgerEntry:
        """
        Credit a bid's value to `bidder`, registering them on first deposit.

        Caller guarantees amount > 0.
        """
        entry = self.entries.get(bidder)
        if entry is None:
            entry = LedgerEntry(bidder=bidder)
            self.entries[bidder] = entry
            logger.debug(f"Registered bidder {bidder}")

        entry.deposited += amount
        self.total_deposited += amount
        return entry

    def debit(self, bidder: str, amount: int) -> int:
        """
        Remove `amount` from a bidder's balance ahead of a payout.

        Returns:
            Remaining balance

        Raises:
            InsufficientBalance: amount exceeds the balance
        """
        balance = self.balance_of(bidder)
        if amount > balance:
            raise InsufficientBalance(
                "Debit exceeds ledger balance",
                {"bidder": bidder, "amount": amount, "balance": balance},
            )

        entry = self.entries.get(bidder)
        if entry is None:
            # amount is 0 here; nothing to record
            return 0

        entry.withdrawn += amount
        logger.debug(f"Debited {amount} from {bidder}, balance now {entry.balance}")
        return entry.balance

    def credit_back(self, bidder: str, amount: int) -> int:
        """
        Undo a debit whose transfer failed.

        Not a deposit: total_deposited is unchanged.
        """
        entry = self.entries[bidder]
        if amount > entry.withdrawn:
            raise InsufficientBalance(
                "Cannot revert more than was withdrawn",
                {"bidder": bidder, "amount": amount, "withdrawn": entry.withdrawn},
            )
        entry.withdrawn -= amount
        logger.debug(f"Reverted debit of {amount} for {bidder}, balance now {entry.balance}")
        return entry.balance

    # =========================================================================
    # Queries
    # =========================================================================

    def balance_of(self, bidder: str) -> int:
        entry = self.entries.get(bidder)
        return entry.balance if entry else 0

    def has_bidder(self, bidder: str) -> bool:
        return bidder in self.entries

    def list_bidders(self) -> Tuple[str, ...]:
        """Bidders in first-bid order. Each call returns a fresh sequence."""
        return tuple(self.entries)

    def total_balance(self) -> int:
        """Sum of all balances still owed to bidders."""
        return sum(e.balance for e in self.entries.values())

    @property
    def total_withdrawn(self) -> int:
        return sum(e.withdrawn for e in self.entries.values())

    def withdrawable_excess(self, bidder: str, state: "AuctionState", now: int) -> int:
        """
        Amount `bidder` may take out through the excess path right now.

        While the auction runs, the leader's highest bid stays locked and
        anything above it is free; everyone else may take their full
        balance. Once the auction is over, non-winners keep full access
        and the winner's locked amount is either still held (not yet paid)
        or already gone to the beneficiary.
        """
        balance = self.balance_of(bidder)
        is_leader = bidder == state.highest_bidder

        if state.is_active(now):
            if is_leader:
                return max(balance - state.highest_bid, 0)
            return balance

        if not is_leader:
            return balance

        if state.winner_paid:
            # Winning amount was debited at payout; what is left is surplus
            return balance
        return max(balance - state.highest_bid, 0)

    def __iter__(self) -> Iterator[LedgerEntry]:
        return iter(tuple(self.entries.values()))

    def __len__(self) -> int:
        return len(self.entries)

    def __repr__(self) -> str:
        return f"BidLedger(bidders={len(self.entries)}, held={self.total_balance()})"


def restore_ledger(rows, total_deposited: Optional[int] = None) -> BidLedger:
    """
    Rebuild a ledger from (bidder, deposited, withdrawn) rows in registry order.
    """
    ledger = BidLedger()
    for bidder, deposited, withdrawn in rows:
        ledger.entries[bidder] = LedgerEntry(bidder=bidder, deposited=deposited, withdrawn=withdrawn)
    ledger.total_deposited = (
        total_deposited
        if total_deposited is not None
        else sum(e.deposited for e in ledger.entries.values())
    )
    return ledger

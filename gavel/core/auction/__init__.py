"""
Gavel Auction Module.

This module provides the single-auction settlement system:
- Bid history (append-only audit trail)
- Bid ledger (per-bidder balances)
- Auction state machine (deadline, leader, end flag)
- Settlement engine (finalize, refunds, commission, emergency paths)
"""

from gavel.core.auction.history import (
    Bid,
    BidHistoryLog,
    BidHistorySnapshot,
)

from gavel.core.auction.ledger import (
    BidLedger,
    LedgerEntry,
    restore_ledger,
)

from gavel.core.auction.state import (
    AuctionPhase,
    AuctionState,
    BidOutcome,
)

from gavel.core.auction.models import (
    AuctionInfo,
    BidderBalance,
    BidderBalances,
    BidHistoryView,
    WinnerInfo,
)

from gavel.core.auction.engine import SettlementEngine

__all__ = [
    # History
    "Bid",
    "BidHistoryLog",
    "BidHistorySnapshot",
    # Ledger
    "BidLedger",
    "LedgerEntry",
    "restore_ledger",
    # State
    "AuctionPhase",
    "AuctionState",
    "BidOutcome",
    # Queries
    "AuctionInfo",
    "BidderBalance",
    "BidderBalances",
    "BidHistoryView",
    "WinnerInfo",
    # Engine
    "SettlementEngine",
]

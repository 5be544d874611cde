"""
Bid History - Append-only audit trail of accepted bids.

Bids are never edited or pruned once recorded. Queries return snapshots,
so iterating a snapshot is unaffected by later bids.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class Bid:
    """An accepted bid."""
    bidder: str
    amount: int
    timestamp: int


@dataclass(frozen=True)
class BidHistorySnapshot:
    """
    Full bid history as parallel sequences.

    Index i of each tuple describes the i-th accepted bid.
    """
    bidders: Tuple[str, ...]
    amounts: Tuple[int, ...]
    timestamps: Tuple[int, ...]

    def __len__(self) -> int:
        return len(self.bidders)


class BidHistoryLog:
    """Ordered record of every accepted bid."""

    def __init__(self, bids: Optional[List[Bid]] = None):
        self._bids: List[Bid] = list(bids or [])

    def append(self, bidder: str, amount: int, timestamp: int) -> Bid:
        """Record an accepted bid and return it."""
        bid = Bid(bidder=bidder, amount=amount, timestamp=timestamp)
        self._bids.append(bid)
        return bid

    def latest(self) -> Optional[Bid]:
        """Most recent bid, or None before the first bid."""
        return self._bids[-1] if self._bids else None

    def bids(self) -> Tuple[Bid, ...]:
        """All bids, oldest first."""
        return tuple(self._bids)

    def snapshot(self) -> BidHistorySnapshot:
        return BidHistorySnapshot(
            bidders=tuple(b.bidder for b in self._bids),
            amounts=tuple(b.amount for b in self._bids),
            timestamps=tuple(b.timestamp for b in self._bids),
        )

    def bids_by(self, bidder: str) -> Tuple[Bid, ...]:
        return tuple(b for b in self._bids if b.bidder == bidder)

    def __len__(self) -> int:
        return len(self._bids)

    def __iter__(self) -> Iterator[Bid]:
        return iter(tuple(self._bids))

    def __repr__(self) -> str:
        return f"BidHistoryLog(bids={len(self._bids)})"

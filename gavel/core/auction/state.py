"""
Auction State - Deadline, highest bid and end flag of one auction.

State machine:
    ACTIVE --accept_bid--> ACTIVE   (highest bid rises, deadline may extend)
    ACTIVE --end-->        ENDED    (terminal)

Rules:
- First bid needs amount > 0; later bids need
  amount >= highest + floor(highest * min_increment_percent / 100)
- A bid accepted with (current_deadline - now) <= extension_threshold
  pushes current_deadline forward by extension_amount
- Expiry is detected lazily: the auction stops taking bids once a call
  observes now >= current_deadline, even though `ended` is still False
  until someone finalizes
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from gavel.core.auction.history import Bid, BidHistoryLog
from gavel.core.auction.ledger import BidLedger
from gavel.core.config import AuctionConfig
from gavel.core.exceptions import (
    AuctionAlreadyEnded,
    AuctionNotActive,
    BidTooLow,
    ZeroBid,
)
from gavel.utils.logger import get_logger

logger = get_logger("auction")


class AuctionPhase(IntEnum):
    """Lifecycle phase of an auction."""
    ACTIVE = 0   # Accepting bids until the deadline
    ENDED = 1    # Finalized or emergency-ended; terminal


@dataclass
class BidOutcome:
    """Result of an accepted bid."""
    bid: Bid
    extended: bool
    current_deadline: int


@dataclass
class AuctionState:
    """
    The mutable record of a single auction.

    owner, beneficiary, original_deadline and description are fixed at
    creation. current_deadline only grows, highest_bid never decreases
    and ended flips to True once.
    """
    owner: str
    beneficiary: str
    original_deadline: int
    current_deadline: int
    description: str
    start_time: int = 0

    # Leader
    highest_bidder: Optional[str] = None
    highest_bid: int = 0

    # Settlement
    ended: bool = False
    winner_paid: bool = False   # Beneficiary received highest_bid
    extension_count: int = 0

    @property
    def phase(self) -> AuctionPhase:
        return AuctionPhase.ENDED if self.ended else AuctionPhase.ACTIVE

    # =========================================================================
    # Queries
    # =========================================================================

    def is_active(self, now: int) -> bool:
        """Whether bids are accepted at `now`."""
        return not self.ended and now < self.current_deadline

    def has_expired(self, now: int) -> bool:
        """Deadline passed, auction waiting to be finalized."""
        return not self.ended and now >= self.current_deadline

    def minimum_next_bid(self, config: AuctionConfig) -> int:
        """Smallest amount the next bid may carry."""
        if self.highest_bid == 0:
            return 1
        return self.highest_bid + config.min_increment(self.highest_bid)

    def time_remaining(self, now: int) -> int:
        """Seconds until the deadline; 0 once ended or expired."""
        if not self.is_active(now):
            return 0
        return self.current_deadline - now

    # =========================================================================
    # Transitions
    # =========================================================================

    def accept_bid(
        self,
        bidder: str,
        amount: int,
        now: int,
        ledger: BidLedger,
        history: BidHistoryLog,
        config: AuctionConfig,
    ) -> BidOutcome:
        """
        Validate and apply a bid.

        All checks run before anything is written, so a rejected bid leaves
        the ledger, history and state untouched.

        Raises:
            AuctionNotActive: ended, or deadline reached
            ZeroBid: amount is 0
            BidTooLow: amount misses the minimum increment
        """
        if self.ended:
            raise AuctionNotActive("Auction has ended", {"bidder": bidder})
        if now >= self.current_deadline:
            raise AuctionNotActive(
                "Bidding closed at deadline",
                {"now": now, "deadline": self.current_deadline},
            )
        if amount <= 0:
            raise ZeroBid("Bid must carry a positive amount", {"bidder": bidder})

        if self.highest_bid > 0:
            minimum = self.minimum_next_bid(config)
            if amount < minimum:
                raise BidTooLow(
                    f"Bid must be at least {minimum}",
                    {"amount": amount, "highest_bid": self.highest_bid, "minimum": minimum},
                )

        # (a) deposit, (b) leader, (c) history, (d) anti-sniping extension
        ledger.record_deposit(bidder, amount)
        self.highest_bidder = bidder
        self.highest_bid = amount
        bid = history.append(bidder, amount, now)

        extended = False
        if self.current_deadline - now <= config.extension_threshold:
            self.current_deadline += config.extension_amount
            self.extension_count += 1
            extended = True
            logger.info(f"Deadline extended to {self.current_deadline} (extension #{self.extension_count})")

        logger.info(f"Bid accepted: {bidder} bid {amount} at {now}")
        return BidOutcome(bid=bid, extended=extended, current_deadline=self.current_deadline)

    def end(self) -> None:
        """ACTIVE -> ENDED."""
        if self.ended:
            raise AuctionAlreadyEnded("Auction already ended")
        self.ended = True

    def _revert_end(self) -> None:
        """Undo end() when the payout that accompanied it failed."""
        self.ended = False

"""
Query models - Read-only views of an auction returned by the engine.

Plain pydantic models so callers (and the CLI) can dump them as JSON.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class QueryModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class WinnerInfo(QueryModel):
    """Current leader and whether the auction is over."""
    winner: Optional[str] = None
    amount: int = 0
    ended: bool = False


class BidderBalance(QueryModel):
    bidder: str
    balance: int = Field(ge=0)


class BidderBalances(QueryModel):
    """Every registered bidder with their current ledger balance."""
    bidders: List[BidderBalance] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(b.balance for b in self.bidders)


class BidHistoryView(QueryModel):
    bidders: List[str] = Field(default_factory=list)
    amounts: List[int] = Field(default_factory=list)
    timestamps: List[int] = Field(default_factory=list)


class AuctionInfo(QueryModel):
    """Auction metadata."""
    description: str
    owner: str
    beneficiary: str
    original_deadline: int
    current_deadline: int
    active: bool
    ended: bool
    bidder_count: int
    bid_count: int
    extension_count: int = 0

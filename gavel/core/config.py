"""
Auction configuration parameters for Gavel.

Defines the economic rules (increment, commission), the anti-sniping
window and the recovery grace period. All percentages are applied with
integer floor arithmetic.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = "GAVEL_"

MINUTE = 60
DAY = 24 * 60 * MINUTE


@dataclass
class AuctionConfig:
    """Per-auction configuration parameters"""

    # Bidding rules
    min_increment_percent: int = 5  # New bid must clear highest + 5%
    extension_threshold: int = 10 * MINUTE  # Bids this close to the deadline extend it
    extension_amount: int = 10 * MINUTE  # Seconds added per extension

    # Settlement
    commission_percent: int = 2  # Cut of each losing bidder's refund
    grace_period: int = 30 * DAY  # Delay before the owner's emergency sweep

    # Paths
    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")

    def __post_init__(self):
        """Coerce paths and reject nonsensical rules"""
        self.data_dir = Path(self.data_dir)
        self.log_dir = Path(self.log_dir)

        if not 0 <= self.min_increment_percent <= 100:
            raise ValueError(f"min_increment_percent must be 0-100, got {self.min_increment_percent}")
        if not 0 <= self.commission_percent <= 100:
            raise ValueError(f"commission_percent must be 0-100, got {self.commission_percent}")
        for name in ("extension_threshold", "extension_amount", "grace_period"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")

    def min_increment(self, highest_bid: int) -> int:
        """Increment a bid must add over the current highest bid."""
        return highest_bid * self.min_increment_percent // 100

    def commission_on(self, amount: int) -> int:
        """Commission withheld from a refund of `amount`."""
        return amount * self.commission_percent // 100


# Global config instance (can be overridden)
config = AuctionConfig()


def load_config(env_file: Optional[str] = None) -> AuctionConfig:
    """
    Load configuration from the environment, optionally seeded by a .env file.

    Every field can be overridden with a GAVEL_<FIELD> variable, e.g.
    GAVEL_COMMISSION_PERCENT=3.

    Args:
        env_file: Optional path to a .env file

    Returns:
        AuctionConfig instance
    """
    if env_file:
        load_dotenv(env_file, override=False)

    overrides = {}
    for f in fields(AuctionConfig):
        raw = os.environ.get(ENV_PREFIX + f.name.upper())
        if raw is None:
            continue
        if f.type is Path or f.name.endswith("_dir"):
            overrides[f.name] = Path(raw)
        else:
            try:
                overrides[f.name] = int(raw)
            except ValueError:
                raise ValueError(f"{ENV_PREFIX}{f.name.upper()} must be an integer, got {raw!r}")

    return AuctionConfig(**overrides)

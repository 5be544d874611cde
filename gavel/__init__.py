"""
Gavel - English auction settlement engine.

Settles a single open auction from creation to final fund sweep:
- Bid acceptance with a minimum increment rule
- Anti-sniping deadline extension
- Per-bidder withdrawable balances
- Beneficiary payout and commissioned refunds
"""

__version__ = "0.1.0"

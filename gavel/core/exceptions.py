"""
Gavel Exception Hierarchy

Every rejected operation raises a subclass of GavelError and leaves the
auction untouched. `details` carries the values that caused the rejection.
"""


class GavelError(Exception):
    """Base exception for all Gavel errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class Unauthorized(GavelError):
    """Raised when a privileged operation is called by someone other than the owner"""
    pass


class InvalidConstructorArgument(GavelError):
    """Raised when an auction is created with a bad duration, beneficiary or description"""
    pass


class AuctionNotActive(GavelError):
    """Raised when the operation needs a different phase of the auction"""
    pass


class AuctionStillRunning(AuctionNotActive):
    """Raised when finalizing before the deadline has passed"""
    pass


class AuctionAlreadyEnded(GavelError):
    """Raised when ending an auction a second time"""
    pass


class ZeroBid(GavelError):
    """Raised when a bid carries no value"""
    pass


class BidTooLow(GavelError):
    """Raised when a bid does not clear the minimum increment"""
    pass


class NoFundsAvailable(GavelError):
    """Raised when there is nothing to withdraw"""
    pass


class WinnerCannotWithdraw(GavelError):
    """Raised when the winning bidder asks for a refund"""
    pass


class InsufficientBalance(GavelError):
    """Raised when a ledger debit exceeds the bidder's balance"""
    pass


class TransferFailed(GavelError):
    """Raised when the transfer gateway reports a failed payment"""
    pass


class GracePeriodNotElapsed(GavelError):
    """Raised when the emergency sweep is attempted too early"""
    pass


class DirectDepositRejected(GavelError):
    """Raised when value is sent outside the bid entry point"""
    pass


class AuctionAlreadyStored(GavelError):
    """Raised when a new auction is created in storage that already holds one"""
    pass


class PersistenceError(GavelError):
    """Raised when an operation could not be written to storage"""
    pass

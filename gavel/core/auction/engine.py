"""
Settlement Engine - Entry points of a single English auction.

Conceptual Background:
---------------------
The engine owns one AuctionState, one BidLedger and one BidHistoryLog and
is the only code that moves value out of custody, through a
TransferGateway.

Operation Discipline:
--------------------
Every mutating operation runs in three phases:

1. Check: validate caller, phase and amounts. Failures raise before
   anything changes.
2. Commit: update ledger, state and counters, then issue a TransferPermit
   for each payment.
3. Interact: hand the permits to the gateway. A failed transfer reverts
   the commit and raises TransferFailed.

With a StorageManager attached, every operation is written after it
completes. A bid or emergency end that cannot be stored is rolled back and
raises PersistenceError. Operations that already moved funds keep their
in-memory result and raise PersistenceError for the caller to handle.

Because commits precede transfers, a gateway callback that re-enters the
engine sees the post-operation state and cannot withdraw or finalize twice.

Value Accounting:
----------------
    held = sum(ledger balances) + commission_unclaimed
    held + paid_to_beneficiary + refunded + commission_collected
        + swept == total_deposited
"""

import copy
from typing import Dict, List, Optional, Tuple

from gavel.core.auction.history import Bid, BidHistoryLog
from gavel.core.auction.ledger import BidLedger, restore_ledger
from gavel.core.auction.models import (
    AuctionInfo,
    BidderBalance,
    BidderBalances,
    BidHistoryView,
    WinnerInfo,
)
from gavel.core.auction.state import AuctionState
from gavel.core.clock import Clock
from gavel.core.config import AuctionConfig
from gavel.core.events import (
    AuctionFinalized,
    BidPlaced,
    CommissionWithdrawn,
    DeadlineExtended,
    EmergencyEnded,
    EmergencyWithdrawal,
    EventEmitter,
    RefundIssued,
)
from gavel.core.exceptions import (
    AuctionAlreadyEnded,
    AuctionAlreadyStored,
    AuctionNotActive,
    AuctionStillRunning,
    DirectDepositRejected,
    GracePeriodNotElapsed,
    InvalidConstructorArgument,
    NoFundsAvailable,
    PersistenceError,
    TransferFailed,
    Unauthorized,
    WinnerCannotWithdraw,
)
from gavel.core.gateway import TransferGateway, TransferPermit, execute_transfer
from gavel.core.storage.storage_manager import StorageManager
from gavel.utils.logger import get_logger
from gavel.utils.validation import (
    validate_amount,
    validate_description,
    validate_duration,
    validate_identity,
)

logger = get_logger("settlement")


class SettlementEngine:
    """
    One auction from creation to final fund sweep.

    Attributes:
        state: Deadline, leader and end flag
        ledger: Per-bidder balances
        history: Accepted bids
        held: Value currently in the engine's custody
        commission_unclaimed: Commission kept in custody, owed to the owner
        commission_earned: Commission withheld from all refunds so far
    """

    def __init__(
        self,
        owner: str,
        beneficiary: str,
        duration: int,
        description: str,
        clock: Clock,
        gateway: TransferGateway,
        config: Optional[AuctionConfig] = None,
        storage_manager: Optional[StorageManager] = None,
        emitter: Optional[EventEmitter] = None,
    ):
        """
        Create an auction owned by `owner` that closes `duration` seconds from now.

        Raises:
            InvalidConstructorArgument: bad owner, beneficiary, duration or description
            AuctionAlreadyStored: storage_manager already holds an auction
        """
        for check in (
            validate_identity(owner, "owner"),
            validate_identity(beneficiary, "beneficiary"),
            validate_duration(duration),
            validate_description(description),
        ):
            is_valid, error = check
            if not is_valid:
                raise InvalidConstructorArgument(error)

        if storage_manager is not None and storage_manager.has_auction():
            raise AuctionAlreadyStored(
                "Storage already holds an auction; restore it or clear it first",
                {"db": str(storage_manager.db_path)},
            )

        now = clock.now()
        state = AuctionState(
            owner=owner,
            beneficiary=beneficiary,
            original_deadline=now + duration,
            current_deadline=now + duration,
            description=description,
            start_time=now,
        )
        self._attach(state, BidLedger(), BidHistoryLog(), clock, gateway, config, storage_manager, emitter)
        self._persist()

        logger.info(
            f"Auction created by {owner} for {beneficiary}: '{description}', "
            f"deadline {state.current_deadline}"
        )

    def _attach(
        self,
        state: AuctionState,
        ledger: BidLedger,
        history: BidHistoryLog,
        clock: Clock,
        gateway: TransferGateway,
        config: Optional[AuctionConfig],
        storage_manager: Optional[StorageManager],
        emitter: Optional[EventEmitter],
    ) -> None:
        self.state = state
        self.ledger = ledger
        self.history = history
        self.clock = clock
        self.gateway = gateway
        self.config = config or AuctionConfig()
        self.storage_manager = storage_manager
        self.events = emitter or EventEmitter()

        # Custody and settlement counters
        self.held = ledger.total_balance()
        self.commission_unclaimed = 0
        self.commission_earned = 0
        self.commission_collected = 0
        self.paid_to_beneficiary = 0
        self.refunded = 0
        self.swept = 0

    # =========================================================================
    # Bidding
    # =========================================================================

    def bid(self, caller: str, amount: int) -> Bid:
        """
        Place a bid carrying `amount` value units.

        Raises:
            AuctionNotActive, ZeroBid, BidTooLow
            PersistenceError: the bid could not be stored; nothing changed
        """
        self._require_identity(caller)
        is_valid, error = validate_amount(amount)
        if not is_valid:
            raise ValueError(error)

        now = self.clock.now()
        checkpoint = self._checkpoint()
        outcome = self.state.accept_bid(caller, amount, now, self.ledger, self.history, self.config)
        self.held += amount

        try:
            self._persist(new_bid=outcome.bid)
        except PersistenceError:
            self._rollback(checkpoint)
            raise

        self.events.emit(BidPlaced(bidder=caller, amount=amount, timestamp=now))
        if outcome.extended:
            self.events.emit(DeadlineExtended(new_deadline=outcome.current_deadline))

        return outcome.bid

    def deposit(self, caller: str, amount: int) -> None:
        """Value only enters through bid(); anything else is refused."""
        logger.warning(f"Rejected direct deposit of {amount} from {caller}")
        raise DirectDepositRejected(
            "Direct deposits are not accepted; use bid()",
            {"caller": caller, "amount": amount},
        )

    # =========================================================================
    # Ending
    # =========================================================================

    def finalize(self, caller: str, manual: bool = False) -> Tuple[Optional[str], int]:
        """
        End the auction and pay the highest bid to the beneficiary.

        Anyone may finalize once the deadline has passed; the owner may
        finalize early by passing manual=True. If the payout fails the
        auction stays open for a retry.

        Returns:
            (winner, winning_amount)

        Raises:
            AuctionAlreadyEnded, AuctionStillRunning, Unauthorized, TransferFailed
        """
        now = self.clock.now()
        if self.state.ended:
            raise AuctionAlreadyEnded("Auction already ended")

        if now < self.state.current_deadline:
            if not manual:
                raise AuctionStillRunning(
                    "Auction has not reached its deadline",
                    {"now": now, "deadline": self.state.current_deadline},
                )
            self._require_owner(caller, "finalize early")

        winner = self.state.highest_bidder
        amount = self.state.highest_bid

        # Commit
        self.state.end()
        permit = None
        if winner is not None:
            self.ledger.debit(winner, amount)
            self.state.winner_paid = True
            self.paid_to_beneficiary += amount
            permit = self._issue_permit(self.state.beneficiary, amount, "beneficiary payout")

        # Interact
        if permit is not None and not self._pay(permit):
            self.paid_to_beneficiary -= amount
            self.state.winner_paid = False
            self.ledger.credit_back(winner, amount)
            self.state._revert_end()
            raise TransferFailed(
                "Payout to beneficiary failed; auction left open",
                {"beneficiary": self.state.beneficiary, "amount": amount},
            )

        self._persist()
        logger.info(f"Auction finalized: winner={winner}, amount={amount}")
        self.events.emit(AuctionFinalized(winner=winner, amount=amount))
        return winner, amount

    def emergency_end(self, caller: str) -> None:
        """
        Owner-only: end the auction immediately without moving funds.

        Raises:
            Unauthorized, AuctionAlreadyEnded
        """
        self._require_owner(caller, "emergency end")
        if self.state.ended:
            raise AuctionAlreadyEnded("Auction already ended")

        self.state.end()
        try:
            self._persist()
        except PersistenceError:
            self.state._revert_end()
            raise

        logger.warning(f"Auction emergency-ended by {caller}")
        self.events.emit(EmergencyEnded(caller=caller))

    # =========================================================================
    # Withdrawals
    # =========================================================================

    def withdraw(self, caller: str) -> int:
        """
        Refund a non-winning bidder after the auction ended, minus commission.

        Both legs are booked before either transfer is attempted. The net
        amount goes to the caller first, then the commission to the owner.
        If the refund fails, nothing changes. If only the commission leg
        fails, the refund stands: TransferFailed is raised with
        details["refunded"] set to the net amount already paid, and the
        commission stays in custody for withdraw_commissions().

        Returns:
            Net amount paid to the caller

        Raises:
            AuctionNotActive, WinnerCannotWithdraw, NoFundsAvailable, TransferFailed
        """
        self._require_identity(caller)
        if not self.state.ended:
            raise AuctionNotActive("Refunds open once the auction has ended")
        if caller == self.state.highest_bidder:
            raise WinnerCannotWithdraw("The winning bidder cannot withdraw", {"caller": caller})

        amount = self.ledger.balance_of(caller)
        if amount == 0:
            raise NoFundsAvailable("No funds to withdraw", {"caller": caller})

        commission = self.config.commission_on(amount)
        net = amount - commission

        # Commit both legs
        self.ledger.debit(caller, amount)
        self.refunded += net
        self.commission_earned += commission
        self.commission_collected += commission
        refund_permit = self._issue_permit(caller, net, "refund")
        commission_permit = self._issue_permit(self.state.owner, commission, "commission")

        # Interact: refund
        if not self._pay(refund_permit):
            self._cancel(commission_permit)
            self.commission_collected -= commission
            self.commission_earned -= commission
            self.refunded -= net
            self.ledger.credit_back(caller, amount)
            raise TransferFailed("Refund transfer failed", {"recipient": caller, "amount": net})

        logger.info(f"Refunded {net} to {caller} (commission {commission})")
        self.events.emit(RefundIssued(recipient=caller, amount=net))

        # Interact: commission (a zero permit never reaches the gateway)
        if not self._pay(commission_permit):
            self.commission_collected -= commission
            self.commission_unclaimed += commission
            self._persist()
            raise TransferFailed(
                "Commission transfer to owner failed; commission held for withdraw_commissions",
                {"owner": self.state.owner, "amount": commission, "refunded": net},
            )

        self._persist()
        return net

    def withdraw_excess(self, caller: str) -> int:
        """
        Withdraw whatever the caller is not currently required to lock up.

        No commission applies on this path.

        Raises:
            NoFundsAvailable, TransferFailed
        """
        self._require_identity(caller)
        now = self.clock.now()

        amount = self.ledger.withdrawable_excess(caller, self.state, now)
        if amount == 0:
            raise NoFundsAvailable("Nothing withdrawable", {"caller": caller})

        self.ledger.debit(caller, amount)
        self.refunded += amount
        permit = self._issue_permit(caller, amount, "excess withdrawal")

        if not self._pay(permit):
            self.refunded -= amount
            self.ledger.credit_back(caller, amount)
            raise TransferFailed("Excess withdrawal failed", {"recipient": caller, "amount": amount})

        self._persist()
        logger.info(f"Excess withdrawal: {amount} to {caller}")
        self.events.emit(RefundIssued(recipient=caller, amount=amount))
        return amount

    def withdraw_commissions(self, caller: str) -> int:
        """
        Owner-only: collect commission still held in custody.

        Raises:
            Unauthorized, AuctionNotActive, NoFundsAvailable, TransferFailed
        """
        self._require_owner(caller, "withdraw commissions")
        if not self.state.ended:
            raise AuctionNotActive("Commissions can be collected once the auction has ended")

        # Held value not owed to any bidder is commission
        residual = self.held - self.ledger.total_balance()
        if residual != self.commission_unclaimed:
            logger.error(
                f"Commission reconciliation mismatch: residual={residual}, "
                f"counter={self.commission_unclaimed}"
            )

        amount = self.commission_unclaimed
        if amount <= 0:
            raise NoFundsAvailable("No commission to collect")

        self.commission_unclaimed = 0
        self.commission_collected += amount
        permit = self._issue_permit(self.state.owner, amount, "commission")

        if not self._pay(permit):
            self.commission_collected -= amount
            self.commission_unclaimed = amount
            raise TransferFailed("Commission transfer failed", {"owner": self.state.owner, "amount": amount})

        self._persist()
        logger.info(f"Owner collected {amount} commission")
        self.events.emit(CommissionWithdrawn(owner=caller, amount=amount))
        return amount

    def emergency_withdraw(self, caller: str) -> int:
        """
        Owner-only last resort: sweep every unit still held to the owner.

        Allowed only after the auction ended and strictly after
        current_deadline + grace_period. Outstanding balances are zeroed.

        Raises:
            Unauthorized, AuctionNotActive, GracePeriodNotElapsed,
            NoFundsAvailable, TransferFailed
        """
        self._require_owner(caller, "emergency withdraw")
        if not self.state.ended:
            raise AuctionNotActive("Emergency withdrawal requires an ended auction")

        now = self.clock.now()
        unlock_at = self.state.current_deadline + self.config.grace_period
        if now <= unlock_at:
            raise GracePeriodNotElapsed(
                "Grace period has not elapsed",
                {"now": now, "available_after": unlock_at},
            )

        amount = self.held
        if amount == 0:
            raise NoFundsAvailable("Nothing held")

        # Commit: zero every balance and the commission counter
        cleared: List[Tuple[str, int]] = []
        for entry in self.ledger:
            if entry.balance > 0:
                cleared.append((entry.bidder, entry.balance))
                self.ledger.debit(entry.bidder, entry.balance)
        unclaimed = self.commission_unclaimed
        self.commission_unclaimed = 0
        self.swept += amount
        permit = self._issue_permit(self.state.owner, amount, "emergency sweep")

        if not self._pay(permit):
            self.swept -= amount
            self.commission_unclaimed = unclaimed
            for bidder, balance in cleared:
                self.ledger.credit_back(bidder, balance)
            raise TransferFailed("Emergency sweep failed", {"owner": self.state.owner, "amount": amount})

        self._persist()
        logger.warning(f"Emergency sweep of {amount} to owner {caller}")
        self.events.emit(EmergencyWithdrawal(owner=caller, amount=amount))
        return amount

    # =========================================================================
    # Queries
    # =========================================================================

    def get_winner(self) -> Tuple[Optional[str], int]:
        """(highest bidder, highest bid)."""
        return self.state.highest_bidder, self.state.highest_bid

    def get_winner_info(self) -> WinnerInfo:
        return WinnerInfo(
            winner=self.state.highest_bidder,
            amount=self.state.highest_bid,
            ended=self.state.ended,
        )

    def get_all_bidders(self) -> BidderBalances:
        return BidderBalances(
            bidders=[BidderBalance(bidder=e.bidder, balance=e.balance) for e in self.ledger]
        )

    def get_bid_history(self) -> BidHistoryView:
        snapshot = self.history.snapshot()
        return BidHistoryView(
            bidders=list(snapshot.bidders),
            amounts=list(snapshot.amounts),
            timestamps=list(snapshot.timestamps),
        )

    def get_auction_info(self) -> AuctionInfo:
        now = self.clock.now()
        return AuctionInfo(
            description=self.state.description,
            owner=self.state.owner,
            beneficiary=self.state.beneficiary,
            original_deadline=self.state.original_deadline,
            current_deadline=self.state.current_deadline,
            active=self.state.is_active(now),
            ended=self.state.ended,
            bidder_count=len(self.ledger),
            bid_count=len(self.history),
            extension_count=self.state.extension_count,
        )

    def get_minimum_bid(self) -> int:
        return self.state.minimum_next_bid(self.config)

    def get_time_remaining(self) -> int:
        return self.state.time_remaining(self.clock.now())

    def pending_balance(self, identity: str) -> int:
        """Ledger balance of `identity`."""
        return self.ledger.balance_of(identity)

    def withdrawable_amount(self, identity: str) -> int:
        """What `identity` could take out through withdraw_excess() right now."""
        return self.ledger.withdrawable_excess(identity, self.state, self.clock.now())

    def contract_balance(self) -> int:
        """Total value currently held."""
        return self.held

    @property
    def total_paid_out(self) -> int:
        return self.paid_to_beneficiary + self.refunded + self.commission_collected + self.swept

    def stats(self) -> dict:
        """Settlement statistics."""
        return {
            "held": self.held,
            "total_deposited": self.ledger.total_deposited,
            "outstanding_balances": self.ledger.total_balance(),
            "paid_to_beneficiary": self.paid_to_beneficiary,
            "refunded": self.refunded,
            "commission_earned": self.commission_earned,
            "commission_collected": self.commission_collected,
            "commission_unclaimed": self.commission_unclaimed,
            "swept": self.swept,
        }

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_owner(self, caller: str, action: str) -> None:
        if caller != self.state.owner:
            logger.warning(f"Unauthorized {action} attempt by {caller}")
            raise Unauthorized(f"Only the owner may {action}", {"caller": caller})

    def _require_identity(self, caller: str) -> None:
        is_valid, error = validate_identity(caller, "caller")
        if not is_valid:
            raise ValueError(error)

    def _issue_permit(self, recipient: str, amount: int, reason: str) -> TransferPermit:
        """Reserve `amount` of held value for a payment. Call after committing."""
        self.held -= amount
        return TransferPermit(recipient=recipient, amount=amount, reason=reason, issuer=id(self))

    def _pay(self, permit: TransferPermit) -> bool:
        """Send a permit through the gateway; on failure the reservation is released."""
        if permit.issuer != id(self):
            raise RuntimeError(f"Permit for {permit.reason} was not issued by this engine")

        ok = execute_transfer(self.gateway, permit)
        if not ok:
            self.held += permit.amount
        return ok

    def _cancel(self, permit: TransferPermit) -> None:
        """Void an unsent permit and release its reservation."""
        permit.consume()
        self.held += permit.amount

    def _checkpoint(self):
        """Copy of everything a bid mutates, taken only when a store is attached."""
        if not self.storage_manager:
            return None
        return copy.deepcopy((self.state, self.ledger, self.history)), self.held

    def _rollback(self, checkpoint) -> None:
        if checkpoint is None:
            return
        (self.state, self.ledger, self.history), self.held = checkpoint
        logger.warning("Bid rolled back after a storage failure")

    # =========================================================================
    # Persistence
    # =========================================================================

    def _record(self) -> Dict[str, object]:
        s = self.state
        return {
            "owner": s.owner,
            "beneficiary": s.beneficiary,
            "description": s.description,
            "start_time": s.start_time,
            "original_deadline": s.original_deadline,
            "current_deadline": s.current_deadline,
            "highest_bidder": s.highest_bidder,
            "highest_bid": str(s.highest_bid),
            "ended": s.ended,
            "winner_paid": s.winner_paid,
            "extension_count": s.extension_count,
            "held": str(self.held),
            "total_deposited": str(self.ledger.total_deposited),
            "commission_unclaimed": str(self.commission_unclaimed),
            "commission_earned": str(self.commission_earned),
            "commission_collected": str(self.commission_collected),
            "paid_to_beneficiary": str(self.paid_to_beneficiary),
            "refunded": str(self.refunded),
            "swept": str(self.swept),
            "config": {
                "min_increment_percent": self.config.min_increment_percent,
                "extension_threshold": self.config.extension_threshold,
                "extension_amount": self.config.extension_amount,
                "commission_percent": self.config.commission_percent,
                "grace_period": self.config.grace_period,
            },
        }

    def _persist(self, new_bid: Optional[Bid] = None) -> None:
        if not self.storage_manager:
            return

        entries = [
            (position, e.bidder, e.deposited, e.withdrawn)
            for position, e in enumerate(self.ledger)
        ]
        bid_row = None
        if new_bid is not None:
            bid_row = (len(self.history) - 1, new_bid.bidder, new_bid.amount, new_bid.timestamp)

        self.storage_manager.save_update(self._record(), entries, bid_row)

    @classmethod
    def restore(
        cls,
        storage_manager: StorageManager,
        clock: Clock,
        gateway: TransferGateway,
        config: Optional[AuctionConfig] = None,
        emitter: Optional[EventEmitter] = None,
    ) -> "SettlementEngine":
        """
        Reload a persisted auction.

        Uses the stored auction rules unless `config` is given.

        Raises:
            LookupError: storage holds no auction
        """
        loaded = storage_manager.load_auction()
        if loaded is None:
            raise LookupError(f"No auction stored at {storage_manager.db_path}")

        record, ledger_rows, bid_rows = loaded

        state = AuctionState(
            owner=record["owner"],
            beneficiary=record["beneficiary"],
            original_deadline=record["original_deadline"],
            current_deadline=record["current_deadline"],
            description=record["description"],
            start_time=record["start_time"],
            highest_bidder=record["highest_bidder"],
            highest_bid=int(record["highest_bid"]),
            ended=record["ended"],
            winner_paid=record["winner_paid"],
            extension_count=record["extension_count"],
        )
        ledger = restore_ledger(ledger_rows, int(record["total_deposited"]))
        history = BidHistoryLog([Bid(bidder, amount, ts) for bidder, amount, ts in bid_rows])

        if config is None:
            config = AuctionConfig(**record["config"])

        engine = cls.__new__(cls)
        engine._attach(state, ledger, history, clock, gateway, config, storage_manager, emitter)
        engine.held = int(record["held"])
        engine.commission_unclaimed = int(record["commission_unclaimed"])
        engine.commission_earned = int(record["commission_earned"])
        engine.commission_collected = int(record["commission_collected"])
        engine.paid_to_beneficiary = int(record["paid_to_beneficiary"])
        engine.refunded = int(record["refunded"])
        engine.swept = int(record["swept"])

        logger.info(f"Restored auction '{state.description}' with {len(history)} bids")
        return engine

    def __repr__(self) -> str:
        return (
            f"SettlementEngine(leader={self.state.highest_bidder}, highest={self.state.highest_bid}, "
            f"ended={self.state.ended}, held={self.held})"
        )

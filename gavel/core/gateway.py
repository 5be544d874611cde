"""
Transfer Gateway - Moves value out of the engine's custody.

A gateway transfer either fully succeeds or fully fails and reports which
synchronously. The engine only reaches the gateway through a
TransferPermit, which it issues after the operation's bookkeeping has
been committed, so a callback that re-enters the engine during a transfer
already sees the updated ledger.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol, Set, runtime_checkable

from gavel.utils.logger import get_logger

logger = get_logger("gateway")


@runtime_checkable
class TransferGateway(Protocol):
    """Pays `amount` value units to `recipient`. Returns True on success."""

    def transfer(self, recipient: str, amount: int) -> bool:
        ...


# =============================================================================
# Permits
# =============================================================================


@dataclass
class TransferPermit:
    """
    One-shot authorization to pay out committed funds.

    Issued by the engine once the ledger/state change backing the payment
    is in place; consumed by exactly one gateway call.
    """
    recipient: str
    amount: int
    reason: str
    issuer: int = 0  # id() of the issuing engine
    spent: bool = field(default=False, compare=False)

    def consume(self) -> None:
        """Mark the permit used. A permit cannot pay twice."""
        if self.spent:
            raise RuntimeError(f"Transfer permit for {self.reason} already used")
        self.spent = True


def execute_transfer(gateway: TransferGateway, permit: TransferPermit) -> bool:
    """
    Perform the payment a permit authorizes.

    Returns:
        Gateway result. Gateway exceptions count as a failed transfer.
    """
    permit.consume()

    if permit.amount == 0:
        return True

    try:
        ok = bool(gateway.transfer(permit.recipient, permit.amount))
    except Exception as exc:
        logger.error(f"Gateway raised during {permit.reason} to {permit.recipient}: {exc}")
        return False

    if not ok:
        logger.error(f"Transfer failed: {permit.reason} of {permit.amount} to {permit.recipient}")
    return ok


# =============================================================================
# In-memory gateway
# =============================================================================


@dataclass
class TransferRecord:
    """A completed in-memory transfer."""
    recipient: str
    amount: int


class InMemoryGateway:
    """
    Reference gateway keeping balances in a dict.

    Recipients in `failing` have their transfers rejected. `on_transfer`
    runs before each transfer completes and may call back into the engine.
    """

    def __init__(
        self,
        failing: Optional[Set[str]] = None,
        on_transfer: Optional[Callable[[str, int], None]] = None,
    ):
        self.failing: Set[str] = set(failing or ())
        self.on_transfer = on_transfer
        self.balances: Dict[str, int] = {}
        self.history: List[TransferRecord] = []
        self.attempts = 0

    def transfer(self, recipient: str, amount: int) -> bool:
        self.attempts += 1

        if recipient in self.failing:
            return False

        if self.on_transfer is not None:
            self.on_transfer(recipient, amount)

        self.balances[recipient] = self.balances.get(recipient, 0) + amount
        self.history.append(TransferRecord(recipient, amount))
        return True

    def received(self, recipient: str) -> int:
        """Total value paid to `recipient` so far."""
        return self.balances.get(recipient, 0)

    @property
    def total_paid(self) -> int:
        return sum(self.balances.values())

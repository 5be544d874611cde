"""
Events - Notifications emitted by the auction engine.

Observers are read-only. An observer that raises is logged and skipped;
the engine never blocks on, or retries, a notification.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Type

from gavel.utils.logger import get_logger

logger = get_logger("events")


@dataclass(frozen=True)
class AuctionEvent:
    """Base class for engine notifications."""


@dataclass(frozen=True)
class BidPlaced(AuctionEvent):
    bidder: str
    amount: int
    timestamp: int


@dataclass(frozen=True)
class DeadlineExtended(AuctionEvent):
    new_deadline: int


@dataclass(frozen=True)
class AuctionFinalized(AuctionEvent):
    winner: Optional[str]
    amount: int


@dataclass(frozen=True)
class RefundIssued(AuctionEvent):
    recipient: str
    amount: int


@dataclass(frozen=True)
class CommissionWithdrawn(AuctionEvent):
    owner: str
    amount: int


@dataclass(frozen=True)
class EmergencyEnded(AuctionEvent):
    caller: str


@dataclass(frozen=True)
class EmergencyWithdrawal(AuctionEvent):
    owner: str
    amount: int


Observer = Callable[[AuctionEvent], None]


class EventEmitter:
    """Fan-out of engine events to subscribed observers."""

    def __init__(self):
        self._observers: List[tuple] = []  # (observer, event type filter)

    def subscribe(
        self,
        observer: Observer,
        event_type: Type[AuctionEvent] = AuctionEvent,
    ) -> None:
        """Register `observer` for events of `event_type` (default: all)."""
        self._observers.append((observer, event_type))

    def unsubscribe(self, observer: Observer) -> None:
        self._observers = [(o, t) for o, t in self._observers if o is not observer]

    def emit(self, event: AuctionEvent) -> None:
        logger.debug(f"Emit {event}")
        for observer, event_type in list(self._observers):
            if not isinstance(event, event_type):
                continue
            try:
                observer(event)
            except Exception:
                logger.exception(f"Observer {observer!r} failed on {type(event).__name__}")


class EventRecorder:
    """Observer that keeps every event it sees, in order."""

    def __init__(self):
        self.events: List[AuctionEvent] = []

    def __call__(self, event: AuctionEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: Type[AuctionEvent]) -> List[AuctionEvent]:
        return [e for e in self.events if isinstance(e, event_type)]

"""Table events: the notification sink between the engine and its observers."""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of table events."""

    # Table lifecycle
    TABLE_STARTED = auto()
    TABLE_STOPPED = auto()
    ROUND_STARTED = auto()
    ROUND_ENDED = auto()

    # Seats
    PLAYER_JOINED = auto()
    PLAYER_LEFT = auto()
    PLAYER_REMOVED = auto()

    # Betting
    BETTING_OPENED = auto()
    BETTING_CLOSED = auto()
    BET_PLACED = auto()
    BET_REFUNDED = auto()
    AUTOBET_PLACED = auto()
    AUTOBET_CANCELLED = auto()
    PLAYER_SAT_OUT = auto()

    # Cards
    CARD_DEALT = auto()
    SHOE_SHUFFLED = auto()

    # Turns
    TURN_STARTED = auto()
    TURN_TIMED_OUT = auto()
    PLAYER_HIT = auto()
    PLAYER_STAND = auto()
    PLAYER_DOUBLE = auto()
    PLAYER_SPLIT = auto()
    PLAYER_BLACKJACK = auto()
    PLAYER_BUSTS = auto()

    # Insurance
    INSURANCE_TAKEN = auto()
    INSURANCE_WINS = auto()
    INSURANCE_LOSES = auto()

    # Dealer
    DEALER_REVEALS = auto()
    DEALER_HITS = auto()
    DEALER_STANDS = auto()
    DEALER_BUSTS = auto()

    # Settlement
    PLAYER_WINS = auto()
    PLAYER_LOSES = auto()
    PUSH = auto()

    # Rebuy
    REBUY_OFFERED = auto()
    REBUY_COMPLETED = auto()
    REBUY_EXPIRED = auto()

    # Probability feed
    PROBABILITY_UPDATED = auto()


@dataclass(frozen=True)
class GameEvent:
    """
    Immutable table event.

    Events are the primary communication mechanism between the engine and
    whatever renders the table.
    """

    event_type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"{self.event_type.name}: {self.data}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.name,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


# Type alias for event handlers
EventHandler = Callable[[GameEvent], None]


class EventEmitter:
    """
    Fire-and-forget event emitter.

    Allows subscribing to specific event types or all events. A failing
    handler is logged and never interrupts the engine. History is capped
    at ``max_history`` entries (the dealer timeline).
    """

    def __init__(self, max_history: int = 30) -> None:
        """Initialize the event emitter."""
        self._handlers: dict[EventType | None, list[EventHandler]] = {}
        self._event_history: deque[GameEvent] = deque(maxlen=max_history)

    def subscribe(
        self,
        handler: EventHandler,
        event_type: EventType | None = None,
    ) -> None:
        """
        Subscribe to events.

        Args:
            handler: Function to call when event occurs
            event_type: Specific event type to subscribe to, or None for all events
        """
        self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(
        self,
        handler: EventHandler,
        event_type: EventType | None = None,
    ) -> None:
        """Unsubscribe from events."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: GameEvent) -> None:
        """Emit an event to all subscribers."""
        self._event_history.append(event)

        handlers = list(self._handlers.get(event.event_type, []))
        handlers.extend(self._handlers.get(None, []))
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for %s", event.event_type.name)

    def emit_new(
        self,
        event_type: EventType,
        **data: Any,
    ) -> GameEvent:
        """
        Create and emit a new event.

        Args:
            event_type: Type of event
            **data: Event data

        Returns:
            The created event
        """
        event = GameEvent(event_type=event_type, data=data)
        self.emit(event)
        return event

    @property
    def history(self) -> list[GameEvent]:
        """Return the event history."""
        return list(self._event_history)

    def clear_history(self) -> None:
        """Clear the event history."""
        self._event_history.clear()

"""Table engine and state management."""

from core.game.actions import ActionOutcome, PlayerAction
from core.game.engine import BlackjackTable
from core.game.events import EventEmitter, EventType, GameEvent
from core.game.manager import TableManager
from core.game.settings import TableSettings, TimeoutRange
from core.game.state import RemovalReason, StopReason, TablePhase

__all__ = [
    "ActionOutcome",
    "BlackjackTable",
    "EventEmitter",
    "EventType",
    "GameEvent",
    "PlayerAction",
    "RemovalReason",
    "StopReason",
    "TableManager",
    "TablePhase",
    "TableSettings",
    "TimeoutRange",
]

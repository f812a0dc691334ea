"""Table phase enumeration."""

from enum import Enum, auto


class TablePhase(Enum):
    """
    Table state machine phases.

    Flow: IDLE → BETTING → DEALING → PLAYER_TURNS → DEALER_TURN → SETTLING
    → (REBUY_PAUSE) → BETTING ...; any phase → STOPPING → STOPPED
    """

    # Created, loop not started
    IDLE = auto()

    # Wagering window open
    BETTING = auto()

    # Initial cards being dealt
    DEALING = auto()

    # Players acting in seating order
    PLAYER_TURNS = auto()

    # Dealer plays out
    DEALER_TURN = auto()

    # Payouts being applied
    SETTLING = auto()

    # Waiting on rebuy offers; nothing advances
    REBUY_PAUSE = auto()

    # Refunding and tearing down
    STOPPING = auto()

    # Terminal
    STOPPED = auto()

    def __str__(self) -> str:
        return self.name.replace("_", " ").title()


class StopReason(str, Enum):
    """Why a table stopped."""

    ALL_PLAYERS_RAN_OUT_OF_MONEY = "allPlayersRanOutOfMoney"
    ALL_PLAYERS_LEFT = "allPlayersLeft"
    NO_BETS_PLACED = "noBetsPlaced"
    MANUAL = "manual"
    ERROR = "error"


class RemovalReason(str, Enum):
    """Why a seat was vacated."""

    LEFT = "left"
    NO_MONEY = "noMoney"
    REBUY_EXPIRED = "rebuyExpired"
    TABLE_STOPPED = "tableStopped"


# Valid phase transitions
VALID_TRANSITIONS: dict[TablePhase, list[TablePhase]] = {
    TablePhase.IDLE: [TablePhase.BETTING, TablePhase.STOPPING],
    TablePhase.BETTING: [TablePhase.DEALING, TablePhase.STOPPING],
    TablePhase.DEALING: [TablePhase.PLAYER_TURNS, TablePhase.STOPPING],
    TablePhase.PLAYER_TURNS: [TablePhase.DEALER_TURN, TablePhase.STOPPING],
    TablePhase.DEALER_TURN: [TablePhase.SETTLING, TablePhase.STOPPING],
    TablePhase.SETTLING: [TablePhase.BETTING, TablePhase.REBUY_PAUSE, TablePhase.STOPPING],
    TablePhase.REBUY_PAUSE: [TablePhase.BETTING, TablePhase.STOPPING],
    TablePhase.STOPPING: [TablePhase.STOPPING, TablePhase.STOPPED],
    TablePhase.STOPPED: [],  # Terminal state
}


def is_valid_transition(from_phase: TablePhase, to_phase: TablePhase) -> bool:
    """
    Check if a phase transition is valid.

    Args:
        from_phase: Current phase
        to_phase: Desired phase

    Returns:
        True if the transition is allowed
    """
    return to_phase in VALID_TRANSITIONS.get(from_phase, [])

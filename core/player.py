"""Player seat state."""

from dataclasses import dataclass, field

from core.errors import InvalidAmount
from core.hand import Hand
from core.profiles import Profile


@dataclass
class Bets:
    """Chips withdrawn from the stack for the current round."""

    initial: int = 0
    total: int = 0
    insurance: int = 0


@dataclass
class InsuranceRecord:
    """Insurance side-bet for the current round."""

    wager: int = 0
    settled: bool = False


@dataclass
class Winnings:
    """Per-round totals, reset every round."""

    gross: int = 0
    net: int = 0
    experience: int = 0


@dataclass
class Estimate:
    """Win/push/lose estimate delivered by the probability engine."""

    win: float = 0.0
    push: float = 0.0
    lose: float = 0.0
    samples: int = 0


@dataclass
class PlayerStatus:
    """Per-round status of a seat."""

    is_current_turn: bool = False
    current_hand_index: int = 0
    insurance: InsuranceRecord = field(default_factory=InsuranceRecord)
    winnings: Winnings = field(default_factory=Winnings)
    bet_placed: bool = False
    action_in_progress: bool = False
    pending_rebuy: bool = False
    estimate: Estimate | None = None


@dataclass
class Autobet:
    """Repeating bet placed automatically when betting opens."""

    amount: int
    remaining: int


@dataclass
class Player:
    """A seat at the table, backed by a persisted profile."""

    id: str
    name: str
    profile: Profile
    stack: int = 0
    pending_buy_in: int = 0
    rebuys_used: int = 0
    new_entry: bool = True
    hands: list[Hand] = field(default_factory=list)
    bets: Bets = field(default_factory=Bets)
    status: PlayerStatus = field(default_factory=PlayerStatus)
    autobet: Autobet | None = None

    @property
    def bankroll(self) -> int:
        """Balance held outside the table."""
        return self.profile.bankroll

    @property
    def active_hand(self) -> Hand | None:
        """Get the hand currently being played."""
        index = self.status.current_hand_index
        if 0 <= index < len(self.hands):
            return self.hands[index]
        return None

    @property
    def has_bet(self) -> bool:
        return self.bets.initial > 0

    @property
    def refundable(self) -> int:
        """Chips that must go back to the bankroll if the seat is vacated."""
        return self.stack + self.pending_buy_in

    def reset_round(self) -> None:
        """Reset hands, bets and status for a new round."""
        self.hands = []
        self.bets = Bets()
        self.status = PlayerStatus()

    def activate_buy_in(self) -> None:
        """Move the committed buy-in into the live stack."""
        self.stack += self.pending_buy_in
        self.pending_buy_in = 0
        self.new_entry = False

    def __str__(self) -> str:
        return self.name or self.id


def create_player(profile: Profile, buy_in: int, name: str | None = None) -> Player:
    """
    Build a seat for a profile whose buy-in has already been committed.

    The buy-in is held as ``pending_buy_in`` until the player's first round.
    """
    if not profile.id:
        raise ValueError("Player requires a profile id")
    if not isinstance(buy_in, int) or isinstance(buy_in, bool) or buy_in <= 0:
        raise InvalidAmount("Buy-in must be a positive whole number", amount=buy_in)

    return Player(
        id=profile.id,
        name=name or profile.name or profile.id,
        profile=profile,
        stack=0,
        pending_buy_in=buy_in,
        new_entry=True,
    )

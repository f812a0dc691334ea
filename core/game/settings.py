"""Table settings: limits, timeouts and rebuy policy."""

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from config import TableConfig

RebuyMode = Literal["off", "once", "on"]


@dataclass(frozen=True)
class TimeoutRange:
    """Allowed range for a duration, in seconds."""

    min: float
    max: float

    def clamp(self, seconds: float) -> float:
        return max(self.min, min(self.max, seconds))


@dataclass(frozen=True)
class TableSettings:
    """
    Blackjack table configuration.

    Read-only to the engine; use ``with_overrides`` to derive a variant.
    All durations are in seconds.
    """

    # Betting limits
    min_bet: int = 10
    max_bet: int = 1000

    # Buy-in limits
    min_buy_in: int = 80
    max_buy_in: int = 400

    # Seats
    min_seats: int = 1
    max_seats: int = 7

    # Shoe
    deck_count: int = 6
    reshuffle_threshold: int = 52

    # Timers
    betting_timeout: float = 45.0
    betting_timeout_range: TimeoutRange = TimeoutRange(10.0, 120.0)
    action_timeout: float = 45.0
    action_timeout_range: TimeoutRange = TimeoutRange(15.0, 120.0)
    rebuy_timeout: float = 60.0
    rebuy_timeout_range: TimeoutRange = TimeoutRange(30.0, 600.0)

    # Pause after dealer draws and busts (presentation pacing)
    step_delay: float = 0.0

    # Rebuy policy
    rebuy_mode: RebuyMode = "on"

    # Clear the event timeline at the start of each round
    auto_clean_hands: bool = False

    # Dealer timeline length kept in event history
    timeline_max_entries: int = 30

    # Attempts to persist each refund when the table stops
    persist_retries: int = 3

    # Bankroll granted to profiles seen for the first time
    starting_bankroll: int = 5000

    def __post_init__(self) -> None:
        """Validate setting combinations."""
        if self.min_bet < 1:
            raise ValueError("min_bet must be at least 1")
        if self.max_bet < self.min_bet:
            raise ValueError("max_bet must be at least min_bet")
        if self.min_buy_in < self.min_bet:
            raise ValueError("min_buy_in must cover the minimum bet")
        if self.max_buy_in < self.min_buy_in:
            raise ValueError("max_buy_in must be at least min_buy_in")
        if self.min_seats < 1:
            raise ValueError("min_seats must be at least 1")
        if self.max_seats < self.min_seats:
            raise ValueError("max_seats must be at least min_seats")
        if not 1 <= self.deck_count <= 8:
            raise ValueError("deck_count must be between 1 and 8")
        if self.reshuffle_threshold < 0:
            raise ValueError("reshuffle_threshold cannot be negative")
        if self.rebuy_mode not in ("off", "once", "on"):
            raise ValueError(f"Unknown rebuy mode: {self.rebuy_mode}")
        if self.persist_retries < 1:
            raise ValueError("persist_retries must be at least 1")

    @property
    def rebuy_enabled(self) -> bool:
        return self.rebuy_mode != "off"

    @property
    def effective_betting_timeout(self) -> float:
        return self.betting_timeout_range.clamp(self.betting_timeout)

    @property
    def effective_action_timeout(self) -> float:
        return self.action_timeout_range.clamp(self.action_timeout)

    @property
    def effective_rebuy_timeout(self) -> float:
        return self.rebuy_timeout_range.clamp(self.rebuy_timeout)

    def with_overrides(self, **overrides: Any) -> "TableSettings":
        """Return a copy with some settings replaced (validated again)."""
        return replace(self, **overrides)

    @classmethod
    def from_config(cls, table: "TableConfig") -> "TableSettings":
        """Build settings from the application's table configuration."""
        return cls(
            min_bet=table.min_bet,
            max_bet=table.max_bet,
            min_buy_in=table.min_buy_in,
            max_buy_in=table.max_buy_in,
            min_seats=table.min_seats,
            max_seats=table.max_seats,
            deck_count=table.deck_count,
            reshuffle_threshold=table.reshuffle_threshold,
            betting_timeout=table.betting_timeout,
            action_timeout=table.action_timeout,
            action_timeout_range=TimeoutRange(
                table.action_timeout_min, table.action_timeout_max
            ),
            rebuy_timeout=table.rebuy_timeout,
            rebuy_timeout_range=TimeoutRange(table.rebuy_timeout_min, table.rebuy_timeout_max),
            step_delay=table.step_delay,
            rebuy_mode=table.rebuy_mode,
            auto_clean_hands=table.auto_clean_hands,
            timeline_max_entries=table.timeline_max_entries,
            starting_bankroll=table.starting_bankroll,
        )

    @classmethod
    def casual(cls) -> "TableSettings":
        """Low-stakes table with unlimited rebuys."""
        return cls(min_bet=10, max_bet=500, min_buy_in=100, max_buy_in=1000, rebuy_mode="on")

    @classmethod
    def high_roller(cls) -> "TableSettings":
        """High-stakes table, one rebuy per player."""
        return cls(
            min_bet=500,
            max_bet=50_000,
            min_buy_in=5_000,
            max_buy_in=250_000,
            rebuy_mode="once",
        )

    @classmethod
    def tournament(cls) -> "TableSettings":
        """Elimination table: no rebuys, at least two seats."""
        return cls(min_bet=25, max_bet=1000, min_buy_in=500, max_buy_in=500, min_seats=2, rebuy_mode="off")

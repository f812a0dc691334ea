"""Betting window."""

import asyncio
from typing import Iterable

from core.errors import (
    AboveMaximum,
    BelowMinimum,
    IllegalAction,
    InsufficientFunds,
    InvalidAmount,
)
from core.game.events import EventEmitter, EventType
from core.ledger import BankrollLedger
from core.player import Bets, Player


class BettingPhase:
    """
    Collects opening wagers while the window is open.

    The window closes when every eligible player has bet or the table's
    betting timer calls ``close``. Players who joined mid-round are not
    eligible until the next round.
    """

    def __init__(self, ledger: BankrollLedger, events: EventEmitter) -> None:
        self._ledger = ledger
        self._events = events
        self._closed = asyncio.Event()
        self._closed.set()
        self.min_bet = 0
        self.max_bet = 0
        self.close_reason: str | None = None

    @property
    def is_open(self) -> bool:
        return not self._closed.is_set()

    def open(self, min_bet: int, max_bet: int) -> None:
        self.min_bet = min_bet
        self.max_bet = max_bet
        self.close_reason = None
        self._closed = asyncio.Event()

    def close(self, reason: str = "allBetsPlaced") -> bool:
        """Close the window. Returns False if it was already closed."""
        if self._closed.is_set():
            return False
        self.close_reason = reason
        self._closed.set()
        self._events.emit_new(EventType.BETTING_CLOSED, reason=reason)
        return True

    async def wait(self) -> str | None:
        await self._closed.wait()
        return self.close_reason

    def validate(self, player: Player, amount: int) -> int:
        """
        Check a wager without touching the stack.

        Raises:
            IllegalAction: Betting is closed or the player already bet
            InvalidAmount: Not a positive whole number
            BelowMinimum: Under the table minimum
            AboveMaximum: Over the table maximum
            InsufficientFunds: The stack cannot cover it
        """
        if not self.is_open:
            raise IllegalAction("Betting is closed", action="bet")
        if player.new_entry:
            raise IllegalAction("New players bet from the next round", action="bet")
        if player.has_bet:
            raise IllegalAction("Bet already placed this round", action="bet")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount("Bet must be a positive whole number", amount=amount)
        if amount < self.min_bet:
            raise BelowMinimum(minimum=self.min_bet, amount=amount)
        if amount > self.max_bet:
            raise AboveMaximum(maximum=self.max_bet, amount=amount)
        if not self._ledger.can_afford(player, amount):
            raise InsufficientFunds(
                f"Stack {player.stack} cannot cover a bet of {amount}",
                amount=amount,
                stack=player.stack,
            )
        return amount

    def place(self, player: Player, amount: int, automatic: bool = False) -> int:
        """Validate and withdraw the opening wager."""
        self.validate(player, amount)
        self._ledger.withdraw(player, amount)
        player.bets.initial = amount
        player.bets.total = amount
        player.status.bet_placed = True

        self._events.emit_new(
            EventType.AUTOBET_PLACED if automatic else EventType.BET_PLACED,
            player_id=player.id,
            amount=amount,
            stack=player.stack,
        )
        return amount

    def refund(self, player: Player) -> int:
        """Return an un-dealt wager to the stack."""
        amount = player.bets.total
        if amount <= 0:
            return 0
        self._ledger.deposit(player, amount)
        player.bets = Bets()
        player.status.bet_placed = False
        self._events.emit_new(
            EventType.BET_REFUNDED, player_id=player.id, amount=amount, stack=player.stack
        )
        return amount

    @staticmethod
    def eligible(players: Iterable[Player]) -> list[Player]:
        """Players allowed to bet this round."""
        return [p for p in players if not p.new_entry]

    @classmethod
    def without_bet(cls, players: Iterable[Player]) -> list[Player]:
        return [p for p in cls.eligible(players) if not p.has_bet]

    @classmethod
    def all_bets_placed(cls, players: Iterable[Player]) -> bool:
        eligible = cls.eligible(players)
        return bool(eligible) and all(p.has_bet for p in eligible)

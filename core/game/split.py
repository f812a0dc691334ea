"""Hand splitting."""

from dataclasses import dataclass
from typing import Callable

from core.cards import Card
from core.errors import IllegalAction, InsufficientFunds
from core.game.events import EventEmitter, EventType
from core.hand import Hand, evaluate_hand
from core.ledger import BankrollLedger
from core.player import Player

MAX_HANDS = 4

DrawFn = Callable[[int], list[Card]]


@dataclass(frozen=True)
class SplitResult:
    new_hand_index: int
    split_aces: bool


class SplitManager:
    """
    Splits a pair into two hands, each backed by a wager equal to the opening bet.

    Split-ace hands are flagged here; the "no further hits" rule is enforced
    by the action handler.
    """

    def __init__(
        self,
        ledger: BankrollLedger,
        draw: DrawFn,
        events: EventEmitter,
        max_hands: int = MAX_HANDS,
    ) -> None:
        self._ledger = ledger
        self._draw = draw
        self._events = events
        self.max_hands = max_hands

    def can_split(self, player: Player, hand_index: int) -> bool:
        """Pair present, room for another hand, and the wager is affordable."""
        if len(player.hands) >= self.max_hands:
            return False
        if not 0 <= hand_index < len(player.hands):
            return False
        hand = player.hands[hand_index]
        if len(hand.cards) != 2 or not hand.pair:
            return False
        return self._ledger.can_afford(player, player.bets.initial)

    def split(self, player: Player, hand_index: int) -> SplitResult:
        """Split the hand at ``hand_index``; the new hand is appended to ``player.hands``."""
        if not self.can_split(player, hand_index):
            raise IllegalAction(action="split")

        wager = player.bets.initial
        if not self._ledger.withdraw(player, wager):
            raise InsufficientFunds(amount=wager, stack=player.stack)
        player.bets.total += wager

        hand = player.hands[hand_index]
        moved = hand.cards.pop(1)
        split_aces = hand.cards[0].is_ace

        new_hand = Hand(cards=[moved], bet=wager)
        hand.pair = False
        hand.from_split_ace = split_aces
        new_hand.from_split_ace = split_aces
        player.hands.append(new_hand)

        hand.add_cards(self._draw(1))
        new_hand.add_cards(self._draw(1))

        for each in player.hands:
            evaluate_hand(each, sibling_hand_count=len(player.hands))

        self._events.emit_new(
            EventType.PLAYER_SPLIT,
            player_id=player.id,
            hand_index=hand_index,
            hands=[h.codes for h in (hand, new_hand)],
            split_aces=split_aces,
            total_bet=player.bets.total,
        )
        return SplitResult(new_hand_index=len(player.hands) - 1, split_aces=split_aces)

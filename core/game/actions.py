"""Player decisions during the player-turns phase."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from core.cards import Card
from core.errors import ActionInProgress, IllegalAction, InsufficientFunds
from core.game.events import EventEmitter, EventType
from core.game.insurance import InsuranceManager
from core.game.split import SplitManager
from core.hand import Hand, evaluate_hand
from core.ledger import BankrollLedger
from core.player import Player


class PlayerAction(str, Enum):
    """Decisions a player can make on a hand."""

    STAND = "stand"
    HIT = "hit"
    DOUBLE = "double"
    SPLIT = "split"
    INSURANCE = "insurance"


@dataclass
class ActionOutcome:
    """Result of processing one action."""

    action: PlayerAction
    hand_index: int
    terminal: bool
    # Cards of the acted-on hand after the action
    cards: list[str] = field(default_factory=list)
    busted: bool = False
    automatic: bool = False


class ActionHandler:
    """
    Validates and applies stand/hit/double/split/insurance.

    Each player may have at most one action in flight; a second concurrent
    call is rejected with ``ActionInProgress``.
    """

    def __init__(
        self,
        ledger: BankrollLedger,
        splits: SplitManager,
        insurance: InsuranceManager,
        dealer_hand: Callable[[], Hand],
        draw: Callable[[int], list[Card]],
        events: EventEmitter,
        step_delay: float = 0.0,
    ) -> None:
        self._ledger = ledger
        self._splits = splits
        self._insurance = insurance
        self._dealer_hand = dealer_hand
        self._draw = draw
        self._events = events
        self.step_delay = step_delay

    def legal_actions(self, player: Player, hand_index: int | None = None) -> list[PlayerAction]:
        """Actions currently allowed on the player's hand."""
        index = player.status.current_hand_index if hand_index is None else hand_index
        if not 0 <= index < len(player.hands):
            return []
        hand = player.hands[index]
        if hand.locked or hand.busted:
            return []

        actions = [PlayerAction.STAND]
        if hand.from_split_ace:
            return actions

        actions.append(PlayerAction.HIT)
        if self._can_double(player, hand):
            actions.append(PlayerAction.DOUBLE)
        if self._splits.can_split(player, index):
            actions.append(PlayerAction.SPLIT)
        if self._insurance.can_insure(player, hand, self._dealer_hand()):
            actions.append(PlayerAction.INSURANCE)
        return actions

    def _can_double(self, player: Player, hand: Hand) -> bool:
        return (
            len(hand.cards) == 2
            and not hand.double_down
            and self._ledger.can_afford(player, player.bets.initial)
        )

    async def process(
        self,
        player: Player,
        action: PlayerAction | str,
        automatic: bool = False,
    ) -> ActionOutcome:
        """
        Apply an action to the player's active hand.

        Args:
            player: Acting player
            action: Requested action
            automatic: Issued by the table (timeout stand); skips the legality check

        Raises:
            ActionInProgress: Another action for this player is still running
            IllegalAction: The action is not currently legal
        """
        if player.status.action_in_progress:
            raise ActionInProgress(action=getattr(action, "value", action))

        try:
            action = PlayerAction(action)
        except ValueError:
            raise IllegalAction(f"Unknown action: {action}", action=str(action)) from None

        player.status.action_in_progress = True
        try:
            index = player.status.current_hand_index
            legal = self.legal_actions(player, index)
            if action not in legal and not (automatic and action == PlayerAction.STAND):
                raise IllegalAction(action=action.value, legal=[a.value for a in legal])

            await asyncio.sleep(self.step_delay)

            hand = player.active_hand
            if hand is None or hand.locked or player.status.current_hand_index != index:
                raise IllegalAction("Hand is no longer in play", action=action.value)

            if action == PlayerAction.STAND:
                return self._stand(player, hand, index, automatic)
            if action == PlayerAction.HIT:
                return self._hit(player, hand, index)
            if action == PlayerAction.DOUBLE:
                return self._double(player, hand, index)
            if action == PlayerAction.SPLIT:
                self._splits.split(player, index)
                return ActionOutcome(action, index, terminal=False, cards=hand.codes)
            self._insurance.purchase(player, hand, self._dealer_hand())
            return ActionOutcome(action, index, terminal=False, cards=hand.codes)
        finally:
            player.status.action_in_progress = False

    def _stand(self, player: Player, hand: Hand, index: int, automatic: bool) -> ActionOutcome:
        hand.locked = True
        self._events.emit_new(
            EventType.PLAYER_STAND,
            player_id=player.id,
            hand_index=index,
            value=hand.value,
            automatic=automatic,
        )
        return ActionOutcome(
            PlayerAction.STAND, index, terminal=True, cards=hand.codes, automatic=automatic
        )

    def _deal_to(self, player: Player, hand: Hand) -> Card:
        card = self._draw(1)[0]
        hand.add_card(card)
        evaluate_hand(hand, sibling_hand_count=len(player.hands))
        return card

    def _bust(self, player: Player, hand: Hand, index: int) -> None:
        hand.locked = True
        self._events.emit_new(
            EventType.PLAYER_BUSTS, player_id=player.id, hand_index=index, value=hand.value
        )

    def _hit(self, player: Player, hand: Hand, index: int) -> ActionOutcome:
        card = self._deal_to(player, hand)
        self._events.emit_new(
            EventType.PLAYER_HIT,
            player_id=player.id,
            hand_index=index,
            card=card.code,
            value=hand.value,
        )
        if hand.busted:
            self._bust(player, hand, index)
        return ActionOutcome(
            PlayerAction.HIT, index, terminal=hand.busted, cards=hand.codes, busted=hand.busted
        )

    def _double(self, player: Player, hand: Hand, index: int) -> ActionOutcome:
        wager = player.bets.initial
        if not self._ledger.withdraw(player, wager):
            raise InsufficientFunds(amount=wager, stack=player.stack)
        hand.bet += wager
        player.bets.total += wager
        hand.double_down = True

        card = self._deal_to(player, hand)
        hand.locked = True
        self._events.emit_new(
            EventType.PLAYER_DOUBLE,
            player_id=player.id,
            hand_index=index,
            card=card.code,
            value=hand.value,
            bet=hand.bet,
            total_bet=player.bets.total,
        )
        if hand.busted:
            self._bust(player, hand, index)
        return ActionOutcome(
            PlayerAction.DOUBLE, index, terminal=True, cards=hand.codes, busted=hand.busted
        )

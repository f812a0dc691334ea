"""Dealer play."""

import asyncio
from typing import Callable

from core.cards import Card
from core.game.events import EventEmitter, EventType
from core.hand import Hand, evaluate_hand

DEALER_STANDS_ON = 17


class DealerEngine:
    """
    Owns the dealer's hand and plays it out: hit below 17, stand on any 17.

    The dealer never doubles, splits or insures.
    """

    def __init__(
        self,
        draw: Callable[[int], list[Card]],
        events: EventEmitter,
        step_delay: float = 0.0,
    ) -> None:
        self._draw = draw
        self._events = events
        self.step_delay = step_delay
        self.hand = Hand()

    def reset(self) -> None:
        self.hand = Hand()

    def deal(self, count: int = 1) -> list[Card]:
        """Deal cards to the dealer's hand and re-evaluate it."""
        cards = self._draw(count)
        self.hand.add_cards(cards)
        evaluate_hand(self.hand, is_player_hand=False)
        return cards

    @property
    def up_card(self) -> Card | None:
        return self.hand.cards[0] if self.hand.cards else None

    @property
    def has_ace_showing(self) -> bool:
        card = self.up_card
        return card is not None and card.is_ace

    @property
    def has_blackjack(self) -> bool:
        evaluate_hand(self.hand, is_player_hand=False)
        return self.hand.blackjack

    async def _pause(self) -> None:
        if self.step_delay > 0:
            await asyncio.sleep(self.step_delay)

    async def play_hand(self) -> Hand:
        """Reveal the hole card and draw to 17."""
        evaluate_hand(self.hand, is_player_hand=False)
        self._events.emit_new(
            EventType.DEALER_REVEALS,
            cards=self.hand.codes,
            value=self.hand.value,
            blackjack=self.hand.blackjack,
        )

        while self.hand.value < DEALER_STANDS_ON:
            await self._pause()
            card = self.deal(1)[0]
            self._events.emit_new(
                EventType.DEALER_HITS, card=card.code, value=self.hand.value
            )

        if self.hand.busted:
            await self._pause()
            self._events.emit_new(EventType.DEALER_BUSTS, value=self.hand.value)
        else:
            self._events.emit_new(EventType.DEALER_STANDS, value=self.hand.value)
        return self.hand

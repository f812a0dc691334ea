"""Tests for dealer play."""

import pytest

from conftest import stacked_deck
from core.game.dealer import DealerEngine
from core.game.events import EventEmitter, EventType


def _dealer(*codes):
    events = EventEmitter(max_history=100)
    dealer = DealerEngine(stacked_deck(*codes).draw, events)
    return dealer, events


class TestDealer:
    """Tests for DealerEngine."""

    def test_deal_and_up_card(self):
        """Test dealing sets the up card."""
        dealer, _ = _dealer("AS", "6D")
        dealer.deal(2)
        assert dealer.up_card.code == "AS"
        assert dealer.has_ace_showing
        assert dealer.hand.value == 17

    def test_blackjack(self):
        """Test a dealt natural is detected."""
        dealer, _ = _dealer("KS", "AD")
        dealer.deal(2)
        assert dealer.has_blackjack
        assert not dealer.has_ace_showing

    def test_reset(self):
        """Test reset empties the hand."""
        dealer, _ = _dealer("KS", "AD")
        dealer.deal(2)
        dealer.reset()
        assert dealer.hand.cards == []
        assert dealer.up_card is None

    @pytest.mark.asyncio
    async def test_hits_below_17(self):
        """Test the dealer draws until reaching 17."""
        dealer, events = _dealer("TS", "2D", "3C", "2H", "9S")
        dealer.deal(2)
        hand = await dealer.play_hand()
        assert hand.codes == ["TS", "2D", "3C", "2H"]
        assert hand.value == 17
        types = [e.event_type for e in events.history]
        assert types == [
            EventType.DEALER_REVEALS,
            EventType.DEALER_HITS,
            EventType.DEALER_HITS,
            EventType.DEALER_STANDS,
        ]

    @pytest.mark.asyncio
    async def test_stands_on_soft_17(self):
        """Test the dealer stands on any 17, soft included."""
        dealer, events = _dealer("AS", "6D", "5C")
        dealer.deal(2)
        hand = await dealer.play_hand()
        assert hand.value == 17
        assert len(hand) == 2
        assert events.history[-1].event_type == EventType.DEALER_STANDS

    @pytest.mark.asyncio
    async def test_busts(self):
        """Test a dealer bust is announced."""
        dealer, events = _dealer("TS", "6D", "KC")
        dealer.deal(2)
        hand = await dealer.play_hand()
        assert hand.busted
        assert events.history[-1].event_type == EventType.DEALER_BUSTS
        assert events.history[-1].data["value"] == 26

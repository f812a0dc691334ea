"""Tests for the insurance side-bet."""

import pytest

from conftest import make_hand
from core.errors import IllegalAction
from core.game.events import EventEmitter, EventType
from core.game.insurance import InsuranceManager, insurance_cost


@pytest.fixture
def events():
    return EventEmitter(max_history=100)


@pytest.fixture
def insurance(ledger, events):
    return InsuranceManager(ledger, events)


@pytest.fixture
def betting_player(player, ledger):
    """Player who opened with 200 and holds 19."""
    ledger.withdraw(player, 200)
    player.bets.initial = 200
    player.bets.total = 200
    player.hands = [make_hand("TS", "9H", bet=200)]
    return player


@pytest.fixture
def ace_up():
    return make_hand("AS", "KD")


class TestInsurance:
    """Tests for InsuranceManager."""

    def test_cost_is_half_rounded_down(self):
        """Test insurance costs half the opening bet."""
        assert insurance_cost(200) == 100
        assert insurance_cost(25) == 12
        assert insurance_cost(1) == 0

    def test_offered_only_on_ace(self):
        """Test the offer depends on the dealer's up card."""
        assert InsuranceManager.should_offer(make_hand("AS", "5D"))
        assert not InsuranceManager.should_offer(make_hand("5D", "AS"))
        assert not InsuranceManager.should_offer(make_hand())

    def test_dealer_blackjack_pays_three_times(self, insurance, betting_player, ace_up, events):
        """Test insurance wins 3x its wager when the dealer has blackjack."""
        hand = betting_player.hands[0]
        wager = insurance.purchase(betting_player, hand, ace_up)
        assert wager == 100
        assert betting_player.stack == 200
        assert betting_player.bets.total == 300
        assert betting_player.bets.insurance == 100

        before = betting_player.stack
        resolution = insurance.resolve(betting_player, dealer_has_blackjack=True)
        assert resolution.paid_out
        assert resolution.payout == 300
        assert betting_player.stack - before == 300
        assert betting_player.status.insurance.settled
        assert betting_player.status.winnings.net == 200
        assert events.history[-1].event_type == EventType.INSURANCE_WINS

    def test_insurance_lost(self, insurance, betting_player, ace_up, events):
        """Test the wager is kept when the dealer has no blackjack."""
        insurance.purchase(betting_player, betting_player.hands[0], ace_up)
        resolution = insurance.resolve(betting_player, dealer_has_blackjack=False)
        assert not resolution.paid_out
        assert resolution.net == -100
        assert betting_player.stack == 200
        assert betting_player.status.insurance.settled
        assert events.history[-1].event_type == EventType.INSURANCE_LOSES

    def test_resolve_is_idempotent(self, insurance, betting_player, ace_up):
        """Test a second resolution pays nothing."""
        insurance.purchase(betting_player, betting_player.hands[0], ace_up)
        insurance.resolve(betting_player, dealer_has_blackjack=True)
        stack = betting_player.stack
        again = insurance.resolve(betting_player, dealer_has_blackjack=True)
        assert again.already_settled
        assert betting_player.stack == stack

    def test_resolve_without_insurance(self, insurance, betting_player):
        """Test resolving an uninsured player does nothing."""
        resolution = insurance.resolve(betting_player, dealer_has_blackjack=True)
        assert not resolution.paid_out
        assert not resolution.already_settled

    def test_cannot_insure_twice(self, insurance, betting_player, ace_up):
        """Test insurance can be bought once per round."""
        hand = betting_player.hands[0]
        insurance.purchase(betting_player, hand, ace_up)
        assert not insurance.can_insure(betting_player, hand, ace_up)
        with pytest.raises(IllegalAction):
            insurance.purchase(betting_player, hand, ace_up)

    def test_cannot_insure_after_hit(self, insurance, betting_player, ace_up):
        """Test insurance needs an untouched two-card hand."""
        hand = make_hand("5S", "4H", "2D", bet=200)
        betting_player.hands = [hand]
        assert not insurance.can_insure(betting_player, hand, ace_up)

    def test_cannot_insure_without_chips(self, insurance, betting_player, ace_up):
        """Test the stack must cover the wager."""
        betting_player.stack = 99
        assert not insurance.can_insure(betting_player, betting_player.hands[0], ace_up)

    def test_no_offer_without_ace(self, insurance, betting_player):
        """Test no insurance against a ten up card."""
        dealer = make_hand("KS", "AD")
        assert not insurance.can_insure(betting_player, betting_player.hands[0], dealer)

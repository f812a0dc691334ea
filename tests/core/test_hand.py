"""Tests for Hand evaluation and settlement math."""

import pytest
from hypothesis import given

from conftest import hand_strategy, make_hand
from core.cards import Card, Rank, Suit
from core.hand import (
    HandResult,
    calculate_payout,
    compare_hands,
    evaluate_hand,
    gross_winnings,
    hand_value,
)


class TestHand:
    """Tests for the Hand class."""

    def test_empty_hand(self, empty_hand):
        """Test empty hand properties."""
        evaluate_hand(empty_hand)
        assert len(empty_hand) == 0
        assert empty_hand.value == 0
        assert not empty_hand.blackjack
        assert not empty_hand.busted

    def test_add_card(self, empty_hand):
        """Test adding cards to hand."""
        empty_hand.add_card(Card(Rank.TEN, Suit.SPADES))
        evaluate_hand(empty_hand)
        assert len(empty_hand) == 1
        assert empty_hand.value == 10
        assert empty_hand.codes == ["TS"]

    def test_blackjack(self, blackjack_hand):
        """Test blackjack detection."""
        assert blackjack_hand.blackjack
        assert blackjack_hand.value == 21

    def test_bust(self, bust_hand):
        """Test bust detection."""
        assert bust_hand.busted
        assert bust_hand.value == 26

    def test_pair_detected(self, pair_8s_hand):
        """Test pairs need two cards of the same rank."""
        assert pair_8s_hand.pair
        assert not make_hand("KS", "QH").pair

    def test_pair_is_sticky(self, pair_8s_hand):
        """Test the pair flag survives a third card."""
        pair_8s_hand.add_card(Card.from_string("2C"))
        evaluate_hand(pair_8s_hand)
        assert pair_8s_hand.pair

    def test_clear(self, blackjack_hand):
        """Test clearing resets cards and flags."""
        blackjack_hand.bet = 50
        blackjack_hand.locked = True
        blackjack_hand.clear()
        assert blackjack_hand.cards == []
        assert blackjack_hand.bet == 0
        assert not blackjack_hand.blackjack
        assert not blackjack_hand.locked

    def test_str(self, blackjack_hand, bust_hand):
        """Test string rendering."""
        assert "BLACKJACK" in str(blackjack_hand)
        assert "BUST" in str(bust_hand)


class TestHandValue:
    """Tests for hand_value and evaluate_hand."""

    @pytest.mark.parametrize(
        "codes,expected",
        [
            (["AS", "AD"], 12),
            (["AS", "AD", "9C"], 21),
            (["AS", "AD", "AC", "AH"], 14),
            (["AS", "6D"], 17),
            (["AS", "6D", "TC"], 17),
            (["KS", "QD", "2C"], 22),
            (["5S", "5D", "5C", "6H"], 21),
        ],
    )
    def test_values(self, codes, expected):
        """Test aces drop from 11 to 1 only as needed."""
        assert hand_value([Card.from_string(c) for c in codes]) == expected

    def test_three_card_21_is_not_blackjack(self):
        """Test 21 from three cards is not a natural."""
        hand = make_hand("7S", "7D", "7C")
        assert hand.value == 21
        assert not hand.blackjack

    def test_split_hand_cannot_be_blackjack(self):
        """Test ace and ten on a split hand counts as 21 only."""
        hand = make_hand("AS", "KD", siblings=2)
        assert hand.value == 21
        assert not hand.blackjack

    def test_dealer_blackjack_ignores_sibling_count(self):
        """Test the dealer's natural is always a blackjack."""
        hand = evaluate_hand(
            make_hand("AS", "KD"), is_player_hand=False, sibling_hand_count=3
        )
        assert hand.blackjack

    def test_pair_of_aces_is_not_blackjack(self):
        """Test two aces are a pair, never a natural."""
        hand = make_hand("AS", "AD")
        assert hand.pair
        assert not hand.blackjack

    @given(hand_strategy())
    def test_value_bounds(self, hand):
        """Test a hand's value is consistent with its bust flag."""
        assert hand.value >= 2
        assert hand.busted == (hand.value > 21)
        if hand.blackjack:
            assert hand.value == 21
            assert len(hand) == 2

    @given(hand_strategy(min_cards=1, max_cards=8))
    def test_value_counts_aces_once_when_soft(self, hand):
        """Test the value equals the hard total plus at most one soft ace."""
        hard = sum(1 if c.is_ace else c.value for c in hand)
        assert hand.value in (hard, hard + 10)
        if hand.value == hard + 10:
            assert any(c.is_ace for c in hand)
            assert hand.value <= 21


class TestCompareHands:
    """Tests for comparing player and dealer hands."""

    def test_win_on_dealer_bust(self):
        """Test a standing 20 beats a busted dealer at 2x."""
        comparison = compare_hands(make_hand("KS", "QD"), make_hand("TS", "6H", "9C"))
        assert comparison.result == HandResult.WIN
        assert comparison.win_factor == 2.0

    def test_busted_player_loses_to_busted_dealer(self, bust_hand):
        """Test a busted player loses even if the dealer busts."""
        comparison = compare_hands(bust_hand, make_hand("TS", "6H", "9C"))
        assert comparison.result == HandResult.LOSE

    def test_blackjack_pays_two_and_a_half(self, blackjack_hand):
        """Test a natural wins at 2.5x."""
        comparison = compare_hands(blackjack_hand, make_hand("TS", "9H"))
        assert comparison.result == HandResult.WIN
        assert comparison.win_factor == 2.5

    def test_push(self):
        """Test equal totals push."""
        comparison = compare_hands(make_hand("KS", "8D"), make_hand("9S", "9H"))
        assert comparison.result == HandResult.PUSH
        assert comparison.win_factor == 1.0

    def test_lower_total_loses(self):
        """Test a lower total loses."""
        comparison = compare_hands(make_hand("KS", "7D"), make_hand("9S", "9H"))
        assert comparison.result == HandResult.LOSE
        assert comparison.win_factor == 0.0


class TestPayout:
    """Tests for payout arithmetic."""

    def test_win_pays_net_of_stake(self):
        """Test a 2x win nets exactly the bet."""
        assert calculate_payout(100, HandResult.WIN, 2.0) == 100
        assert gross_winnings(100, 2.0) == 200

    def test_blackjack_floors(self):
        """Test fractional blackjack payouts round down."""
        assert gross_winnings(15, 2.5) == 37
        assert calculate_payout(15, HandResult.WIN, 2.5) == 22

    def test_push_and_loss(self):
        """Test push returns nothing and a loss costs the bet."""
        assert calculate_payout(100, HandResult.PUSH, 1.0) == 0
        assert calculate_payout(100, HandResult.LOSE, 0.0) == -100

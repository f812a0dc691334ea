"""Hand model and hand evaluation for blackjack."""

from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from typing import Iterator

from core.cards import Card

BLACKJACK_WIN_FACTOR = 2.5
WIN_FACTOR = 2.0
PUSH_FACTOR = 1.0


class HandResult(str, Enum):
    """Settlement outcome of a hand."""

    WIN = "win"
    LOSE = "lose"
    PUSH = "push"


@dataclass
class Hand:
    """
    A blackjack hand.

    ``value``, ``blackjack`` and ``busted`` are derived by ``evaluate_hand``
    and should not be written elsewhere. ``pair`` and ``from_split_ace`` are
    sticky: once set they survive later cards.
    """

    cards: list[Card] = field(default_factory=list)
    bet: int = 0
    value: int = 0
    pair: bool = False
    blackjack: bool = False
    busted: bool = False
    push: bool = False
    double_down: bool = False
    from_split_ace: bool = False
    locked: bool = False
    result: HandResult | None = None
    payout: int = 0

    def add_card(self, card: Card) -> None:
        """Add a card to the hand."""
        self.cards.append(card)

    def add_cards(self, cards: list[Card]) -> None:
        """Add several cards to the hand."""
        self.cards.extend(cards)

    def clear(self) -> None:
        """Remove all cards and reset every flag."""
        self.cards.clear()
        self.bet = 0
        self.value = 0
        self.pair = False
        self.blackjack = False
        self.busted = False
        self.push = False
        self.double_down = False
        self.from_split_ace = False
        self.locked = False
        self.result = None
        self.payout = 0

    @property
    def codes(self) -> list[str]:
        """Card codes in dealing order."""
        return [card.code for card in self.cards]

    @property
    def is_settled(self) -> bool:
        return self.result is not None

    @property
    def is_split_ace_hand(self) -> bool:
        """A split-ace hand that already received its single extra card."""
        return self.from_split_ace and len(self.cards) >= 2

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self.cards)

    def __str__(self) -> str:
        cards_str = " ".join(str(card) for card in self.cards)
        value_str = f"({self.value})"
        if self.blackjack:
            value_str = "(BLACKJACK)"
        if self.busted:
            value_str = "(BUST)"
        return f"{cards_str} {value_str}"


@dataclass(frozen=True)
class Comparison:
    """Outcome of a player hand against the dealer."""

    result: HandResult
    win_factor: float


def hand_value(cards: list[Card]) -> int:
    """
    Calculate the best value of a set of cards.

    Aces count 11, then drop to 1 one at a time while the total exceeds 21.
    """
    total = 0
    aces = 0

    for card in cards:
        if card.is_ace:
            aces += 1
        total += card.value

    while total > 21 and aces > 0:
        total -= 10
        aces -= 1

    return total


def evaluate_hand(
    hand: Hand,
    is_player_hand: bool = True,
    sibling_hand_count: int = 1,
) -> Hand:
    """
    Recompute a hand's value and flags from its cards.

    Args:
        hand: Hand to update in place
        is_player_hand: False for the dealer (no split restriction on blackjack)
        sibling_hand_count: Number of hands the owning player holds this round

    Returns:
        The same hand, for chaining
    """
    cards = hand.cards
    hand.value = hand_value(cards)

    if len(cards) == 2 and not hand.pair and cards[0].rank == cards[1].rank:
        hand.pair = True

    aces = sum(1 for card in cards if card.is_ace)
    single_hand = sibling_hand_count < 2 if is_player_hand else True
    hand.blackjack = (
        len(cards) == 2
        and aces == 1
        and not hand.pair
        and single_hand
        and any(card.is_ten_value for card in cards)
    )

    hand.busted = hand.value > 21
    return hand


def compare_hands(player_hand: Hand, dealer_hand: Hand) -> Comparison:
    """
    Compare an evaluated player hand with the evaluated dealer hand.

    A busted player always loses, even against a busted dealer.
    """
    if player_hand.busted:
        return Comparison(HandResult.LOSE, 0.0)

    win_factor = BLACKJACK_WIN_FACTOR if player_hand.blackjack else WIN_FACTOR

    if dealer_hand.busted:
        return Comparison(HandResult.WIN, win_factor)

    if player_hand.value < dealer_hand.value:
        return Comparison(HandResult.LOSE, 0.0)
    if player_hand.value == dealer_hand.value:
        return Comparison(HandResult.PUSH, PUSH_FACTOR)
    return Comparison(HandResult.WIN, win_factor)


def gross_winnings(bet: int, win_factor: float) -> int:
    """Chips returned for a winning hand (stake included), floored to a whole chip."""
    gross = Decimal(bet) * Decimal(str(win_factor))
    return int(gross.to_integral_value(rounding=ROUND_FLOOR))


def calculate_payout(bet: int, result: HandResult, win_factor: float) -> int:
    """
    Net profit of a settled hand.

    Returns:
        ``-bet`` on a loss, ``0`` on a push, ``bet * factor - bet`` on a win
    """
    if result == HandResult.LOSE:
        return -bet
    if result == HandResult.PUSH:
        return 0
    return gross_winnings(bet, win_factor) - bet

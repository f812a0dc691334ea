"""Card and Deck classes - immutable card codes and a sampling shoe."""

from dataclasses import dataclass
from enum import Enum
from random import Random
from typing import Iterable, Iterator

from core.errors import EmptyDeck


class Suit(Enum):
    """Card suits, valued by their one-letter code."""

    SPADES = "S"
    CLUBS = "C"
    HEARTS = "H"
    DIAMONDS = "D"

    def __str__(self) -> str:
        symbols = {
            Suit.CLUBS: "♣",
            Suit.DIAMONDS: "♦",
            Suit.HEARTS: "♥",
            Suit.SPADES: "♠",
        }
        return symbols[self]


class Rank(Enum):
    """Card ranks, valued by their one-letter code."""

    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "T"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"
    ACE = "A"

    def __str__(self) -> str:
        if self == Rank.TEN:
            return "10"
        return self.value

    @property
    def blackjack_value(self) -> int:
        """Return the blackjack point value (Ace = 11, face cards = 10)."""
        if self.value.isdigit():
            return int(self.value)
        if self == Rank.ACE:
            return 11
        return 10

    @property
    def is_ace(self) -> bool:
        """Check if this rank is an Ace."""
        return self == Rank.ACE

    @property
    def is_ten_value(self) -> bool:
        """Check if this rank has a value of 10."""
        return self.blackjack_value == 10


@dataclass(frozen=True, slots=True)
class Card:
    """Immutable playing card."""

    rank: Rank
    suit: Suit

    def __str__(self) -> str:
        return f"{self.rank}{self.suit}"

    def __repr__(self) -> str:
        return f"Card({self.code})"

    @property
    def code(self) -> str:
        """Two-character code: rank letter followed by suit letter (e.g. 'TD')."""
        return f"{self.rank.value}{self.suit.value}"

    @property
    def value(self) -> int:
        """Return the blackjack point value."""
        return self.rank.blackjack_value

    @property
    def is_ace(self) -> bool:
        """Check if this card is an Ace."""
        return self.rank.is_ace

    @property
    def is_ten_value(self) -> bool:
        """Check if this card has a value of 10."""
        return self.rank.is_ten_value

    @classmethod
    def from_string(cls, s: str) -> "Card":
        """Create a card from a code like 'AS', 'TD', '10h' or '2♣'."""
        s = s.strip().upper()
        if len(s) < 2:
            raise ValueError(f"Invalid card string: {s}")

        rank_str = s[:-1]
        suit_str = s[-1]
        if rank_str == "10":
            rank_str = "T"

        suit_symbols = {"♣": "C", "♦": "D", "♥": "H", "♠": "S"}
        suit_str = suit_symbols.get(suit_str, suit_str)

        try:
            rank = Rank(rank_str)
        except ValueError:
            raise ValueError(f"Invalid rank: {rank_str}") from None
        try:
            suit = Suit(suit_str)
        except ValueError:
            raise ValueError(f"Invalid suit: {suit_str}") from None

        return cls(rank, suit)


def standard_deck() -> list[Card]:
    """Return the 52 cards of a single deck in suit-major order."""
    return [Card(rank, suit) for suit in Suit for rank in Rank]


def cards_from_codes(codes: Iterable[str]) -> list[Card]:
    """Parse a sequence of card codes."""
    return [Card.from_string(code) for code in codes]


class Deck:
    """
    A multi-deck shoe dealt by random sampling without replacement.

    The cards are kept in a mutable list; ``draw`` removes uniformly chosen
    cards rather than popping from the top, so the deck never has to be
    pre-shuffled for fairness.
    """

    def __init__(
        self,
        deck_count: int = 6,
        rng: Random | None = None,
        cards: list[Card] | None = None,
    ) -> None:
        """
        Initialize a shoe.

        Args:
            deck_count: Number of 52-card decks in a full shoe
            rng: Random number generator for sampling and shuffling
            cards: Explicit starting contents (defaults to a shuffled full shoe)
        """
        if deck_count < 1:
            raise ValueError("Shoe must have at least 1 deck")

        self._deck_count = deck_count
        self._rng = rng or Random()
        self._cards: list[Card] = []
        if cards is None:
            self.reshuffle()
        else:
            self._cards = list(cards)

    @classmethod
    def from_codes(
        cls,
        codes: Iterable[str],
        deck_count: int = 6,
        rng: Random | None = None,
    ) -> "Deck":
        """Build a deck holding exactly the given card codes, in order."""
        return cls(deck_count=deck_count, rng=rng, cards=cards_from_codes(codes))

    def reshuffle(self) -> None:
        """Replace the contents with a fresh shoe and randomize its order."""
        self._cards = [card for _ in range(self._deck_count) for card in standard_deck()]
        self._rng.shuffle(self._cards)

    def draw(self, n: int = 1) -> list[Card]:
        """
        Remove and return ``n`` randomly sampled cards.

        Raises:
            EmptyDeck: If fewer than ``n`` cards remain (the deck is unchanged)
        """
        if n < 0:
            raise ValueError("Cannot draw a negative number of cards")
        if n > len(self._cards):
            raise EmptyDeck(requested=n, remaining=len(self._cards))
        return [self._cards.pop(self._rng.randrange(len(self._cards))) for _ in range(n)]

    def needs_reshuffle(self, threshold: int) -> bool:
        """Check if the remaining cards dropped below the reshuffle threshold."""
        return len(self._cards) < threshold

    @property
    def codes(self) -> list[str]:
        """Codes of the remaining cards."""
        return [card.code for card in self._cards]

    @property
    def cards_remaining(self) -> int:
        """Return the number of cards remaining."""
        return len(self._cards)

    @property
    def total_cards(self) -> int:
        """Return the total number of cards in a full shoe."""
        return self._deck_count * 52

    @property
    def deck_count(self) -> int:
        """Return the number of decks in a full shoe."""
        return self._deck_count

    def __len__(self) -> int:
        return len(self._cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self._cards)

"""Core blackjack engine - 100% UI-agnostic."""

from core.cards import Card, Deck, Rank, Suit
from core.hand import Hand
from core.player import Player
from core.profiles import InMemoryProfileStore, Profile, ProfileStore

__all__ = [
    "Card",
    "Deck",
    "Rank",
    "Suit",
    "Hand",
    "Player",
    "Profile",
    "ProfileStore",
    "InMemoryProfileStore",
]

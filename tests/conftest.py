"""Pytest fixtures for blackjack table tests."""

import asyncio
from random import Random

import pytest
from hypothesis import strategies as st

from core.cards import Card, Deck, Rank, Suit
from core.game import BlackjackTable, TableSettings, TimeoutRange
from core.hand import Hand, evaluate_hand
from core.ledger import BankrollLedger
from core.player import Player, create_player
from core.profiles import InMemoryProfileStore, Profile


class FirstCardRandom(Random):
    """Always samples index 0, so a deck built from codes deals in order."""

    def randrange(self, *args, **kwargs):
        return 0


class FailingStore(InMemoryProfileStore):
    """Profile store whose saves fail a configurable number of times."""

    def __init__(self, failures: int = 0) -> None:
        super().__init__()
        self.failures = failures
        self.attempts = 0

    async def save(self, profile: Profile) -> None:
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("store unavailable")
        await super().save(profile)


class YieldingStore(InMemoryProfileStore):
    """Profile store whose saves suspend, letting other table calls interleave."""

    def __init__(self, delay: float = 0.01) -> None:
        super().__init__()
        self.delay = delay

    async def save(self, profile: Profile) -> None:
        await asyncio.sleep(self.delay)
        await super().save(profile)


def make_hand(*codes: str, bet: int = 0, siblings: int = 1) -> Hand:
    """Build and evaluate a hand from card codes."""
    hand = Hand(cards=[Card.from_string(c) for c in codes], bet=bet)
    return evaluate_hand(hand, sibling_hand_count=siblings)


def stacked_deck(*codes: str) -> Deck:
    """A deck that deals ``codes`` in order."""
    return Deck.from_codes(codes, deck_count=1, rng=FirstCardRandom())


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return Random(42)


@pytest.fixture
def store():
    """An empty in-memory profile store."""
    return InMemoryProfileStore()


@pytest.fixture
def ledger(store):
    """Ledger writing through the in-memory store."""
    return BankrollLedger(store)


@pytest.fixture
def player(store):
    """A seated player with 500 chips in front of them and 1000 behind."""
    profile = store.add(Profile(id="p1", name="Alice", bankroll=1000))
    seat = create_player(profile, 500)
    seat.activate_buy_in()
    return seat


@pytest.fixture
def make_player(store):
    """Factory for seated players with a live stack."""

    def _make(player_id: str, stack: int = 500, bankroll: int = 1000) -> Player:
        profile = store.add(Profile(id=player_id, name=player_id, bankroll=bankroll))
        seat = create_player(profile, stack)
        seat.activate_buy_in()
        return seat

    return _make


@pytest.fixture
def empty_hand():
    """An empty player hand."""
    return Hand()


@pytest.fixture
def blackjack_hand():
    """A natural blackjack hand."""
    return make_hand("AS", "KH")


@pytest.fixture
def pair_8s_hand():
    """A pair of 8s hand."""
    return make_hand("8S", "8D")


@pytest.fixture
def bust_hand():
    """A busted hand."""
    return make_hand("TS", "6H", "KC")


@pytest.fixture
def fast_settings():
    """Settings with short timers and no automatic reshuffle."""
    return TableSettings(
        min_bet=10,
        max_bet=1000,
        min_buy_in=100,
        max_buy_in=1000,
        betting_timeout=1.0,
        betting_timeout_range=TimeoutRange(0.01, 5.0),
        action_timeout=1.0,
        action_timeout_range=TimeoutRange(0.01, 5.0),
        rebuy_timeout=1.0,
        rebuy_timeout_range=TimeoutRange(0.01, 5.0),
        reshuffle_threshold=0,
        timeline_max_entries=500,
    )


@pytest.fixture
def make_table(store, fast_settings):
    """Factory for tables dealing a fixed card sequence."""

    def _make(*codes: str, store_override=None, **overrides) -> BlackjackTable:
        settings = fast_settings.with_overrides(**overrides) if overrides else fast_settings
        deck = stacked_deck(*codes) if codes else Deck(deck_count=1, rng=FirstCardRandom())
        return BlackjackTable(
            table_id="t1",
            settings=settings,
            store=store_override or store,
            deck=deck,
        )

    return _make


@pytest.fixture
def wait_until():
    """Poll a condition on the running loop."""

    async def _wait(predicate, timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not reached in time")
            await asyncio.sleep(0.001)

    return _wait


# Hypothesis strategies for property-based testing
@st.composite
def card_strategy(draw):
    """Generate a random card."""
    rank = draw(st.sampled_from(list(Rank)))
    suit = draw(st.sampled_from(list(Suit)))
    return Card(rank, suit)


@st.composite
def hand_strategy(draw, min_cards=2, max_cards=5):
    """Generate a random evaluated hand."""
    cards = draw(st.lists(card_strategy(), min_size=min_cards, max_size=max_cards))
    return evaluate_hand(Hand(cards=cards))

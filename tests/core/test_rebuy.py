"""Tests for rebuy offers."""

import asyncio

import pytest

from conftest import FailingStore
from core.errors import IllegalAction, InsufficientBankroll, PersistenceFailure
from core.game.events import EventEmitter, EventType
from core.game.rebuy import OfferStatus, RebuyManager
from core.game.timers import TimerRegistry
from core.ledger import BankrollLedger
from core.player import create_player
from core.profiles import Profile


@pytest.fixture
def events():
    return EventEmitter(max_history=100)


@pytest.fixture
def timers():
    return TimerRegistry()


@pytest.fixture
def rebuy_settings(fast_settings):
    return fast_settings.with_overrides(rebuy_timeout=0.05)


@pytest.fixture
def rebuys(ledger, rebuy_settings, events, timers):
    return RebuyManager(ledger, rebuy_settings, events, timers)


@pytest.fixture
def broke(make_player):
    """Factory for seated players down to 5 chips."""

    def _make(player_id, bankroll=1000):
        seat = make_player(player_id, stack=100, bankroll=bankroll)
        seat.stack = 5
        return seat

    return _make


class TestRebuyPolicy:
    """Tests for when a rebuy is offered."""

    def test_needs_rebuy(self, rebuys, broke, player):
        """Test a stack below the minimum bet needs a rebuy."""
        assert rebuys.needs_rebuy(broke("a"))
        assert not rebuys.needs_rebuy(player)

    def test_mode_on(self, rebuys, broke):
        """Test unlimited rebuys."""
        seat = broke("a")
        seat.rebuys_used = 5
        assert rebuys.can_rebuy(seat)

    def test_mode_off(self, rebuys, broke, rebuy_settings):
        """Test rebuys disabled."""
        rebuys.settings = rebuy_settings.with_overrides(rebuy_mode="off")
        assert not rebuys.can_rebuy(broke("a"))

    def test_mode_once(self, rebuys, broke, rebuy_settings):
        """Test a single rebuy per seat."""
        rebuys.settings = rebuy_settings.with_overrides(rebuy_mode="once")
        seat = broke("a")
        assert rebuys.can_rebuy(seat)
        seat.rebuys_used = 1
        assert not rebuys.can_rebuy(seat)

    def test_bankroll_must_cover_minimum(self, rebuys, broke):
        """Test no offer when the bankroll cannot cover the minimum buy-in."""
        assert not rebuys.can_rebuy(broke("a", bankroll=99))


class TestRebuyOffers:
    """Tests for offering, accepting and expiring rebuys."""

    @pytest.mark.asyncio
    async def test_accept_offer(self, rebuys, broke, events, timers):
        """Test accepting moves chips from the bankroll to the stack."""
        seat = broke("a")
        offer = rebuys.offer(seat)
        assert seat.status.pending_rebuy
        assert "rebuy:a" in timers.active

        amount = await rebuys.submit(seat, 300)
        assert amount == 300
        assert seat.stack == 305
        assert seat.bankroll == 700
        assert seat.rebuys_used == 1
        assert offer.status == OfferStatus.COMPLETED
        assert not seat.status.pending_rebuy
        assert "rebuy:a" not in timers.active
        assert events.history[-1].event_type == EventType.REBUY_COMPLETED

    @pytest.mark.asyncio
    async def test_default_amount_is_minimum(self, rebuys, broke):
        """Test an omitted amount buys the minimum."""
        seat = broke("a")
        rebuys.offer(seat)
        assert await rebuys.submit(seat) == 100

    @pytest.mark.asyncio
    async def test_submit_without_offer(self, rebuys, broke):
        """Test a rebuy needs an open offer."""
        with pytest.raises(IllegalAction):
            await rebuys.submit(broke("a"), 100)

    @pytest.mark.asyncio
    async def test_submit_twice(self, rebuys, broke):
        """Test an offer is accepted once."""
        seat = broke("a")
        rebuys.offer(seat)
        await rebuys.submit(seat, 100)
        with pytest.raises(IllegalAction):
            await rebuys.submit(seat, 100)

    @pytest.mark.asyncio
    async def test_rejected_amount_keeps_offer(self, rebuys, broke):
        """Test an unaffordable amount leaves the offer open."""
        seat = broke("a", bankroll=150)
        offer = rebuys.offer(seat)
        with pytest.raises(InsufficientBankroll):
            await rebuys.submit(seat, 500)
        assert offer.pending

    @pytest.mark.asyncio
    async def test_offer_expires(self, rebuys, broke, events):
        """Test an unanswered offer expires when its timer fires."""
        seat = broke("a")
        offer = rebuys.offer(seat)
        assert await asyncio.wait_for(offer.done, 1.0) == OfferStatus.EXPIRED
        assert events.history[-1].event_type == EventType.REBUY_EXPIRED
        assert seat.stack == 5

    @pytest.mark.asyncio
    async def test_expire_is_idempotent(self, rebuys, broke):
        """Test expiring twice reports once."""
        seat = broke("a")
        rebuys.offer(seat)
        assert rebuys.expire("a")
        assert not rebuys.expire("a")
        assert not rebuys.expire("nobody")

    @pytest.mark.asyncio
    async def test_one_completes_one_expires(self, rebuys, broke):
        """Test gathering two simultaneous offers."""
        first, second = broke("a"), broke("b")
        rebuys.offer(first)
        rebuys.offer(second)

        gathered = asyncio.ensure_future(rebuys.gather())
        await rebuys.submit(first, 200)
        completed, expired = await asyncio.wait_for(gathered, 1.0)

        assert completed == ["a"]
        assert expired == ["b"]
        assert rebuys.get("a") is None

    @pytest.mark.asyncio
    async def test_failed_commit_rearms_timer(self, rebuy_settings, events, timers):
        """Test a failed commit keeps the offer and its expiry."""
        store = FailingStore(failures=1)
        rebuys = RebuyManager(BankrollLedger(store), rebuy_settings, events, timers)
        seat = create_player(store.add(Profile(id="a", bankroll=1000)), 100)
        seat.activate_buy_in()
        seat.stack = 5

        offer = rebuys.offer(seat)
        with pytest.raises(PersistenceFailure):
            await rebuys.submit(seat, 200)
        assert offer.pending
        assert seat.bankroll == 1000
        assert "rebuy:a" in timers.active
        assert await asyncio.wait_for(offer.done, 1.0) == OfferStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_close_all(self, rebuys, broke, timers):
        """Test closing every offer cancels the timers."""
        first, second = broke("a"), broke("b")
        offers = [rebuys.offer(first), rebuys.offer(second)]
        assert rebuys.close_all() == 2
        assert all(o.status == OfferStatus.CLOSED for o in offers)
        assert timers.active == []

    @pytest.mark.asyncio
    async def test_discard(self, rebuys, broke):
        """Test discarding one player's offer."""
        offer = rebuys.offer(broke("a"))
        rebuys.discard("a")
        assert offer.status == OfferStatus.CLOSED

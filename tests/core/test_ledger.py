"""Tests for the bankroll ledger and buy-in rules."""

import pytest

from conftest import FailingStore
from core.errors import InsufficientBankroll, InvalidAmount, PersistenceFailure
from core.ledger import BankrollLedger, normalize_buy_in
from core.player import create_player
from core.profiles import Profile


class TestNormalizeBuyIn:
    """Tests for buy-in normalization."""

    def test_missing_request_defaults_to_minimum(self):
        """Test no amount means the table minimum."""
        assert normalize_buy_in(None, 80, 400, 1000) == 80

    def test_request_is_clamped(self):
        """Test requests outside the limits are clamped."""
        assert normalize_buy_in(20, 80, 400, 1000) == 80
        assert normalize_buy_in(900, 80, 400, 1000) == 400
        assert normalize_buy_in(250, 80, 400, 1000) == 250

    @pytest.mark.parametrize("amount", [0, -5, 12.5, "100", True])
    def test_invalid_request(self, amount):
        """Test non-positive or non-integer requests are rejected."""
        with pytest.raises(InvalidAmount):
            normalize_buy_in(amount, 80, 400, 1000)

    def test_bankroll_below_minimum(self):
        """Test a bankroll that cannot cover the minimum is rejected."""
        with pytest.raises(InsufficientBankroll):
            normalize_buy_in(None, 80, 400, 50)

    def test_bankroll_below_clamped_request(self):
        """Test the clamped request must still fit the bankroll."""
        with pytest.raises(InsufficientBankroll):
            normalize_buy_in(300, 80, 400, 200)


class TestStackTransfers:
    """Tests for stack-only operations."""

    def test_withdraw_and_deposit(self, player):
        """Test moving chips in and out of the stack."""
        assert BankrollLedger.withdraw(player, 200)
        assert player.stack == 300
        assert BankrollLedger.deposit(player, 50)
        assert player.stack == 350

    def test_withdraw_more_than_stack(self, player):
        """Test an unaffordable withdrawal changes nothing."""
        assert not BankrollLedger.withdraw(player, 501)
        assert player.stack == 500

    @pytest.mark.parametrize("amount", [0, -10, 1.5, None])
    def test_invalid_amounts(self, player, amount):
        """Test invalid amounts are refused."""
        assert not BankrollLedger.withdraw(player, amount)
        assert not BankrollLedger.deposit(player, amount)
        assert not BankrollLedger.can_afford(player, amount)
        assert player.stack == 500

    def test_can_afford(self, player):
        """Test affordability against the stack."""
        assert BankrollLedger.can_afford(player, 500)
        assert not BankrollLedger.can_afford(player, 501)


class TestBankrollTransfers:
    """Tests for operations that persist the bankroll."""

    @pytest.mark.asyncio
    async def test_commit_buy_in(self, store, ledger):
        """Test a buy-in debits and persists the bankroll."""
        profile = store.add(Profile(id="u1", bankroll=1000))
        await ledger.commit_buy_in(profile, 300)
        assert profile.bankroll == 700
        assert store.snapshots["u1"]["bankroll"] == 700

    @pytest.mark.asyncio
    async def test_commit_buy_in_insufficient(self, store, ledger):
        """Test a buy-in above the bankroll is refused."""
        profile = store.add(Profile(id="u1", bankroll=100))
        with pytest.raises(InsufficientBankroll):
            await ledger.commit_buy_in(profile, 300)
        assert profile.bankroll == 100

    @pytest.mark.asyncio
    async def test_commit_buy_in_rolls_back(self):
        """Test a failed save restores the bankroll."""
        store = FailingStore(failures=1)
        ledger = BankrollLedger(store)
        profile = store.add(Profile(id="u1", bankroll=1000))
        with pytest.raises(PersistenceFailure):
            await ledger.commit_buy_in(profile, 300)
        assert profile.bankroll == 1000

    @pytest.mark.asyncio
    async def test_sync_stack_to_bankroll(self, store, ledger, player):
        """Test folding the stack back into the bankroll."""
        refund = await ledger.sync_stack_to_bankroll(player)
        assert refund == 500
        assert player.stack == 0
        assert player.bankroll == 1500
        assert store.snapshots["p1"]["bankroll"] == 1500

    @pytest.mark.asyncio
    async def test_sync_includes_pending_buy_in(self, store, ledger):
        """Test a buy-in not yet in play is refunded too."""
        profile = store.add(Profile(id="u1", bankroll=700))
        seat = create_player(profile, 300)
        refund = await ledger.sync_stack_to_bankroll(seat)
        assert refund == 300
        assert seat.pending_buy_in == 0
        assert profile.bankroll == 1000

    @pytest.mark.asyncio
    async def test_sync_empty_stack_is_noop(self, store, ledger, player):
        """Test a zero stack leaves the bankroll unchanged."""
        player.stack = 0
        assert await ledger.sync_stack_to_bankroll(player) == 0
        assert player.bankroll == 1000

    @pytest.mark.asyncio
    async def test_sync_rolls_back(self):
        """Test a failed refund leaves the seat untouched."""
        store = FailingStore(failures=1)
        ledger = BankrollLedger(store)
        profile = store.add(Profile(id="u1", bankroll=700))
        seat = create_player(profile, 300)
        seat.activate_buy_in()
        with pytest.raises(PersistenceFailure):
            await ledger.sync_stack_to_bankroll(seat)
        assert seat.stack == 300
        assert profile.bankroll == 700

"""Bankroll ledger: moves chips between a player's stack and bankroll."""

import asyncio
import logging

from core.errors import InsufficientBankroll, InvalidAmount, PersistenceFailure
from core.player import Player
from core.profiles import Profile, ProfileStore

logger = logging.getLogger(__name__)


def _as_amount(amount: object) -> int | None:
    """Return ``amount`` as a positive int, or None if it is not one."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        return None
    if amount <= 0:
        return None
    return amount


def normalize_buy_in(
    requested: int | None,
    min_buy_in: int,
    max_buy_in: int,
    bankroll: int,
) -> int:
    """
    Resolve a requested buy-in against table limits and the bankroll.

    A missing request defaults to the minimum; otherwise the request is
    clamped into ``[min_buy_in, max_buy_in]``.

    Raises:
        InvalidAmount: The request is not a positive whole number
        InsufficientBankroll: The bankroll cannot cover the resolved amount
    """
    safe_min = max(1, int(min_buy_in))
    safe_max = max(safe_min, int(max_buy_in))

    if bankroll < safe_min:
        raise InsufficientBankroll(
            f"Bankroll {bankroll} cannot cover the minimum buy-in of {safe_min}",
            minimum=safe_min,
            bankroll=bankroll,
        )

    if requested is None:
        return safe_min

    amount = _as_amount(requested)
    if amount is None:
        raise InvalidAmount("Buy-in must be a positive whole number", amount=requested)

    amount = max(safe_min, min(safe_max, amount))
    if amount > bankroll:
        raise InsufficientBankroll(
            f"Bankroll {bankroll} cannot cover a buy-in of {amount}",
            amount=amount,
            bankroll=bankroll,
        )
    return amount


class BankrollLedger:
    """
    Stack and bankroll transfer primitives.

    Stack-only operations are synchronous, so they cannot interleave on the
    event loop. Operations touching the bankroll persist through the profile
    store and roll back the in-memory change if persistence fails.
    """

    def __init__(self, store: ProfileStore) -> None:
        self._store = store
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def store(self) -> ProfileStore:
        return self._store

    def _lock_for(self, profile_id: str) -> asyncio.Lock:
        if profile_id not in self._locks:
            self._locks[profile_id] = asyncio.Lock()
        return self._locks[profile_id]

    @staticmethod
    def can_afford(player: Player, amount: int) -> bool:
        """Check the stack covers ``amount``."""
        value = _as_amount(amount)
        return value is not None and player.stack >= value

    @staticmethod
    def withdraw(player: Player, amount: int) -> bool:
        """Take chips from the stack. Returns False (and changes nothing) if short."""
        value = _as_amount(amount)
        if value is None or player.stack < value:
            return False
        player.stack -= value
        return True

    @staticmethod
    def deposit(player: Player, amount: int) -> bool:
        """Add chips to the stack."""
        value = _as_amount(amount)
        if value is None:
            return False
        player.stack += value
        return True

    async def persist(self, profile: Profile) -> None:
        """Save a profile, wrapping store errors as ``PersistenceFailure``."""
        try:
            await self._store.save(profile)
        except Exception as exc:
            raise PersistenceFailure(
                f"Failed to persist profile {profile.id}", profile_id=profile.id
            ) from exc

    async def commit_buy_in(self, profile: Profile, amount: int) -> None:
        """
        Debit a buy-in from the bankroll and persist it as one transaction.

        Raises:
            InsufficientBankroll: The bankroll no longer covers the amount
            PersistenceFailure: The store failed; the debit was rolled back
        """
        value = _as_amount(amount)
        if value is None:
            raise InvalidAmount("Buy-in must be a positive whole number", amount=amount)

        async with self._lock_for(profile.id):
            before = profile.bankroll
            if before < value:
                raise InsufficientBankroll(amount=value, bankroll=before)
            profile.bankroll = before - value
            try:
                await self.persist(profile)
            except PersistenceFailure:
                profile.bankroll = before
                logger.error(
                    "Buy-in commit failed, bankroll restored",
                    extra={"profile_id": profile.id, "amount": value},
                )
                raise

    async def sync_stack_to_bankroll(self, player: Player) -> int:
        """
        Fold the stack and any pending buy-in back into the bankroll.

        Returns:
            The number of chips refunded

        Raises:
            PersistenceFailure: The store failed; stack and bankroll were restored
        """
        profile = player.profile
        async with self._lock_for(profile.id):
            refund = player.refundable
            if refund <= 0:
                return 0
            stack, pending, bankroll = player.stack, player.pending_buy_in, profile.bankroll
            profile.bankroll = bankroll + refund
            player.stack = 0
            player.pending_buy_in = 0
            try:
                await self.persist(profile)
            except PersistenceFailure:
                player.stack, player.pending_buy_in, profile.bankroll = stack, pending, bankroll
                logger.error(
                    "Stack refund failed, seat left untouched",
                    extra={"profile_id": profile.id, "amount": refund},
                )
                raise
        return refund

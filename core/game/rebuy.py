"""Rebuy offers for players who run out of chips mid-session."""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from core.errors import IllegalAction
from core.game.events import EventEmitter, EventType
from core.game.settings import TableSettings
from core.game.timers import TimerRegistry
from core.ledger import BankrollLedger, normalize_buy_in
from core.player import Player

logger = logging.getLogger(__name__)


class OfferStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"
    CLOSED = "closed"


@dataclass
class RebuyOffer:
    """A time-limited chance to buy back in."""

    player_id: str
    window: float
    deadline: float
    status: OfferStatus = OfferStatus.PENDING
    amount: int = 0
    done: asyncio.Future = field(default_factory=lambda: asyncio.get_running_loop().create_future())

    @property
    def pending(self) -> bool:
        return self.status == OfferStatus.PENDING

    def resolve(self, status: OfferStatus) -> None:
        self.status = status
        if not self.done.done():
            self.done.set_result(status)


class RebuyManager:
    """
    Opens, completes and expires rebuy offers.

    Policy by ``rebuy_mode``: ``off`` never offers, ``once`` offers a single
    rebuy per seat, ``on`` always offers.
    """

    def __init__(
        self,
        ledger: BankrollLedger,
        settings: TableSettings,
        events: EventEmitter,
        timers: TimerRegistry,
    ) -> None:
        self._ledger = ledger
        self.settings = settings
        self._events = events
        self._timers = timers
        self._offers: dict[str, RebuyOffer] = {}

    @staticmethod
    def _timer_name(player_id: str) -> str:
        return f"rebuy:{player_id}"

    def needs_rebuy(self, player: Player) -> bool:
        return player.stack < self.settings.min_bet

    def can_rebuy(self, player: Player) -> bool:
        mode = self.settings.rebuy_mode
        if mode == "off":
            return False
        if mode == "once" and player.rebuys_used >= 1:
            return False
        return player.bankroll >= self.settings.min_buy_in

    def window(self) -> float:
        return self.settings.effective_rebuy_timeout

    def get(self, player_id: str) -> RebuyOffer | None:
        return self._offers.get(player_id)

    @property
    def pending(self) -> list[RebuyOffer]:
        return [offer for offer in self._offers.values() if offer.pending]

    def offer(self, player: Player) -> RebuyOffer:
        """Open an offer and start its expiry timer."""
        loop = asyncio.get_running_loop()
        window = self.window()
        offer = RebuyOffer(player_id=player.id, window=window, deadline=loop.time() + window)
        self._offers[player.id] = offer
        player.status.pending_rebuy = True

        self._timers.start(
            self._timer_name(player.id), window, lambda: self.expire(player.id)
        )
        self._events.emit_new(
            EventType.REBUY_OFFERED,
            player_id=player.id,
            window=window,
            min_buy_in=self.settings.min_buy_in,
            max_buy_in=self.settings.max_buy_in,
        )
        return offer

    async def submit(self, player: Player, amount: int | None = None) -> int:
        """
        Accept a rebuy for a pending offer.

        Returns:
            The committed buy-in

        Raises:
            IllegalAction: No pending offer for the player
            InvalidAmount / InsufficientBankroll: Amount rejected
            PersistenceFailure: Commit failed; the offer stays open
        """
        offer = self._offers.get(player.id)
        if offer is None or not offer.pending:
            raise IllegalAction("No rebuy offer is open", action="rebuy")

        committed = normalize_buy_in(
            amount, self.settings.min_buy_in, self.settings.max_buy_in, player.bankroll
        )

        self._timers.cancel(self._timer_name(player.id))
        try:
            await self._ledger.commit_buy_in(player.profile, committed)
        except Exception:
            if offer.pending:
                remaining = offer.deadline - asyncio.get_running_loop().time()
                self._timers.start(
                    self._timer_name(player.id),
                    max(0.0, remaining),
                    lambda: self.expire(player.id),
                )
            raise

        player.stack += committed
        if not offer.pending:
            # Closed during the commit; the chips go back with the seat's refund.
            return committed
        player.reset_round()
        player.rebuys_used += 1
        offer.amount = committed
        offer.resolve(OfferStatus.COMPLETED)

        self._events.emit_new(
            EventType.REBUY_COMPLETED,
            player_id=player.id,
            amount=committed,
            stack=player.stack,
            rebuys_used=player.rebuys_used,
        )
        return committed

    def expire(self, player_id: str) -> bool:
        """Expire a pending offer. Returns False if it was already resolved."""
        offer = self._offers.get(player_id)
        if offer is None or not offer.pending:
            return False
        self._timers.cancel(self._timer_name(player_id))
        offer.resolve(OfferStatus.EXPIRED)
        self._events.emit_new(EventType.REBUY_EXPIRED, player_id=player_id)
        return True

    async def gather(self) -> tuple[list[str], list[str]]:
        """
        Wait for every open offer to resolve.

        Returns:
            (completed player ids, expired player ids)
        """
        offers = list(self._offers.values())
        if offers:
            await asyncio.gather(*(offer.done for offer in offers))
        completed = [o.player_id for o in offers if o.status == OfferStatus.COMPLETED]
        expired = [o.player_id for o in offers if o.status == OfferStatus.EXPIRED]
        self._offers.clear()
        return completed, expired

    def discard(self, player_id: str) -> None:
        """Drop a player's offer (the seat is being vacated)."""
        offer = self._offers.get(player_id)
        if offer is not None:
            self._timers.cancel(self._timer_name(player_id))
            if offer.pending:
                offer.resolve(OfferStatus.CLOSED)

    def close_all(self) -> int:
        """Discard every open offer. Returns the number closed."""
        closed = 0
        for player_id, offer in list(self._offers.items()):
            self._timers.cancel(self._timer_name(player_id))
            if offer.pending:
                offer.resolve(OfferStatus.CLOSED)
                closed += 1
        if closed:
            logger.info("Closed %d open rebuy offers", closed)
        return closed

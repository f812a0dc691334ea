"""Multiplayer blackjack table engine with state machine."""

import asyncio
import logging
from random import Random
from typing import Any, Awaitable, TypeVar
from uuid import uuid4

from transitions import Machine

from core.cards import Card, Deck
from core.errors import (
    AlreadySeated,
    AboveMaximum,
    AlreadySettled,
    BelowMinimum,
    EmptyDeck,
    IllegalAction,
    InvalidAmount,
    NotYourTurn,
    PersistenceFailure,
    PlayerNotSeated,
    TableFull,
    TableStopping,
    ValidationError,
)
from core.game.actions import ActionHandler, ActionOutcome, PlayerAction
from core.game.betting import BettingPhase
from core.game.dealer import DealerEngine
from core.game.events import EventEmitter, EventHandler, EventType
from core.game.insurance import InsuranceManager
from core.game.probability import ProbabilityEngine, ProbabilityFeed, Stage, build_snapshot
from core.game.rebuy import RebuyManager
from core.game.settings import TableSettings
from core.game.split import SplitManager
from core.game.state import RemovalReason, StopReason, TablePhase
from core.game.timers import TimerRegistry
from core.hand import (
    Hand,
    HandResult,
    calculate_payout,
    compare_hands,
    evaluate_hand,
    gross_winnings,
)
from core.ledger import BankrollLedger, normalize_buy_in
from core.player import Autobet, Bets, Estimate, Player, create_player
from core.profiles import InMemoryProfileStore, ProfileStore
from core.scoring import ScoringFunction, logarithmic_experience

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MONEY_REASONS = (RemovalReason.NO_MONEY, RemovalReason.REBUY_EXPIRED)


class BlackjackTable:
    """
    A multiplayer blackjack table driven by a phase state machine.

    The engine is UI-agnostic: callers interact through the public coroutine
    methods and observe the table through events. All state lives on one
    asyncio loop; suspension happens only at awaits (player decisions,
    timers, persistence and pacing delays).
    """

    STATES = [phase.name.lower() for phase in TablePhase]

    TRANSITIONS = [
        {"trigger": "open_betting", "source": ["idle", "settling", "rebuy_pause"], "dest": "betting"},
        {"trigger": "close_betting", "source": "betting", "dest": "dealing"},
        {"trigger": "begin_player_turns", "source": "dealing", "dest": "player_turns"},
        {"trigger": "begin_dealer_turn", "source": "player_turns", "dest": "dealer_turn"},
        {"trigger": "begin_settlement", "source": "dealer_turn", "dest": "settling"},
        {"trigger": "pause_for_rebuy", "source": "settling", "dest": "rebuy_pause"},
        {
            "trigger": "begin_stop",
            "source": [s for s in STATES if s != "stopped"],
            "dest": "stopping",
        },
        {"trigger": "finish_stop", "source": "stopping", "dest": "stopped"},
    ]

    def __init__(
        self,
        table_id: str | None = None,
        settings: TableSettings | None = None,
        store: ProfileStore | None = None,
        deck: Deck | None = None,
        rng: Random | None = None,
        scoring: ScoringFunction = logarithmic_experience,
        probability_engine: ProbabilityEngine | None = None,
    ) -> None:
        """
        Initialize a table.

        Args:
            table_id: Identifier used in events and logs (generated if omitted)
            settings: Table limits, timeouts and rebuy policy
            store: Profile store the ledger persists through
            deck: Pre-built shoe (tests use this for fixed card order)
            rng: Random number generator for the shoe
            scoring: Experience awarded per settled round
            probability_engine: Optional estimator fed with table snapshots
        """
        self.id = table_id or uuid4().hex[:8]
        self.settings = settings or TableSettings()
        self.store = store or InMemoryProfileStore()
        self.ledger = BankrollLedger(self.store)
        self.events = EventEmitter(max_history=self.settings.timeline_max_entries)
        self.timers = TimerRegistry()
        self.deck = deck or Deck(deck_count=self.settings.deck_count, rng=rng)
        self.scoring = scoring

        self.dealer = DealerEngine(self._draw, self.events, self.settings.step_delay)
        self.insurance = InsuranceManager(self.ledger, self.events)
        self.splits = SplitManager(self.ledger, self._draw, self.events)
        self.actions = ActionHandler(
            self.ledger,
            self.splits,
            self.insurance,
            lambda: self.dealer.hand,
            self._draw,
            self.events,
            self.settings.step_delay,
        )
        self.betting = BettingPhase(self.ledger, self.events)
        self.rebuys = RebuyManager(self.ledger, self.settings, self.events, self.timers)

        # Seating order is insertion order
        self.players: dict[str, Player] = {}
        self.round_number = 0
        self.stop_reason: StopReason | None = None

        self._stopping = False
        self._stop_task: asyncio.Task | None = None
        self._task: asyncio.Task | None = None
        self._pending: set[asyncio.Future] = set()
        self._joining: set[str] = set()
        self._decision = asyncio.Event()
        self._turn_token = 0
        self._awaiting: str | None = None

        self._feed = (
            ProbabilityFeed(probability_engine, self._apply_estimates, self.id)
            if probability_engine is not None
            else None
        )

        self.machine = Machine(
            model=self,
            states=self.STATES,
            transitions=self.TRANSITIONS,
            initial="idle",
            auto_transitions=False,
            model_attribute="_machine_state",
            before_state_change="_cancel_timers",
        )

    # ------------------------------------------------------------------
    # State

    @property
    def phase(self) -> TablePhase:
        """Get current table phase as enum."""
        return TablePhase[self._machine_state.upper()]  # type: ignore

    @property
    def playing(self) -> bool:
        """True until a stop begins."""
        return not self._stopping and self.phase not in (TablePhase.STOPPING, TablePhase.STOPPED)

    @property
    def awaiting_player_id(self) -> str | None:
        return self._awaiting

    def _cancel_timers(self) -> None:
        self.timers.cancel_all()

    def _log_extra(self, **extra: Any) -> dict[str, Any]:
        return {"table_id": self.id, **extra}

    def subscribe(self, handler: EventHandler, event_type: EventType | None = None) -> None:
        """Subscribe to table events."""
        self.events.subscribe(handler, event_type)

    def unsubscribe(self, handler: EventHandler, event_type: EventType | None = None) -> None:
        self.events.unsubscribe(handler, event_type)

    def _require(self, player_id: str) -> Player:
        player = self.players.get(player_id)
        if player is None:
            raise PlayerNotSeated(f"Player {player_id} is not seated", player_id=player_id)
        return player

    def _in_round(self) -> list[Player]:
        """Seated players holding a wager this round, in seating order."""
        return [p for p in self.players.values() if p.has_bet]

    def _draw(self, count: int = 1) -> list[Card]:
        """Draw from the shoe, reshuffling once if it runs dry mid-round."""
        try:
            return self.deck.draw(count)
        except EmptyDeck:
            logger.info("Shoe exhausted mid-round, reshuffling", extra=self._log_extra())
            self.deck.reshuffle()
            self.events.emit_new(
                EventType.SHOE_SHUFFLED, reason="exhausted", cards=self.deck.cards_remaining
            )
            return self.deck.draw(count)

    # ------------------------------------------------------------------
    # Pending operations

    async def _track(self, awaitable: Awaitable[T]) -> T:
        """Run an operation that ``stop`` must wait for."""
        future = asyncio.ensure_future(awaitable)
        self._pending.add(future)
        try:
            return await future
        finally:
            self._pending.discard(future)

    async def _drain_pending(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self) -> asyncio.Task:
        """Start the round loop in a background task."""
        if not self.playing:
            raise TableStopping("Table is stopping", table_id=self.id)
        if self._task is not None:
            raise IllegalAction("Table already started", action="start")
        if len(self.players) < self.settings.min_seats:
            raise IllegalAction(
                f"At least {self.settings.min_seats} players are needed to start",
                action="start",
            )
        self._task = asyncio.get_running_loop().create_task(self.run(), name=f"table:{self.id}")
        return self._task

    async def run(self) -> None:
        """Play rounds until the table stops."""
        logger.info("Table started", extra=self._log_extra(players=len(self.players)))
        self.events.emit_new(EventType.TABLE_STARTED, table_id=self.id, players=list(self.players))
        try:
            while self.playing:
                await self._play_round()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Round loop failed", extra=self._log_extra(round=self.round_number))
            try:
                await self.stop(StopReason.ERROR)
            except PersistenceFailure:
                logger.error("Table could not refund every player", extra=self._log_extra())

    async def wait_closed(self) -> None:
        """Wait for the round loop to exit."""
        if self._task is not None:
            await asyncio.wait([self._task])

    async def stop(self, reason: StopReason | str = StopReason.MANUAL) -> None:
        """
        Stop the table, refunding every seat.

        Safe to call repeatedly or concurrently; concurrent callers wait on the
        same shutdown. A shutdown that failed to persist a refund may be retried.
        """
        if self.phase == TablePhase.STOPPED:
            return
        if self._stop_task is None or self._stop_task.done():
            self._stop_task = asyncio.ensure_future(self._shutdown(StopReason(reason)))
        await asyncio.shield(self._stop_task)

    async def _shutdown(self, reason: StopReason) -> None:
        self._stopping = True
        if self.stop_reason is None:
            self.stop_reason = reason
        logger.info("Stopping table", extra=self._log_extra(reason=self.stop_reason.value))

        if self.phase != TablePhase.STOPPING:
            self.begin_stop()
        self.timers.cancel_all()
        self.betting.close("tableStopping")
        self._awaiting = None
        self._decision.set()

        await self._drain_pending()
        self.rebuys.close_all()

        for player in list(self.players.values()):
            self._void_wagers(player)

        failed: list[str] = []
        for player in list(self.players.values()):
            try:
                refund = await self._refund_with_retries(player)
            except PersistenceFailure:
                failed.append(player.id)
                continue
            self.players.pop(player.id, None)
            self.events.emit_new(
                EventType.PLAYER_REMOVED,
                player_id=player.id,
                reason=RemovalReason.TABLE_STOPPED.value,
                refund=refund,
            )

        if failed:
            raise PersistenceFailure(
                f"Refund could not be persisted for {', '.join(failed)}", player_ids=failed
            )

        if self._feed is not None:
            self._feed.cancel()
        self.finish_stop()
        self.events.emit_new(EventType.TABLE_STOPPED, table_id=self.id, reason=self.stop_reason.value)
        logger.info("Table stopped", extra=self._log_extra(reason=self.stop_reason.value))

    def _void_wagers(self, player: Player) -> int:
        """Return every unsettled wager to the player's stack."""
        if player.hands:
            amount = sum(h.bet for h in player.hands if h.result is None)
        else:
            amount = player.bets.total
        record = player.status.insurance
        if record.wager > 0 and not record.settled:
            amount += record.wager
            record.settled = True

        if amount > 0:
            self.ledger.deposit(player, amount)
            self.events.emit_new(
                EventType.BET_REFUNDED,
                player_id=player.id,
                amount=amount,
                stack=player.stack,
                reason="tableStopped",
            )
        for hand in player.hands:
            hand.locked = True
            if hand.result is None:
                hand.bet = 0
        player.bets = Bets()
        return amount

    async def _refund_with_retries(self, player: Player) -> int:
        attempts = self.settings.persist_retries
        for attempt in range(1, attempts + 1):
            try:
                return await self.ledger.sync_stack_to_bankroll(player)
            except PersistenceFailure:
                logger.warning(
                    "Refund attempt %d/%d failed",
                    attempt,
                    attempts,
                    extra=self._log_extra(player_id=player.id),
                )
                if attempt == attempts:
                    raise
        return 0

    # ------------------------------------------------------------------
    # Seats

    async def join(self, user_id: str, name: str | None = None, buy_in: int | None = None) -> Player:
        """
        Seat a player, committing their buy-in from the bankroll.

        A player joining mid-round plays from the next round.

        Raises:
            TableStopping: The table is shutting down (any committed buy-in is refunded)
            AlreadySeated / TableFull: Seat unavailable
            InvalidAmount / InsufficientBankroll: Buy-in rejected
            PersistenceFailure: The buy-in could not be committed
        """
        if not self.playing:
            raise TableStopping("Table is stopping", table_id=self.id)
        if user_id in self.players or user_id in self._joining:
            raise AlreadySeated(f"Player {user_id} is already seated", player_id=user_id)
        if len(self.players) + len(self._joining) >= self.settings.max_seats:
            raise TableFull(max_seats=self.settings.max_seats)

        self._joining.add(user_id)
        try:
            return await self._track(self._seat(user_id, name, buy_in))
        finally:
            self._joining.discard(user_id)

    async def _seat(self, user_id: str, name: str | None, buy_in: int | None) -> Player:
        profile = await self.store.load_or_create(
            user_id, name or "", self.settings.starting_bankroll
        )
        amount = normalize_buy_in(
            buy_in, self.settings.min_buy_in, self.settings.max_buy_in, profile.bankroll
        )
        await self.ledger.commit_buy_in(profile, amount)
        player = create_player(profile, amount, name)

        if not self.playing:
            await self.ledger.sync_stack_to_bankroll(player)
            raise TableStopping("Table stopped while joining; buy-in refunded", table_id=self.id)

        self.players[player.id] = player
        self.events.emit_new(
            EventType.PLAYER_JOINED, player_id=player.id, name=player.name, buy_in=amount
        )
        logger.info("Player joined", extra=self._log_extra(player_id=player.id, buy_in=amount))
        return player

    async def leave(self, player_id: str) -> int:
        """
        Vacate a seat and refund the player's chips to their bankroll.

        Returns:
            Chips refunded
        """
        self._require(player_id)
        await self._drain_pending()
        player = self._require(player_id)
        refund = await self._remove_player(player, RemovalReason.LEFT)
        await self._enforce_min_seats(RemovalReason.LEFT)
        return refund

    async def _remove_player(self, player: Player, reason: RemovalReason) -> int:
        if self.phase == TablePhase.BETTING:
            self.betting.refund(player)
        self.rebuys.discard(player.id)

        # Forfeit before the refund await; stop voids only hands left unresolved.
        # Once a stop has begun, wagers are voided instead.
        forfeited = self._forfeit(player) if self.playing else None
        try:
            refund = await self.ledger.sync_stack_to_bankroll(player)
        except PersistenceFailure:
            if forfeited is not None and self.playing:
                self._restore_forfeit(player, forfeited)
            raise
        player.autobet = None
        self.players.pop(player.id, None)

        event = EventType.PLAYER_LEFT if reason == RemovalReason.LEFT else EventType.PLAYER_REMOVED
        self.events.emit_new(event, player_id=player.id, reason=reason.value, refund=refund)
        logger.info(
            "Player removed",
            extra=self._log_extra(player_id=player.id, reason=reason.value, refund=refund),
        )

        if self._awaiting == player.id:
            self._decision.set()
        if self.phase == TablePhase.BETTING and self.betting.all_bets_placed(self.players.values()):
            self.betting.close("allBetsPlaced")
        return refund

    @staticmethod
    def _forfeit(player: Player) -> tuple[list[tuple[bool, HandResult | None, int]], bool]:
        """
        Wagers already in play are lost when a player walks away.

        Returns the prior hand and insurance state so a failed removal can be undone.
        """
        prior = [(hand.locked, hand.result, hand.payout) for hand in player.hands]
        insured = player.status.insurance.settled
        for hand in player.hands:
            hand.locked = True
            if hand.result is None:
                hand.result = HandResult.LOSE
                hand.payout = -hand.bet
        player.status.insurance.settled = True
        return prior, insured

    @staticmethod
    def _restore_forfeit(
        player: Player, forfeited: tuple[list[tuple[bool, HandResult | None, int]], bool]
    ) -> None:
        prior, insured = forfeited
        for hand, (locked, result, payout) in zip(player.hands, prior):
            hand.locked, hand.result, hand.payout = locked, result, payout
        player.status.insurance.settled = insured

    async def _enforce_min_seats(self, reason: RemovalReason) -> None:
        if not self.playing or self.phase == TablePhase.IDLE:
            return
        if len(self.players) >= self.settings.min_seats:
            return
        stop_reason = (
            StopReason.ALL_PLAYERS_RAN_OUT_OF_MONEY
            if reason in _MONEY_REASONS
            else StopReason.ALL_PLAYERS_LEFT
        )
        await self.stop(stop_reason)

    # ------------------------------------------------------------------
    # Player commands

    def bet(self, player_id: str, amount: int) -> int:
        """Place an opening wager during the betting window."""
        player = self._require(player_id)
        if self.phase != TablePhase.BETTING:
            raise IllegalAction("Betting is closed", action="bet")
        placed = self.betting.place(player, amount)
        self._request_estimates("betting")
        if self.betting.all_bets_placed(self.players.values()):
            self.betting.close("allBetsPlaced")
        return placed

    def set_autobet(self, player_id: str, amount: int, rounds: int) -> Autobet | None:
        """
        Repeat ``amount`` automatically for the next ``rounds`` betting windows.

        ``rounds`` of 0 cancels the autobet.
        """
        player = self._require(player_id)
        if isinstance(rounds, bool) or not isinstance(rounds, int) or rounds < 0:
            raise InvalidAmount("Rounds must be a non-negative whole number", rounds=rounds)
        if rounds == 0:
            player.autobet = None
            self.events.emit_new(EventType.AUTOBET_CANCELLED, player_id=player.id, reason="cancelled")
            return None

        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount("Bet must be a positive whole number", amount=amount)
        if amount < self.settings.min_bet:
            raise BelowMinimum(minimum=self.settings.min_bet, amount=amount)
        if amount > self.settings.max_bet:
            raise AboveMaximum(maximum=self.settings.max_bet, amount=amount)

        player.autobet = Autobet(amount=amount, remaining=rounds)
        if self.phase == TablePhase.BETTING and not player.has_bet and not player.new_entry:
            self._place_autobet(player)
            if self.betting.all_bets_placed(self.players.values()):
                self.betting.close("allBetsPlaced")
        return player.autobet

    async def act(self, player_id: str, action: PlayerAction | str) -> ActionOutcome:
        """
        Apply a decision to the acting player's current hand.

        Raises:
            NotYourTurn: It is not this player's decision
            ActionInProgress: The player's previous action has not finished
            IllegalAction: Action not currently legal
        """
        player = self._require(player_id)
        if self.phase != TablePhase.PLAYER_TURNS or self._awaiting != player_id:
            raise NotYourTurn(action=getattr(action, "value", action))
        outcome = await self.actions.process(player, action)
        self._decision.set()
        return outcome

    async def rebuy(self, player_id: str, amount: int | None = None) -> int:
        """Accept an open rebuy offer."""
        player = self._require(player_id)
        if not self.playing:
            raise TableStopping("Table is stopping", table_id=self.id)
        return await self._track(self.rebuys.submit(player, amount))

    def legal_actions(self, player_id: str) -> list[str]:
        player = self._require(player_id)
        if self.phase != TablePhase.PLAYER_TURNS or self._awaiting != player_id:
            return []
        return [a.value for a in self.actions.legal_actions(player)]

    def update_action_timeout(self, seconds: float) -> float:
        """Change the per-decision timeout, clamped into the allowed range."""
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or seconds <= 0:
            raise InvalidAmount("Timeout must be a positive number of seconds", seconds=seconds)
        clamped = self.settings.action_timeout_range.clamp(float(seconds))
        self.settings = self.settings.with_overrides(action_timeout=clamped)
        self.rebuys.settings = self.settings
        return clamped

    # ------------------------------------------------------------------
    # Round

    async def _play_round(self) -> None:
        self._prepare_round()

        await self.betting.wait()
        if not self.playing:
            return
        for player in self.betting.without_bet(self.players.values()):
            self.events.emit_new(EventType.PLAYER_SAT_OUT, player_id=player.id)
        if not self._in_round():
            await self.stop(StopReason.NO_BETS_PLACED)
            return

        self.close_betting()
        self._deal()
        self.begin_player_turns()
        await self._player_turns()
        if not self.playing:
            return

        self.begin_dealer_turn()
        await self._dealer_turn()
        if not self.playing:
            return

        self.begin_settlement()
        await self._settle()
        if not self.playing:
            return

        await self._handle_broke_players()

    def _prepare_round(self) -> None:
        self.round_number += 1
        self.dealer.reset()
        for player in self.players.values():
            player.reset_round()
            if player.new_entry or player.pending_buy_in:
                player.activate_buy_in()

        if self.deck.needs_reshuffle(self.settings.reshuffle_threshold):
            self.deck.reshuffle()
            self.events.emit_new(
                EventType.SHOE_SHUFFLED, reason="threshold", cards=self.deck.cards_remaining
            )
        if self.settings.auto_clean_hands:
            self.events.clear_history()

        self.open_betting()
        self.betting.open(self.settings.min_bet, self.settings.max_bet)
        timeout = self.settings.effective_betting_timeout
        self.events.emit_new(EventType.ROUND_STARTED, round=self.round_number)
        self.events.emit_new(
            EventType.BETTING_OPENED,
            round=self.round_number,
            timeout=timeout,
            min_bet=self.settings.min_bet,
            max_bet=self.settings.max_bet,
        )

        for player in self.betting.eligible(self.players.values()):
            if player.autobet is not None:
                self._place_autobet(player)

        if self.betting.all_bets_placed(self.players.values()):
            self.betting.close("allBetsPlaced")
        else:
            self.timers.start("betting", timeout, lambda: self.betting.close("timeout"))
        self._request_estimates("betting")

    def _place_autobet(self, player: Player) -> None:
        autobet = player.autobet
        if autobet is None:
            return
        try:
            self.betting.place(player, autobet.amount, automatic=True)
        except ValidationError as exc:
            player.autobet = None
            self.events.emit_new(EventType.AUTOBET_CANCELLED, player_id=player.id, reason=exc.code)
            return
        autobet.remaining -= 1
        if autobet.remaining <= 0:
            player.autobet = None

    def _deal(self) -> None:
        players = self._in_round()
        for player in players:
            player.hands = [Hand(bet=player.bets.initial)]

        for _ in range(2):
            for player in players:
                player.hands[0].add_cards(self._draw(1))
            self.dealer.deal(1)

        for player in players:
            hand = evaluate_hand(player.hands[0], sibling_hand_count=1)
            self.events.emit_new(
                EventType.CARD_DEALT, player_id=player.id, cards=hand.codes, value=hand.value
            )
            if hand.blackjack:
                self.events.emit_new(EventType.PLAYER_BLACKJACK, player_id=player.id)
        up_card = self.dealer.up_card
        self.events.emit_new(EventType.CARD_DEALT, player_id=None, cards=[up_card.code] if up_card else [])

    async def _player_turns(self) -> None:
        for player in self._in_round():
            if not self.playing:
                return
            if player.id not in self.players:
                continue
            await self._play_turn(player)
        self._awaiting = None

    async def _play_turn(self, player: Player) -> None:
        player.status.is_current_turn = True
        index = 0
        try:
            while self.playing and player.id in self.players and index < len(player.hands):
                player.status.current_hand_index = index
                hand = player.hands[index]
                if hand.locked or hand.busted:
                    index += 1
                    continue
                if hand.blackjack or hand.value >= 21 or hand.is_split_ace_hand:
                    hand.locked = True
                    self.events.emit_new(
                        EventType.PLAYER_STAND,
                        player_id=player.id,
                        hand_index=index,
                        value=hand.value,
                        automatic=True,
                    )
                    index += 1
                    continue
                await self._await_decision(player, index)
        finally:
            player.status.is_current_turn = False
            if self._awaiting == player.id:
                self._awaiting = None

    async def _await_decision(self, player: Player, index: int) -> None:
        self._turn_token += 1
        token = self._turn_token
        self._awaiting = player.id
        self._decision.clear()

        timeout = self.settings.effective_action_timeout
        self.events.emit_new(
            EventType.TURN_STARTED,
            player_id=player.id,
            hand_index=index,
            legal_actions=[a.value for a in self.actions.legal_actions(player, index)],
            timeout=timeout,
        )
        self._request_estimates("players")
        self.timers.start("action", timeout, lambda: self._on_action_timeout(player.id, token))

        await self._decision.wait()
        self.timers.cancel("action")

    async def _on_action_timeout(self, player_id: str, token: int) -> None:
        if token != self._turn_token or not self.playing:
            return
        player = self.players.get(player_id)
        if player is None:
            return
        self.events.emit_new(
            EventType.TURN_TIMED_OUT,
            player_id=player_id,
            hand_index=player.status.current_hand_index,
        )
        try:
            await self.actions.process(player, PlayerAction.STAND, automatic=True)
        except ValidationError as exc:
            logger.debug(
                "Automatic stand skipped: %s", exc, extra=self._log_extra(player_id=player_id)
            )
        if token == self._turn_token:
            self._decision.set()

    async def _dealer_turn(self) -> None:
        live = [h for p in self._in_round() for h in p.hands if not h.busted]
        if not live:
            logger.debug("Every hand busted, dealer does not draw", extra=self._log_extra())
            return
        self._request_estimates("dealer")
        await self.dealer.play_hand()

    async def _settle(self) -> None:
        dealer_blackjack = self.dealer.has_blackjack
        for player in self._in_round():
            if not self.playing:
                return
            self.insurance.resolve(player, dealer_blackjack)
            for index, hand in enumerate(player.hands):
                self._settle_hand(player, index, hand)
            self._record_round(player)
            try:
                await self.ledger.persist(player.profile)
            except PersistenceFailure:
                logger.warning(
                    "Could not persist round result",
                    exc_info=True,
                    extra=self._log_extra(player_id=player.id),
                )
        self.events.emit_new(
            EventType.ROUND_ENDED,
            round=self.round_number,
            dealer=self.dealer.hand.codes,
            dealer_value=self.dealer.hand.value,
        )

    def _settle_hand(self, player: Player, index: int, hand: Hand) -> int:
        """Pay out one hand. Returns the net result."""
        if hand.result is not None:
            raise AlreadySettled(
                f"Hand {index} of {player.id} is already settled",
                player_id=player.id,
                hand_index=index,
            )

        comparison = compare_hands(hand, self.dealer.hand)
        hand.result = comparison.result
        hand.payout = calculate_payout(hand.bet, comparison.result, comparison.win_factor)
        hand.locked = True

        if comparison.result == HandResult.PUSH:
            hand.push = True
            self.ledger.deposit(player, hand.bet)
            self.events.emit_new(EventType.PUSH, player_id=player.id, hand_index=index, bet=hand.bet)
        elif comparison.result == HandResult.WIN:
            gross = gross_winnings(hand.bet, comparison.win_factor)
            self.ledger.deposit(player, gross)
            player.status.winnings.gross += gross
            self.events.emit_new(
                EventType.PLAYER_WINS,
                player_id=player.id,
                hand_index=index,
                amount=hand.payout,
                blackjack=hand.blackjack,
            )
        else:
            self.events.emit_new(
                EventType.PLAYER_LOSES, player_id=player.id, hand_index=index, amount=hand.bet
            )

        player.status.winnings.net += hand.payout
        return hand.payout

    def _record_round(self, player: Player) -> None:
        profile = player.profile
        winnings = player.status.winnings
        profile.hands_played += len(player.hands)
        profile.hands_won += sum(1 for h in player.hands if h.result == HandResult.WIN)
        if winnings.net > profile.biggest_won:
            profile.biggest_won = winnings.net
        winnings.experience = self.scoring(winnings.gross)
        profile.experience += winnings.experience

    async def _handle_broke_players(self) -> None:
        broke = [
            p for p in self.players.values() if not p.new_entry and self.rebuys.needs_rebuy(p)
        ]
        if not broke:
            return

        offered: list[Player] = []
        for player in broke:
            if self.rebuys.can_rebuy(player):
                offered.append(player)
            else:
                await self._remove_player(player, RemovalReason.NO_MONEY)

        if offered and self.playing:
            self.pause_for_rebuy()
            for player in offered:
                self.rebuys.offer(player)
            _, expired = await self.rebuys.gather()
            if not self.playing:
                return
            for player_id in expired:
                player = self.players.get(player_id)
                if player is not None:
                    await self._remove_player(player, RemovalReason.REBUY_EXPIRED)

        await self._enforce_min_seats(RemovalReason.NO_MONEY)

    # ------------------------------------------------------------------
    # Probability feed

    def _stage(self) -> Stage:
        if self.phase == TablePhase.BETTING:
            return "betting"
        if self.phase in (TablePhase.DEALING, TablePhase.PLAYER_TURNS):
            return "players"
        if self.phase in (TablePhase.DEALER_TURN, TablePhase.SETTLING):
            return "dealer"
        return "idle"

    def _request_estimates(self, stage: Stage | None = None) -> int | None:
        if self._feed is None or not self.playing:
            return None
        snapshot = build_snapshot(
            self.deck,
            self._in_round(),
            self.dealer.hand,
            stage or self._stage(),
            self._awaiting,
        )
        return self._feed.request(snapshot)

    def _apply_estimates(self, sequence: int, estimates: dict[str, Estimate]) -> None:
        for player_id, estimate in estimates.items():
            player = self.players.get(player_id)
            if player is not None:
                player.status.estimate = estimate
        self.events.emit_new(
            EventType.PROBABILITY_UPDATED,
            sequence=sequence,
            players=sorted(estimates),
        )

    # ------------------------------------------------------------------
    # Views

    def snapshot(self) -> dict[str, Any]:
        """Serializable view of the table; the hole card stays hidden until the dealer plays."""
        hide_hole = self.phase in (TablePhase.DEALING, TablePhase.PLAYER_TURNS)
        dealer_cards = self.dealer.hand.codes
        if hide_hole and len(dealer_cards) > 1:
            dealer_cards = dealer_cards[:1] + ["??"] * (len(dealer_cards) - 1)

        return {
            "table_id": self.id,
            "phase": self.phase.name.lower(),
            "round": self.round_number,
            "stop_reason": self.stop_reason.value if self.stop_reason else None,
            "awaiting_player_id": self._awaiting,
            "cards_remaining": self.deck.cards_remaining,
            "dealer": {
                "cards": dealer_cards,
                "value": None if hide_hole else self.dealer.hand.value,
                "busted": False if hide_hole else self.dealer.hand.busted,
            },
            "players": [self._player_view(p) for p in self.players.values()],
            "settings": {
                "min_bet": self.settings.min_bet,
                "max_bet": self.settings.max_bet,
                "min_buy_in": self.settings.min_buy_in,
                "max_buy_in": self.settings.max_buy_in,
                "min_seats": self.settings.min_seats,
                "max_seats": self.settings.max_seats,
                "action_timeout": self.settings.effective_action_timeout,
                "rebuy_mode": self.settings.rebuy_mode,
            },
            "timeline": [event.to_dict() for event in self.events.history],
        }

    def _player_view(self, player: Player) -> dict[str, Any]:
        estimate = player.status.estimate
        return {
            "id": player.id,
            "name": player.name,
            "stack": player.stack,
            "pending_buy_in": player.pending_buy_in,
            "bankroll": player.bankroll,
            "new_entry": player.new_entry,
            "rebuys_used": player.rebuys_used,
            "pending_rebuy": player.status.pending_rebuy,
            "is_current_turn": player.status.is_current_turn,
            "current_hand_index": player.status.current_hand_index,
            "bets": {
                "initial": player.bets.initial,
                "total": player.bets.total,
                "insurance": player.bets.insurance,
            },
            "hands": [
                {
                    "cards": hand.codes,
                    "bet": hand.bet,
                    "value": hand.value,
                    "blackjack": hand.blackjack,
                    "busted": hand.busted,
                    "double_down": hand.double_down,
                    "locked": hand.locked,
                    "result": hand.result.value if hand.result else None,
                    "payout": hand.payout,
                }
                for hand in player.hands
            ],
            "winnings": {
                "gross": player.status.winnings.gross,
                "net": player.status.winnings.net,
                "experience": player.status.winnings.experience,
            },
            "autobet": (
                {"amount": player.autobet.amount, "remaining": player.autobet.remaining}
                if player.autobet
                else None
            ),
            "estimate": (
                {"win": estimate.win, "push": estimate.push, "lose": estimate.lose}
                if estimate
                else None
            ),
        }

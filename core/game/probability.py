"""Asynchronous win/push/lose estimate feed."""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, Literal, Protocol

from core.cards import Deck
from core.hand import Hand
from core.player import Estimate, Player

logger = logging.getLogger(__name__)

Stage = Literal["idle", "betting", "players", "dealer"]


class ProbabilityEngine(Protocol):
    """Anything that can turn a table snapshot into per-player estimates."""

    def estimate(
        self, snapshot: dict[str, Any]
    ) -> dict[str, Estimate] | Awaitable[dict[str, Estimate]]:
        ...


def _hand_snapshot(hand: Hand) -> dict[str, Any]:
    return {
        "cards": hand.codes,
        "bet": hand.bet,
        "value": hand.value,
        "locked": hand.locked,
        "busted": hand.busted,
        "blackjack": hand.blackjack,
        "result": hand.result.value if hand.result else None,
    }


def build_snapshot(
    deck: Deck,
    players: Iterable[Player],
    dealer_hand: Hand,
    stage: Stage,
    awaiting_player_id: str | None = None,
) -> dict[str, Any]:
    """Serialize what an estimator needs to know about the table."""
    return {
        "deck": deck.codes,
        "players": [
            {
                "id": p.id,
                "hands": [_hand_snapshot(h) for h in p.hands],
                "bets": {
                    "initial": p.bets.initial,
                    "total": p.bets.total,
                    "insurance": p.bets.insurance,
                },
                "current_hand_index": p.status.current_hand_index,
                "new_entry": p.new_entry,
            }
            for p in players
        ],
        "dealer": {
            "cards": dealer_hand.codes,
            "value": dealer_hand.value,
            "busted": dealer_hand.busted,
            "blackjack": dealer_hand.blackjack,
        },
        "stage": stage,
        "awaiting_player_id": awaiting_player_id,
    }


class ProbabilityFeed:
    """
    Runs estimates in background tasks tagged with a sequence number.

    Only the newest request's result is applied; gameplay never waits on it.
    """

    def __init__(
        self,
        engine: ProbabilityEngine,
        apply: Callable[[int, dict[str, Estimate]], None],
        table_id: str = "",
    ) -> None:
        self._engine = engine
        self._apply = apply
        self._table_id = table_id
        self._sequence = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def sequence(self) -> int:
        return self._sequence

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def request(self, snapshot: dict[str, Any]) -> int:
        """Schedule an estimate for ``snapshot``; returns its sequence number."""
        self._sequence += 1
        sequence = self._sequence
        task = asyncio.get_running_loop().create_task(
            self._run(sequence, snapshot), name=f"probability:{sequence}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return sequence

    async def _run(self, sequence: int, snapshot: dict[str, Any]) -> None:
        try:
            result = self._engine.estimate(snapshot)
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning(
                "Probability estimate failed",
                exc_info=True,
                extra={"table_id": self._table_id, "sequence": sequence},
            )
            return

        if sequence != self._sequence:
            logger.debug("Dropping stale estimate %d (latest %d)", sequence, self._sequence)
            return
        self._apply(sequence, result)

    def cancel(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

"""Cancellable timers owned by a table."""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[Any] | Any]


class TableTimer:
    """
    A single delayed callback backed by an asyncio task.

    ``cancel`` is deterministic: once it returns, the callback will not start.
    Callbacks must still guard against firing late (the action they time out
    may already have completed).
    """

    def __init__(self, name: str, delay: float, callback: TimerCallback) -> None:
        self.name = name
        self.delay = delay
        self._callback = callback
        self._cancelled = False
        self._fired = False
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"timer:{name}")

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        if self._cancelled:
            return
        self._fired = True
        try:
            result = self._callback()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Timer callback %s failed", self.name)

    def cancel(self) -> None:
        """Stop the timer if it has not fired yet."""
        self._cancelled = True
        if not self._fired:
            self._task.cancel()

    @property
    def active(self) -> bool:
        return not (self._cancelled or self._fired or self._task.done())

    @property
    def fired(self) -> bool:
        return self._fired


class TimerRegistry:
    """The set of timers a table owns; everything in it can be cancelled at once."""

    def __init__(self) -> None:
        self._timers: dict[str, TableTimer] = {}

    def start(self, name: str, delay: float, callback: TimerCallback) -> TableTimer:
        """Start a named timer, replacing (and cancelling) any timer with that name."""
        self.cancel(name)
        timer = TableTimer(name, delay, callback)
        self._timers[name] = timer
        return timer

    def cancel(self, name: str) -> None:
        timer = self._timers.pop(name, None)
        if timer is not None:
            timer.cancel()

    def cancel_all(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

    def get(self, name: str) -> TableTimer | None:
        return self._timers.get(name)

    @property
    def active(self) -> list[str]:
        return [name for name, timer in self._timers.items() if timer.active]

    def __len__(self) -> int:
        return len(self.active)

"""Tests for table timers."""

import asyncio

import pytest

from core.game.timers import TimerRegistry


class TestTimerRegistry:
    """Tests for TimerRegistry."""

    @pytest.mark.asyncio
    async def test_timer_fires(self):
        """Test a timer runs its callback after the delay."""
        fired = asyncio.Event()
        timers = TimerRegistry()
        timer = timers.start("t", 0.01, fired.set)
        await asyncio.wait_for(fired.wait(), 1.0)
        assert timer.fired

    @pytest.mark.asyncio
    async def test_async_callback(self):
        """Test coroutine callbacks are awaited."""
        calls = []

        async def callback():
            calls.append("done")

        timers = TimerRegistry()
        timers.start("t", 0.01, callback)
        await asyncio.sleep(0.05)
        assert calls == ["done"]

    @pytest.mark.asyncio
    async def test_cancel(self):
        """Test a cancelled timer never fires."""
        calls = []
        timers = TimerRegistry()
        timer = timers.start("t", 0.01, lambda: calls.append(1))
        timers.cancel("t")
        await asyncio.sleep(0.05)
        assert calls == []
        assert not timer.active
        assert timers.get("t") is None

    @pytest.mark.asyncio
    async def test_restart_replaces(self):
        """Test starting a timer with the same name cancels the old one."""
        calls = []
        timers = TimerRegistry()
        timers.start("t", 0.01, lambda: calls.append("old"))
        timers.start("t", 0.01, lambda: calls.append("new"))
        await asyncio.sleep(0.05)
        assert calls == ["new"]

    @pytest.mark.asyncio
    async def test_cancel_all(self):
        """Test every timer is cancelled at once."""
        calls = []
        timers = TimerRegistry()
        for name in ("a", "b", "c"):
            timers.start(name, 0.01, lambda: calls.append(1))
        assert len(timers) == 3
        timers.cancel_all()
        await asyncio.sleep(0.05)
        assert calls == []
        assert len(timers) == 0

    @pytest.mark.asyncio
    async def test_failing_callback_is_contained(self):
        """Test a callback error does not escape the timer."""

        def boom():
            raise RuntimeError("boom")

        timers = TimerRegistry()
        timer = timers.start("t", 0.0, boom)
        await asyncio.sleep(0.02)
        assert timer.fired

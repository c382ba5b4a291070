"""Tests for the scheduler implementations."""
import asyncio

import pytest

from MindCanvas.runtime import AsyncioScheduler, VirtualScheduler


class TestVirtualScheduler:
    """Tests for the virtual-clock scheduler."""

    @pytest.mark.asyncio
    async def test_nothing_runs_until_clock_moves(self):
        """Should defer calls until advance()."""
        scheduler = VirtualScheduler()
        ran = []
        scheduler.call_later(0, ran.append, "a")

        assert ran == []
        await scheduler.advance(0)
        assert ran == ["a"]

    @pytest.mark.asyncio
    async def test_runs_in_due_then_schedule_order(self):
        """Should order by due time, ties by scheduling order."""
        scheduler = VirtualScheduler()
        ran = []
        scheduler.call_later(1.0, ran.append, "late")
        scheduler.call_later(0.5, ran.append, "first-half")
        scheduler.call_later(0.5, ran.append, "second-half")

        await scheduler.drain()

        assert ran == ["first-half", "second-half", "late"]
        assert scheduler.now() == 1.0

    @pytest.mark.asyncio
    async def test_advance_runs_only_due_calls(self):
        """Should leave later calls pending."""
        scheduler = VirtualScheduler()
        ran = []
        scheduler.call_later(0.4, ran.append, 1)
        scheduler.call_later(2.0, ran.append, 2)

        await scheduler.advance(1.0)

        assert ran == [1]
        assert scheduler.pending == 1
        assert scheduler.now() == 1.0

    @pytest.mark.asyncio
    async def test_coroutine_callbacks_awaited(self):
        """Should await coroutine callbacks before the next call."""
        scheduler = VirtualScheduler()
        ran = []

        async def work(tag):
            await asyncio.sleep(0)
            ran.append(tag)

        scheduler.call_later(0, work, "x")
        scheduler.call_later(0, ran.append, "y")
        await scheduler.drain()

        assert ran == ["x", "y"]

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_stop_others(self):
        """Should keep the error on the call and continue."""
        scheduler = VirtualScheduler()
        ran = []

        def boom():
            raise ValueError("bad")

        failing = scheduler.call_later(0, boom)
        scheduler.call_later(0, ran.append, "after")
        await scheduler.drain()

        assert isinstance(failing.error, ValueError)
        assert ran == ["after"]

    @pytest.mark.asyncio
    async def test_cancelled_call_skipped(self):
        """Should not run cancelled calls."""
        scheduler = VirtualScheduler()
        ran = []
        call = scheduler.call_later(0, ran.append, "x")
        call.cancel()

        await scheduler.drain()

        assert ran == []
        assert not call.done

    @pytest.mark.asyncio
    async def test_sleep_moves_clock_and_records(self):
        """Should advance virtual time without running calls."""
        scheduler = VirtualScheduler()
        ran = []
        scheduler.call_later(1.0, ran.append, "x")

        await scheduler.sleep(2.5)

        assert scheduler.now() == 2.5
        assert scheduler.sleeps == [2.5]
        assert ran == []

    def test_history_keeps_delays_and_labels(self):
        """Should record every scheduled call."""
        scheduler = VirtualScheduler()
        scheduler.call_later(0.8, print, label="a")
        scheduler.call_later(-1, print, label="b")

        assert [(c.delay, c.label) for c in scheduler.history] == [(0.8, "a"), (0.0, "b")]


class TestAsyncioScheduler:
    """Tests for the real-time scheduler."""

    @pytest.mark.asyncio
    async def test_runs_calls_in_order(self):
        """Should run staggered calls in due order."""
        scheduler = AsyncioScheduler()
        ran = []
        scheduler.call_later(0.02, ran.append, "b")
        scheduler.call_later(0.0, ran.append, "a")
        scheduler.call_later(0.02, ran.append, "c")

        await scheduler.drain()

        assert ran == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_earlier_call_added_while_waiting(self):
        """Should wake up for a call due before the current head."""
        scheduler = AsyncioScheduler()
        ran = []
        scheduler.call_later(0.05, ran.append, "slow")
        await asyncio.sleep(0)
        scheduler.call_later(0.0, ran.append, "fast")

        await scheduler.drain()

        assert ran == ["fast", "slow"]

    @pytest.mark.asyncio
    async def test_aclose_cancels_pending(self):
        """Should drop pending calls on close."""
        scheduler = AsyncioScheduler()
        ran = []
        scheduler.call_later(10, ran.append, "never")

        await scheduler.aclose()

        assert ran == []
        assert scheduler.pending == 0

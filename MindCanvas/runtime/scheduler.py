"""
Scheduler: Delayed execution for staggered task materialization and pacing.

Provides:
- Scheduler: abstract call_later/sleep/now/drain interface
- AsyncioScheduler: real-time implementation on the running event loop
- VirtualScheduler: deterministic virtual clock for tests and dry runs

Calls due at the same instant run in the order they were scheduled. Calls
run one at a time; a coroutine callback is awaited before the next call
starts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import suppress
from typing import Any, Callable, Optional
import asyncio
import heapq
import inspect
import itertools
import logging


logger = logging.getLogger("mindcanvas.scheduler")


class ScheduledCall:
    """A callback scheduled to run at a point on the scheduler's clock."""

    def __init__(
        self,
        due: float,
        seq: int,
        delay: float,
        callback: Callable[..., Any],
        args: tuple,
        label: str = "",
    ):
        self.due = due
        self.seq = seq
        self.delay = delay
        self.callback = callback
        self.args = args
        self.label = label
        self.cancelled = False
        self.done = False
        self.error: Optional[BaseException] = None

    def __lt__(self, other: "ScheduledCall") -> bool:
        return (self.due, self.seq) < (other.due, other.seq)

    def __repr__(self) -> str:
        return f"ScheduledCall(label={self.label!r}, delay={self.delay}, due={self.due})"

    def cancel(self) -> None:
        self.cancelled = True

    async def run(self) -> None:
        """Invoke the callback; exceptions are logged and kept on .error."""
        if self.cancelled or self.done:
            return
        try:
            result = self.callback(*self.args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.error = e
            logger.exception("Scheduled call %r failed", self.label or self.callback)
        finally:
            self.done = True


class Scheduler(ABC):
    """Injectable source of time and delayed execution."""

    def __init__(self):
        self._heap: list[ScheduledCall] = []
        self._seq = itertools.count()

    def _push(self, delay: float, callback: Callable[..., Any], args: tuple, label: str) -> ScheduledCall:
        delay = max(0.0, delay)
        call = ScheduledCall(self.now() + delay, next(self._seq), delay, callback, args, label)
        heapq.heappush(self._heap, call)
        return call

    @property
    def pending(self) -> int:
        return sum(1 for call in self._heap if not call.cancelled)

    @abstractmethod
    def now(self) -> float:
        ...

    @abstractmethod
    def call_later(
        self,
        delay: float,
        callback: Callable[..., Any],
        *args: Any,
        label: str = "",
    ) -> ScheduledCall:
        """Run callback(*args) after delay seconds. Returns immediately."""
        ...

    @abstractmethod
    async def sleep(self, delay: float) -> None:
        ...

    @abstractmethod
    async def drain(self) -> None:
        """Wait until every scheduled call (including ones scheduled meanwhile) has run."""
        ...

    async def aclose(self) -> None:
        for call in self._heap:
            call.cancel()
        self._heap.clear()


class AsyncioScheduler(Scheduler):
    """
    Real-time scheduler driven by a single worker task on the running loop.

    The worker is started lazily by the first call_later() and exits when
    nothing is pending.
    """

    def __init__(self):
        super().__init__()
        self._worker: Optional[asyncio.Task] = None
        self._wakeup = asyncio.Event()

    def now(self) -> float:
        return asyncio.get_running_loop().time()

    def call_later(self, delay, callback, *args, label=""):
        call = self._push(delay, callback, args, label)
        self._wakeup.set()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())
        return call

    async def sleep(self, delay: float) -> None:
        await asyncio.sleep(max(0.0, delay))

    async def _run(self) -> None:
        while self._heap:
            call = self._heap[0]
            wait = call.due - self.now()
            if wait > 0 and not call.cancelled:
                self._wakeup.clear()
                with suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(self._wakeup.wait(), timeout=wait)
                continue
            heapq.heappop(self._heap)
            await call.run()
        self._worker = None

    async def drain(self) -> None:
        while self._worker is not None and not self._worker.done():
            await asyncio.shield(self._worker)

    async def aclose(self) -> None:
        await super().aclose()
        if self._worker is not None:
            self._worker.cancel()
            with suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None


class VirtualScheduler(Scheduler):
    """
    Deterministic scheduler on a virtual clock.

    Nothing runs until advance() or drain() moves the clock. sleep() moves
    the clock forward without running due calls and records the delay.

    Attributes:
        history: Every call scheduled, in scheduling order
        sleeps: Every delay passed to sleep()
    """

    def __init__(self, start: float = 0.0):
        super().__init__()
        self._now = start
        self.history: list[ScheduledCall] = []
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay, callback, *args, label=""):
        call = self._push(delay, callback, args, label)
        self.history.append(call)
        return call

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self._now += max(0.0, delay)
        await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, running every call that falls due."""
        target = self._now + seconds
        while self._heap and self._heap[0].due <= target:
            call = heapq.heappop(self._heap)
            self._now = max(self._now, call.due)
            await call.run()
        self._now = max(self._now, target)

    async def drain(self) -> None:
        while self._heap:
            call = heapq.heappop(self._heap)
            self._now = max(self._now, call.due)
            await call.run()

"""
ResourceGovernor: Sliding-window request tracking and cost accounting.

Provides:
- One governor per session, passed explicitly to every caller
- Rolling 60 second window of request start times
- In-flight request count and cumulative token/cost counters
- A rate-limit flag with reset time once the per-minute ceiling is exceeded

The governor only reports. Callers that honor rate_limit_reached before
issuing a call are what bound remote traffic.
"""

from __future__ import annotations

from collections import deque
from contextlib import asynccontextmanager, suppress
from datetime import datetime
from typing import Callable, Optional
import asyncio
import logging
import time

from pydantic import BaseModel

from ..config.settings import GovernorConfig


logger = logging.getLogger("mindcanvas.governor")


class ResourceUsage(BaseModel):
    """Immutable snapshot of governor counters."""

    current_requests: int = 0
    total_requests: int = 0
    requests_per_minute: int = 0
    tokens_used: int = 0
    estimated_cost: float = 0.0
    rate_limit_reached: bool = False
    reset_time: Optional[datetime] = None

    model_config = {"frozen": True}


class ResourceGovernor:
    """
    Per-session request governor.

    All counters are mutated without awaiting, so updates are atomic with
    respect to the event loop. Moving calls onto threads requires a lock
    around record_request_start/record_request_end.

    Usage:
        governor = ResourceGovernor()
        governor.start_pruning()

        if governor.snapshot().rate_limit_reached:
            ...  # caller decides: skip, degrade or fail

        async with governor.request_slot():
            completion = await backend.acomplete(messages)
        governor.record_tokens(completion.usage.total_tokens)
    """

    def __init__(
        self,
        config: Optional[GovernorConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or GovernorConfig()
        self._clock = clock

        self._window: deque[float] = deque()
        self._current_requests = 0
        self._total_requests = 0
        self._tokens_used = 0
        self._estimated_cost = 0.0
        self._rate_limit_reached = False
        self._reset_at: Optional[float] = None

        self._on_rate_limit: Optional[Callable[[ResourceUsage], None]] = None
        self._pruner: Optional[asyncio.Task] = None

    def reset(self) -> None:
        """Reset all counters for a new session."""
        self._window.clear()
        self._current_requests = 0
        self._total_requests = 0
        self._tokens_used = 0
        self._estimated_cost = 0.0
        self._rate_limit_reached = False
        self._reset_at = None

    # === Recording ===

    def record_request_start(self, tokens: int = 0) -> None:
        """Record a remote call starting."""
        now = self._clock()
        self._window.append(now)
        self._current_requests += 1
        self._total_requests += 1
        self._add_tokens(tokens)

        if len(self._window) > self.config.max_requests_per_minute and not self._rate_limit_reached:
            self._rate_limit_reached = True
            self._reset_at = now + self.config.window_seconds
            logger.warning(
                "Rate limit reached: %d requests in window, resets in %.0fs",
                len(self._window), self.config.window_seconds,
            )
            if self._on_rate_limit:
                self._on_rate_limit(self.snapshot())

    def record_request_end(self) -> None:
        """Record a remote call finishing, successfully or not."""
        if self._current_requests > 0:
            self._current_requests -= 1
        else:
            logger.debug("record_request_end without matching start ignored")

    def record_tokens(self, tokens: int) -> None:
        """Add token usage reported after a call completed."""
        self._add_tokens(tokens)

    def _add_tokens(self, tokens: int) -> None:
        if tokens <= 0:
            return
        self._tokens_used += tokens
        self._estimated_cost += tokens * self.config.cost_per_token

    @asynccontextmanager
    async def request_slot(self, tokens: int = 0):
        """Pair record_request_start/record_request_end around a call."""
        self.record_request_start(tokens)
        try:
            yield self
        finally:
            self.record_request_end()

    # === Window maintenance ===

    def prune_window(self) -> int:
        """
        Drop timestamps older than the window and clear an expired rate limit.

        Returns:
            Number of timestamps removed
        """
        now = self._clock()
        cutoff = now - self.config.window_seconds
        removed = 0
        while self._window and self._window[0] <= cutoff:
            self._window.popleft()
            removed += 1

        if self._rate_limit_reached and self._reset_at is not None and now >= self._reset_at:
            self._rate_limit_reached = False
            self._reset_at = None
            logger.info("Rate limit window reset")

        return removed

    def start_pruning(self) -> asyncio.Task:
        """Prune on a fixed interval in the background, independent of traffic."""
        if self._pruner is None or self._pruner.done():
            self._pruner = asyncio.get_running_loop().create_task(self._prune_loop())
        return self._pruner

    async def stop_pruning(self) -> None:
        if self._pruner is None:
            return
        self._pruner.cancel()
        with suppress(asyncio.CancelledError):
            await self._pruner
        self._pruner = None

    async def _prune_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.prune_interval)
            self.prune_window()

    # === Reporting ===

    @property
    def rate_limit_reached(self) -> bool:
        self.prune_window()
        return self._rate_limit_reached

    def snapshot(self) -> ResourceUsage:
        """Immutable copy of current usage."""
        self.prune_window()
        reset_time = (
            datetime.fromtimestamp(self._reset_at) if self._reset_at is not None else None
        )
        return ResourceUsage(
            current_requests=self._current_requests,
            total_requests=self._total_requests,
            requests_per_minute=len(self._window),
            tokens_used=self._tokens_used,
            estimated_cost=self._estimated_cost,
            rate_limit_reached=self._rate_limit_reached,
            reset_time=reset_time,
        )

    def set_rate_limit_callback(self, callback: Callable[[ResourceUsage], None]) -> None:
        """Callback receives the usage snapshot taken when the limit trips."""
        self._on_rate_limit = callback

    def format_status(self) -> str:
        """Human-readable usage line."""
        usage = self.snapshot()
        cost = "<$0.01" if usage.estimated_cost < 0.01 else f"${usage.estimated_cost:.3f}"
        status = (
            f"Requests: {usage.current_requests} active, {usage.total_requests} total | "
            f"Rate: {usage.requests_per_minute}/{self.config.max_requests_per_minute} per min | "
            f"Tokens: {usage.tokens_used:,} | Cost: {cost}"
        )
        if usage.rate_limit_reached and usage.reset_time:
            status += f" | Rate limited until {usage.reset_time.strftime('%H:%M:%S')}"
        return status

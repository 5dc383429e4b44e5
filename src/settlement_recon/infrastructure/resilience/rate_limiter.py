# src/settlement_recon/infrastructure/resilience/rate_limiter.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Sliding-window rate limiter (async).

Summary:
    Client-side limiter for an upstream API whose cap is per credential. The
    limiter keeps the dispatch timestamps of the last ``max_requests`` calls in
    a ring buffer. ``acquire()`` prunes stamps older than the window and, when
    the buffer is full, blocks until the oldest stamp leaves the window plus a
    safety margin. It never fails.

Notes:
    * One instance per process, injected into every fetching collaborator.
    * Waiters queue on an ``asyncio.Lock`` and are released in FIFO order.
    * Clock and sleep are injectable so tests run against a fake clock.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from contextlib import suppress

from settlement_recon.infrastructure.observability.metrics import rate_limiter_wait_seconds

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class SlidingWindowRateLimiter:
    """Blocking sliding-window limiter.

    Args:
        max_requests: Requests allowed within any window.
        window_s: Window length in seconds.
        safety_margin_s: Extra wait added when the window is full.
        clock: Monotonic clock returning seconds.
        sleep: Awaitable sleep.
    """

    def __init__(
        self,
        max_requests: int,
        window_s: float,
        *,
        safety_margin_s: float = 0.1,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_s <= 0:
            raise ValueError("window_s must be > 0")
        if safety_margin_s < 0:
            raise ValueError("safety_margin_s must be >= 0")

        self.max_requests = max_requests
        self.window_s = float(window_s)
        self.safety_margin_s = float(safety_margin_s)
        self._clock = clock
        self._sleep = sleep
        self._stamps: deque[float] = deque(maxlen=max_requests)
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        """Drop stamps that left the window."""
        while self._stamps and now - self._stamps[0] >= self.window_s:
            self._stamps.popleft()

    def in_flight(self) -> int:
        """Return the number of dispatches still inside the current window."""
        self._prune(self._clock())
        return len(self._stamps)

    async def acquire(self) -> float:
        """Block until a request may be dispatched, then record it.

        Returns:
            Seconds spent waiting.
        """
        waited = 0.0
        async with self._lock:
            while True:
                now = self._clock()
                self._prune(now)
                if len(self._stamps) < self.max_requests:
                    self._stamps.append(now)
                    break
                delay = self.window_s - (now - self._stamps[0]) + self.safety_margin_s
                await self._sleep(delay)
                waited += delay

        if waited:
            with suppress(Exception):
                rate_limiter_wait_seconds.observe(waited)
        return waited

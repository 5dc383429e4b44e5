# src/settlement_recon/application/services/retry.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Retry utilities (async) with jittered exponential backoff.

One policy object describes attempts, backoff and jitter; ``retry_async``
wraps any zero-argument coroutine factory with it. The same policy instance
is shared by the discrepancy detector and the period-repair step.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


def full_jitter(backoff: float) -> float:
    """Return a uniformly random delay in ``[0, backoff]``."""
    return random.uniform(0, backoff)  # noqa: S311


def no_jitter(backoff: float) -> float:
    """Return ``backoff`` unchanged."""
    return backoff


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry attempts."""

    max_attempts: int  # total attempts, including the first one
    base: float  # base backoff seconds
    cap: float  # max backoff seconds
    jitter: Callable[[float], float] = full_jitter

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base < 0 or self.cap < 0:
            raise ValueError("backoff values must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Return the sleep before retry number ``attempt`` (0-based)."""
        backoff = min(self.cap, self.base * (2**attempt))
        return max(0.0, self.jitter(backoff))


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    retry_on: Callable[[Exception], bool],
    sleep: Sleep = asyncio.sleep,
    on_retry: Callable[[int, Exception, float], None] | None = None,
) -> T:
    """Retry an async function with backoff until success or budget exhausted.

    Args:
        fn: Zero-arg async function to execute.
        policy: RetryPolicy defining count/backoff.
        retry_on: Predicate that returns True when an exception is retryable.
        sleep: Awaitable sleep, injectable for tests.
        on_retry: Optional callback ``(attempt, exc, delay)`` invoked before
            each sleep.

    Returns:
        The return value of ``fn`` if successful.

    Raises:
        The last exception if retries are exhausted or it is not retryable.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:  # noqa: BLE001
            if attempt + 1 >= policy.max_attempts or not retry_on(exc):
                raise
            delay = policy.delay_for(attempt)
            if on_retry is not None:
                on_retry(attempt + 1, exc, delay)
        await sleep(delay)
        attempt += 1

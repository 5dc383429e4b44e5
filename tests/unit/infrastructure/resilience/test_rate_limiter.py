# tests/unit/infrastructure/resilience/test_rate_limiter.py
from __future__ import annotations

import asyncio

import pytest

from settlement_recon.infrastructure.resilience.rate_limiter import SlidingWindowRateLimiter


class FakeClock:
    """Monotonic clock advanced only by the limiter's own sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _limiter(clock: FakeClock, *, cap: int = 5, window: float = 60.0) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(
        cap, window, safety_margin_s=0.1, clock=clock, sleep=clock.sleep
    )


@pytest.mark.anyio
async def test_under_cap_never_waits() -> None:
    clock = FakeClock()
    limiter = _limiter(clock)

    for _ in range(5):
        assert await limiter.acquire() == 0.0
    assert clock.sleeps == []
    assert limiter.in_flight() == 5


@pytest.mark.anyio
async def test_twice_the_cap_waits_about_one_window_and_never_exceeds_cap() -> None:
    clock = FakeClock()
    limiter = _limiter(clock, cap=5, window=60.0)
    stamps: list[float] = []

    for _ in range(10):
        await limiter.acquire()
        stamps.append(clock.now)

    # The second half had to wait for the first half to leave the window.
    assert clock.now == pytest.approx(60.1)
    for t in stamps:
        in_window = [s for s in stamps if t <= s < t + 60.0]
        assert len(in_window) <= 5


@pytest.mark.anyio
async def test_concurrent_callers_share_one_window() -> None:
    clock = FakeClock()
    limiter = _limiter(clock, cap=3, window=10.0)
    stamps: list[float] = []

    async def call() -> None:
        await limiter.acquire()
        stamps.append(clock.now)

    await asyncio.gather(*(call() for _ in range(7)))

    assert len(stamps) == 7
    for t in stamps:
        assert len([s for s in stamps if t <= s < t + 10.0]) <= 3


@pytest.mark.anyio
async def test_stamps_older_than_window_are_pruned() -> None:
    clock = FakeClock()
    limiter = _limiter(clock, cap=2, window=5.0)
    await limiter.acquire()
    await limiter.acquire()

    clock.now = 5.0
    assert limiter.in_flight() == 0
    assert await limiter.acquire() == 0.0


@pytest.mark.parametrize(
    ("cap", "window", "margin"),
    [(0, 1.0, 0.0), (1, 0.0, 0.0), (1, 1.0, -0.1)],
)
def test_invalid_configuration(cap: int, window: float, margin: float) -> None:
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(cap, window, safety_margin_s=margin)

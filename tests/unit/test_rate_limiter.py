from __future__ import annotations

import asyncio
import time

import pytest

from homehub_ai.core.runtime.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.mark.asyncio
async def test_first_slot_is_immediate_and_next_waits_out_interval():
    clock = FakeClock()
    limiter = RateLimiter({"huggingface": 1000}, clock=clock, sleep=clock.sleep)

    assert await limiter.await_slot("huggingface") == 0.0
    clock.now += 0.25
    waited = await limiter.await_slot("huggingface")
    assert waited == pytest.approx(0.75)
    assert clock.sleeps == [pytest.approx(0.75)]


@pytest.mark.asyncio
async def test_providers_are_gated_independently():
    clock = FakeClock()
    limiter = RateLimiter({"huggingface": 1000, "gemini": 1000}, clock=clock, sleep=clock.sleep)

    await limiter.await_slot("huggingface")
    assert await limiter.await_slot("gemini") == 0.0
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_concurrent_slots_are_spaced_by_min_interval():
    limiter = RateLimiter({"p": 40})
    released: list[float] = []

    async def worker() -> None:
        await limiter.await_slot("p")
        released.append(time.monotonic())

    await asyncio.gather(*(worker() for _ in range(5)))

    assert len(released) == 5
    gaps = [b - a for a, b in zip(released, released[1:])]
    assert all(g >= 0.035 for g in gaps), gaps


@pytest.mark.asyncio
async def test_zero_interval_never_sleeps():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sleep=clock.sleep)
    for _ in range(3):
        await limiter.await_slot("unconfigured")
    assert clock.sleeps == []
    assert limiter.snapshot()["unconfigured"]["min_interval_ms"] == 0

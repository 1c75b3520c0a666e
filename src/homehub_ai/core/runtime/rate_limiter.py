from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable


class RateLimiter:
    """Per-provider minimum-interval gate.

    Each provider has its own ``asyncio.Lock``; waiters queue on it in arrival
    order and the holder sleeps out the remaining interval before stamping the
    dispatch time, so two callers can never be released for the same instant.
    """

    def __init__(
        self,
        intervals_ms: dict[str, int] | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._intervals_ms: dict[str, int] = dict(intervals_ms or {})
        self._last_dispatch: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._meta_lock = asyncio.Lock()
        self._clock = clock
        self._sleep = sleep

    def configure(self, provider: str, min_interval_ms: int) -> None:
        self._intervals_ms[provider] = max(0, int(min_interval_ms))

    def interval_seconds(self, provider: str) -> float:
        return self._intervals_ms.get(provider, 0) / 1000.0

    async def _lock_for(self, provider: str) -> asyncio.Lock:
        async with self._meta_lock:
            if provider not in self._locks:
                self._locks[provider] = asyncio.Lock()
            return self._locks[provider]

    async def await_slot(self, provider: str) -> float:
        """Wait for the provider's next slot; returns the seconds spent waiting."""
        lock = await self._lock_for(provider)
        async with lock:
            interval = self.interval_seconds(provider)
            waited = 0.0
            last = self._last_dispatch.get(provider)
            if last is not None and interval > 0:
                remaining = last + interval - self._clock()
                if remaining > 0:
                    await self._sleep(remaining)
                    waited = remaining
            self._last_dispatch[provider] = self._clock()
            return waited

    def snapshot(self) -> dict[str, dict]:
        return {
            name: {
                "min_interval_ms": self._intervals_ms.get(name, 0),
                "last_dispatch": self._last_dispatch.get(name),
            }
            for name in sorted(set(self._intervals_ms) | set(self._last_dispatch))
        }

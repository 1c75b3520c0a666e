from __future__ import annotations

import asyncio
import hashlib
import json
import re
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from homehub_ai.core.inference.base import Capability, ChatTurn, NormalizedResult

DEFAULT_TTL_SECONDS = 24 * 60 * 60


def canonicalize_prompt(prompt: str) -> str:
    return re.sub(r"\s+", " ", prompt).strip()


def _normalize(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _normalize(value[k]) for k in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    if isinstance(value, ChatTurn):
        return {"message": value.message, "sender": value.sender}
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def fingerprint(
    capability: Capability | str,
    prompt: str,
    *,
    context: str = "",
    history: list[ChatTurn] | None = None,
    params: dict[str, Any] | None = None,
) -> str:
    cap = capability.value if isinstance(capability, Capability) else str(capability)
    payload = {
        "capability": cap,
        "prompt": canonicalize_prompt(prompt),
        "context": canonicalize_prompt(context or ""),
        "history": _normalize(history or []),
        "params": _normalize(params or {}),
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class CacheEntry:
    fingerprint: str
    value: NormalizedResult
    created_at: float
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


class ResponseStore(ABC):
    @abstractmethod
    def get(self, key: str) -> tuple[NormalizedResult | None, bool]:
        raise NotImplementedError

    @abstractmethod
    def put(self, key: str, value: NormalizedResult, ttl_seconds: float | None = None) -> None:
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> dict[str, int]:
        raise NotImplementedError


class ResponseCache(ResponseStore):
    """In-memory TTL cache keyed by request fingerprint.

    Expired entries are dropped lazily on lookup or by :meth:`sweep`. When
    ``max_entries`` is reached the oldest entry is evicted.
    """

    def __init__(
        self,
        *,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl_seconds = default_ttl_seconds
        self.max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "writes": 0, "evictions": 0}

    def get(self, key: str) -> tuple[NormalizedResult | None, bool]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats["misses"] += 1
                return None, False
            if entry.expired(now):
                del self._entries[key]
                self._stats["evictions"] += 1
                self._stats["misses"] += 1
                return None, False
            self._stats["hits"] += 1
            return entry.value, True

    def put(self, key: str, value: NormalizedResult, ttl_seconds: float | None = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            return
        now = self._clock()
        entry = CacheEntry(fingerprint=key, value=value, created_at=now, expires_at=now + ttl)
        with self._lock:
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_entries:
                self._entries.popitem(last=False)
                self._stats["evictions"] += 1
            self._entries[key] = entry
            self._stats["writes"] += 1

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [k for k, e in self._entries.items() if e.expired(now)]
            for key in stale:
                del self._entries[key]
            self._stats["evictions"] += len(stale)
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {**self._stats, "size": len(self._entries)}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


async def run_periodic_sweep(cache: ResponseCache, interval_seconds: float, logger=None) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        removed = cache.sweep()
        if logger is not None and removed:
            logger.info("cache_sweep", removed=removed, size=len(cache))

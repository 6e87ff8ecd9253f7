from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar


T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    key: str
    expires_at: float
    items: list[T]


class CandidateCache(Generic[T]):
    """TTL cache for ranked candidate lists.

    The clock is injected so expiry can be driven deterministically; a TTL of
    zero disables caching entirely.
    """

    def __init__(self, ttl_s: float, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_s < 0:
            raise ValueError("ttl_s must be >= 0")
        self._ttl_s = ttl_s
        self._clock = clock
        self._data: dict[str, CacheEntry[T]] = {}
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._ttl_s > 0

    @property
    def generation(self) -> int:
        """Bumped on every invalidation; pass it back to ``set`` to drop stale writes."""
        with self._lock:
            return self._generation

    def get(self, key: str) -> CacheEntry[T] | None:
        if not self.enabled:
            return None
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                self._data.pop(key, None)
                return None
            return entry

    def set(
        self, key: str, items: list[T], generation: int | None = None
    ) -> CacheEntry[T] | None:
        if not self.enabled:
            return None
        entry = CacheEntry(key=key, expires_at=self._clock() + self._ttl_s, items=list(items))
        with self._lock:
            if generation is not None and generation != self._generation:
                return None
            self._data[key] = entry
        return entry

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._generation += 1
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

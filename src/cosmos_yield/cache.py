"""Process-local key/value cache with per-entry expiry."""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

from cachetools import TLRUCache

from .logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class _Miss:
    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False


MISS: Any = _Miss()


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    fetched_at_ms: int
    ttl_ms: int | None  # None never expires

    @property
    def expires_at_ms(self) -> float:
        if self.ttl_ms is None:
            return math.inf
        return self.fetched_at_ms + self.ttl_ms


def _time_to_use(key: str, entry: CacheEntry[Any], now_ms: int) -> float:
    return entry.expires_at_ms


class TTLCache:
    """Bounded key/value store; expired entries read as misses.

    Backed by ``cachetools.TLRUCache`` with an expiry per entry. Safe for
    concurrent use from the event loop and from worker threads. When full,
    expired entries are dropped first, then the least recently used.
    """

    def __init__(
        self,
        max_entries: int = 512,
        clock: Callable[[], int] = _now_ms,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._clock = clock
        self._entries: TLRUCache = TLRUCache(
            maxsize=max_entries, ttu=_time_to_use, timer=clock
        )
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)

    def get(self, key: str) -> Any:
        """Return the cached value, or ``MISS`` if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                # expired entries are unreachable but still stored until purged
                self._entries.expire()
                return MISS
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float | None) -> None:
        ttl_ms = None if ttl_seconds is None else int(ttl_seconds * 1000)
        with self._lock:
            self._entries[key] = CacheEntry(
                value=value, fetched_at_ms=self._clock(), ttl_ms=ttl_ms
            )

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[T]],
        ttl_seconds: float | None,
    ) -> T:
        """Return the cached value for ``key`` or await ``loader`` and store it.

        Concurrent misses on the same key may each run the loader. Nothing is
        stored when the loader raises or is cancelled.
        """
        cached = self.get(key)
        if cached is not MISS:
            return cached
        value = await loader()
        self.set(key, value, ttl_seconds)
        return value

"""
In-memory TTL cache with single-flight population.

Concurrent callers asking for the same missing key share one
in-progress factory call instead of each starting their own.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Awaitable, Callable, Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

DEFAULT_TTL = timedelta(minutes=60)


@dataclass
class CacheEntry(Generic[V]):
    """Cached value with creation and expiry timestamps (clock seconds)."""

    value: V
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class _Flight(Generic[V]):
    """A population in progress and the number of callers awaiting it."""

    task: asyncio.Task[V]
    waiters: int = field(default=0)
    abandoned: bool = False


class ResponseCache(Generic[K, V]):
    """Time-bounded key/value store with single-flight population.

    Expiry is checked lazily on access. Failed populations are never
    cached; every caller awaiting one receives the same exception and
    the next call starts over.

    Flights are asyncio tasks, so all callers must share one event loop.
    The lock keeps the bookkeeping consistent for synchronous readers
    such as stats() called from another thread.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[K, CacheEntry[V]] = {}
        self._in_flight: dict[K, _Flight[V]] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _lookup_locked(self, key: K) -> CacheEntry[V] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._evictions += 1
            return None
        return entry

    def get(self, key: K) -> V | None:
        """Return a live cached value, or None."""
        with self._lock:
            entry = self._lookup_locked(key)
            return entry.value if entry is not None else None

    async def get_or_add(
        self,
        key: K,
        factory: Callable[[], Awaitable[V]],
        ttl: timedelta | None = None,
    ) -> V:
        """Return the cached value for key, populating it on a miss.

        Args:
            key: Cache key
            factory: Zero-argument coroutine function producing the value
            ttl: Lifetime of the new entry, counted from completion

        Returns:
            The cached or freshly produced value

        Raises:
            Whatever the factory raised, for every caller sharing the flight
        """
        with self._lock:
            entry = self._lookup_locked(key)
            if entry is not None:
                self._hits += 1
                logger.debug("Cache hit", extra={"cache_key": str(key)})
                return entry.value

            flight = self._in_flight.get(key)
            if flight is not None and (flight.abandoned or flight.task.done()):
                # abandoned, or cancelled before its first step
                del self._in_flight[key]
                flight = None
            if flight is None:
                self._misses += 1
                logger.debug("Cache miss", extra={"cache_key": str(key)})
                entry_ttl = self.ttl if ttl is None else ttl
                task = asyncio.ensure_future(self._populate(key, factory, entry_ttl))
                flight = _Flight(task=task)
                self._in_flight[key] = flight
            flight.waiters += 1

        try:
            # shield: one waiter being cancelled must not cancel the shared flight
            return await asyncio.shield(flight.task)
        finally:
            with self._lock:
                flight.waiters -= 1
                abandoned = flight.waiters == 0 and not flight.task.done()
                if abandoned:
                    # a dying flight may still be unwinding; later callers start afresh
                    flight.abandoned = True
                    if self._in_flight.get(key) is flight:
                        del self._in_flight[key]
            if abandoned:
                flight.task.cancel()

    async def _populate(
        self,
        key: K,
        factory: Callable[[], Awaitable[V]],
        ttl: timedelta,
    ) -> V:
        try:
            value = await factory()
        finally:
            with self._lock:
                flight = self._in_flight.get(key)
                if flight is not None and flight.task is asyncio.current_task():
                    del self._in_flight[key]

        now = self._clock()
        with self._lock:
            self._entries[key] = CacheEntry(
                value=value,
                created_at=now,
                expires_at=now + ttl.total_seconds(),
            )
        return value

    def invalidate(self, key: K) -> bool:
        """Drop a cached entry. Returns True if one was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def purge_expired(self) -> int:
        """Remove all expired entries. Returns count removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            self._evictions += len(expired)
            return len(expired)

    def clear(self) -> None:
        """Remove all cached entries and reset counters."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> dict[str, int | float]:
        """Return lightweight cache metrics without exposing values."""
        with self._lock:
            return {
                "ttl_seconds": self.ttl.total_seconds(),
                "entries": len(self._entries),
                "in_flight": len(self._in_flight),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

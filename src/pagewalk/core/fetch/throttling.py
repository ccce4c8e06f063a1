"""
Rate limiting and throttling utilities.

Provides the two pieces of shared state every dispatcher caller
coordinates on: a bounded concurrency gate and a backoff window
set from server-imposed rate limits.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


DEFAULT_RETRY_AFTER_SECONDS = 60.0


class BackoffPolicy(str, Enum):
    """How a new rate-limit signal combines with an active window."""

    OVERWRITE = "overwrite"
    EXTEND = "extend"


def parse_retry_after(
    value: str | None,
    default: float | None = DEFAULT_RETRY_AFTER_SECONDS,
    now: datetime | None = None,
) -> float | None:
    """Parse a Retry-After header value into seconds.

    Accepts delta-seconds ("120") or an HTTP-date. Negative deltas
    clamp to zero.

    Args:
        value: Raw header value (may be None)
        default: Returned when the header is absent or unparseable
        now: Reference time for HTTP-date values

    Returns:
        Seconds to wait, or default
    """
    if value is None or not value.strip():
        return default

    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return max(0.0, seconds) if math.isfinite(seconds) else default

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return default
    if when is None:
        return default
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


class ConcurrencyGate:
    """Bounded concurrency gate shared by all callers of one dispatcher.

    A capacity of 0 disables the limit. Use as an async context
    manager so the slot is released on every exit path:

        async with gate:
            await make_request()
    """

    def __init__(self, capacity: int = 0):
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        self.capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity) if capacity > 0 else None
        self._in_use = 0
        self._peak = 0

    @property
    def bounded(self) -> bool:
        return self._semaphore is not None

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def peak(self) -> int:
        """Highest number of slots held at once."""
        return self._peak

    async def acquire(self) -> None:
        if self._semaphore is not None:
            await self._semaphore.acquire()
        self._in_use += 1
        self._peak = max(self._peak, self._in_use)

    def release(self) -> None:
        self._in_use -= 1
        if self._semaphore is not None:
            self._semaphore.release()

    async def __aenter__(self) -> "ConcurrencyGate":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.release()

    def stats(self) -> dict[str, int]:
        return {
            "capacity": self.capacity,
            "in_use": self._in_use,
            "peak": self._peak,
        }


class BackoffWindow:
    """Shared "do not send before" deadline.

    The deadline is only read or written under the lock. No await
    happens while it is held.
    """

    def __init__(
        self,
        policy: BackoffPolicy = BackoffPolicy.OVERWRITE,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.policy = BackoffPolicy(policy)
        self._clock = clock
        self._lock = threading.Lock()
        self._deadline = clock()

    @property
    def deadline(self) -> float:
        with self._lock:
            return self._deadline

    def remaining(self) -> float:
        """Seconds until new requests may be issued (0 if open)."""
        with self._lock:
            return max(0.0, self._deadline - self._clock())

    @property
    def active(self) -> bool:
        return self.remaining() > 0

    def defer(self, seconds: float) -> float:
        """Close the window for the given number of seconds.

        With the OVERWRITE policy a shorter delay replaces a longer one
        that is still running.

        Returns:
            The new deadline
        """
        with self._lock:
            candidate = self._clock() + max(0.0, seconds)
            if self.policy is BackoffPolicy.EXTEND:
                self._deadline = max(self._deadline, candidate)
            else:
                self._deadline = candidate
            return self._deadline

    async def wait(self) -> None:
        """Sleep until the window is open.

        Re-reads the deadline after each sleep, since another caller
        may have moved it meanwhile.
        """
        while True:
            remaining = self.remaining()
            if remaining <= 0:
                return
            logger.debug("Backoff active, sleeping %.2fs", remaining)
            await asyncio.sleep(remaining)

    def stats(self) -> dict[str, Any]:
        return {
            "policy": self.policy.value,
            "remaining_seconds": round(self.remaining(), 3),
        }

"""
Rate-limited request dispatcher.

Every GET goes through three layers, outermost first:
- the response cache (single-flight, keyed by the exact URL)
- the concurrency gate
- the shared backoff window, re-checked before each attempt
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import timedelta
from typing import Any

from ..backends.base import ApiResponse, Backend, RateLimitError, RequestSpec
from .caching import DEFAULT_TTL, ResponseCache
from .retries import rate_limit_retrying
from .throttling import DEFAULT_RETRY_AFTER_SECONDS, BackoffWindow, ConcurrencyGate

logger = logging.getLogger(__name__)


class RequestDispatcher:
    """Issues GET requests through a bounded gate and a shared backoff window.

    One dispatcher is meant to live for the whole session and be shared
    by every paginated stream talking to the same API.

    Usage:
        async with RequestDispatcher(HttpBackend(base_url), max_concurrency=4) as dispatcher:
            response = await dispatcher.get("groups?limit=100")
    """

    def __init__(
        self,
        backend: Backend,
        max_concurrency: int = 0,
        cache: ResponseCache[str, ApiResponse] | None = None,
        cache_ttl: timedelta = DEFAULT_TTL,
        default_retry_after: float = DEFAULT_RETRY_AFTER_SECONDS,
        backoff: BackoffWindow | None = None,
        max_rate_limit_retries: int | None = None,
    ):
        """Initialize dispatcher.

        Args:
            backend: Backend performing the actual requests
            max_concurrency: Max simultaneous outbound requests (0 = unbounded)
            cache: Response cache (a private one is created if omitted)
            cache_ttl: Lifetime of cached successful responses
            default_retry_after: Backoff used when a 429 carries no Retry-After
            backoff: Shared backoff window (a private one is created if omitted)
            max_rate_limit_retries: Give up after this many 429s (None = never)
        """
        if max_rate_limit_retries is not None and max_rate_limit_retries < 1:
            raise ValueError("max_rate_limit_retries must be >= 1 or None")

        self.backend = backend
        self.cache: ResponseCache[str, ApiResponse] = cache if cache is not None else ResponseCache(ttl=cache_ttl)
        self.cache_ttl = cache_ttl
        self.default_retry_after = default_retry_after
        self.max_rate_limit_retries = max_rate_limit_retries

        self.gate = ConcurrencyGate(max_concurrency)
        self.backoff = backoff or BackoffWindow()

        self._requests_sent = 0
        self._rate_limited = 0

    async def get(self, url: str) -> ApiResponse:
        """Fetch a URL, serving identical requests from the cache.

        Args:
            url: Request URL, absolute or relative to the backend base URL.
                Query parameters are part of the cache key.

        Returns:
            Successful response. from_cache is set when this call issued no
            request of its own (a cache hit, or a request already in flight).

        Raises:
            HttpStatusError: On any non-success status other than 429
            FetchError: On transport failure
        """
        started = False

        async def populate() -> ApiResponse:
            nonlocal started
            started = True
            return await self._get_uncached(url)

        response = await self.cache.get_or_add(url, populate, ttl=self.cache_ttl)
        return response if started else replace(response, from_cache=True)

    async def _get_uncached(self, url: str) -> ApiResponse:
        async with self.gate:
            async for attempt in rate_limit_retrying(self.max_rate_limit_retries):
                with attempt:
                    await self.backoff.wait()
                    try:
                        self._requests_sent += 1
                        return await self.backend.fetch(RequestSpec(url=url))
                    except RateLimitError as e:
                        self._start_backoff(e)
                        raise

    def _start_backoff(self, error: RateLimitError) -> None:
        self._rate_limited += 1
        delay = error.retry_after if error.retry_after is not None else self.default_retry_after
        self.backoff.defer(delay)
        logger.warning(
            "Rate limited, backing off for %.1fs",
            delay,
            extra={"url": error.url, "status_code": 429, "retry_after": delay},
        )

    def stats(self) -> dict[str, Any]:
        """Get dispatcher statistics."""
        return {
            "requests_sent": self._requests_sent,
            "rate_limited": self._rate_limited,
            "gate": self.gate.stats(),
            "backoff": self.backoff.stats(),
            "cache": self.cache.stats(),
        }

    async def close(self) -> None:
        await self.backend.close()

    async def __aenter__(self) -> "RequestDispatcher":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

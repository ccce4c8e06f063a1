"""
Fetch runner orchestrator.

Wires configuration into a backend, dispatcher and paginated fetcher,
and drives one traversal for the CLI.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from pagewalk.core.backends.base import Backend
from pagewalk.core.backends.http_backend import HttpBackend
from pagewalk.core.config.models import AppConfig
from pagewalk.core.fetch.dispatcher import RequestDispatcher
from pagewalk.core.fetch.throttling import BackoffWindow
from pagewalk.core.pagination.fetcher import PaginatedFetcher

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RunStats:
    """Statistics for a fetch run."""

    items_fetched: int = 0
    pages_fetched: int = 0
    requests_sent: int = 0
    rate_limited: int = 0
    cache_hits: int = 0

    started_at: datetime = field(default_factory=_utcnow)
    finished_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        """Get run duration in seconds."""
        if self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "items_fetched": self.items_fetched,
            "pages_fetched": self.pages_fetched,
            "requests_sent": self.requests_sent,
            "rate_limited": self.rate_limited,
            "cache_hits": self.cache_hits,
            "duration_seconds": self.duration_seconds,
        }


def build_dispatcher(config: AppConfig, backend: Backend | None = None) -> RequestDispatcher:
    """Create a dispatcher from configuration.

    Args:
        config: Application configuration
        backend: Backend to use instead of one built from config.api
    """
    if backend is None:
        backend = HttpBackend(
            base_url=config.api.base_url,
            timeout=config.api.timeout_seconds,
            default_headers=config.api.default_headers,
            max_connections=config.api.max_connections,
        )

    return RequestDispatcher(
        backend,
        max_concurrency=config.throttle.max_concurrency,
        cache_ttl=timedelta(minutes=config.cache.ttl_minutes),
        default_retry_after=config.throttle.default_retry_after_seconds,
        backoff=BackoffWindow(policy=config.throttle.backoff_policy),
        max_rate_limit_retries=config.throttle.max_rate_limit_retries,
    )


def build_fetcher(config: AppConfig, dispatcher: RequestDispatcher | None = None) -> PaginatedFetcher:
    """Create a paginated fetcher (and its dispatcher) from configuration."""
    return PaginatedFetcher(
        dispatcher or build_dispatcher(config),
        page_size=config.pagination.page_size,
    )


class FetchRunner:
    """Runs one traversal of a paginated endpoint.

    Usage:
        runner = FetchRunner(config)
        stats = await runner.run("groups", on_item=print)
    """

    def __init__(self, config: AppConfig, *, fetcher: PaginatedFetcher | None = None) -> None:
        self.config = config
        self.fetcher = fetcher or build_fetcher(config)

    async def run(
        self,
        endpoint: str,
        on_item: Callable[[Any], None],
        max_items: int | None = None,
        item_type: Any = Any,
    ) -> RunStats:
        """Stream every item of endpoint into on_item.

        Args:
            endpoint: Collection endpoint
            on_item: Called once per item, in page order
            max_items: Stop after this many items
            item_type: Item type passed to the fetcher

        Returns:
            RunStats for the traversal
        """
        stats = RunStats()
        dispatcher = self.fetcher.dispatcher
        before = dispatcher.stats()

        logger.info("Fetching %s", endpoint, extra={"endpoint": endpoint})

        try:
            async with self.fetcher.fetch_items(endpoint, item_type=item_type) as stream:
                async for item in stream:
                    on_item(item)
                    stats.items_fetched += 1
                    if max_items is not None and stats.items_fetched >= max_items:
                        break
                stats.pages_fetched = stream.pages_fetched
        finally:
            after = dispatcher.stats()
            stats.requests_sent = after["requests_sent"] - before["requests_sent"]
            stats.rate_limited = after["rate_limited"] - before["rate_limited"]
            stats.cache_hits = after["cache"]["hits"] - before["cache"]["hits"]
            stats.finished_at = _utcnow()

        logger.info(
            "Fetched %d items from %s in %d pages",
            stats.items_fetched,
            endpoint,
            stats.pages_fetched,
            extra={"endpoint": endpoint},
        )
        return stats

    async def close(self) -> None:
        await self.fetcher.dispatcher.close()

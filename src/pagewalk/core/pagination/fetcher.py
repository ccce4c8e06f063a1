"""
Cursor-paginated collection fetching.

Turns a chain of cursor-linked pages into one async iterator of items.
While the items of page N are being consumed, page N+1 is already being
fetched. Nothing is fetched further ahead than that.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Generic, Iterator, TypeVar
from urllib.parse import urlencode

from pydantic import ValidationError

from ..backends.base import ApiResponse
from ..fetch.dispatcher import RequestDispatcher
from ..logging import get_contextual_logger
from .models import Page, PaginatedRoot

T = TypeVar("T")

PAGE_SIZE = 100

_END: Any = object()


def build_page_url(endpoint: str, page_size: int = PAGE_SIZE, cursor: str | None = None) -> str:
    """Build the request URL for one page.

    The cursor is URL-encoded and omitted for the first page. Any query
    string already on the endpoint is preserved.
    """
    params = [("limit", str(page_size))]
    if cursor is not None:
        params.append(("cursor", cursor))
    separator = "&" if "?" in endpoint else "?"
    return f"{endpoint}{separator}{urlencode(params)}"


def parse_page(response: ApiResponse, item_type: Any = Any, endpoint: str | None = None) -> Page[Any]:
    """Parse a response body into a Page.

    A body that is not valid JSON, or does not match the envelope,
    gives an empty page without a cursor.
    """
    try:
        root = PaginatedRoot[item_type].model_validate_json(response.content)
    except ValidationError as e:
        get_contextual_logger("pagination", endpoint=endpoint).warning(
            "Malformed page response from %s, ending traversal (%d errors)",
            response.url,
            e.error_count(),
            extra={"url": response.url},
        )
        return Page()
    return Page.from_root(root)


class StreamState(str, Enum):
    """Lifecycle of a PageStream."""

    FETCHING_FIRST = "fetching_first"
    YIELDING = "yielding"
    EXHAUSTED = "exhausted"


class PageStream(Generic[T]):
    """Single-pass async iterator over all items of a paginated endpoint.

    Usage:
        async with fetcher.fetch_items("groups") as stream:
            async for group in stream:
                ...

    Closing the stream (or an error while iterating) cancels the
    lookahead fetch, if any. Once exhausted the stream stays exhausted.
    """

    def __init__(self, fetcher: "PaginatedFetcher", endpoint: str, item_type: Any = Any):
        self._fetcher = fetcher
        self.endpoint = endpoint
        self.item_type = item_type
        self.state = StreamState.FETCHING_FIRST

        self._items: Iterator[T] = iter(())
        self._lookahead: asyncio.Task[Page[T]] | None = None
        self._logger = get_contextual_logger("pagination", endpoint=endpoint)

        self.pages_fetched = 0
        self.items_yielded = 0

    def __aiter__(self) -> "PageStream[T]":
        return self

    async def __anext__(self) -> T:
        if self.state is StreamState.EXHAUSTED:
            raise StopAsyncIteration

        try:
            while True:
                if self.state is StreamState.FETCHING_FIRST:
                    page = await self._fetcher.fetch_page(self.endpoint, item_type=self.item_type)
                    self._enter(page)
                    continue

                item = next(self._items, _END)
                if item is not _END:
                    # cancellation checkpoint; also lets the lookahead task run
                    await asyncio.sleep(0)
                    self.items_yielded += 1
                    return item

                if self._lookahead is None:
                    self._logger.debug(
                        "Traversal complete: %d pages, %d items",
                        self.pages_fetched,
                        self.items_yielded,
                    )
                    self._finish()
                    raise StopAsyncIteration

                task, self._lookahead = self._lookahead, None
                self._enter(await task)
        except StopAsyncIteration:
            raise
        except BaseException:
            self._finish()
            raise

    def _enter(self, page: Page[T]) -> None:
        """Make page current and start fetching the one after it."""
        self.pages_fetched += 1
        self._items = iter(page.items)
        self.state = StreamState.YIELDING

        if page.has_next:
            self._logger.debug(
                "Page %d has %d items, prefetching next",
                self.pages_fetched,
                len(page.items),
                extra={"page": self.pages_fetched, "cursor": page.next_cursor},
            )
            self._lookahead = asyncio.ensure_future(
                self._fetcher.fetch_page(
                    self.endpoint,
                    cursor=page.next_cursor,
                    item_type=self.item_type,
                )
            )

    def _finish(self) -> None:
        self.state = StreamState.EXHAUSTED
        self._items = iter(())
        task, self._lookahead = self._lookahead, None
        if task is None:
            return
        if task.done():
            if not task.cancelled():
                task.exception()  # mark retrieved
        else:
            task.cancel()

    async def aclose(self) -> None:
        """Stop the traversal and wait for a pending lookahead to unwind."""
        task = self._lookahead
        self._finish()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def collect(self, limit: int | None = None) -> list[T]:
        """Drain the stream into a list, stopping early after limit items."""
        items: list[T] = []
        try:
            async for item in self:
                items.append(item)
                if limit is not None and len(items) >= limit:
                    break
        finally:
            await self.aclose()
        return items

    async def __aenter__(self) -> "PageStream[T]":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()


class PaginatedFetcher:
    """Fetches cursor-paginated collections through a shared dispatcher.

    Any number of streams may run concurrently on one fetcher; they share
    the dispatcher's concurrency gate, backoff window and cache.
    """

    def __init__(self, dispatcher: RequestDispatcher, page_size: int = PAGE_SIZE):
        self.dispatcher = dispatcher
        self.page_size = page_size

    async def fetch_page(
        self,
        endpoint: str,
        cursor: str | None = None,
        item_type: Any = Any,
    ) -> Page[Any]:
        """Fetch and parse a single page.

        Raises:
            HttpStatusError: On non-success status
            FetchError: On transport failure
        """
        url = build_page_url(endpoint, self.page_size, cursor)
        response = await self.dispatcher.get(url)
        return parse_page(response, item_type, endpoint=endpoint)

    def fetch_items(self, endpoint: str, item_type: Any = Any) -> PageStream[Any]:
        """Return a fresh stream over every item of the endpoint.

        Args:
            endpoint: Collection endpoint, e.g. "groups"
            item_type: Type each item is validated into (plain JSON values by default,
                or a pydantic model)
        """
        return PageStream(self, endpoint, item_type)

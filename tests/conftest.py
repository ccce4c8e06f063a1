"""Shared test fixtures: an in-memory backend and a controllable clock."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Any

import orjson
import pytest

from pagewalk.core.backends.base import (
    ApiResponse,
    Backend,
    HttpStatusError,
    RateLimitError,
    RequestSpec,
)


class FakeClock:
    """Deterministic clock used to test expiration logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class FakeBackend(Backend):
    """Backend serving scripted outcomes per URL.

    Each URL has a queue of outcomes; the last one is reused once the
    queue is down to a single entry. Unknown URLs answer 404.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.routes: dict[str, deque[Any]] = {}
        self.calls: list[str] = []
        self.call_times: list[float] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.hold: asyncio.Event | None = None
        # awaited while unwinding, like a pooled connection being released
        self.release: asyncio.Event | None = None
        self.closed = False

    @property
    def name(self) -> str:
        return "fake"

    def _add(self, url: str, outcome: Any) -> None:
        self.routes.setdefault(url, deque()).append(outcome)

    def add_raw(self, url: str, content: bytes, status_code: int = 200) -> None:
        self._add(
            url,
            ApiResponse(
                url=url,
                final_url=url,
                status_code=status_code,
                content=content,
                headers={"content-type": "application/json"},
            ),
        )

    def add_json(self, url: str, payload: Any) -> None:
        self.add_raw(url, orjson.dumps(payload))

    def add_page(self, url: str, items: list[Any], cursor: str | None = None) -> None:
        self.add_json(url, {"code": "Success", "data": {"items": items, "next_cursor": cursor}})

    def add_rate_limit(self, url: str, retry_after: float | None = None) -> None:
        self._add(url, RateLimitError("Rate limit exceeded", url=url, retry_after=retry_after))

    def add_status(self, url: str, status_code: int) -> None:
        self._add(url, HttpStatusError(f"HTTP {status_code}", url=url, status_code=status_code))

    def calls_for(self, url: str) -> int:
        return self.calls.count(url)

    def times_for(self, url: str) -> list[float]:
        return [t for u, t in zip(self.calls, self.call_times) if u == url]

    async def fetch(self, request: RequestSpec) -> ApiResponse:
        self.calls.append(request.url)
        self.call_times.append(time.monotonic())
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.hold is not None:
                await self.hold.wait()
            if self.delay:
                await asyncio.sleep(self.delay)

            queue = self.routes.get(request.url)
            if not queue:
                raise HttpStatusError("HTTP 404", url=request.url, status_code=404)
            outcome = queue.popleft() if len(queue) > 1 else queue[0]
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1
            if self.release is not None:
                await self.release.wait()

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()

"""Tests for RequestDispatcher: dedup, concurrency cap, shared 429 backoff."""

import asyncio
import time

import pytest

from pagewalk.core.backends import HttpStatusError, RateLimitError
from pagewalk.core.fetch import RequestDispatcher, rate_limit_retrying


@pytest.mark.asyncio
async def test_identical_concurrent_requests_hit_network_once(backend) -> None:
    backend.delay = 0.05
    backend.add_json("groups", {"ok": True})
    dispatcher = RequestDispatcher(backend)

    responses = await asyncio.gather(*(dispatcher.get("groups") for _ in range(10)))

    assert backend.calls == ["groups"]
    assert sum(not r.from_cache for r in responses) == 1
    assert all(r.content == responses[0].content for r in responses)


@pytest.mark.asyncio
async def test_cached_response_is_reused_within_ttl(backend) -> None:
    backend.add_json("groups", {"ok": True})
    dispatcher = RequestDispatcher(backend)

    await dispatcher.get("groups")
    await dispatcher.get("groups")

    assert backend.calls_for("groups") == 1
    assert dispatcher.stats()["cache"]["hits"] == 1


@pytest.mark.asyncio
async def test_distinct_urls_are_distinct_requests(backend) -> None:
    backend.add_json("groups?limit=100", {"page": 1})
    backend.add_json("groups?limit=100&cursor=c1", {"page": 2})
    dispatcher = RequestDispatcher(backend)

    first = await dispatcher.get("groups?limit=100")
    second = await dispatcher.get("groups?limit=100&cursor=c1")

    assert first.json() == {"page": 1}
    assert second.json() == {"page": 2}
    assert len(backend.calls) == 2


@pytest.mark.asyncio
async def test_concurrency_capacity_is_never_exceeded(backend) -> None:
    backend.delay = 0.02
    urls = [f"items/{i}" for i in range(12)]
    for url in urls:
        backend.add_json(url, {"url": url})
    dispatcher = RequestDispatcher(backend, max_concurrency=3)

    await asyncio.gather(*(dispatcher.get(url) for url in urls))

    assert backend.max_in_flight == 3
    assert dispatcher.gate.peak == 3
    assert dispatcher.gate.in_use == 0


@pytest.mark.asyncio
async def test_rate_limit_pauses_every_caller(backend) -> None:
    backend.add_rate_limit("a", retry_after=0.2)
    backend.add_json("a", {"name": "a"})
    backend.add_json("b", {"name": "b"})
    dispatcher = RequestDispatcher(backend)

    first = asyncio.create_task(dispatcher.get("a"))
    while not backend.calls:
        await asyncio.sleep(0.005)
    second = asyncio.create_task(dispatcher.get("b"))

    a_response, b_response = await asyncio.gather(first, second)

    limited_at = backend.times_for("a")[0]
    assert backend.times_for("a")[1] - limited_at >= 0.19
    assert backend.times_for("b")[0] - limited_at >= 0.19
    assert a_response.json() == {"name": "a"}
    assert b_response.json() == {"name": "b"}
    assert dispatcher.stats()["rate_limited"] == 1


@pytest.mark.asyncio
async def test_missing_retry_after_uses_default(backend) -> None:
    backend.add_rate_limit("a", retry_after=None)
    backend.add_json("a", {})
    dispatcher = RequestDispatcher(backend, default_retry_after=0.1)

    started = time.monotonic()
    await dispatcher.get("a")

    assert backend.calls_for("a") == 2
    assert time.monotonic() - started >= 0.09


@pytest.mark.asyncio
async def test_default_retry_after_is_sixty_seconds(backend) -> None:
    assert RequestDispatcher(backend).default_retry_after == 60.0


@pytest.mark.asyncio
async def test_http_failure_is_not_retried_or_cached(backend) -> None:
    backend.add_status("broken", 500)
    dispatcher = RequestDispatcher(backend)

    with pytest.raises(HttpStatusError) as exc_info:
        await dispatcher.get("broken")
    assert exc_info.value.status_code == 500
    assert backend.calls_for("broken") == 1

    with pytest.raises(HttpStatusError):
        await dispatcher.get("broken")
    assert backend.calls_for("broken") == 2


@pytest.mark.asyncio
async def test_cached_url_returns_during_backoff(backend) -> None:
    backend.add_json("a", {"cached": True})
    dispatcher = RequestDispatcher(backend)
    await dispatcher.get("a")

    dispatcher.backoff.defer(30)
    response = await asyncio.wait_for(dispatcher.get("a"), timeout=0.5)

    assert response.json() == {"cached": True}
    assert backend.calls_for("a") == 1


@pytest.mark.asyncio
async def test_slot_released_after_failure(backend) -> None:
    backend.add_status("broken", 404)
    backend.add_json("ok", {})
    dispatcher = RequestDispatcher(backend, max_concurrency=1)

    with pytest.raises(HttpStatusError):
        await dispatcher.get("broken")

    await asyncio.wait_for(dispatcher.get("ok"), timeout=1)
    assert dispatcher.gate.in_use == 0


@pytest.mark.asyncio
async def test_slot_released_after_cancellation(backend) -> None:
    backend.hold = asyncio.Event()
    backend.add_json("slow", {})
    dispatcher = RequestDispatcher(backend, max_concurrency=1)

    task = asyncio.create_task(dispatcher.get("slow"))
    await asyncio.sleep(0.01)
    assert dispatcher.gate.in_use == 1

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0.01)

    assert dispatcher.gate.in_use == 0
    assert dispatcher.cache.stats()["in_flight"] == 0


@pytest.mark.asyncio
async def test_slot_held_across_rate_limit_retries(backend) -> None:
    backend.add_rate_limit("a", retry_after=0.05)
    backend.add_json("a", {})
    backend.add_json("b", {})
    dispatcher = RequestDispatcher(backend, max_concurrency=1)

    await asyncio.gather(dispatcher.get("a"), dispatcher.get("b"))

    assert backend.calls == ["a", "a", "b"]
    assert dispatcher.gate.peak == 1


@pytest.mark.asyncio
async def test_max_rate_limit_retries_gives_up(backend) -> None:
    backend.add_rate_limit("a", retry_after=0)
    dispatcher = RequestDispatcher(backend, max_rate_limit_retries=3)

    with pytest.raises(RateLimitError):
        await dispatcher.get("a")

    assert backend.calls_for("a") == 3


def test_zero_rate_limit_retries_is_rejected(backend) -> None:
    with pytest.raises(ValueError):
        RequestDispatcher(backend, max_rate_limit_retries=0)


@pytest.mark.asyncio
async def test_zero_attempt_limit_stops_after_first_attempt() -> None:
    attempts = 0

    with pytest.raises(RateLimitError):
        async for attempt in rate_limit_retrying(0):
            with attempt:
                attempts += 1
                raise RateLimitError("Rate limit exceeded", url="a")

    assert attempts == 1


@pytest.mark.asyncio
async def test_close_closes_backend(backend) -> None:
    async with RequestDispatcher(backend):
        pass

    assert backend.closed is True


@pytest.mark.asyncio
async def test_cache_hits_are_marked_from_cache(backend) -> None:
    backend.add_json("groups", {"ok": True})
    dispatcher = RequestDispatcher(backend)

    first = await dispatcher.get("groups")
    second = await dispatcher.get("groups")

    assert first.from_cache is False
    assert second.from_cache is True
    assert second.content == first.content


@pytest.mark.asyncio
async def test_new_caller_does_not_join_cancelled_request(backend) -> None:
    backend.hold = asyncio.Event()
    backend.release = asyncio.Event()
    backend.add_json("a", {"v": 1})
    dispatcher = RequestDispatcher(backend)

    first = asyncio.create_task(dispatcher.get("a"))
    await asyncio.sleep(0.01)
    first.cancel()
    with pytest.raises(asyncio.CancelledError):
        await first

    # the cancelled request is still unwinding inside the backend
    backend.hold = None
    second = asyncio.create_task(dispatcher.get("a"))
    await asyncio.sleep(0.01)
    backend.release.set()

    response = await asyncio.wait_for(second, timeout=1)
    assert response.json() == {"v": 1}
    assert response.from_cache is False
    assert backend.calls == ["a", "a"]
    assert dispatcher.cache.stats()["in_flight"] == 0

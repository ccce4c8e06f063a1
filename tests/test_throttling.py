"""Unit tests for the concurrency gate, backoff window and Retry-After parsing."""

import asyncio
import time
from datetime import datetime, timezone

import pytest

from pagewalk.core.fetch.throttling import (
    BackoffPolicy,
    BackoffWindow,
    ConcurrencyGate,
    parse_retry_after,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("5", 5.0),
        ("0.5", 0.5),
        (" 12 ", 12.0),
        ("-3", 0.0),
        (None, 60.0),
        ("", 60.0),
        ("soon", 60.0),
        ("inf", 60.0),
    ],
)
def test_parse_retry_after_delta_seconds(value, expected) -> None:
    assert parse_retry_after(value) == expected


def test_parse_retry_after_http_date() -> None:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    assert parse_retry_after("Thu, 01 Jan 2026 00:00:30 GMT", now=now) == 30.0
    assert parse_retry_after("Wed, 31 Dec 2025 23:59:00 GMT", now=now) == 0.0


def test_parse_retry_after_custom_default() -> None:
    assert parse_retry_after(None, default=None) is None
    assert parse_retry_after("nope", default=1.5) == 1.5


class TestConcurrencyGate:
    """Bounded and unbounded gate behaviour."""

    @staticmethod
    async def _hold(gate: ConcurrencyGate, seconds: float = 0.02) -> None:
        async with gate:
            await asyncio.sleep(seconds)

    @pytest.mark.asyncio
    async def test_never_exceeds_capacity(self) -> None:
        gate = ConcurrencyGate(2)

        await asyncio.gather(*(self._hold(gate) for _ in range(6)))

        assert gate.peak == 2
        assert gate.in_use == 0

    @pytest.mark.asyncio
    async def test_zero_capacity_is_unbounded(self) -> None:
        gate = ConcurrencyGate(0)

        await asyncio.gather(*(self._hold(gate) for _ in range(6)))

        assert gate.bounded is False
        assert gate.peak == 6

    @pytest.mark.asyncio
    async def test_slot_released_on_exception(self) -> None:
        gate = ConcurrencyGate(1)

        with pytest.raises(RuntimeError):
            async with gate:
                raise RuntimeError("boom")

        assert gate.in_use == 0
        await asyncio.wait_for(self._hold(gate, 0), timeout=1)

    @pytest.mark.asyncio
    async def test_slot_released_on_cancellation(self) -> None:
        gate = ConcurrencyGate(1)
        holder = asyncio.create_task(self._hold(gate, 10))
        await asyncio.sleep(0.01)
        assert gate.in_use == 1

        holder.cancel()
        with pytest.raises(asyncio.CancelledError):
            await holder

        assert gate.in_use == 0
        await asyncio.wait_for(self._hold(gate, 0), timeout=1)

    def test_negative_capacity_rejected(self) -> None:
        with pytest.raises(ValueError):
            ConcurrencyGate(-1)


class TestBackoffWindow:
    """Deadline bookkeeping and waiting."""

    def test_open_by_default(self, clock) -> None:
        window = BackoffWindow(clock=clock)

        assert window.remaining() == 0
        assert window.active is False

    def test_defer_closes_window(self, clock) -> None:
        window = BackoffWindow(clock=clock)

        window.defer(5)
        assert window.remaining() == 5

        clock.advance(2)
        assert window.remaining() == 3

        clock.advance(3)
        assert window.active is False

    def test_overwrite_policy_can_shorten_window(self, clock) -> None:
        window = BackoffWindow(policy=BackoffPolicy.OVERWRITE, clock=clock)

        window.defer(10)
        window.defer(1)

        assert window.remaining() == 1

    def test_extend_policy_keeps_longest_deadline(self, clock) -> None:
        window = BackoffWindow(policy=BackoffPolicy.EXTEND, clock=clock)

        window.defer(10)
        window.defer(1)
        assert window.remaining() == 10

        window.defer(20)
        assert window.remaining() == 20

    def test_policy_accepts_string(self, clock) -> None:
        assert BackoffWindow(policy="extend", clock=clock).policy is BackoffPolicy.EXTEND

    @pytest.mark.asyncio
    async def test_wait_sleeps_until_deadline(self) -> None:
        window = BackoffWindow()
        window.defer(0.1)

        started = time.monotonic()
        await window.wait()

        assert time.monotonic() - started >= 0.09
        assert window.active is False

    @pytest.mark.asyncio
    async def test_wait_returns_immediately_when_open(self) -> None:
        await asyncio.wait_for(BackoffWindow().wait(), timeout=0.05)

    @pytest.mark.asyncio
    async def test_wait_is_cancelable(self) -> None:
        window = BackoffWindow()
        window.defer(60)

        waiter = asyncio.create_task(window.wait())
        await asyncio.sleep(0.01)
        waiter.cancel()

        with pytest.raises(asyncio.CancelledError):
            await waiter

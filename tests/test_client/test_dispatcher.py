"""Tests for the batch-admission rate limiter."""

from __future__ import annotations

import asyncio

import pytest

from cachegate.client import RateLimitedDispatcher
from cachegate.models import RateLimitConfig


def _dispatcher(virtual_sleep, burst: int = 2, delay: float = 1.0) -> RateLimitedDispatcher:
    return RateLimitedDispatcher(
        RateLimitConfig(burst_size=burst, batch_delay=delay), sleep=virtual_sleep
    )


class TestBatching:
    @pytest.mark.asyncio
    async def test_batches_are_spaced_by_delay(self, clock, virtual_sleep) -> None:
        dispatcher = _dispatcher(virtual_sleep)
        start = clock.now
        started: list[float] = []

        async def job(i: int) -> int:
            started.append(clock.now - start)
            return i

        futures = [dispatcher.enqueue(lambda i=i: job(i)) for i in range(5)]
        results = await asyncio.gather(*futures)

        assert results == [0, 1, 2, 3, 4]
        assert started == [0, 0, 1, 1, 2]
        assert virtual_sleep.calls == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_batch_members_run_concurrently(self, virtual_sleep) -> None:
        dispatcher = _dispatcher(virtual_sleep, burst=3)
        running = 0
        peak = 0

        async def job() -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0)
            running -= 1

        await asyncio.gather(*(dispatcher.enqueue(job) for _ in range(3)))
        assert peak == 3

    @pytest.mark.asyncio
    async def test_next_batch_waits_for_slow_member(self, clock, virtual_sleep) -> None:
        dispatcher = _dispatcher(virtual_sleep, burst=2)
        order: list[str] = []
        release = asyncio.Event()

        async def slow() -> None:
            await release.wait()
            order.append("slow")

        async def fast(name: str) -> None:
            order.append(name)

        f1 = dispatcher.enqueue(slow)
        f2 = dispatcher.enqueue(lambda: fast("fast"))
        f3 = dispatcher.enqueue(lambda: fast("next"))
        await f2
        for _ in range(5):
            await asyncio.sleep(0)
        assert "next" not in order
        release.set()
        await asyncio.gather(f1, f3)
        assert order == ["fast", "slow", "next"]

    @pytest.mark.asyncio
    async def test_single_request_does_not_sleep(self, virtual_sleep) -> None:
        dispatcher = _dispatcher(virtual_sleep)

        async def job() -> str:
            return "ok"

        assert await dispatcher.submit(job) == "ok"
        assert virtual_sleep.calls == []
        assert not dispatcher.is_draining

    @pytest.mark.asyncio
    async def test_restarts_after_idle(self, virtual_sleep) -> None:
        dispatcher = _dispatcher(virtual_sleep)

        async def job() -> int:
            return 1

        assert await dispatcher.submit(job) == 1
        await asyncio.sleep(0)
        assert await dispatcher.submit(job) == 1


class TestReentrancy:
    @pytest.mark.asyncio
    async def test_enqueue_from_running_request(self, clock, virtual_sleep) -> None:
        dispatcher = _dispatcher(virtual_sleep, burst=1)
        start = clock.now
        inner_started: list[float] = []

        async def inner() -> str:
            inner_started.append(clock.now - start)
            return "inner"

        async def outer() -> asyncio.Future:
            return dispatcher.enqueue(inner)

        inner_future = await dispatcher.submit(outer)
        assert await inner_future == "inner"
        assert inner_started == [1.0]


class TestFailures:
    @pytest.mark.asyncio
    async def test_exception_reaches_only_its_caller(self, virtual_sleep) -> None:
        dispatcher = _dispatcher(virtual_sleep)

        async def boom() -> None:
            raise ValueError("boom")

        async def ok() -> str:
            return "ok"

        bad = dispatcher.enqueue(boom)
        good = dispatcher.enqueue(ok)
        with pytest.raises(ValueError, match="boom"):
            await bad
        assert await good == "ok"

    @pytest.mark.asyncio
    async def test_cancelled_before_admission_is_skipped(self, virtual_sleep) -> None:
        dispatcher = _dispatcher(virtual_sleep, burst=1)
        calls: list[int] = []

        async def job(i: int) -> int:
            calls.append(i)
            return i

        f0 = dispatcher.enqueue(lambda: job(0))
        f1 = dispatcher.enqueue(lambda: job(1))
        f2 = dispatcher.enqueue(lambda: job(2))
        f1.cancel()

        assert await f0 == 0
        assert await f2 == 2
        assert calls == [0, 2]


class TestClose:
    @pytest.mark.asyncio
    async def test_aclose_cancels_pending_work(self, virtual_sleep) -> None:
        dispatcher = _dispatcher(virtual_sleep, burst=1)
        never = asyncio.Event()

        async def blocked() -> None:
            await never.wait()

        futures = [dispatcher.enqueue(blocked) for _ in range(3)]
        await asyncio.sleep(0)
        assert dispatcher.pending == 2

        await dispatcher.aclose()

        assert all(f.cancelled() for f in futures)
        assert dispatcher.pending == 0
        assert not dispatcher.is_draining

    @pytest.mark.asyncio
    async def test_enqueue_after_close_raises(self, virtual_sleep) -> None:
        dispatcher = _dispatcher(virtual_sleep)
        await dispatcher.aclose()

        async def job() -> None:
            return None

        with pytest.raises(RuntimeError, match="closed"):
            dispatcher.enqueue(job)

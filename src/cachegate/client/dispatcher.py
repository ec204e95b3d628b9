"""Batch-admission rate limiter for outgoing requests.

:class:`RateLimitedDispatcher` serialises work into fixed-size batches:
up to ``burst_size`` queued requests are started together, the dispatcher
waits for all of them to settle, and, if more work is queued, sleeps
``batch_delay`` seconds before admitting the next batch. Callers never
block on :meth:`~RateLimitedDispatcher.enqueue`; they await the returned
future instead.

Ordering: batch *k + 1* never starts before batch *k* has fully settled
and the delay has elapsed. Inside a batch, completions may arrive in any
order. FIFO order holds at the admission boundary only.

Burst size and delay are read once when a drain cycle starts, so a
configuration change never reshapes a batch that is already draining.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from cachegate.models import RateLimitConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass
class QueuedRequest:
    """A unit of work waiting for admission, plus the caller's future."""

    fn: Callable[[], Awaitable[Any]]
    future: asyncio.Future


class RateLimitedDispatcher:
    """Runs queued coroutine factories in delayed, bounded batches.

    Args:
        config: Burst size and inter-batch delay.
        sleep: Awaitable sleep used for the inter-batch delay; injectable
            so tests can run on a virtual clock.

    Example::

        dispatcher = RateLimitedDispatcher(RateLimitConfig(burst_size=2, batch_delay=1.0))
        futures = [dispatcher.enqueue(lambda i=i: fetch(i)) for i in range(5)]
        results = await asyncio.gather(*futures)
    """

    def __init__(self, config: RateLimitConfig, sleep: SleepFn = asyncio.sleep) -> None:
        self._config = config
        self._sleep = sleep
        self._queue: deque[QueuedRequest] = deque()
        self._drain_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def pending(self) -> int:
        """Number of requests queued but not yet dispatched."""
        return len(self._queue)

    @property
    def is_draining(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    def enqueue(self, fn: Callable[[], Awaitable[T]]) -> asyncio.Future:
        """Queue *fn* and return a future resolved with its result.

        Must be called from a running event loop. Starts the drain loop if
        it is idle; otherwise the request waits for its batch.

        Raises:
            RuntimeError: If the dispatcher has been closed.
        """
        if self._closed:
            raise RuntimeError("Dispatcher is closed")
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._queue.append(QueuedRequest(fn=fn, future=future))
        if not self.is_draining:
            self._drain_task = loop.create_task(self._drain())
        return future

    async def submit(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Queue *fn* and wait for its result."""
        return await self.enqueue(fn)

    async def aclose(self) -> None:
        """Stop draining and cancel every request that has not been dispatched."""
        self._closed = True
        task = self._drain_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        while self._queue:
            self._queue.popleft().future.cancel()

    async def _drain(self) -> None:
        burst_size = self._config.burst_size
        batch_delay = self._config.batch_delay

        while self._queue:
            batch: list[QueuedRequest] = []
            while self._queue and len(batch) < burst_size:
                item = self._queue.popleft()
                if item.future.done():
                    continue  # cancelled by its caller before admission
                batch.append(item)
            if batch:
                logger.debug(
                    "Dispatching batch of %d request(s), %d still queued",
                    len(batch),
                    len(self._queue),
                )
                await asyncio.gather(*(self._run(item) for item in batch))
            if self._queue:
                await self._sleep(batch_delay)

    async def _run(self, item: QueuedRequest) -> None:
        try:
            result = await item.fn()
        except asyncio.CancelledError:
            item.future.cancel()
            raise
        except Exception as exc:
            if not item.future.done():
                item.future.set_exception(exc)
        else:
            if not item.future.done():
                item.future.set_result(result)

"""Linear-backoff retry around a single logical request.

Failures are classified by the :class:`~cachegate.exceptions.RemoteError`
subclass raised for them:

* :class:`~cachegate.exceptions.TransportError` (timeouts, resets) and
  :class:`~cachegate.exceptions.RemoteServerError` (5xx) are retried.
* :class:`~cachegate.exceptions.RemoteClientError` (4xx, ``FAILED``
  envelopes) is surfaced immediately, except that HTTP 429 is retried
  when :attr:`~cachegate.models.RetryConfig.retry_on_429` is set.

Retry *n* waits ``base_delay * n`` seconds. Once ``max_retries`` retries
have been spent, the last error is raised unchanged apart from its
``attempts`` count.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from cachegate.exceptions import RateLimitedError, RemoteError
from cachegate.models import RetryConfig
from cachegate.output import get_output

T = TypeVar("T")


@dataclass
class RetryState:
    """Progress of one logical request's retry loop."""

    attempt: int = 0
    last_error: Optional[RemoteError] = None


class RetryPolicy:
    """Retries retryable :class:`RemoteError` failures with linear backoff.

    The policy holds no per-request state, so one instance can serve any
    number of concurrent requests.

    Args:
        config: Retry count, base delay, and the 429 switch.
        sleep: Awaitable sleep used between attempts.
    """

    def __init__(
        self,
        config: RetryConfig,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self._config.max_retries + 1

    def is_retryable(self, exc: RemoteError) -> bool:
        if isinstance(exc, RateLimitedError):
            return self._config.retry_on_429
        return exc.retryable

    def delay_for(self, retry_number: int) -> float:
        """Seconds to wait before retry number *retry_number* (1-based)."""
        return self._config.base_delay * retry_number

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Call *operation* until it succeeds or may no longer be retried.

        Raises:
            RemoteError: The final failure, with ``attempts`` set.
        """
        state = RetryState()
        while True:
            state.attempt += 1
            try:
                return await operation()
            except RemoteError as exc:
                exc.attempts = state.attempt
                state.last_error = exc
                if not self.is_retryable(exc) or state.attempt >= self.max_attempts:
                    raise
                delay = self.delay_for(state.attempt)
                get_output().debug(
                    f"{exc.message}, retrying in {delay:g}s "
                    f"(attempt {state.attempt}/{self.max_attempts})"
                )
                await self._sleep(delay)

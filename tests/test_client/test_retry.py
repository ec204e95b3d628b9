"""Tests for the linear-backoff retry policy."""

from __future__ import annotations

import pytest

from cachegate.client import RetryPolicy
from cachegate.exceptions import (
    NotFoundError,
    RateLimitedError,
    RemoteClientError,
    RemoteServerError,
    TransportError,
)
from cachegate.models import RetryConfig


class _Flaky:
    """Operation that raises the queued errors in turn, then returns ``"ok"``."""

    def __init__(self, *errors: Exception) -> None:
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def _policy(virtual_sleep, **kwargs) -> RetryPolicy:
    return RetryPolicy(RetryConfig(**kwargs), sleep=virtual_sleep)


class TestRetryable:
    @pytest.mark.asyncio
    async def test_server_errors_back_off_linearly(self, virtual_sleep) -> None:
        op = _Flaky(*(RemoteServerError("HTTP 503", status_code=503) for _ in range(3)))
        result = await _policy(virtual_sleep).run(op)
        assert result == "ok"
        assert op.calls == 4
        assert virtual_sleep.calls == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self, virtual_sleep) -> None:
        op = _Flaky(TransportError("Connection failed"))
        assert await _policy(virtual_sleep, base_delay=0.5).run(op) == "ok"
        assert virtual_sleep.calls == [0.5]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_last_error(self, virtual_sleep) -> None:
        errors = [RemoteServerError(f"HTTP 50{i}", status_code=500 + i) for i in range(5)]
        op = _Flaky(*errors)
        with pytest.raises(RemoteServerError) as exc_info:
            await _policy(virtual_sleep, max_retries=2).run(op)
        assert exc_info.value is errors[2]
        assert exc_info.value.attempts == 3
        assert "after 3 attempts" in str(exc_info.value)
        assert virtual_sleep.calls == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_zero_retries(self, virtual_sleep) -> None:
        op = _Flaky(RemoteServerError("HTTP 500", status_code=500))
        with pytest.raises(RemoteServerError):
            await _policy(virtual_sleep, max_retries=0).run(op)
        assert op.calls == 1
        assert virtual_sleep.calls == []


class TestNotRetryable:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "exc",
        [
            NotFoundError("HTTP 404", status_code=404),
            RemoteClientError("handles: User not found", status_code=200),
        ],
    )
    async def test_client_errors_surface_immediately(self, virtual_sleep, exc) -> None:
        op = _Flaky(exc)
        with pytest.raises(RemoteClientError) as exc_info:
            await _policy(virtual_sleep).run(op)
        assert op.calls == 1
        assert exc_info.value.attempts == 1
        assert virtual_sleep.calls == []

    @pytest.mark.asyncio
    async def test_unrelated_exceptions_propagate(self, virtual_sleep) -> None:
        op = _Flaky(KeyError("x"))
        with pytest.raises(KeyError):
            await _policy(virtual_sleep).run(op)
        assert op.calls == 1


class TestRateLimited:
    @pytest.mark.asyncio
    async def test_429_not_retried_by_default(self, virtual_sleep) -> None:
        op = _Flaky(RateLimitedError("HTTP 429", status_code=429))
        with pytest.raises(RateLimitedError):
            await _policy(virtual_sleep).run(op)
        assert op.calls == 1

    @pytest.mark.asyncio
    async def test_429_retried_when_enabled(self, virtual_sleep) -> None:
        op = _Flaky(RateLimitedError("HTTP 429", status_code=429))
        assert await _policy(virtual_sleep, retry_on_429=True).run(op) == "ok"
        assert virtual_sleep.calls == [1.0]


class TestDelays:
    def test_delay_for(self) -> None:
        policy = RetryPolicy(RetryConfig(base_delay=2.0))
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [2.0, 4.0, 6.0]

    def test_max_attempts(self) -> None:
        assert RetryPolicy(RetryConfig(max_retries=3)).max_attempts == 4

"""Network side of cachegate.

Classes:
    :class:`Gateway` -- cache-first access to the remote API; the
        composition root callers use.
    :class:`RateLimitedDispatcher` -- batch-admission rate limiter.
    :class:`RetryPolicy` -- linear-backoff retry for retryable failures.

Example::

    from cachegate.client import Gateway

    async with Gateway(config) as gateway:
        problems = await gateway.get("/problemset.problems", {"tags": "dp"})
"""

from cachegate.client.dispatcher import RateLimitedDispatcher
from cachegate.client.gateway import Gateway
from cachegate.client.retry import RetryPolicy

__all__ = ["Gateway", "RateLimitedDispatcher", "RetryPolicy"]

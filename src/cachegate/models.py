"""Canonical Pydantic models shared across all cachegate modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`RetryConfig`, :class:`RateLimitConfig`,
    :class:`CacheConfig`, :class:`CookieConfig`, and :class:`GatewayConfig`.

**Record models** -- what the cache and the cookie jar persist:
    :class:`CacheEntry`, :class:`CookieRecord`, :class:`StoredItem`,
    :class:`CacheStats`, and :class:`SweepResult`.

All durations are expressed in seconds.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from cachegate import __version__


# --- Configuration ---


class RequestConfig(BaseModel):
    """Settings applied to every HTTP call the gateway makes."""

    base_url: str = Field(
        default="https://codeforces.com/api",
        description="Base URL that relative request paths are joined to",
    )
    timeout: float = Field(default=10.0, gt=0, description="Per-request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    user_agent: str = Field(
        default=f"cachegate/{__version__}", description="User-Agent header value"
    )


class RetryConfig(BaseModel):
    """Linear-backoff retry settings for server-side failures."""

    max_retries: int = Field(
        default=3, ge=0, description="Retries after the first attempt"
    )
    base_delay: float = Field(
        default=1.0, ge=0, description="Delay unit in seconds; retry n waits n * base_delay"
    )
    retry_on_429: bool = Field(
        default=False, description="Treat HTTP 429 as retryable"
    )


class RateLimitConfig(BaseModel):
    """Batch admission settings for the rate-limited dispatcher."""

    burst_size: int = Field(
        default=5, ge=1, description="Requests dispatched concurrently per batch"
    )
    batch_delay: float = Field(
        default=1.0, ge=0, description="Seconds to wait between batches"
    )


class StoreBackend(str, enum.Enum):
    """Storage implementations available to the Entry Store."""

    FILE = "file"
    DISKCACHE = "diskcache"
    MEMORY = "memory"


class CacheConfig(BaseModel):
    """Response cache settings.

    ``max_entries`` below 1 is accepted but treated as a caller error: the
    sweeper then empties the store on every write.
    """

    enabled: bool = Field(default=True, description="Enable response caching")
    ttl_seconds: float = Field(default=300, gt=0, description="Default entry TTL in seconds")
    max_entries: int = Field(default=1000, ge=0, description="Maximum number of entries kept")
    directory: Optional[str] = Field(
        default=None, description="Cache directory (defaults to the XDG cache dir)"
    )
    backend: StoreBackend = Field(default=StoreBackend.FILE, description="Storage backend")


class CookieConfig(BaseModel):
    """Session cookie persistence settings."""

    path: Optional[str] = Field(
        default=None, description="Cookie file (defaults to <config_dir>/cookies.json)"
    )


class GatewayConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/cachegate/config.json``.

    Loaded and saved by :func:`~cachegate.config.load_config` and
    :func:`~cachegate.config.save_config`. Fields here have the lowest
    precedence and can be overridden by environment variables or CLI flags.
    See :func:`~cachegate.config.resolve_config` for the full chain.
    """

    request: RequestConfig = Field(default_factory=RequestConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    cookies: CookieConfig = Field(default_factory=CookieConfig)


# --- Records ---


class CacheEntry(BaseModel):
    """A single cached payload as written to the store.

    An entry is *live* while ``now - stored_at <= ttl``; a non-live entry is
    never returned to a caller.
    """

    model_config = ConfigDict(extra="ignore")

    data: Any = None
    stored_at: float = Field(description="Write time, seconds since the epoch")
    ttl: float = Field(description="Lifetime in seconds")

    def is_live(self, now: float) -> bool:
        """Return ``True`` while the entry has not outlived its TTL."""
        return now - self.stored_at <= self.ttl


class CookieRecord(BaseModel):
    """One session cookie; jar membership is keyed by :attr:`name`."""

    name: str
    value: str = ""

    def header_fragment(self) -> str:
        return f"{self.name}={self.value}"


class StoredItem(BaseModel):
    """Listing record returned by :meth:`~cachegate.cache.backends.Store.list`."""

    name: str
    modified: float
    size: int = 0


class CacheStats(BaseModel):
    """Observational statistics for the Entry Store."""

    enabled: bool = True
    backend: str = StoreBackend.FILE.value
    location: Optional[str] = None
    entry_count: int = 0
    total_bytes: int = 0


class SweepResult(BaseModel):
    """Counts reported by one eviction sweep."""

    expired: int = 0
    evicted: int = 0

    @property
    def total(self) -> int:
        return self.expired + self.evicted

"""Typed, TTL-aware entry store on top of a storage backend.

:class:`EntryStore` persists ``{data, stored_at, ttl}`` records (see
:class:`~cachegate.models.CacheEntry`) under the SHA-256 hex digest of a
caller-supplied logical key. It knows nothing about HTTP; the gateway
builds logical keys with :func:`make_request_key`.

The cache is an optimisation, never a source of truth, so no method raises
on storage trouble. Unreadable, corrupt, or expired entries read as a miss
and are deleted on the spot; failed writes are logged and dropped.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from typing import Any, Callable, Optional

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from cachegate.cache.backends import Store
from cachegate.cache.sweeper import EvictionSweeper
from cachegate.exceptions import CacheIOError
from cachegate.models import CacheConfig, CacheEntry, CacheStats, SweepResult

logger = logging.getLogger(__name__)


def hash_key(key: str) -> str:
    """Return the storage name for a logical key (SHA-256 hex digest)."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def make_request_key(method: str, url: str, params: Optional[dict] = None) -> str:
    """Build the canonical logical key for a request.

    Parameters are serialised with sorted keys so that identical requests
    resolve to the same slot regardless of argument order.
    """
    parts = [method.upper(), url]
    if params:
        parts.append(json.dumps(params, sort_keys=True, default=str))
    return "|".join(parts)


class EntryStore:
    """TTL-aware cache of JSON-serialisable payloads.

    Args:
        store: Storage backend holding the serialised entries.
        config: Cache settings (``enabled``, ``ttl_seconds``, ``max_entries``).
        clock: Returns the current time in epoch seconds.

    Example::

        entries = EntryStore(FileStore("/tmp/cg"), CacheConfig(ttl_seconds=60))
        entries.put("contests_false", [{"id": 1}])
        entries.get("contests_false")   # -> [{"id": 1}]
    """

    def __init__(
        self,
        store: Store,
        config: CacheConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._config = config
        self._clock = clock
        self._sweeper = EvictionSweeper(store, config.max_entries, clock=clock)

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def store(self) -> Store:
        return self._store

    def put(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store *value* under *key*, then sweep.

        Args:
            key: Logical key; hashed to derive the storage name.
            value: JSON-serialisable payload.
            ttl: Lifetime in seconds; defaults to ``cache.ttl_seconds``.
        """
        if not self._config.enabled:
            return

        name = hash_key(key)
        entry = CacheEntry(
            data=value,
            stored_at=self._clock(),
            ttl=self._config.ttl_seconds if ttl is None else ttl,
        )
        try:
            raw = entry.model_dump_json().encode("utf-8")
        except PydanticSerializationError as exc:
            logger.warning("Not caching %r: payload is not serialisable (%s)", key, exc)
            return
        try:
            self._store.write(name, raw)
        except CacheIOError as exc:
            logger.warning("Failed to write cache entry %r: %s", key, exc)
            return

        self._sweeper.sweep(protect=name)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live payload for *key*, or *default* on a miss.

        Expired and corrupt entries are deleted as a side effect.
        """
        if not self._config.enabled:
            return default

        name = hash_key(key)
        try:
            raw = self._store.read(name)
        except CacheIOError as exc:
            logger.warning("Failed to read cache entry %r: %s", key, exc)
            return default
        if raw is None:
            return default

        try:
            entry = CacheEntry.model_validate_json(raw)
        except ValidationError:
            logger.warning("Dropping corrupt cache entry %r", key)
            self._discard(name)
            return default

        if not entry.is_live(self._clock()):
            logger.debug("Cache entry %r expired", key)
            self._discard(name)
            return default
        return entry.data

    def delete(self, key: str) -> None:
        """Remove *key*; a no-op if it is absent."""
        self._discard(hash_key(key))

    def clear(self) -> int:
        """Remove every entry and return how many were removed."""
        try:
            removed = self._store.clear()
        except CacheIOError as exc:
            logger.warning("Failed to clear cache: %s", exc)
            return 0
        logger.info("Cache cleared (%d entries)", removed)
        return removed

    def cleanup(self) -> SweepResult:
        """Run an eviction sweep on demand."""
        return self._sweeper.sweep()

    def stats(self) -> CacheStats:
        """Return entry count and total size; purely observational."""
        stats = CacheStats(
            enabled=self._config.enabled,
            backend=self._store.backend.value,
            location=self._store.location,
        )
        try:
            items = self._store.list()
        except CacheIOError as exc:
            logger.warning("Failed to collect cache stats: %s", exc)
            return stats
        stats.entry_count = len(items)
        stats.total_bytes = sum(item.size for item in items)
        return stats

    def close(self) -> None:
        self._store.close()

    def _discard(self, name: str) -> None:
        try:
            self._store.delete(name)
        except CacheIOError as exc:
            logger.warning("Failed to delete cache entry %s: %s", name, exc)

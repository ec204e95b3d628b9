"""Filesystem-backed response cache for cachegate.

This package provides :class:`EntryStore`, a TTL-aware store of JSON
payloads keyed by the SHA-256 digest of a logical key, together with the
:class:`EvictionSweeper` that keeps it bounded and the pluggable
:class:`Store` backends it persists through.

The cache is consumed by :class:`~cachegate.client.gateway.Gateway` and
controlled by the ``cache`` section of the configuration
(:class:`~cachegate.models.CacheConfig`).
"""

from cachegate.cache.backends import (
    DiskCacheStore,
    FileStore,
    MemoryStore,
    Store,
    create_store,
)
from cachegate.cache.store import EntryStore, hash_key, make_request_key
from cachegate.cache.sweeper import EvictionSweeper

__all__ = [
    "DiskCacheStore",
    "EntryStore",
    "EvictionSweeper",
    "FileStore",
    "MemoryStore",
    "Store",
    "create_store",
    "hash_key",
    "make_request_key",
]

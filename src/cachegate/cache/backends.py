"""Storage backends for the Entry Store.

A :class:`Store` is a flat name -> bytes mapping that also reports each
record's modification time, which is all the Entry Store and the eviction
sweeper need. Names are the hex digests produced by
:func:`~cachegate.cache.store.hash_key`; the backends never see the
logical key.

Three implementations are provided:

* :class:`FileStore` -- one JSON file per entry under a directory, written
  atomically via :func:`~cachegate.config.atomic_write`.
* :class:`DiskCacheStore` -- a :class:`diskcache.Cache` (SQLite index)
  for large caches where one-file-per-entry directory scans get slow.
* :class:`MemoryStore` -- a process-local dict, used by tests and by
  ``cache.backend = "memory"``.

Every backend reports failures as :class:`~cachegate.exceptions.CacheIOError`.
A missing name is never an error: ``read`` returns ``None`` and ``delete``
is a no-op.
"""

from __future__ import annotations

import os
import sqlite3
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

import diskcache

from cachegate.config import atomic_write, resolve_cache_dir
from cachegate.exceptions import CacheIOError
from cachegate.models import GatewayConfig, StoreBackend, StoredItem

_SUFFIX = ".json"


class Store(ABC):
    """Abstract name -> bytes store with modification times."""

    backend: StoreBackend

    @property
    def location(self) -> Optional[str]:
        """Human-readable location of the backing storage, if any."""
        return None

    @abstractmethod
    def read(self, name: str) -> Optional[bytes]:
        """Return the stored bytes for *name*, or ``None`` if absent."""

    @abstractmethod
    def write(self, name: str, data: bytes) -> None:
        """Store *data* under *name*, replacing any previous value atomically."""

    @abstractmethod
    def delete(self, name: str) -> None:
        """Remove *name*; no error if it does not exist."""

    @abstractmethod
    def list(self) -> list[StoredItem]:
        """Return every stored record with its modification time and size."""

    def clear(self) -> int:
        """Remove every record and return how many were removed."""
        removed = 0
        for item in self.list():
            self.delete(item.name)
            removed += 1
        return removed

    def close(self) -> None:
        """Release backend resources."""


class FileStore(Store):
    """One file per entry: ``<directory>/<name>.json``.

    The directory is created on first use and may be deleted externally at
    any time; that simply looks like an empty cache.
    """

    backend = StoreBackend.FILE

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def location(self) -> Optional[str]:
        return str(self._directory)

    def path_for(self, name: str) -> Path:
        return self._directory / f"{name}{_SUFFIX}"

    def read(self, name: str) -> Optional[bytes]:
        try:
            return self.path_for(name).read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CacheIOError(f"Cannot read cache entry {name}: {exc}") from exc

    def write(self, name: str, data: bytes) -> None:
        try:
            atomic_write(self.path_for(name), data)
        except OSError as exc:
            raise CacheIOError(f"Cannot write cache entry {name}: {exc}") from exc

    def delete(self, name: str) -> None:
        try:
            self.path_for(name).unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise CacheIOError(f"Cannot delete cache entry {name}: {exc}") from exc

    def list(self) -> list[StoredItem]:
        items: list[StoredItem] = []
        try:
            entries = list(os.scandir(self._directory))
        except FileNotFoundError:
            return items
        except OSError as exc:
            raise CacheIOError(f"Cannot list cache directory {self._directory}: {exc}") from exc

        for entry in entries:
            # Skip in-flight temp files (".<name>.json.<rand>.tmp").
            if entry.name.startswith(".") or not entry.name.endswith(_SUFFIX):
                continue
            try:
                stat = entry.stat()
            except FileNotFoundError:
                continue  # removed between scandir and stat
            except OSError as exc:
                raise CacheIOError(f"Cannot stat cache entry {entry.name}: {exc}") from exc
            items.append(
                StoredItem(
                    name=entry.name[: -len(_SUFFIX)],
                    modified=stat.st_mtime,
                    size=stat.st_size,
                )
            )
        return items


class DiskCacheStore(Store):
    """Store backed by :class:`diskcache.Cache`.

    diskcache does not expose per-key write times, so each value is stored
    as a ``(modified, data)`` tuple.
    """

    backend = StoreBackend.DISKCACHE

    def __init__(
        self,
        directory: str | Path,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._directory = Path(directory)
        self._clock = clock
        self._cache: Optional[diskcache.Cache] = None

    @property
    def location(self) -> Optional[str]:
        return str(self._directory)

    def _open(self) -> diskcache.Cache:
        if self._cache is None:
            try:
                self._cache = diskcache.Cache(str(self._directory))
            except (OSError, sqlite3.Error) as exc:
                raise CacheIOError(f"Cannot open cache at {self._directory}: {exc}") from exc
        return self._cache

    def read(self, name: str) -> Optional[bytes]:
        try:
            record = self._open().get(name)
        except (diskcache.Timeout, sqlite3.Error, OSError) as exc:
            raise CacheIOError(f"Cannot read cache entry {name}: {exc}") from exc
        if record is None:
            return None
        return record[1]

    def write(self, name: str, data: bytes) -> None:
        try:
            self._open().set(name, (self._clock(), data))
        except (diskcache.Timeout, sqlite3.Error, OSError) as exc:
            raise CacheIOError(f"Cannot write cache entry {name}: {exc}") from exc

    def delete(self, name: str) -> None:
        try:
            self._open().delete(name)
        except (diskcache.Timeout, sqlite3.Error, OSError) as exc:
            raise CacheIOError(f"Cannot delete cache entry {name}: {exc}") from exc

    def list(self) -> list[StoredItem]:
        cache = self._open()
        items: list[StoredItem] = []
        try:
            for name in list(cache.iterkeys()):
                record = cache.get(name)
                if record is None:
                    continue
                modified, data = record
                items.append(StoredItem(name=name, modified=modified, size=len(data)))
        except (diskcache.Timeout, sqlite3.Error, OSError) as exc:
            raise CacheIOError(f"Cannot list cache at {self._directory}: {exc}") from exc
        return items

    def clear(self) -> int:
        try:
            return self._open().clear()
        except (diskcache.Timeout, sqlite3.Error, OSError) as exc:
            raise CacheIOError(f"Cannot clear cache at {self._directory}: {exc}") from exc

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()
            self._cache = None


class MemoryStore(Store):
    """In-process store; contents vanish with the process."""

    backend = StoreBackend.MEMORY

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._records: dict[str, tuple[float, bytes]] = {}

    def read(self, name: str) -> Optional[bytes]:
        record = self._records.get(name)
        return None if record is None else record[1]

    def write(self, name: str, data: bytes) -> None:
        self._records[name] = (self._clock(), bytes(data))

    def delete(self, name: str) -> None:
        self._records.pop(name, None)

    def list(self) -> list[StoredItem]:
        return [
            StoredItem(name=name, modified=modified, size=len(data))
            for name, (modified, data) in self._records.items()
        ]

    def touch(self, name: str, modified: float) -> None:
        """Override the modification time of *name*."""
        if name in self._records:
            self._records[name] = (modified, self._records[name][1])


def create_store(config: GatewayConfig) -> Store:
    """Build the store selected by ``config.cache.backend``."""
    backend = config.cache.backend
    if backend == StoreBackend.MEMORY:
        return MemoryStore()
    directory = resolve_cache_dir(config)
    if backend == StoreBackend.DISKCACHE:
        return DiskCacheStore(directory)
    return FileStore(directory)

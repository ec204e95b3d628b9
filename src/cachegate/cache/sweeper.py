"""Write-triggered eviction for the Entry Store.

The sweeper enforces two bounds on a :class:`~cachegate.cache.backends.Store`:

1. **Expiry** -- every entry whose TTL has elapsed, or that no longer
   deserialises, is deleted.
2. **Count** -- if more than ``max_entries`` remain, the oldest by
   modification time are deleted until the bound holds.

It runs synchronously after every ``put``; there is no background thread.
Both phases are best-effort: a failure on one entry (for instance a file
already removed by another sweep) is logged and the sweep moves on.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from pydantic import ValidationError

from cachegate.cache.backends import Store
from cachegate.exceptions import CacheIOError
from cachegate.models import CacheEntry, StoredItem, SweepResult

logger = logging.getLogger(__name__)


class EvictionSweeper:
    """Deletes expired, corrupt, and surplus entries from a store.

    Args:
        store: The backend to sweep.
        max_entries: Upper bound on the number of entries kept. Values
            below 1 are a caller error; the sweep then removes everything.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        store: Store,
        max_entries: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._max_entries = max_entries
        self._clock = clock

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def sweep(self, protect: Optional[str] = None) -> SweepResult:
        """Run both phases and return how many entries were removed.

        Args:
            protect: Name of the entry the triggering ``put`` just wrote.
                It is never chosen for count-based eviction while
                ``max_entries >= 1``.
        """
        result = SweepResult()
        try:
            items = self._store.list()
        except CacheIOError as exc:
            logger.warning("Cache sweep skipped: %s", exc)
            return result

        now = self._clock()
        remaining: list[StoredItem] = []
        for item in items:
            verdict = self._check(item, now)
            if verdict is None:
                continue  # already gone
            if verdict:
                if self._delete(item.name):
                    result.expired += 1
            else:
                remaining.append(item)

        surplus = len(remaining) - self._max_entries
        if surplus > 0:
            if self._max_entries < 1:
                logger.warning(
                    "cache.max_entries is %d; evicting every entry", self._max_entries
                )
                candidates = remaining
            else:
                candidates = [item for item in remaining if item.name != protect]
            candidates.sort(key=lambda item: (item.modified, item.name))
            for item in candidates[:surplus]:
                if self._delete(item.name):
                    result.evicted += 1

        if result.total:
            logger.debug(
                "Cache sweep removed %d expired and %d surplus entries",
                result.expired,
                result.evicted,
            )
        return result

    def _check(self, item: StoredItem, now: float) -> Optional[bool]:
        """Return True to reclaim, False to keep, None if the entry vanished."""
        try:
            raw = self._store.read(item.name)
        except CacheIOError as exc:
            logger.warning("Cache sweep could not read %s: %s", item.name, exc)
            return False
        if raw is None:
            return None
        try:
            entry = CacheEntry.model_validate_json(raw)
        except ValidationError:
            return True
        return not entry.is_live(now)

    def _delete(self, name: str) -> bool:
        try:
            self._store.delete(name)
        except CacheIOError as exc:
            logger.warning("Cache sweep could not delete %s: %s", name, exc)
            return False
        return True

"""Tests for write-triggered eviction."""

from __future__ import annotations

import json

import pytest

from cachegate.cache import EntryStore, EvictionSweeper, MemoryStore
from cachegate.exceptions import CacheIOError
from cachegate.models import CacheConfig


def _record(stored_at: float, ttl: float = 300) -> bytes:
    return json.dumps({"data": "x", "stored_at": stored_at, "ttl": ttl}).encode()


@pytest.fixture()
def store(clock):
    return MemoryStore(clock=clock)


def _fill(store: MemoryStore, clock, names: list[str]) -> None:
    """Write *names* one second apart, oldest first."""
    for name in names:
        store.write(name, _record(clock.now))
        clock.advance(1)


class TestCountBound:
    def test_keeps_newest(self, store: MemoryStore, clock) -> None:
        _fill(store, clock, ["a", "b", "c", "d", "e"])
        result = EvictionSweeper(store, max_entries=3, clock=clock).sweep()
        assert result.evicted == 2
        assert sorted(i.name for i in store.list()) == ["c", "d", "e"]

    def test_under_bound_is_untouched(self, store: MemoryStore, clock) -> None:
        _fill(store, clock, ["a", "b"])
        result = EvictionSweeper(store, max_entries=3, clock=clock).sweep()
        assert result.total == 0
        assert len(store.list()) == 2

    def test_equal_mtimes_break_ties_by_name(self, store: MemoryStore, clock) -> None:
        for name in ["b", "a", "c"]:
            store.write(name, _record(clock.now))
        EvictionSweeper(store, max_entries=2, clock=clock).sweep()
        assert sorted(i.name for i in store.list()) == ["b", "c"]

    def test_protected_entry_survives(self, store: MemoryStore, clock) -> None:
        _fill(store, clock, ["a", "b", "c"])
        store.touch("c", 0.0)  # oldest by mtime, but just written
        EvictionSweeper(store, max_entries=1, clock=clock).sweep(protect="c")
        assert [i.name for i in store.list()] == ["c"]

    def test_zero_max_entries_evicts_everything(self, store: MemoryStore, clock) -> None:
        _fill(store, clock, ["a", "b"])
        result = EvictionSweeper(store, max_entries=0, clock=clock).sweep(protect="b")
        assert result.evicted == 2
        assert store.list() == []


class TestExpiryPhase:
    def test_expired_and_corrupt_are_reclaimed(self, store: MemoryStore, clock) -> None:
        store.write("old", _record(clock.now - 1000, ttl=10))
        store.write("junk", b"not json")
        store.write("fresh", _record(clock.now))
        result = EvictionSweeper(store, max_entries=10, clock=clock).sweep()
        assert result.expired == 2
        assert result.evicted == 0
        assert [i.name for i in store.list()] == ["fresh"]

    def test_expired_entries_count_before_eviction(self, store: MemoryStore, clock) -> None:
        store.write("old", _record(clock.now - 1000, ttl=10))
        _fill(store, clock, ["a", "b"])
        result = EvictionSweeper(store, max_entries=2, clock=clock).sweep()
        assert (result.expired, result.evicted) == (1, 0)


class _FlakyStore(MemoryStore):
    """MemoryStore whose delete fails for selected names."""

    def __init__(self, clock, failing: set[str]) -> None:
        super().__init__(clock=clock)
        self.failing = failing

    def delete(self, name: str) -> None:
        if name in self.failing:
            raise CacheIOError(f"cannot delete {name}")
        super().delete(name)


class TestBestEffort:
    def test_failed_delete_does_not_abort_sweep(self, clock) -> None:
        store = _FlakyStore(clock, failing={"a"})
        _fill(store, clock, ["a", "b", "c", "d"])
        result = EvictionSweeper(store, max_entries=2, clock=clock).sweep()
        assert result.evicted == 1
        assert sorted(i.name for i in store.list()) == ["a", "c", "d"]

    def test_list_failure_is_a_noop(self, clock) -> None:
        class _Broken(MemoryStore):
            def list(self):
                raise CacheIOError("disk gone")

        result = EvictionSweeper(_Broken(clock=clock), max_entries=1, clock=clock).sweep()
        assert result.total == 0


class TestPutTriggersSweep:
    def test_bound_holds_after_every_put(self, clock) -> None:
        store = MemoryStore(clock=clock)
        entries = EntryStore(store, CacheConfig(max_entries=3), clock=clock)
        for i in range(10):
            entries.put(f"k{i}", i)
            clock.advance(1)
            assert len(store.list()) <= 3
        assert entries.get("k9") == 9
        assert entries.get("k0") is None

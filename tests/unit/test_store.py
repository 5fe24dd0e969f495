#!/usr/bin/env python3
"""
Unit tests for entry stores, TTL and the eviction policy
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from model_cache.eviction import purge
from model_cache.store import EntryStore, compute_expiry


class TestEntryStore:
    """Test insert/lookup/delete with TTL."""

    @pytest.fixture
    def store(self):
        return EntryStore("User")

    def test_set_and_get(self, store, clock):
        entry = store.set("h1", {"id": 1}, ttl=60)

        assert entry.expires_at == clock.now + 60
        assert store.get("h1").data == {"id": 1}
        assert store.size() == 1

    def test_stale_entry_is_a_miss_but_stays(self, store, clock):
        store.set("h1", {"id": 1}, ttl=5)
        clock.advance(5)

        assert store.get("h1") is None
        assert store.size() == 1
        assert "h1" in store

    def test_none_is_never_stored(self, store):
        assert store.set("h1", None, ttl=60) is None
        assert store.size() == 0

    def test_falsy_values_are_stored(self, store):
        store.set("zero", 0, ttl=60)
        store.set("empty", [], ttl=60)

        assert store.get("zero").data == 0
        assert store.get("empty").data == []

    @pytest.mark.parametrize("ttl", [0, -5, False, None])
    def test_non_positive_ttl_never_expires(self, store, clock, ttl):
        entry = store.set("h1", "data", ttl=ttl)
        clock.advance(10 * 365 * 24 * 3600)

        assert entry.expires_at is False
        assert store.get("h1").data == "data"

    def test_small_positive_ttl_expires(self, store, clock):
        store.set("h1", "data", ttl=0.5)

        assert store.get("h1") is not None
        clock.advance(0.5)
        assert store.get("h1") is None

    def test_overwrite_replaces_entry(self, store, clock):
        store.set("h1", "old", ttl=5)
        clock.advance(10)
        store.set("h1", "new", ttl=5)

        assert store.get("h1").data == "new"
        assert store.size() == 1

    def test_delete_and_clear(self, store):
        store.set("h1", 1, ttl=60)
        store.set("h2", 2, ttl=60)

        assert store.delete("h1") is True
        assert store.delete("h1") is False
        assert store.clear() == 1
        assert store.size() == 0

    def test_entries_snapshot_allows_deletes(self, store):
        for i in range(3):
            store.set(f"h{i}", i, ttl=60)

        for digest, _ in store.entries():
            store.delete(digest)

        assert store.size() == 0


class TestComputeExpiry:
    def test_positive(self):
        assert compute_expiry(10, now=100.0) == 110.0

    @pytest.mark.parametrize("ttl", [0, -1, False, None])
    def test_never(self, ttl):
        assert compute_expiry(ttl, now=100.0) is False


class TestPurge:
    """Test: expired entries go, then at most one live entry over the limit."""

    def test_removes_expired_entries(self, clock):
        store = EntryStore("User")
        store.set("old", 1, ttl=5)
        store.set("fresh", 2, ttl=60)
        clock.advance(10)
        events = []

        purged = purge(store, limit=10, on_purge=events.append)

        assert [p.hash for p in purged] == ["old"]
        assert purged[0].expired is True
        assert events == purged
        assert store.size() == 1

    def test_evicts_earliest_expiry_when_over_limit(self, clock):
        store = EntryStore("User")
        store.set("b", 1, ttl=60)
        clock.advance(1)
        store.set("a", 2, ttl=30)
        clock.advance(1)
        store.set("c", 3, ttl=90)

        purged = purge(store, limit=2)

        assert [p.hash for p in purged] == ["a"]
        assert purged[0].expired is False
        assert store.size() == 2
        assert "b" in store and "c" in store

    def test_evicts_at_most_one_live_entry_per_call(self, clock):
        store = EntryStore("User")
        for i in range(5):
            store.set(f"h{i}", i, ttl=60 + i)

        purge(store, limit=2)
        assert store.size() == 4

        while store.size() > 2:
            purge(store, limit=2)
        assert sorted(digest for digest, _ in store.entries()) == ["h3", "h4"]

    def test_under_limit_keeps_live_entries(self, clock):
        store = EntryStore("User")
        store.set("h1", 1, ttl=60)

        assert purge(store, limit=1) == []
        assert store.size() == 1

    def test_expiring_entries_evicted_before_permanent_ones(self, clock):
        store = EntryStore("User")
        store.set("forever", 1, ttl=0)
        store.set("expiring", 2, ttl=60)

        purged = purge(store, limit=1)

        assert [p.hash for p in purged] == ["expiring"]
        assert "forever" in store

    def test_permanent_entries_evicted_oldest_first(self, clock):
        store = EntryStore("User")
        for name in ("first", "second", "third"):
            store.set(name, name, ttl=False)

        purged = purge(store, limit=2)

        assert [p.hash for p in purged] == ["first"]
        assert purged[0].expires is False
        assert store.size() == 2

"""Tests for the bounded DID document cache.

- get/put basics and access metadata
- single eviction per over-capacity put, smallest last_accessed first
- unavailable store degrades to a miss
"""

import pytest

from app.db.session import Database
from app.offline.did_cache import DIDCache, DIDCacheEntry


def entry(key: str, **doc) -> DIDCacheEntry:
    return DIDCacheEntry(key=key, document={"id": key, **doc})


class TestCacheBasicOperations:
    def test_put_and_get(self, did_cache):
        did_cache.put(entry("did:ex:a", name="A"))

        result = did_cache.get("did:ex:a")

        assert result is not None
        assert result.document == {"id": "did:ex:a", "name": "A"}

    def test_get_missing_returns_none(self, did_cache):
        assert did_cache.get("did:ex:nope") is None
        assert did_cache.metrics.misses == 1

    def test_put_replaces_document(self, did_cache):
        did_cache.put(entry("did:ex:a", v=1))
        did_cache.put(entry("did:ex:a", v=2))

        assert did_cache.get("did:ex:a").document["v"] == 2
        assert did_cache.size == 1

    def test_get_updates_access_metadata(self, did_cache, clock):
        did_cache.put(entry("did:ex:a"))
        first = did_cache.get("did:ex:a")
        second = did_cache.get("did:ex:a")

        assert second.usage_count == first.usage_count + 1
        assert second.last_accessed > first.last_accessed
        assert second.last_accessed == clock.last

    def test_capacity_must_be_positive(self, database):
        with pytest.raises(ValueError):
            DIDCache(database, capacity=0)


class TestCacheEviction:
    def test_sixth_insert_evicts_oldest_of_first_five(self, did_cache):
        keys = [chr(c) for c in range(ord("A"), ord("K"))]  # A..J
        for key in keys[:5]:
            did_cache.put(entry(key))

        evicted = did_cache.put(entry(keys[5]))

        assert evicted == "A"
        assert did_cache.get("A") is None
        for key in ["B", "C", "D", "E", "F"]:
            assert did_cache.get(key) is not None

    def test_size_never_exceeds_capacity(self, did_cache):
        for c in "ABCDEFGHIJ":
            did_cache.put(entry(c))
            assert did_cache.size <= did_cache.capacity

        assert did_cache.size == 5
        assert did_cache.metrics.evictions == 5

    def test_recently_read_entry_survives(self, did_cache):
        for c in "ABCDE":
            did_cache.put(entry(c))
        did_cache.get("A")  # A becomes most recent; B is now the oldest

        evicted = did_cache.put(entry("F"))

        assert evicted == "B"
        assert did_cache.get("A") is not None

    def test_replacing_existing_key_does_not_evict(self, did_cache):
        for c in "ABCDE":
            did_cache.put(entry(c))

        assert did_cache.put(entry("C", v=2)) is None
        assert did_cache.size == 5

    def test_ties_broken_by_insertion_order(self, database):
        cache = DIDCache(database, capacity=3, clock=lambda: 42)
        for c in "XYZ":
            cache.put(entry(c))

        assert cache.put(entry("W")) == "X"
        assert cache.keys() == ["Y", "Z", "W"]

    def test_hundred_and_first_key_evicts_least_recent(self, database, clock):
        cache = DIDCache(database, capacity=100, clock=clock)
        for i in range(100):
            cache.put(entry(f"did:ex:{i}"))
        cache.get("did:ex:0")

        evicted = cache.put(entry("did:ex:100"))

        assert evicted == "did:ex:1"
        assert cache.size == 100


class TestCacheFailures:
    def test_unavailable_store_reads_as_miss(self, tmp_path):
        db = Database(f"sqlite:///{tmp_path / 'uninitialized.db'}")
        cache = DIDCache(db, capacity=5)

        assert cache.put(entry("did:ex:a")) is None
        assert cache.get("did:ex:a") is None
        assert cache.size == 0
        assert cache.metrics.errors == 2
        db.dispose()

import gzip
import pickle

import pytest

from gitspark.analyzer import GitAnalyzer
from gitspark.cache import (
    CacheEntry,
    CacheMissError,
    DiskCache,
    EphemeralCache,
    fetch_or_compute,
    report_fingerprint,
)


class TestEphemeralCache:
    def test_init(self):
        """Test initialization of EphemeralCache."""
        cache = EphemeralCache()
        assert cache._max_keys == 100
        assert cache._cache == {}
        assert cache._key_list == []

        cache = EphemeralCache(max_keys=5)
        assert cache._max_keys == 5

    def test_set_get(self):
        """Test setting and getting values from the cache."""
        cache = EphemeralCache()
        cache.set("key1", "value1")
        assert cache.get("key1") == "value1"
        assert isinstance(cache._get_entry("key1"), CacheEntry)

    def test_cache_miss(self):
        """Test behavior when a key is not in the cache."""
        cache = EphemeralCache()
        with pytest.raises(CacheMissError) as excinfo:
            cache.get("nonexistent_key")
        assert excinfo.value.key == "nonexistent_key"
        assert excinfo.value.code == "CACHE_MISS"

    def test_eviction(self):
        """Test that the least recently used key is evicted when the cache is full."""
        cache = EphemeralCache(max_keys=3)
        for i in range(1, 4):
            cache.set(f"key{i}", i)

        cache.set("key4", 4)
        assert not cache.exists("key1")

        # reading key2 makes key3 the least recently used
        cache.get("key2")
        cache.set("key5", 5)
        assert cache.exists("key2")
        assert not cache.exists("key3")

    def test_invalidate_all(self):
        cache = EphemeralCache()
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.invalidate_cache() == 2
        assert cache.list_cached_keys() == []

    def test_invalidate_by_pattern_and_keys(self):
        cache = EphemeralCache()
        cache.set("report||one||abc", 1)
        cache.set("report||one||def", 2)
        cache.set("report||two||abc", 3)

        assert cache.invalidate_cache(pattern="report||one||*") == 2
        assert [k["key"] for k in cache.list_cached_keys()] == ["report||two||abc"]
        assert cache.invalidate_cache(keys=["report||two||abc", "missing"]) == 1

    def test_cache_stats(self):
        cache = EphemeralCache(max_keys=4)
        assert cache.get_cache_stats()["oldest_entry_age_hours"] is None

        cache.set("a", 1)
        stats = cache.get_cache_stats()
        assert stats["total_entries"] == 1
        assert stats["cache_usage_percent"] == 25.0
        assert stats["newest_entry_age_hours"] >= 0


class TestDiskCache:
    def test_persists_between_instances(self, tmp_path):
        """Test that entries written by one instance are read by the next."""
        path = tmp_path / "cache" / "reports.gz"
        cache = DiskCache(path, max_keys=10)
        cache.set("key1", {"value": 1})

        reloaded = DiskCache(path, max_keys=10)
        assert reloaded.get("key1") == {"value": 1}

    def test_missing_file_starts_empty(self, tmp_path):
        cache = DiskCache(tmp_path / "nothing.gz")
        assert cache.list_cached_keys() == []

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "corrupt.gz"
        path.write_bytes(b"not a gzip file")
        cache = DiskCache(path)
        assert cache.list_cached_keys() == []

    def test_invalid_format_starts_empty(self, tmp_path):
        path = tmp_path / "list.gz"
        with gzip.open(path, "wb") as f:
            pickle.dump(["wrong", "shape"], f)
        cache = DiskCache(path)
        assert cache.list_cached_keys() == []

    def test_load_trims_to_max_keys(self, tmp_path):
        path = tmp_path / "reports.gz"
        cache = DiskCache(path, max_keys=5)
        for i in range(5):
            cache.set(f"key{i}", i)

        smaller = DiskCache(path, max_keys=2)
        assert [k["key"] for k in smaller.list_cached_keys()] == ["key3", "key4"]

    def test_report_round_trips(self, tmp_path, sample_commits):
        """Test that a whole report survives pickling into the disk cache."""
        report = GitAnalyzer().analyze(sample_commits, generated_at="2024-06-01T00:00:00Z")
        path = tmp_path / "reports.gz"
        DiskCache(path).set("report", report)

        restored = DiskCache(path).get("report")
        assert restored == report
        assert restored.to_json() == report.to_json()


class TestFetchOrCompute:
    def test_computes_once(self):
        cache = EphemeralCache()
        calls = []

        def compute():
            calls.append(1)
            return len(calls)

        assert fetch_or_compute(cache, "k", compute) == 1
        assert fetch_or_compute(cache, "k", compute) == 1
        assert len(calls) == 1

    def test_force_refresh_recomputes_and_stores(self):
        cache = EphemeralCache()
        fetch_or_compute(cache, "k", lambda: "old")
        assert fetch_or_compute(cache, "k", lambda: "new", force_refresh=True) == "new"
        assert cache.get("k") == "new"

    def test_without_backend(self):
        assert fetch_or_compute(None, "k", lambda: 42) == 42


class TestReportFingerprint:
    def test_stable_and_sensitive(self):
        base = report_fingerprint("/repo", "abc", {"branch": "main", "limit": None}, {"retouch_days": 14})
        assert base == report_fingerprint("/repo", "abc", {"limit": None, "branch": "main"}, {"retouch_days": 14})
        assert len(base) == 64
        assert base != report_fingerprint("/repo", "abd", {"branch": "main", "limit": None}, {"retouch_days": 14})
        assert base != report_fingerprint("/repo", "abc", {"branch": "main", "limit": None}, {"retouch_days": 7})

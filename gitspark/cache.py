"""
.. module:: cache
   :synopsis: Whole-report cache backends

Reports are cached only as complete, immutable values, keyed by a fingerprint of the
repository path, resolved HEAD, commit range and resolved options.
"""

import fnmatch
import gzip
import hashlib
import json
import os
import pickle
import threading
from datetime import datetime, timezone

from gitspark.exceptions import GitSparkError
from gitspark.logging import logger


class CacheMissError(GitSparkError):
    def __init__(self, key):
        super().__init__(f"Cache miss: {key}", code="CACHE_MISS")
        self.key = key


class CacheEntry:
    """Wrapper for a cached report that records when it was stored."""

    def __init__(self, data, cache_key=None):
        self.data = data
        self.cached_at = datetime.now(timezone.utc)
        self.cache_key = cache_key

    def age_seconds(self):
        return (datetime.now(timezone.utc) - self.cached_at).total_seconds()

    def age_hours(self):
        return self.age_seconds() / 3600


def report_fingerprint(repo_path, head, rev_range, options):
    """SHA-256 key of everything a report depends on.

    Args:
        repo_path: Absolute repository path.
        head: Resolved commit hash the range ends at.
        rev_range: Mapping of range arguments (branch, since, until, limit).
        options: Resolved AnalysisConfig as a dict.

    Returns:
        str: Hex digest.
    """
    payload = json.dumps(
        {"repo": str(repo_path), "head": head, "range": rev_range, "options": options},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class EphemeralCache:
    """
    A simple in-memory LRU cache.
    """

    def __init__(self, max_keys=100):
        self._cache = {}
        self._key_list = []
        self._max_keys = max_keys

    def _touch(self, k):
        if k in self._key_list:
            self._key_list.remove(k)
        self._key_list.append(k)

    def evict(self, n=1):
        for _ in range(n):
            key = self._key_list.pop(0)
            del self._cache[key]

    def set(self, k, v):
        if not isinstance(v, CacheEntry):
            v = CacheEntry(v, cache_key=k)
        self._touch(k)
        self._cache[k] = v
        if len(self._key_list) > self._max_keys:
            self.evict(len(self._key_list) - self._max_keys)
        self.save()

    def get(self, k):
        return self._get_entry(k).data

    def _get_entry(self, k):
        if not self.exists(k):
            raise CacheMissError(k)
        self._touch(k)
        return self._cache[k]

    def exists(self, k):
        return k in self._cache

    def invalidate_cache(self, keys=None, pattern=None):
        """Drop specific keys, keys matching a ``*`` pattern, or everything when both are None.

        Returns:
            int: Number of entries removed.
        """
        if keys is None and pattern is None:
            removed = len(self._cache)
            self._cache.clear()
            self._key_list.clear()
            self.save()
            return removed

        doomed = {k for k in (keys or []) if k in self._cache}
        if pattern:
            doomed.update(k for k in self._key_list if fnmatch.fnmatch(k, pattern))
        for key in doomed:
            del self._cache[key]
            self._key_list.remove(key)
        self.save()
        return len(doomed)

    def list_cached_keys(self):
        """Cached keys, least recently used first, with their storage time."""
        return [
            {"key": k, "cached_at": self._cache[k].cached_at, "age_hours": self._cache[k].age_hours()}
            for k in self._key_list
        ]

    def get_cache_stats(self):
        ages = [entry.age_hours() for entry in self._cache.values()]
        return {
            "total_entries": len(self._cache),
            "max_entries": self._max_keys,
            "cache_usage_percent": len(self._cache) / self._max_keys * 100.0,
            "oldest_entry_age_hours": max(ages) if ages else None,
            "newest_entry_age_hours": min(ages) if ages else None,
        }

    def save(self):
        """No-op; the in-memory cache has nothing to persist."""


class DiskCache(EphemeralCache):
    """
    An LRU cache persisted to a gzipped pickle file.

    The whole cache is rewritten on every ``set``. Thread-safe.

    :param filepath: Path to the cache file; parent directories are created on save.
    :param max_keys: Maximum number of reports to keep.
    """

    def __init__(self, filepath, max_keys=100):
        super().__init__(max_keys=max_keys)
        self.filepath = str(filepath)
        self._lock = threading.RLock()
        self.load()

    def set(self, k, v):
        with self._lock:
            super().set(k, v)

    def _get_entry(self, k):
        with self._lock:
            if not self.exists(k):
                logger.debug(f"Key '{k}' not in memory cache, reloading {self.filepath}")
                self.load()
            return super()._get_entry(k)

    def invalidate_cache(self, keys=None, pattern=None):
        with self._lock:
            return super().invalidate_cache(keys=keys, pattern=pattern)

    def load(self):
        """Replace the in-memory state with the file's contents. A missing or corrupt file starts empty."""
        with self._lock:
            if not os.path.exists(self.filepath) or os.path.getsize(self.filepath) == 0:
                logger.info(f"Cache file not found or empty, starting fresh: {self.filepath}")
                return
            try:
                with gzip.open(self.filepath, "rb") as f:
                    loaded = pickle.load(f)
            except (OSError, EOFError, pickle.UnpicklingError, AttributeError, ImportError) as e:
                logger.error(f"Error loading cache file {self.filepath}: {e}. Starting fresh.")
                self._cache, self._key_list = {}, []
                return

            if not isinstance(loaded, dict) or "_cache" not in loaded or "_key_list" not in loaded:
                logger.warning(f"Invalid cache file format found: {self.filepath}. Starting fresh.")
                self._cache, self._key_list = {}, []
                return

            self._cache = loaded["_cache"]
            self._key_list = loaded["_key_list"]
            if len(self._key_list) > self._max_keys:
                self.evict(len(self._key_list) - self._max_keys)
            logger.info(f"Cache loaded from {self.filepath} ({len(self._cache)} entries)")

    def save(self):
        with self._lock:
            parent = os.path.dirname(self.filepath)
            try:
                if parent:
                    os.makedirs(parent, exist_ok=True)
                with gzip.open(self.filepath, "wb") as f:
                    pickle.dump({"_cache": self._cache, "_key_list": self._key_list}, f, protocol=pickle.HIGHEST_PROTOCOL)
            except (OSError, pickle.PicklingError) as e:
                logger.error(f"Error saving cache file {self.filepath}: {e}")


def fetch_or_compute(backend, key, compute, force_refresh=False):
    """Return the cached value for ``key`` or compute and store it.

    ``force_refresh`` skips the read but still stores the fresh value. Without a backend the
    value is always computed.
    """
    if backend is None:
        return compute()

    if not force_refresh:
        try:
            entry = backend._get_entry(key)
            logger.debug(f"Cache hit for key: {key}, cached at: {entry.cached_at}")
            return entry.data
        except CacheMissError:
            logger.debug(f"Cache miss for key: {key}")
    else:
        logger.info(f"Force refresh for key: {key}, bypassing cache read.")

    value = compute()
    backend.set(key, CacheEntry(value, cache_key=key))
    return value

"""
Example demonstrating report caching.

Reports are cached whole under a fingerprint of the repository path, HEAD and options, so a
second analysis of an unchanged repository is served from the cache.

Usage:
    python cached_reports.py [path/to/repo]
"""

import logging
import os
import sys
import tempfile
import time

from gitspark import DiskCache, Repository

logging.basicConfig(level=logging.INFO, format="%(name)s - %(levelname)s - %(message)s")

REPO_DIR = sys.argv[1] if len(sys.argv) > 1 else os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def timed(label, fn):
    start = time.time()
    result = fn()
    print(f"  {label}: {time.time() - start:.3f}s")
    return result


if __name__ == "__main__":
    cache_file = os.path.join(tempfile.gettempdir(), "git_spark_cache.gz")
    cache = DiskCache(filepath=cache_file, max_keys=20)
    repo = Repository(working_dir=REPO_DIR, cache_backend=cache)

    print("Analysis timings")
    first = timed("first run", repo.analyze)
    second = timed("cached run", repo.analyze)
    timed("forced refresh", lambda: repo.analyze(force_refresh=True))
    print(f"  cached report identical: {first == second}")

    stats = repo.get_cache_stats()
    print(f"\nRepository entries: {stats['repository_entries']}")
    print(f"Cache usage: {stats['global_cache_stats']['cache_usage_percent']:.1f}%")
    for entry in cache.list_cached_keys():
        print(f"  {entry['key'][:60]}... cached {entry['age_hours']:.2f}h ago")

    print(f"\nInvalidated {repo.invalidate_cache()} entries")

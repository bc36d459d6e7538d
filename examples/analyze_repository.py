"""
Analyze a local git repository and print the headline numbers.

Usage:
    python analyze_repository.py [path/to/repo]
"""

import logging
import os
import sys

from gitspark import Repository
from gitspark.logging import progress_logger

logging.basicConfig(level=logging.INFO, format="%(name)s - %(levelname)s - %(message)s")

REPO_DIR = sys.argv[1] if len(sys.argv) > 1 else os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


if __name__ == "__main__":
    repo = Repository(working_dir=REPO_DIR)
    print(repo)

    report = repo.analyze(progress_callback=progress_logger(every=500))
    stats = report.repository

    print(f"\nHealth: {report.summary.health_rating} (activity index {stats.activity_index:.2f})")
    print(f"Commits: {stats.total_commits}  Authors: {stats.total_authors}  Files: {stats.total_files}")
    print(f"Churn: +{stats.total_insertions} / -{stats.total_deletions}")
    print(f"Bus factor: {stats.bus_factor}  Governance: {report.governance.score:.2f}")

    print("\nTop authors")
    print(report.authors_frame()[["name", "commits", "churn", "active_days"]].head(10))

    print("\nHotspots")
    for hotspot in report.hotspots[:10]:
        print(f"  {hotspot.hotspot_score:6.3f}  {hotspot.path}")

    for warning in report.metadata.warnings:
        print(f"warning: {warning}")

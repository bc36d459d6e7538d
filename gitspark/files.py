"""
.. module:: files
   :synopsis: Per-file aggregation of the commit stream

"""

import os
from dataclasses import replace

from gitspark.logging import logger
from gitspark.models import FileStats, FrozenMap
from gitspark.risk import RiskContext, score_file_risk, score_hotspot

LANGUAGES = {
    "py": "Python",
    "js": "JavaScript",
    "jsx": "JavaScript",
    "mjs": "JavaScript",
    "ts": "TypeScript",
    "tsx": "TypeScript",
    "java": "Java",
    "kt": "Kotlin",
    "scala": "Scala",
    "cs": "C#",
    "cpp": "C++",
    "cc": "C++",
    "hpp": "C++",
    "c": "C",
    "h": "C",
    "php": "PHP",
    "rb": "Ruby",
    "go": "Go",
    "rs": "Rust",
    "swift": "Swift",
    "sh": "Shell",
    "sql": "SQL",
    "html": "HTML",
    "css": "CSS",
    "scss": "CSS",
    "md": "Markdown",
    "rst": "reStructuredText",
    "json": "JSON",
    "yml": "YAML",
    "yaml": "YAML",
}


def detect_language(path):
    """Language name for a path's extension, or None when it isn't recognised."""
    ext = os.path.splitext(path)[1].lstrip(".").lower()
    return LANGUAGES.get(ext)


def ownership_shares(churn_by_author):
    """Normalize per-author churn into shares summing to 1.0.

    When every contributor has zero churn the share is split equally.
    """
    if not churn_by_author:
        return FrozenMap()
    total = sum(churn_by_author.values())
    authors = sorted(churn_by_author)
    if total == 0:
        share = 1.0 / len(authors)
        return FrozenMap((a, share) for a in authors)
    return FrozenMap((a, churn_by_author[a] / total) for a in authors)


def language_totals(files):
    """Churned lines per detected language, sorted by language name."""
    totals = {}
    for f in files:
        if f.language:
            totals[f.language] = totals.get(f.language, 0) + f.churn
    return FrozenMap(sorted(totals.items()))


class _FileAccumulator:
    __slots__ = ("commits", "insertions", "deletions", "first", "last", "churn_by_author", "coupling")

    def __init__(self):
        self.commits = 0
        self.insertions = 0
        self.deletions = 0
        self.first = None
        self.last = None
        self.churn_by_author = {}
        self.coupling = 0

    def absorb(self, other):
        self.commits += other.commits
        self.insertions += other.insertions
        self.deletions += other.deletions
        self.coupling += other.coupling
        for author, churn in other.churn_by_author.items():
            self.churn_by_author[author] = self.churn_by_author.get(author, 0) + churn
        for ts in (other.first, other.last):
            self.touch(ts)

    def touch(self, ts):
        if ts is None:
            return
        if self.first is None or ts < self.first:
            self.first = ts
        if self.last is None or ts > self.last:
            self.last = ts


class FileAggregator:
    """Folds commits into per-path statistics.

    A rename moves the old path's history under the new path. Only the direct old/new link
    supplied by the input is followed; a rename whose old path was never seen before it starts
    a fresh history and is counted in a single summary warning at finalization.

    Commits are buffered and replayed in (timestamp, hash) order when finalized, so rename
    chains resolve the same way whatever order the input arrives in.

    Args:
        warnings: Optional WarningCollector for the unresolved-rename summary.
    """

    def __init__(self, warnings=None):
        self._warnings = warnings
        self._commits = []
        self._paths = set()

    def __len__(self):
        return len(self._paths)

    def add(self, commit):
        self._commits.append((commit.timestamp, commit.hash, commit.author_key, commit.files))
        self._paths.update(change.path for change in commit.files)

    def _replay(self):
        files = {}
        unresolved = set()
        for timestamp, _, author_key, changes in sorted(self._commits, key=lambda c: (c[0], c[1])):
            siblings = len(changes) - 1
            for change in changes:
                if change.status == "renamed" and change.old_path and change.old_path != change.path:
                    previous = files.pop(change.old_path, None)
                    if previous is None:
                        unresolved.add(change.old_path)
                    else:
                        files.setdefault(change.path, _FileAccumulator()).absorb(previous)

                acc = files.setdefault(change.path, _FileAccumulator())
                acc.commits += 1
                acc.insertions += change.insertions
                acc.deletions += change.deletions
                acc.coupling += siblings
                acc.churn_by_author[author_key] = acc.churn_by_author.get(author_key, 0) + change.churn
                acc.touch(timestamp)
        return files, unresolved

    def _build(self, path, acc):
        return FileStats(
            path=path,
            commits=acc.commits,
            authors=tuple(sorted(acc.churn_by_author)),
            churn=acc.insertions + acc.deletions,
            insertions=acc.insertions,
            deletions=acc.deletions,
            first_change=acc.first,
            last_change=acc.last,
            ownership=ownership_shares(acc.churn_by_author),
            language=detect_language(path),
            coupling=acc.coupling,
        )

    def finalize(self, reference_time=None, weights=None, author_threshold=8):
        """Build scored FileStats, sorted by churn (descending) then path.

        Args:
            reference_time: "Now" for recency scoring; defaults to the latest change.
            weights: RiskWeights for the composite risk score.
            author_threshold: Author count at which the hotspot author factor saturates.

        Returns:
            tuple[FileStats, ...]
        """
        files, unresolved = self._replay()
        if unresolved:
            message = (
                f"{len(unresolved)} renamed file(s) had an old path outside the analysed range; "
                "their earlier history is not included"
            )
            logger.warning(message)
            if self._warnings is not None:
                self._warnings.add(message)

        files = [self._build(path, acc) for path, acc in files.items()]
        context = RiskContext.from_files(files, reference_time, author_threshold)
        scored = [
            replace(f, risk_score=score_file_risk(f, context, weights), hotspot_score=score_hotspot(f, context))
            for f in files
        ]
        scored.sort(key=lambda f: (-f.churn, f.path))
        logger.debug(f"Aggregated {len(scored)} files")
        return tuple(scored)

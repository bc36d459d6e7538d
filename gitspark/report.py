"""
.. module:: report
   :synopsis: Assembles the immutable AnalysisReport and its top-level indices

The activity index is a measure of observable activity only. It combines commit frequency,
author participation and commit-size consistency, and says nothing about code quality.
"""

import json
from dataclasses import dataclass, fields

import pandas as pd
from pandas import DataFrame

from gitspark.files import language_totals
from gitspark.models import (
    AuthorStats,
    FileStats,
    FrozenMap,
    ReportMetadata,
    ReportSummary,
    RepositoryStats,
    TimelineEntry,
    freeze,
    to_plain,
)
from gitspark.risk import select_hotspots
from gitspark.stats import clamp, coefficient_of_variation

TARGET_COMMITS_PER_DAY = 5
COMMITS_PER_EXPECTED_AUTHOR = 20
HEALTH_RATINGS = ((0.8, "excellent"), (0.6, "good"), (0.4, "fair"))

_AUTHOR_COLUMNS = [f.name for f in fields(AuthorStats) if f.name not in ("hour_histogram", "day_histogram", "size_distribution")]
_FILE_COLUMNS = [f.name for f in fields(FileStats) if f.name not in ("authors", "ownership")]


class RepositoryTotals:
    """Repository-wide running totals folded alongside the other aggregators.

    Args:
        timezone: Timezone whose calendar days count as active days.
    """

    def __init__(self, timezone="UTC"):
        self.timezone = timezone
        self.commits = 0
        self.insertions = 0
        self.deletions = 0
        self.first = None
        self.last = None
        self.days = set()
        self.sizes = []

    def add(self, commit):
        self.commits += 1
        self.insertions += commit.insertions
        self.deletions += commit.deletions
        self.sizes.append(commit.churn)
        if self.first is None or commit.timestamp < self.first:
            self.first = commit.timestamp
        if self.last is None or commit.timestamp > self.last:
            self.last = commit.timestamp
        self.days.add(commit.timestamp.tz_convert(self.timezone).date())

    @property
    def span_days(self):
        """Calendar days from first to last commit, inclusive. 0 without commits."""
        if self.first is None:
            return 0
        first = self.first.tz_convert(self.timezone).date()
        last = self.last.tz_convert(self.timezone).date()
        return (last - first).days + 1


def activity_index(total_commits, total_authors, span_days, commit_sizes):
    """Unweighted mean of three signals, each clamped to [0, 1].

    * frequency: ``min(commits_per_day / 5, 1)``
    * participation: ``min(authors / max(commits / 20, 1), 1)``
    * size consistency: ``1 - min(CoV(commit sizes), 1)``

    Returns:
        tuple: ``(index, components)``; both zero without commits.
    """
    if total_commits == 0:
        components = FrozenMap([("frequency", 0.0), ("participation", 0.0), ("size_consistency", 0.0)])
        return 0.0, components

    per_day = total_commits / max(span_days, 1)
    frequency = clamp(min(per_day / TARGET_COMMITS_PER_DAY, 1.0))
    participation = clamp(min(total_authors / max(total_commits / COMMITS_PER_EXPECTED_AUTHOR, 1.0), 1.0))
    size_consistency = clamp(1.0 - min(coefficient_of_variation(commit_sizes), 1.0))
    components = FrozenMap(
        [("frequency", frequency), ("participation", participation), ("size_consistency", size_consistency)]
    )
    return (frequency + participation + size_consistency) / 3.0, components


def health_rating(index):
    for threshold, rating in HEALTH_RATINGS:
        if index >= threshold:
            return rating
    return "poor"


def timeline_from_flow(flow):
    """Per-day activity entries, one per row of the daily flow series."""
    return tuple(
        TimelineEntry(day=d.day, commits=d.commits, authors=d.unique_authors, churn=d.gross_lines_changed, files=d.files_touched)
        for d in flow
    )


@dataclass(frozen=True)
class AnalysisReport:
    """The complete, immutable result of one analysis run."""

    metadata: ReportMetadata
    repository: RepositoryStats
    summary: ReportSummary
    authors: tuple
    files: tuple
    hotspots: tuple
    risks: object
    governance: object
    team_score: object
    daily_trends: object
    timeline: tuple

    def to_dict(self):
        return to_plain(self)

    def to_json(self, indent=2):
        """Serialize with sorted keys so identical runs produce identical text."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True, ensure_ascii=False)

    def authors_frame(self):
        """Per-author statistics as a DataFrame indexed by email."""
        rows = [[getattr(a, c) for c in _AUTHOR_COLUMNS] for a in self.authors]
        return DataFrame(rows, columns=_AUTHOR_COLUMNS).set_index("email")

    def files_frame(self):
        """Per-file statistics as a DataFrame indexed by path, with an ``authors`` count column."""
        rows = [[getattr(f, c) for c in _FILE_COLUMNS] + [len(f.authors)] for f in self.files]
        df = DataFrame(rows, columns=_FILE_COLUMNS + ["authors"])
        return df.set_index("path")

    def daily_frame(self):
        """All five daily series joined on the day, indexed by date.

        ``files_touched`` appears in both the flow and ownership series with the same value;
        it is kept once.
        """
        trends = self.daily_trends
        columns = {}
        for series in (trends.flow, trends.stability, trends.ownership, trends.coupling, trends.hygiene):
            if not series:
                continue
            for f in fields(series[0]):
                if f.name == "day" or f.name in columns:
                    continue
                columns[f.name] = [getattr(row, f.name) for row in series]
        df = DataFrame(columns)
        df.index = pd.to_datetime([row.day for row in trends.flow])
        df.index.name = "day"
        return df


def assemble_report(
    totals,
    authors,
    files,
    governance,
    risks,
    team_score,
    daily_trends,
    config,
    version,
    repo_path=None,
    warnings=(),
    generated_at=None,
):
    """Compose every stage's output into one AnalysisReport.

    Args:
        totals: RepositoryTotals folded over the same commits.
        authors: Finalized AuthorStats.
        files: Finalized, scored FileStats.
        governance: GovernanceAnalysis.
        risks: RiskAnalysis.
        team_score: TeamScore.
        daily_trends: DailyTrendsData.
        config: The AnalysisConfig used for the run; echoed in the metadata.
        version: Version string recorded in the metadata.
        repo_path: Repository location, if any.
        warnings: Non-fatal warnings gathered during the run.
        generated_at: Generation timestamp. Defaults to now; pass a fixed value for
            reproducible output.

    Returns:
        AnalysisReport
    """
    authors = tuple(authors)
    files = tuple(files)
    index, components = activity_index(totals.commits, len(authors), totals.span_days, totals.sizes)
    span = totals.span_days

    repository = RepositoryStats(
        total_commits=totals.commits,
        total_authors=len(authors),
        total_files=len(files),
        total_churn=totals.insertions + totals.deletions,
        total_insertions=totals.insertions,
        total_deletions=totals.deletions,
        first_commit=totals.first,
        last_commit=totals.last,
        active_days=len(totals.days),
        avg_commits_per_day=totals.commits / span if span else 0.0,
        languages=language_totals(files),
        bus_factor=team_score.consistency.bus_factor,
        activity_index=index,
        activity_components=components,
        governance_score=governance.score,
    )

    key_metrics = FrozenMap(
        [
            ("active_contributors", repository.total_authors),
            ("activity_index", round(index * 100)),
            ("bus_factor", repository.bus_factor),
            ("bus_factor_percentage", round(team_score.consistency.bus_factor_percentage)),
            ("code_churn", repository.total_churn),
            ("files_changed", repository.total_files),
            ("governance_score", round(governance.score * 100)),
            ("total_commits", repository.total_commits),
        ]
    )

    if generated_at is None:
        generated_at = pd.Timestamp.now(tz="UTC")
    else:
        generated_at = pd.Timestamp(generated_at)
        if generated_at.tzinfo is None:
            generated_at = generated_at.tz_localize("UTC")

    metadata = ReportMetadata(
        generated_at=generated_at,
        version=version,
        repo_path=str(repo_path) if repo_path is not None else None,
        options=freeze(config.to_dict()),
        warnings=tuple(warnings),
    )

    return AnalysisReport(
        metadata=metadata,
        repository=repository,
        summary=ReportSummary(health_rating=health_rating(index), activity_index=index, key_metrics=key_metrics),
        authors=authors,
        files=files,
        hotspots=select_hotspots(files, config.max_hotspots),
        risks=risks,
        governance=governance,
        team_score=team_score,
        daily_trends=daily_trends,
        timeline=timeline_from_flow(daily_trends.flow),
    )

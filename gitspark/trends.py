"""
.. module:: trends
   :synopsis: Daily trend series and the contributions calendar

Commits are bucketed by local calendar day in an explicit timezone (default
``America/Chicago``), independent of the clock used for author histograms. Every series
has exactly one row per calendar day of the window; days without commits get zero rows.
"""

from bisect import bisect_left, bisect_right
from datetime import timedelta

import pandas as pd

from gitspark.config import DEFAULT_TRENDS_TIMEZONE, BusinessHours, validate_timezone
from gitspark.exceptions import ConfigurationError
from gitspark.logging import logger
from gitspark.messages import is_conventional, is_revert
from gitspark.models import (
    ContributionDay,
    ContributionsGraph,
    ContributionWeek,
    DailyCoupling,
    DailyFlow,
    DailyHygiene,
    DailyOwnership,
    DailyStability,
    DailyTrendsData,
    FrozenMap,
    TrendsLimitations,
    TrendsMetadata,
)
from gitspark.stats import percentile


def _limitations(retouch_days, ownership_window_days):
    return TrendsLimitations(
        data_source="git-commit-history-only",
        calculation_methods=FrozenMap(
            [
                ("co-change-density", "Average number of file pairs changed together per commit"),
                ("commit-size-percentiles", "Linear interpolation between order statistics"),
                ("conventional-commits", "Pattern matching for the conventional commit format"),
                ("out-of-hours", "Commits outside the configured working hours"),
                ("retouch-rate", f"Files changed today that were also changed within the previous {retouch_days} days"),
                ("single-owner", f"Files with only one author in the trailing {ownership_window_days}-day window"),
            ]
        ),
        known_limitations=(
            "Commit timestamps reflect when commits were made, not actual working hours",
            "Authors may work across multiple timezones",
            "File ownership is based on commit authorship only, not actual responsibility",
            "Revert detection is based on commit message content only",
            "No access to code review, issue tracking, or CI/CD data",
        ),
    )


def intensity(count, max_count):
    """Heatmap level 0-4 of a day's commit count relative to the busiest day."""
    if count == 0 or max_count == 0:
        return 0
    ratio = count / max_count
    if ratio >= 0.75:
        return 4
    if ratio >= 0.5:
        return 3
    if ratio >= 0.25:
        return 2
    return 1


def contributions_graph(daily_counts):
    """Calendar-heatmap structure from an ordered list of ``(date, count)`` pairs.

    Days are grouped into ISO weeks; ``day_of_week`` runs from 1 (Monday) to 7 (Sunday).
    """
    max_commits = max((c for _, c in daily_counts), default=0)
    calendar = []
    weeks = []
    current = []
    current_week = None
    for day, count in daily_counts:
        iso = day.isocalendar()
        entry = ContributionDay(date=day.isoformat(), count=count, intensity=intensity(count, max_commits), day_of_week=iso[2])
        if current_week is not None and iso[:2] != current_week:
            weeks.append(ContributionWeek(week_number=current_week[1], days=tuple(current)))
            current = []
        current_week = iso[:2]
        current.append(entry)
        calendar.append(entry)
    if current:
        weeks.append(ContributionWeek(week_number=current_week[1], days=tuple(current)))

    return ContributionsGraph(
        calendar=tuple(calendar),
        weeks=tuple(weeks),
        max_commits=max_commits,
        total_commits=sum(c for _, c in daily_counts),
    )


class _Day:
    __slots__ = (
        "commits", "authors", "insertions", "deletions", "files", "sizes", "reverts", "merges", "renames",
        "out_of_hours", "new_files", "pairs", "multi_file", "message_lengths", "short", "conventional",
    )

    def __init__(self):
        self.commits = 0
        self.authors = set()
        self.insertions = 0
        self.deletions = 0
        self.files = set()
        self.sizes = []
        self.reverts = 0
        self.merges = 0
        self.renames = 0
        self.out_of_hours = 0
        self.new_files = 0
        self.pairs = 0
        self.multi_file = 0
        self.message_lengths = []
        self.short = 0
        self.conventional = 0


class DailyTrendsAnalyzer:
    """Folds commits into per-day buckets and expands them into contiguous daily series.

    Args:
        timezone: IANA timezone whose calendar days bucket the commits.
        business_hours: BusinessHours window for the out-of-hours share.
        retouch_days: Lookback, in days, of the retouch rate.
        ownership_window_days: Trailing window, in days, of the ownership metrics.
        short_subject_length: Subjects shorter than this count as short messages.

    Raises:
        ConfigurationError: If the timezone is unknown.
    """

    def __init__(
        self,
        timezone=DEFAULT_TRENDS_TIMEZONE,
        business_hours=None,
        retouch_days=14,
        ownership_window_days=90,
        short_subject_length=20,
    ):
        self.timezone = validate_timezone(timezone, "trends_timezone")
        self.business_hours = business_hours or BusinessHours()
        self.retouch_days = retouch_days
        self.ownership_window_days = ownership_window_days
        self.short_subject_length = short_subject_length
        self._days = {}
        self._touches = {}

    def add(self, commit):
        local = commit.timestamp.tz_convert(self.timezone)
        day = local.date()
        bucket = self._days.get(day)
        if bucket is None:
            bucket = self._days[day] = _Day()

        bucket.commits += 1
        bucket.authors.add(commit.author_key)
        bucket.insertions += commit.insertions
        bucket.deletions += commit.deletions
        bucket.sizes.append(commit.churn)
        bucket.reverts += is_revert(commit.message)
        bucket.merges += commit.is_merge
        bucket.out_of_hours += self.business_hours.is_out_of_hours(local.hour, local.weekday())
        bucket.message_lengths.append(len(f"{commit.subject} {commit.body}"))
        bucket.short += len(commit.subject) < self.short_subject_length
        bucket.conventional += is_conventional(commit.subject)

        n = len(commit.files)
        if n > 1:
            bucket.multi_file += 1
            bucket.pairs += n * (n - 1) // 2

        for change in commit.files:
            bucket.files.add(change.path)
            bucket.renames += change.status == "renamed"
            bucket.new_files += change.status == "added"
            self._touches.setdefault(change.path, []).append((day, commit.author_key))

    def _to_local_date(self, value, field):
        try:
            ts = pd.Timestamp(value)
        except (TypeError, ValueError, OverflowError) as e:
            raise ConfigurationError(f"Invalid trend window {field} {value!r}: {e}", field=field) from e
        if ts is pd.NaT:
            raise ConfigurationError(f"Invalid trend window {field} {value!r}", field=field)
        if ts.tzinfo is not None:
            ts = ts.tz_convert(self.timezone)
        return ts.date()

    def resolve_window(self, start=None, end=None):
        """Parse optional window bounds into local dates and check their order.

        Returns:
            tuple: ``(start, end)`` as dates, each None when not given.

        Raises:
            ConfigurationError: If a bound cannot be parsed or start is after end.
        """
        first = self._to_local_date(start, "start") if start is not None else None
        last = self._to_local_date(end, "end") if end is not None else None
        if first is not None and last is not None and first > last:
            raise ConfigurationError(f"Trend window start {first} is after end {last}", field="start")
        return first, last

    def _file_index(self):
        index = {}
        for path, touches in self._touches.items():
            touches = sorted(touches)
            index[path] = ([d for d, _ in touches], [a for _, a in touches])
        return index

    def _retouched(self, day, days):
        i = bisect_left(days, day)
        return i > 0 and (day - days[i - 1]).days <= self.retouch_days

    def _window_authors(self, day, days, authors):
        lo = bisect_left(days, day - timedelta(days=self.ownership_window_days))
        hi = bisect_right(days, day)
        return set(authors[lo:hi])

    def _empty(self):
        return DailyTrendsData(
            metadata=TrendsMetadata(
                timezone=self.timezone,
                start_date=None,
                end_date=None,
                total_days=0,
                active_days=0,
                business_hours=self.business_hours,
            ),
            flow=(),
            stability=(),
            ownership=(),
            coupling=(),
            hygiene=(),
            contributions_graph=ContributionsGraph(),
            limitations=_limitations(self.retouch_days, self.ownership_window_days),
        )

    def finalize(self, start=None, end=None):
        """Expand the buckets into contiguous daily series.

        Args:
            start: First day of the window (date, string or timestamp). Defaults to the first
                commit's local day.
            end: Last day of the window, inclusive. Defaults to the last commit's local day.

        Returns:
            DailyTrendsData
        """
        first, last = self.resolve_window(start, end)
        if not self._days and (first is None or last is None):
            return self._empty()

        first = first if first is not None else min(self._days)
        last = last if last is not None else max(self._days)
        if first > last:
            raise ConfigurationError(f"Trend window start {first} is after end {last}", field="start")

        calendar = [d.date() for d in pd.date_range(first, last, freq="D")]
        index = self._file_index()
        empty = _Day()

        flow, stability, ownership, coupling, hygiene, counts = [], [], [], [], [], []
        for day in calendar:
            b = self._days.get(day, empty)
            key = day.isoformat()
            n = b.commits
            counts.append((day, n))

            flow.append(
                DailyFlow(
                    day=key,
                    commits=n,
                    unique_authors=len(b.authors),
                    gross_lines_changed=b.insertions + b.deletions,
                    insertions=b.insertions,
                    deletions=b.deletions,
                    files_touched=len(b.files),
                    commit_size_p50=percentile(b.sizes, 50),
                    commit_size_p90=percentile(b.sizes, 90),
                )
            )

            retouched = sum(1 for path in b.files if self._retouched(day, index[path][0]))
            stability.append(
                DailyStability(
                    day=key,
                    reverts=b.reverts,
                    merge_ratio=b.merges / n if n else 0.0,
                    retouch_rate=retouched / len(b.files) if b.files else 0.0,
                    renames=b.renames,
                    out_of_hours_share=b.out_of_hours / n if n else 0.0,
                )
            )

            single_owner = 0
            author_total = 0
            for path in b.files:
                people = self._window_authors(day, *index[path])
                single_owner += len(people) == 1
                author_total += len(people)
            touched = len(b.files)
            ownership.append(
                DailyOwnership(
                    day=key,
                    new_files=b.new_files,
                    single_owner_files=single_owner,
                    files_touched=touched,
                    single_owner_share=single_owner / touched if touched else 0.0,
                    avg_authors_per_file=author_total / touched if touched else 0.0,
                )
            )

            coupling.append(
                DailyCoupling(
                    day=key,
                    co_change_density=b.pairs / n if n else 0.0,
                    co_change_pairs=b.pairs,
                    multi_file_commits=b.multi_file,
                )
            )
            hygiene.append(
                DailyHygiene(
                    day=key,
                    median_message_length=percentile(b.message_lengths, 50),
                    short_messages=b.short,
                    conventional_commits=b.conventional,
                )
            )

        active = sum(1 for _, n in counts if n)
        logger.info(f"Daily trends: {len(calendar)} days ({active} active) in {self.timezone}")
        return DailyTrendsData(
            metadata=TrendsMetadata(
                timezone=self.timezone,
                start_date=first.isoformat(),
                end_date=last.isoformat(),
                total_days=len(calendar),
                active_days=active,
                business_hours=self.business_hours,
            ),
            flow=tuple(flow),
            stability=tuple(stability),
            ownership=tuple(ownership),
            coupling=tuple(coupling),
            hygiene=tuple(hygiene),
            contributions_graph=contributions_graph(counts),
            limitations=_limitations(self.retouch_days, self.ownership_window_days),
        )


def analyze_daily_trends(commits, timezone=DEFAULT_TRENDS_TIMEZONE, business_hours=None, retouch_days=14,
                         ownership_window_days=90, short_subject_length=20, start=None, end=None):
    """Run a :class:`DailyTrendsAnalyzer` over a finished sequence of CommitRecords."""
    analyzer = DailyTrendsAnalyzer(timezone, business_hours, retouch_days, ownership_window_days, short_subject_length)
    for commit in commits:
        analyzer.add(commit)
    return analyzer.finalize(start=start, end=end)

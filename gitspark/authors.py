"""
.. module:: authors
   :synopsis: Per-author aggregation of the commit stream

Authors are keyed by lowercased email, so identities that differ only in email casing fold
into one record.
"""

from gitspark.config import BusinessHours
from gitspark.logging import logger
from gitspark.models import AuthorStats, FrozenMap

SIZE_BUCKETS = (("micro", 20), ("small", 50), ("medium", 200), ("large", 500))
SIZE_BUCKET_NAMES = tuple(name for name, _ in SIZE_BUCKETS) + ("very_large",)


def size_bucket(churn):
    for name, limit in SIZE_BUCKETS:
        if churn < limit:
            return name
    return "very_large"


def looks_like_email(name):
    return "@" in (name or "")


def prefer_display_name(current, candidate):
    """Pick the better display name of two.

    A name that doesn't look like an email address wins; otherwise the longer one.
    Equal lengths fall back to the lexically smaller name, so the choice never depends on
    which commit was seen first.
    """
    if not current:
        return candidate
    if not candidate:
        return current
    if looks_like_email(current) != looks_like_email(candidate):
        return candidate if looks_like_email(current) else current
    if len(candidate) != len(current):
        return candidate if len(candidate) > len(current) else current
    return min(current, candidate)


def longest_streak(days):
    """Longest run of consecutive calendar dates in ``days``."""
    ordered = sorted(set(days))
    if not ordered:
        return 0
    best = run = 1
    for prev, cur in zip(ordered, ordered[1:], strict=False):
        run = run + 1 if (cur - prev).days == 1 else 1
        best = max(best, run)
    return best


def merge_author_stats(a, b):
    """Combine two AuthorStats for the same case-folded email.

    Counts add up; ``files_changed`` takes the larger of the two since the file sets may
    overlap; first/last commit take the earliest and latest.
    """
    commits = a.commits + b.commits
    churn = a.churn + b.churn
    if b.largest_commit > a.largest_commit or (
        b.largest_commit == a.largest_commit and (b.largest_commit_hash or "") < (a.largest_commit_hash or "")
    ):
        largest, largest_hash = b.largest_commit, b.largest_commit_hash
    else:
        largest, largest_hash = a.largest_commit, a.largest_commit_hash

    return AuthorStats(
        name=prefer_display_name(a.name, b.name),
        email=a.email.lower(),
        commits=commits,
        insertions=a.insertions + b.insertions,
        deletions=a.deletions + b.deletions,
        churn=churn,
        files_changed=max(a.files_changed, b.files_changed),
        first_commit=min(a.first_commit, b.first_commit),
        last_commit=max(a.last_commit, b.last_commit),
        active_days=max(a.active_days, b.active_days),
        avg_commit_size=churn / commits if commits else 0.0,
        largest_commit=largest,
        largest_commit_hash=largest_hash,
        hour_histogram=tuple(x + y for x, y in zip(a.hour_histogram, b.hour_histogram, strict=True)),
        day_histogram=tuple(x + y for x, y in zip(a.day_histogram, b.day_histogram, strict=True)),
        after_hours_commits=a.after_hours_commits + b.after_hours_commits,
        weekend_commits=a.weekend_commits + b.weekend_commits,
        size_distribution=FrozenMap(
            (k, a.size_distribution.get(k, 0) + b.size_distribution.get(k, 0)) for k in SIZE_BUCKET_NAMES
        ),
        merge_commits=a.merge_commits + b.merge_commits,
        co_authored_commits=a.co_authored_commits + b.co_authored_commits,
        longest_streak=max(a.longest_streak, b.longest_streak),
    )


class _AuthorAccumulator:
    def __init__(self):
        self.name = ""
        self.commits = 0
        self.insertions = 0
        self.deletions = 0
        self.paths = set()
        self.first = None
        self.last = None
        self.days = set()
        self.largest = -1
        self.largest_hash = None
        self.hours = [0] * 24
        self.weekdays = [0] * 7
        self.after_hours = 0
        self.weekend = 0
        self.sizes = dict.fromkeys(SIZE_BUCKET_NAMES, 0)
        self.merges = 0
        self.co_authored = 0


class AuthorAggregator:
    """Folds commits into per-author statistics.

    Args:
        business_hours: BusinessHours window for the after-hours count.
        timezone: IANA timezone for the hour/day histograms. None keeps each commit's own
            recorded UTC offset, i.e. the author's local clock.
    """

    def __init__(self, business_hours=None, timezone=None):
        self.business_hours = business_hours or BusinessHours()
        self.timezone = timezone
        self._authors = {}

    def __len__(self):
        return len(self._authors)

    def _local(self, ts):
        return ts.tz_convert(self.timezone) if self.timezone else ts

    def add(self, commit):
        acc = self._authors.get(commit.author_key)
        if acc is None:
            acc = self._authors[commit.author_key] = _AuthorAccumulator()

        acc.name = prefer_display_name(acc.name, commit.author)
        acc.commits += 1
        acc.insertions += commit.insertions
        acc.deletions += commit.deletions
        acc.paths.update(f.path for f in commit.files)
        if acc.first is None or commit.timestamp < acc.first:
            acc.first = commit.timestamp
        if acc.last is None or commit.timestamp > acc.last:
            acc.last = commit.timestamp

        churn = commit.churn
        if churn > acc.largest or (churn == acc.largest and commit.hash < acc.largest_hash):
            acc.largest = churn
            acc.largest_hash = commit.hash
        acc.sizes[size_bucket(churn)] += 1

        local = self._local(commit.timestamp)
        acc.days.add(local.date())
        acc.hours[local.hour] += 1
        acc.weekdays[local.weekday()] += 1
        if self.business_hours.is_after_hours(local.hour):
            acc.after_hours += 1
        if local.weekday() >= 5:
            acc.weekend += 1

        if commit.is_merge:
            acc.merges += 1
        if commit.is_co_authored:
            acc.co_authored += 1

    def finalize(self):
        """Build AuthorStats sorted by commit count (descending) then email."""
        out = []
        for email, acc in self._authors.items():
            churn = acc.insertions + acc.deletions
            out.append(
                AuthorStats(
                    name=acc.name or email,
                    email=email,
                    commits=acc.commits,
                    insertions=acc.insertions,
                    deletions=acc.deletions,
                    churn=churn,
                    files_changed=len(acc.paths),
                    first_commit=acc.first,
                    last_commit=acc.last,
                    active_days=len(acc.days),
                    avg_commit_size=churn / acc.commits,
                    largest_commit=max(acc.largest, 0),
                    largest_commit_hash=acc.largest_hash,
                    hour_histogram=tuple(acc.hours),
                    day_histogram=tuple(acc.weekdays),
                    after_hours_commits=acc.after_hours,
                    weekend_commits=acc.weekend,
                    size_distribution=FrozenMap(acc.sizes),
                    merge_commits=acc.merges,
                    co_authored_commits=acc.co_authored,
                    longest_streak=longest_streak(acc.days),
                )
            )
        out.sort(key=lambda a: (-a.commits, a.email))
        logger.debug(f"Aggregated {len(out)} authors")
        return tuple(out)

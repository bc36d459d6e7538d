"""
.. module:: models
   :synopsis: Immutable value types produced and consumed by the metrics pipeline

Every derived entity is a frozen dataclass. Sequences are tuples and mappings are
:class:`FrozenMap` instances, so a finished report can be shared without copying.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass

import numpy as np
import pandas as pd

FILE_STATUSES = ("added", "modified", "deleted", "renamed", "copied")
RENAME_STATUSES = ("renamed", "copied")


class FrozenMap(Mapping):
    """A read-only, picklable mapping.

    Keys keep the order they were supplied in; builders insert them sorted so iteration
    is deterministic.
    """

    __slots__ = ("_data",)

    def __init__(self, data=None):
        object.__setattr__(self, "_data", dict(data or {}))

    def __getitem__(self, key):
        return self._data[key]

    def __iter__(self):
        return iter(self._data)

    def __len__(self):
        return len(self._data)

    def __setattr__(self, name, value):
        raise AttributeError("FrozenMap is read-only")

    def __getstate__(self):
        return self._data

    def __setstate__(self, state):
        object.__setattr__(self, "_data", state)

    def __hash__(self):
        return hash(tuple(self._data.items()))

    def __eq__(self, other):
        if isinstance(other, Mapping):
            return dict(self.items()) == dict(other.items())
        return NotImplemented

    def __repr__(self):
        return f"FrozenMap({self._data!r})"


def freeze(value):
    """Recursively turn dicts into FrozenMaps and lists into tuples."""
    if isinstance(value, FrozenMap):
        return value
    if isinstance(value, Mapping):
        return FrozenMap((k, freeze(v)) for k, v in value.items())
    if isinstance(value, list | tuple):
        return tuple(freeze(v) for v in value)
    return value


def to_plain(value):
    """Convert a model tree into JSON-safe builtins.

    Timestamps become ISO-8601 strings; numpy scalars become Python numbers.
    """
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [to_plain(v) for v in value]
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    if isinstance(value, np.generic):
        return value.item()
    return value


@dataclass(frozen=True)
class FileChange:
    path: str
    insertions: int = 0
    deletions: int = 0
    status: str = "modified"
    old_path: str | None = None

    @property
    def churn(self):
        return self.insertions + self.deletions


@dataclass(frozen=True)
class CoAuthor:
    name: str
    email: str


@dataclass(frozen=True)
class CommitRecord:
    """One commit in canonical form.

    ``author_email`` keeps the casing it was recorded with; ``author_key`` is the
    lowercased email every aggregator keys on.
    """

    hash: str
    short_hash: str
    author: str
    author_email: str
    author_key: str
    timestamp: pd.Timestamp
    subject: str
    body: str
    message: str
    insertions: int
    deletions: int
    files_changed: int
    is_merge: bool
    co_authors: tuple = ()
    files: tuple = ()

    @property
    def churn(self):
        return self.insertions + self.deletions

    @property
    def is_co_authored(self):
        return len(self.co_authors) > 0


@dataclass(frozen=True)
class AuthorStats:
    name: str
    email: str
    commits: int
    insertions: int
    deletions: int
    churn: int
    files_changed: int
    first_commit: pd.Timestamp
    last_commit: pd.Timestamp
    active_days: int
    avg_commit_size: float
    largest_commit: int
    largest_commit_hash: str | None
    hour_histogram: tuple
    day_histogram: tuple
    after_hours_commits: int
    weekend_commits: int
    size_distribution: FrozenMap = field(default_factory=FrozenMap)
    merge_commits: int = 0
    co_authored_commits: int = 0
    longest_streak: int = 0


@dataclass(frozen=True)
class FileStats:
    path: str
    commits: int
    authors: tuple
    churn: int
    insertions: int
    deletions: int
    first_change: pd.Timestamp
    last_change: pd.Timestamp
    ownership: FrozenMap
    language: str | None = None
    coupling: int = 0
    risk_score: float = 0.0
    hotspot_score: float = 0.0


@dataclass(frozen=True)
class RepositoryStats:
    total_commits: int
    total_authors: int
    total_files: int
    total_churn: int
    total_insertions: int
    total_deletions: int
    first_commit: pd.Timestamp | None
    last_commit: pd.Timestamp | None
    active_days: int
    avg_commits_per_day: float
    languages: FrozenMap
    bus_factor: int
    activity_index: float
    activity_components: FrozenMap
    governance_score: float


@dataclass(frozen=True)
class RiskFactors:
    high_churn_files: int = 0
    many_author_files: int = 0
    large_commits: int = 0
    recent_changes: int = 0


@dataclass(frozen=True)
class RiskAnalysis:
    high_risk_files: tuple
    risk_factors: RiskFactors
    overall_risk: str
    recommendations: tuple = ()


@dataclass(frozen=True)
class MessageLengthStats:
    min: int = 0
    p50: float = 0.0
    p90: float = 0.0
    max: int = 0
    mean: float = 0.0


@dataclass(frozen=True)
class GovernanceAnalysis:
    total_commits: int
    conventional_commits: int
    traceable_commits: int
    wip_commits: int
    revert_commits: int
    short_messages: int
    large_commits: int
    small_commits: int
    traceability_score: float
    avg_message_length: float
    message_length: MessageLengthStats
    ratios: FrozenMap
    score: float
    recommendations: tuple = ()


@dataclass(frozen=True)
class Limitations:
    """What a metric family is computed from and what it cannot see."""

    data_source: str
    known_limitations: tuple
    notes: FrozenMap = field(default_factory=FrozenMap)


@dataclass(frozen=True)
class PlatformPatterns:
    detected: str = "generic-git"
    accuracy: str = "low"
    notes: str = "No platform-specific patterns detected"


@dataclass(frozen=True)
class OwnershipDistribution:
    exclusive: float = 0.0
    shared: float = 0.0
    collaborative: float = 0.0


@dataclass(frozen=True)
class TeamCollaboration:
    score: int
    specialization_score: float
    review_workflow_participation: float
    co_authorship_rate: float
    cross_team_interaction: float
    file_ownership_distribution: OwnershipDistribution
    platform: PlatformPatterns
    limitations: Limitations


@dataclass(frozen=True)
class TeamConsistency:
    score: int
    bus_factor: int
    bus_factor_percentage: float
    active_contributor_ratio: float
    velocity_consistency: float
    delivery_cadence: float
    gini_coefficient: float
    top_contributor_dominance: float
    limitations: Limitations


@dataclass(frozen=True)
class DetectedTestFiles:
    has_test_files: bool
    test_files: int
    test_file_ratio: float


@dataclass(frozen=True)
class TeamQuality:
    score: int
    governance_score: float
    refactoring_activity: float
    bug_fix_ratio: float
    documentation_contribution: float
    merge_workflow_usage: float
    test_file_detection: DetectedTestFiles
    limitations: Limitations


@dataclass(frozen=True)
class TeamWorkLifeBalance:
    score: int
    commit_time_patterns: float
    after_hours_commit_frequency: float
    weekend_commit_activity: float
    after_hours_commits: int
    weekend_commits: int
    high_velocity_days: int
    consecutive_commit_days: int
    multi_contributor_days: int
    solo_contributor_days: int
    coverage_percentage: float
    limitations: Limitations


@dataclass(frozen=True)
class TeamScore:
    overall: int
    collaboration: TeamCollaboration
    consistency: TeamConsistency
    quality: TeamQuality
    work_life_balance: TeamWorkLifeBalance
    recommendations: tuple = ()


@dataclass(frozen=True)
class TrendsMetadata:
    timezone: str
    start_date: str | None
    end_date: str | None
    total_days: int
    active_days: int
    business_hours: object


@dataclass(frozen=True)
class DailyFlow:
    day: str
    commits: int = 0
    unique_authors: int = 0
    gross_lines_changed: int = 0
    insertions: int = 0
    deletions: int = 0
    files_touched: int = 0
    commit_size_p50: float = 0.0
    commit_size_p90: float = 0.0


@dataclass(frozen=True)
class DailyStability:
    day: str
    reverts: int = 0
    merge_ratio: float = 0.0
    retouch_rate: float = 0.0
    renames: int = 0
    out_of_hours_share: float = 0.0


@dataclass(frozen=True)
class DailyOwnership:
    day: str
    new_files: int = 0
    single_owner_files: int = 0
    files_touched: int = 0
    single_owner_share: float = 0.0
    avg_authors_per_file: float = 0.0


@dataclass(frozen=True)
class DailyCoupling:
    day: str
    co_change_density: float = 0.0
    co_change_pairs: int = 0
    multi_file_commits: int = 0


@dataclass(frozen=True)
class DailyHygiene:
    day: str
    median_message_length: float = 0.0
    short_messages: int = 0
    conventional_commits: int = 0


@dataclass(frozen=True)
class ContributionDay:
    date: str
    count: int
    intensity: int
    day_of_week: int


@dataclass(frozen=True)
class ContributionWeek:
    week_number: int
    days: tuple


@dataclass(frozen=True)
class ContributionsGraph:
    calendar: tuple = ()
    weeks: tuple = ()
    max_commits: int = 0
    total_commits: int = 0


@dataclass(frozen=True)
class TrendsLimitations:
    data_source: str
    calculation_methods: FrozenMap
    known_limitations: tuple


@dataclass(frozen=True)
class DailyTrendsData:
    metadata: TrendsMetadata
    flow: tuple
    stability: tuple
    ownership: tuple
    coupling: tuple
    hygiene: tuple
    contributions_graph: ContributionsGraph
    limitations: TrendsLimitations


@dataclass(frozen=True)
class TimelineEntry:
    day: str
    commits: int
    authors: int
    churn: int
    files: int


@dataclass(frozen=True)
class ReportMetadata:
    generated_at: pd.Timestamp
    version: str
    repo_path: str | None
    options: FrozenMap
    warnings: tuple = ()


@dataclass(frozen=True)
class ReportSummary:
    health_rating: str
    activity_index: float
    key_metrics: FrozenMap

"""
.. module:: team
   :synopsis: Team-level composite indices

Every subtree of the :class:`~gitspark.models.TeamScore` carries a
:class:`~gitspark.models.Limitations` block naming its data source and its blind spots.
All inputs come from the commit stream; nothing is fetched from hosting platforms.
"""

import pandas as pd

from gitspark.authors import longest_streak
from gitspark.logging import logger
from gitspark.messages import is_bugfix, is_documentation, is_refactor, is_test_path, merge_platform
from gitspark.models import (
    DetectedTestFiles,
    FrozenMap,
    Limitations,
    OwnershipDistribution,
    PlatformPatterns,
    TeamCollaboration,
    TeamConsistency,
    TeamQuality,
    TeamScore,
    TeamWorkLifeBalance,
)
from gitspark.stats import clamp, coefficient_of_variation, gini_coefficient

REVIEW_PARTICIPATION_CAP = 80.0
OVERALL_WEIGHTS = (("collaboration", 0.30), ("consistency", 0.25), ("quality", 0.25), ("work_life_balance", 0.20))

COLLABORATION_LIMITATIONS = Limitations(
    data_source="git-file-authorship-only",
    known_limitations=(
        "Cannot identify actual code reviewers or approvers",
        "Merge commits may not represent code reviews",
        "Direct commits may still have been reviewed via other means",
        "File overlap between authors is not evidence of collaboration quality",
    ),
    notes=FrozenMap([("estimation_method", "merge-commit-analysis"), ("reviewer_data_available", False)]),
)
CONSISTENCY_LIMITATIONS = Limitations(
    data_source="git-commit-timestamps-only",
    known_limitations=(
        "Commit counts do not reflect the size or difficulty of the work",
        "Batched or squashed commits hide the real delivery rhythm",
        "Active contributors are measured relative to the latest commit, not the current date",
    ),
)
QUALITY_LIMITATIONS = Limitations(
    data_source="git-commit-messages-and-paths",
    known_limitations=(
        "Cannot measure actual test execution coverage",
        "Merge workflow usage is not code review coverage",
        "Quality patterns are based on commit message analysis only",
        "Refactoring and bug-fix detection are based on keywords only",
    ),
    notes=FrozenMap([("test_coverage", "File detection only, not execution coverage")]),
)
WORK_LIFE_BALANCE_LIMITATIONS = Limitations(
    data_source="git-commit-timestamps-only",
    known_limitations=(
        "Commit times are affected by timezones and CI/CD systems",
        "Weekend or after-hours commits may be maintenance or urgent fixes",
        "Does not account for flexible work schedules",
        "Cannot distinguish between work and personal commits",
        "Team coverage measures daily contributor diversity, not vacation planning",
    ),
    notes=FrozenMap([("burnout_detection", "Cannot assess burnout from Git data alone")]),
)


def bus_factor(commit_counts, target=80.0):
    """Smallest number of top authors whose commits reach ``target`` percent of the total."""
    counts = sorted((c for c in commit_counts if c > 0), reverse=True)
    total = sum(counts)
    if total == 0:
        return 0
    cumulative = 0
    for needed, count in enumerate(counts, start=1):
        cumulative += count
        if cumulative * 100 >= target * total:
            return needed
    return len(counts)


def bus_factor_percentage(commit_counts, target=80.0):
    """Bus factor as a percentage of all authors. 100 for a single author, 0 for none."""
    counts = [c for c in commit_counts if c > 0]
    if not counts:
        return 0.0
    return bus_factor(counts, target) / len(counts) * 100.0


def specialization_score(files):
    """Percentage of files with exactly one author."""
    files = list(files)
    if not files:
        return 0.0
    single = sum(1 for f in files if len(f.authors) == 1)
    return single / len(files) * 100.0


def ownership_distribution(files):
    files = list(files)
    if not files:
        return OwnershipDistribution()
    n = len(files)
    return OwnershipDistribution(
        exclusive=sum(1 for f in files if len(f.authors) == 1) / n * 100.0,
        shared=sum(1 for f in files if 2 <= len(f.authors) <= 3) / n * 100.0,
        collaborative=sum(1 for f in files if len(f.authors) > 3) / n * 100.0,
    )


def delivery_cadence(timestamps):
    """Regularity of inter-commit gaps: ``100 - CoV * 100`` clamped to [0, 100].

    Fewer than two commits, or all commits at the same instant, count as perfectly regular.
    """
    ordered = sorted(timestamps)
    if len(ordered) < 2:
        return 100.0
    gaps = [(b - a).total_seconds() / 86400.0 for a, b in zip(ordered, ordered[1:], strict=False)]
    return clamp(100.0 - coefficient_of_variation(gaps) * 100.0, 0.0, 100.0)


def velocity_consistency(daily_counts):
    """``100 - CoV * 100`` of commits per active day, clamped to [0, 100]. 0 without commits."""
    daily_counts = list(daily_counts)
    if not daily_counts:
        return 0.0
    return clamp(100.0 - coefficient_of_variation(daily_counts) * 100.0, 0.0, 100.0)


def high_velocity_days(daily_counts):
    """Days with more than twice the average number of commits per active day."""
    daily_counts = list(daily_counts)
    if not daily_counts:
        return 0
    threshold = 2 * sum(daily_counts) / len(daily_counts)
    return sum(1 for c in daily_counts if c > threshold)


def _pct(count, total):
    return count / total * 100.0 if total else 0.0


class TeamAggregator:
    """Folds commits into the counts team indices need, then scores them against the
    finalized author and file statistics.

    Args:
        timezone: Clock used to bucket commits into days; None keeps each commit's own offset.
        bus_factor_target: Cumulative commit share, in percent, the bus factor must reach.
        active_contributor_days: Authors with a commit this many days before the reference
            time count as active.
    """

    def __init__(self, timezone=None, bus_factor_target=80.0, active_contributor_days=30):
        self.timezone = timezone
        self.bus_factor_target = bus_factor_target
        self.active_contributor_days = active_contributor_days
        self._timestamps = []
        self._daily_authors = {}
        self._merges = 0
        self._co_authored = 0
        self._refactor = 0
        self._bugfix = 0
        self._docs = 0
        self._platform_merges = {"github": 0, "gitlab": 0, "azure-devops": 0}

    def add(self, commit):
        self._timestamps.append(commit.timestamp)
        local = commit.timestamp.tz_convert(self.timezone) if self.timezone else commit.timestamp
        self._daily_authors.setdefault(local.date(), set()).add(commit.author_key)

        self._merges += commit.is_merge
        self._co_authored += commit.is_co_authored
        self._refactor += is_refactor(commit.message)
        self._bugfix += is_bugfix(commit.message)
        self._docs += is_documentation(commit.message, [f.path for f in commit.files])
        platform = merge_platform(commit.message)
        if platform is not None:
            self._platform_merges[platform] += 1

    def _daily_counts(self):
        counts = {}
        for ts in self._timestamps:
            local = ts.tz_convert(self.timezone) if self.timezone else ts
            counts[local.date()] = counts.get(local.date(), 0) + 1
        return [counts[d] for d in sorted(counts)]

    def _platform(self):
        for name in ("github", "gitlab", "azure-devops"):
            count = self._platform_merges[name]
            if count:
                accuracy = "high" if count > self._merges * 0.7 else "medium"
                return PlatformPatterns(detected=name, accuracy=accuracy, notes=f"{count} {name}-style merge commits detected")
        return PlatformPatterns()

    def _collaboration(self, total, files):
        review = _pct(self._merges, total)
        specialization = specialization_score(files)
        score = round((specialization + min(review, REVIEW_PARTICIPATION_CAP) / REVIEW_PARTICIPATION_CAP * 100.0) / 2)
        return TeamCollaboration(
            score=score if total else 0,
            specialization_score=specialization,
            review_workflow_participation=review,
            co_authorship_rate=_pct(self._co_authored, total),
            cross_team_interaction=_pct(sum(1 for f in files if len(f.authors) > 1), len(files)),
            file_ownership_distribution=ownership_distribution(files),
            platform=self._platform(),
            limitations=COLLABORATION_LIMITATIONS,
        )

    def _consistency(self, total, authors, reference_time):
        counts = [a.commits for a in authors]
        factor_pct = bus_factor_percentage(counts, self.bus_factor_target)
        cadence = delivery_cadence(self._timestamps)
        velocity = velocity_consistency(self._daily_counts())

        active = 0
        if reference_time is not None:
            cutoff = reference_time - pd.Timedelta(days=self.active_contributor_days)
            active = sum(1 for a in authors if a.last_commit >= cutoff)
        active_ratio = _pct(active, len(authors))

        score = round(0.25 * factor_pct + 0.25 * active_ratio + 0.25 * velocity + 0.25 * cadence)
        return TeamConsistency(
            score=score if total else 0,
            bus_factor=bus_factor(counts, self.bus_factor_target),
            bus_factor_percentage=factor_pct,
            active_contributor_ratio=active_ratio,
            velocity_consistency=velocity,
            delivery_cadence=cadence,
            gini_coefficient=gini_coefficient(counts),
            top_contributor_dominance=_pct(max(counts, default=0), total),
            limitations=CONSISTENCY_LIMITATIONS,
        )

    def _quality(self, total, files, governance):
        governance_score = governance.score * 100.0 if governance is not None else 0.0
        test_files = sum(1 for f in files if is_test_path(f.path))
        test_ratio = _pct(test_files, len(files))
        refactoring = _pct(self._refactor, total)
        documentation = _pct(self._docs, total)
        merge_usage = _pct(self._merges, total)

        score = round(
            governance_score * 0.3
            + min(refactoring * 5, 100.0) * 0.2
            + min(documentation * 2, 100.0) * 0.2
            + merge_usage * 0.2
            + min(test_ratio * 2, 100.0) * 0.1
        )
        return TeamQuality(
            score=score if total else 0,
            governance_score=governance_score,
            refactoring_activity=refactoring,
            bug_fix_ratio=_pct(self._bugfix, total),
            documentation_contribution=documentation,
            merge_workflow_usage=merge_usage,
            test_file_detection=DetectedTestFiles(
                has_test_files=test_files > 0, test_files=test_files, test_file_ratio=test_ratio
            ),
            limitations=QUALITY_LIMITATIONS,
        )

    def _work_life_balance(self, total, authors):
        after_hours = sum(a.after_hours_commits for a in authors)
        weekend = sum(a.weekend_commits for a in authors)
        after_pct = _pct(after_hours, total)
        weekend_pct = _pct(weekend, total)
        patterns = max(0.0, 100.0 - after_pct - weekend_pct)

        days = len(self._daily_authors)
        multi = sum(1 for people in self._daily_authors.values() if len(people) > 1)
        coverage = _pct(multi, days)
        daily = self._daily_counts()

        score = round(
            patterns * 0.4 + max(0.0, 100.0 - after_pct) * 0.3 + max(0.0, 100.0 - weekend_pct) * 0.2 + coverage * 0.1
        )
        return TeamWorkLifeBalance(
            score=score if total else 0,
            commit_time_patterns=patterns,
            after_hours_commit_frequency=after_pct,
            weekend_commit_activity=weekend_pct,
            after_hours_commits=after_hours,
            weekend_commits=weekend,
            high_velocity_days=high_velocity_days(daily),
            consecutive_commit_days=longest_streak(self._daily_authors),
            multi_contributor_days=multi,
            solo_contributor_days=days - multi,
            coverage_percentage=coverage,
            limitations=WORK_LIFE_BALANCE_LIMITATIONS,
        )

    def finalize(self, authors, files, governance=None, reference_time=None):
        """Score the team.

        Args:
            authors: Finalized AuthorStats.
            files: Finalized FileStats.
            governance: GovernanceAnalysis, for the quality subtree.
            reference_time: "Now" for the active-contributor window; defaults to the latest commit.

        Returns:
            TeamScore
        """
        authors = list(authors)
        files = list(files)
        total = len(self._timestamps)
        if reference_time is None and self._timestamps:
            reference_time = max(self._timestamps)

        parts = {
            "collaboration": self._collaboration(total, files),
            "consistency": self._consistency(total, authors, reference_time),
            "quality": self._quality(total, files, governance),
            "work_life_balance": self._work_life_balance(total, authors),
        }
        overall = round(sum(parts[name].score * weight for name, weight in OVERALL_WEIGHTS))
        logger.debug(f"Team score {overall} over {len(authors)} authors and {len(files)} files")
        return TeamScore(overall=overall, recommendations=tuple(generate_team_recommendations(parts)), **parts)


def generate_team_recommendations(*args, **kwargs):
    """Always empty: team indices are reported as numbers only."""
    return []

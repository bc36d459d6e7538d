"""
.. module:: governance
   :synopsis: Objective commit-message pattern counts

The scorer only counts pattern matches and derives ratios from them. It never produces
advice: :func:`generate_governance_recommendations` always returns an empty list.
"""

from gitspark.config import GovernanceThresholds, GovernanceWeights
from gitspark.logging import logger
from gitspark.messages import has_issue_reference, is_conventional, is_revert, is_wip
from gitspark.models import FrozenMap, GovernanceAnalysis, MessageLengthStats
from gitspark.stats import mean, percentile


class GovernanceScorer:
    """Folds commit messages into governance counts and a weighted score in [0, 1].

    Each commit earns the weight of every check it passes: conventional format, an issue
    reference, an adequate message length, no WIP marker, no revert. The score is the mean
    over commits.

    Args:
        weights: GovernanceWeights.
        thresholds: GovernanceThresholds.
    """

    def __init__(self, weights=None, thresholds=None):
        self.weights = weights or GovernanceWeights()
        self.thresholds = thresholds or GovernanceThresholds()
        self._total = 0
        self._conventional = 0
        self._traceable = 0
        self._wip = 0
        self._revert = 0
        self._short = 0
        self._large = 0
        self._small = 0
        self._points = 0.0
        self._lengths = []

    def add(self, commit):
        t = self.thresholds
        w = self.weights
        message = commit.message
        length = len(message)

        conventional = is_conventional(commit.subject)
        traceable = has_issue_reference(message)
        wip = is_wip(message)
        revert = is_revert(message)
        adequate = t.adequate_length_min <= length <= t.adequate_length_max

        self._total += 1
        self._conventional += conventional
        self._traceable += traceable
        self._wip += wip
        self._revert += revert
        self._short += length < t.short_message_length
        self._large += commit.churn > t.large_commit_lines
        self._small += commit.churn < t.small_commit_lines
        self._lengths.append(length)

        self._points += (
            w.conventional * conventional
            + w.traceability * traceable
            + w.length * adequate
            + w.no_wip * (not wip)
            + w.no_revert * (not revert)
        )

    def finalize(self):
        n = self._total

        def ratio(count):
            return count / n if n else 0.0

        lengths = MessageLengthStats(
            min=min(self._lengths, default=0),
            p50=percentile(self._lengths, 50),
            p90=percentile(self._lengths, 90),
            max=max(self._lengths, default=0),
            mean=mean(self._lengths),
        )
        ratios = FrozenMap(
            [
                ("conventional", ratio(self._conventional)),
                ("large_commits", ratio(self._large)),
                ("reverts", ratio(self._revert)),
                ("short_messages", ratio(self._short)),
                ("small_commits", ratio(self._small)),
                ("traceability", ratio(self._traceable)),
                ("wip", ratio(self._wip)),
            ]
        )
        analysis = GovernanceAnalysis(
            total_commits=n,
            conventional_commits=self._conventional,
            traceable_commits=self._traceable,
            wip_commits=self._wip,
            revert_commits=self._revert,
            short_messages=self._short,
            large_commits=self._large,
            small_commits=self._small,
            traceability_score=ratio(self._traceable),
            avg_message_length=lengths.mean,
            message_length=lengths,
            ratios=ratios,
            score=min(self._points / n, 1.0) if n else 0.0,
        )
        logger.debug(f"Governance: {self._conventional}/{n} conventional, {self._traceable}/{n} traceable")
        return analysis


def analyze_governance(commits, config=None):
    """Score a finished sequence of CommitRecords in one call."""
    scorer = GovernanceScorer(
        weights=config.governance_weights if config else None,
        thresholds=config.thresholds if config else None,
    )
    for commit in commits:
        scorer.add(commit)
    return scorer.finalize()


def generate_governance_recommendations(analysis=None, *args, **kwargs):
    """Always empty, whatever the analysis says."""
    return []

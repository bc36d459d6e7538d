"""
.. module:: risk
   :synopsis: File risk and hotspot scoring

Scores are relative: each factor is scaled against the largest value seen across the
analysed files, so they are comparable within one report but not across repositories.
"""

import math
from dataclasses import dataclass

import pandas as pd

from gitspark.config import RiskWeights
from gitspark.models import RiskAnalysis, RiskFactors
from gitspark.stats import clamp, shannon_entropy

RECENT_DAYS = 30
STALE_DAYS = 365
HIGH_CHURN_LINES = 1000
MANY_AUTHORS = 5
RECENT_CHANGE_DAYS = 7

RISK_BANDS = ((0.70, "high"), (0.50, "medium"), (0.30, "low"))


@dataclass(frozen=True)
class RiskContext:
    """Repository-wide maxima every file score is scaled against."""

    reference_time: pd.Timestamp | None
    max_churn: int = 0
    max_commits: int = 0
    max_coupling: int = 0
    max_size: int = 0
    author_threshold: int = 8

    @classmethod
    def from_files(cls, files, reference_time=None, author_threshold=8):
        files = list(files)
        if reference_time is None and files:
            reference_time = max(f.last_change for f in files)
        return cls(
            reference_time=reference_time,
            max_churn=max((f.churn for f in files), default=0),
            max_commits=max((f.commits for f in files), default=0),
            max_coupling=max((f.coupling for f in files), default=0),
            max_size=max((_net_size(f) for f in files), default=0),
            author_threshold=author_threshold,
        )


def _net_size(file):
    return max(file.insertions - file.deletions, 0)


def _ratio(value, maximum):
    return value / maximum if maximum else 0.0


def recency_factor(last_change, reference_time):
    """1.0 within 30 days of the reference time, then a linear decay to 0 at one year."""
    if reference_time is None:
        return 0.0
    days = max((reference_time - last_change).total_seconds() / 86400.0, 0.0)
    if days < RECENT_DAYS:
        return 1.0
    return max(0.0, 1.0 - days / STALE_DAYS)


def ownership_factor(ownership, author_threshold=8):
    """Normalized entropy of the ownership shares.

    0 for a single owner, 1 once churn is spread evenly over ``author_threshold`` or more authors.
    """
    if len(ownership) < 2 or author_threshold < 2:
        return 0.0
    return clamp(shannon_entropy(ownership.values()) / math.log2(author_threshold))


def score_file_risk(file, context, weights=None):
    """Weighted composite of churn, recency, ownership spread, coupling and size, clamped to [0, 1].

    The weights are validated when the config is built, not here.
    """
    weights = weights or RiskWeights()
    score = (
        weights.churn * _ratio(file.churn, context.max_churn)
        + weights.recency * recency_factor(file.last_change, context.reference_time)
        + weights.ownership * ownership_factor(file.ownership, context.author_threshold)
        + weights.coupling * _ratio(file.coupling, context.max_coupling)
        + weights.size * _ratio(_net_size(file), context.max_size)
    )
    return clamp(score)


def score_hotspot(file, context, author_threshold=None):
    author_threshold = author_threshold or context.author_threshold
    score = (
        0.40 * _ratio(file.commits, context.max_commits)
        + 0.35 * min(len(file.authors) / author_threshold, 1.0)
        + 0.25 * _ratio(file.churn, context.max_churn)
    )
    return clamp(score)


def risk_band(score):
    """Display band for a risk score: high, medium, low or minimal."""
    for threshold, band in RISK_BANDS:
        if score >= threshold:
            return band
    return "minimal"


def select_hotspots(files, limit):
    """The ``limit`` files with the highest non-zero hotspot score, ties broken by path."""
    ranked = sorted((f for f in files if f.hotspot_score > 0), key=lambda f: (-f.hotspot_score, f.path))
    return tuple(ranked[:limit])


def overall_risk(high_risk_files, factors):
    weighted = (
        len(high_risk_files)
        + factors.high_churn_files * 0.5
        + factors.many_author_files * 0.3
        + factors.large_commits * 0.2
    )
    if weighted > 15:
        return "high"
    if weighted > 5:
        return "medium"
    return "low"


def analyze_risk(files, large_commits, config, reference_time=None):
    """Summarize repository risk from scored files.

    Args:
        files: Scored FileStats.
        large_commits: Number of commits whose churn exceeds the large-commit threshold.
        config: AnalysisConfig.
        reference_time: "Now" for the recent-change count. Defaults to the config's
            reference time, then to the latest file change.

    Returns:
        RiskAnalysis
    """
    files = list(files)
    reference_time = reference_time or config.reference_time
    if reference_time is None and files:
        reference_time = max(f.last_change for f in files)

    high = sorted((f for f in files if f.risk_score >= 0.70), key=lambda f: (-f.risk_score, f.path))
    high = tuple(high[: config.max_high_risk_files])

    recent = 0
    if reference_time is not None:
        window = pd.Timedelta(days=RECENT_CHANGE_DAYS)
        recent = sum(1 for f in files if reference_time - f.last_change < window)

    factors = RiskFactors(
        high_churn_files=sum(1 for f in files if f.churn > HIGH_CHURN_LINES),
        many_author_files=sum(1 for f in files if len(f.authors) > MANY_AUTHORS),
        large_commits=large_commits,
        recent_changes=recent,
    )
    return RiskAnalysis(
        high_risk_files=high,
        risk_factors=factors,
        overall_risk=overall_risk(high, factors),
        recommendations=tuple(generate_risk_recommendations(high, factors)),
    )


def generate_risk_recommendations(*args, **kwargs):
    """Always empty: the analysis reports counts, not advice."""
    return []

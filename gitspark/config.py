"""
.. module:: config
   :synopsis: Analysis options consumed by the metrics pipeline

All options are plain frozen dataclasses. They are validated when constructed, so a bad
configuration fails before a single commit is read.
"""

import json
import math
import os
from dataclasses import asdict, dataclass, field, fields, replace

import pandas as pd

from gitspark.exceptions import ConfigurationError
from gitspark.logging import logger

CONFIG_FILENAME = ".git-spark.json"
WEIGHT_TOLERANCE = 1e-6
DEFAULT_TRENDS_TIMEZONE = "America/Chicago"


def _validate_weights(weights, group):
    values = asdict(weights)
    for key, value in values.items():
        if not isinstance(value, int | float) or isinstance(value, bool) or math.isnan(value):
            raise ConfigurationError(f"{group} weight '{key}' must be a number, got {value!r}", field=f"{group}.{key}")
        if value < 0:
            raise ConfigurationError(f"{group} weight '{key}' must not be negative, got {value}", field=f"{group}.{key}")

    total = sum(values.values())
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise ConfigurationError(f"{group} weights must sum to 1.0, got {total:.6f}", field=group)


def _build(cls, data, group):
    """Instantiate one option group from a mapping, rejecting unknown keys."""
    if isinstance(data, cls):
        return data
    if not isinstance(data, dict):
        raise ConfigurationError(f"{group} must be a mapping, got {type(data).__name__}", field=group)

    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown {group} option(s): {', '.join(unknown)}", field=group)
    return cls(**data)


def validate_timezone(tz, field_name="timezone"):
    """Check that ``tz`` names a timezone pandas can convert to.

    Raises:
        ConfigurationError: If the name is unknown.
    """
    if not isinstance(tz, str) or not tz:
        raise ConfigurationError(f"Timezone must be a non-empty string, got {tz!r}", field=field_name)
    try:
        pd.Timestamp("2000-01-01", tz="UTC").tz_convert(tz)
    except (KeyError, ValueError, TypeError) as e:
        raise ConfigurationError(f"Unknown timezone '{tz}': {e}", field=field_name) from e
    return tz


@dataclass(frozen=True)
class RiskWeights:
    """Weights of the five file-risk factors. Must sum to 1.0."""

    churn: float = 0.30
    recency: float = 0.20
    ownership: float = 0.20
    coupling: float = 0.15
    size: float = 0.15

    def __post_init__(self):
        _validate_weights(self, "risk")


@dataclass(frozen=True)
class GovernanceWeights:
    """Per-commit weights of the governance score. Must sum to 1.0."""

    conventional: float = 0.40
    traceability: float = 0.25
    length: float = 0.15
    no_wip: float = 0.10
    no_revert: float = 0.10

    def __post_init__(self):
        _validate_weights(self, "governance")


@dataclass(frozen=True)
class GovernanceThresholds:
    short_message_length: int = 10
    short_subject_length: int = 20
    adequate_length_min: int = 10
    adequate_length_max: int = 72
    large_commit_lines: int = 500
    small_commit_lines: int = 20

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ConfigurationError(
                    f"Threshold '{f.name}' must be a non-negative integer, got {value!r}", field=f"thresholds.{f.name}"
                )
        if self.adequate_length_min > self.adequate_length_max:
            raise ConfigurationError("adequate_length_min must not exceed adequate_length_max", field="thresholds")
        if self.small_commit_lines > self.large_commit_lines:
            raise ConfigurationError("small_commit_lines must not exceed large_commit_lines", field="thresholds")


@dataclass(frozen=True)
class BusinessHours:
    """Working-hours window: ``start <= hour < end``, Monday to Friday when ``weekdays_only``."""

    start: int = 8
    end: int = 18
    weekdays_only: bool = True

    def __post_init__(self):
        for name in ("start", "end"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigurationError(f"Business hours '{name}' must be an integer hour", field=f"business_hours.{name}")
        if not 0 <= self.start < self.end <= 24:
            raise ConfigurationError(
                f"Invalid business hours window {self.start}-{self.end}; need 0 <= start < end <= 24",
                field="business_hours",
            )

    def is_after_hours(self, hour):
        return hour < self.start or hour >= self.end

    def is_out_of_hours(self, hour, weekday):
        """True when a local (hour, weekday) falls outside the window. Monday is weekday 0."""
        if self.weekdays_only and weekday >= 5:
            return True
        return self.is_after_hours(hour)


_POSITIVE_INTS = ("retouch_days", "ownership_window_days", "max_hotspots", "max_high_risk_files",
                  "hotspot_author_threshold", "active_contributor_days")


@dataclass(frozen=True)
class AnalysisConfig:
    """Every option the metrics pipeline reads.

    Args:
        risk_weights: Weights of the file-risk factors; must sum to 1.0.
        governance_weights: Weights of the per-commit governance score; must sum to 1.0.
        thresholds: Message-length and commit-size thresholds.
        business_hours: Working-hours window used for after-hours and weekend classification.
        trends_timezone: IANA timezone used to bucket the daily trend series.
        author_timezone: IANA timezone for author hour/day histograms. None keeps each
            commit's own recorded UTC offset.
        retouch_days: Lookback window of the retouch rate, in days.
        ownership_window_days: Trailing window of the daily ownership metrics, in days.
        bus_factor_target: Cumulative commit share (percent) the bus factor must reach.
        max_hotspots: Maximum number of hotspots surfaced on the report.
        max_high_risk_files: Maximum number of high-risk files surfaced on the risk analysis.
        hotspot_author_threshold: Author count at which the hotspot author factor saturates.
        active_contributor_days: Window before the reference time that counts as "active".
        include_globs: Only file paths matching one of these fnmatch globs are kept.
        ignore_globs: File paths matching one of these fnmatch globs are dropped.
        reference_time: "Now" for recency scoring. None uses the latest commit timestamp.
    """

    risk_weights: RiskWeights = field(default_factory=RiskWeights)
    governance_weights: GovernanceWeights = field(default_factory=GovernanceWeights)
    thresholds: GovernanceThresholds = field(default_factory=GovernanceThresholds)
    business_hours: BusinessHours = field(default_factory=BusinessHours)
    trends_timezone: str = DEFAULT_TRENDS_TIMEZONE
    author_timezone: str | None = None
    retouch_days: int = 14
    ownership_window_days: int = 90
    bus_factor_target: float = 80.0
    max_hotspots: int = 15
    max_high_risk_files: int = 20
    hotspot_author_threshold: int = 8
    active_contributor_days: int = 30
    include_globs: tuple = ()
    ignore_globs: tuple = ()
    reference_time: pd.Timestamp | None = None

    def __post_init__(self):
        validate_timezone(self.trends_timezone, "trends_timezone")
        if self.author_timezone is not None:
            validate_timezone(self.author_timezone, "author_timezone")

        for name in _POSITIVE_INTS:
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigurationError(f"'{name}' must be a positive integer, got {value!r}", field=name)

        target = self.bus_factor_target
        if not isinstance(target, int | float) or isinstance(target, bool) or not 0 < target <= 100:
            raise ConfigurationError(f"bus_factor_target must be in (0, 100], got {target!r}", field="bus_factor_target")

        # frozen: normalize through object.__setattr__
        object.__setattr__(self, "include_globs", tuple(self.include_globs or ()))
        object.__setattr__(self, "ignore_globs", tuple(self.ignore_globs or ()))
        if self.reference_time is not None:
            try:
                ref = pd.Timestamp(self.reference_time)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid reference_time: {e}", field="reference_time") from e
            if ref.tzinfo is None:
                ref = ref.tz_localize("UTC")
            object.__setattr__(self, "reference_time", ref)

    @classmethod
    def from_dict(cls, data):
        """Build a config from a JSON-shaped mapping.

        Accepts either flat keys (``risk_weights``, ``trends_timezone``...) or the nested
        ``.git-spark.json`` layout::

            {"analysis": {"weights": {"risk": {...}, "governance": {...}},
                          "thresholds": {...}, "timezone": "UTC", ...}}
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration must be a mapping, got {type(data).__name__}")

        flat = dict(data)
        analysis = flat.pop("analysis", None)
        if analysis is not None:
            if not isinstance(analysis, dict):
                raise ConfigurationError("'analysis' must be a mapping", field="analysis")
            analysis = dict(analysis)
            weights = analysis.pop("weights", {}) or {}
            if "risk" in weights:
                flat.setdefault("risk_weights", weights["risk"])
            if "governance" in weights:
                flat.setdefault("governance_weights", weights["governance"])
            if "timezone" in analysis:
                flat.setdefault("trends_timezone", analysis.pop("timezone"))
            if "excludePaths" in analysis:
                flat.setdefault("ignore_globs", analysis.pop("excludePaths"))
            for key, value in analysis.items():
                flat.setdefault(key, value)

        # sections that belong to the excluded CLI / renderers
        for ignored in ("version", "output", "performance"):
            flat.pop(ignored, None)

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(flat) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration option(s): {', '.join(unknown)}")

        groups = {
            "risk_weights": RiskWeights,
            "governance_weights": GovernanceWeights,
            "thresholds": GovernanceThresholds,
            "business_hours": BusinessHours,
        }
        for name, group_cls in groups.items():
            if name in flat:
                flat[name] = _build(group_cls, flat[name], name)

        try:
            return cls(**flat)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def to_dict(self):
        """The resolved options as a JSON-safe dict (sorted, deterministic)."""
        out = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if hasattr(value, "__dataclass_fields__"):
                value = asdict(value)
            elif isinstance(value, tuple):
                value = list(value)
            elif isinstance(value, pd.Timestamp):
                value = value.isoformat()
            out[f.name] = value
        return out

    def with_options(self, **changes):
        return replace(self, **changes)


def load_config(path=None, repo_path=None):
    """Load an AnalysisConfig from JSON.

    Args:
        path: Explicit config file. Relative paths resolve against ``repo_path``.
        repo_path: Repository root; ``<repo_path>/.git-spark.json`` is used when ``path`` is None
            and that file exists.

    Returns:
        AnalysisConfig: The loaded config, or the defaults when no file applies.

    Raises:
        ConfigurationError: If the file is missing, unreadable, or invalid.
    """
    repo_path = repo_path or os.getcwd()
    if path is not None:
        path = str(path)
        if not os.path.isabs(path):
            path = os.path.join(repo_path, path)
        if not os.path.exists(path):
            raise ConfigurationError(f"Config file does not exist: {path}", field="config")
    else:
        candidate = os.path.join(repo_path, CONFIG_FILENAME)
        if not os.path.exists(candidate):
            logger.debug(f"No {CONFIG_FILENAME} in {repo_path}; using default configuration.")
            return AnalysisConfig()
        path = candidate

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to load configuration file ({path}): {e}", field="config") from e

    logger.info(f"Loaded configuration file {path}")
    return AnalysisConfig.from_dict(data)

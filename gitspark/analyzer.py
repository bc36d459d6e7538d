"""
.. module:: analyzer
   :synopsis: Single-pass driver of the metrics pipeline

"""

from gitspark.authors import AuthorAggregator
from gitspark.config import AnalysisConfig
from gitspark.exceptions import AnalysisCancelledError, ConfigurationError, WarningCollector
from gitspark.files import FileAggregator
from gitspark.governance import GovernanceScorer
from gitspark.logging import logger
from gitspark.normalizer import normalize_commit
from gitspark.report import RepositoryTotals, assemble_report
from gitspark.risk import analyze_risk
from gitspark.team import TeamAggregator
from gitspark.trends import DailyTrendsAnalyzer

DEFAULT_VERSION = "0.1.0"


class GitAnalyzer:
    """Runs every aggregator over a commit sequence in one pass and assembles the report.

    Raw commits are normalized one at a time and folded into each aggregator, so the input
    may be any iterable, including a generator streaming from git. Ascending timestamp order
    is conventional; out-of-order input is accepted with a warning since every aggregate is
    computed from minima, maxima and sorted day indexes.

    Args:
        config: AnalysisConfig, or a mapping accepted by :meth:`AnalysisConfig.from_dict`.
            Validated here, before any commit is read.
        version: Version string recorded in report metadata.
        progress_callback: Optional ``callable(phase, current, total)``. ``total`` is None
            while the commit count is unknown.
        cancel_check: Optional ``callable() -> bool`` polled before each commit; returning
            True aborts with :class:`AnalysisCancelledError`.

    Examples:
        >>> analyzer = GitAnalyzer(version="1.0.0")
        >>> report = analyzer.analyze(commits, generated_at="2024-01-01T00:00:00Z")
        >>> report.summary.health_rating
    """

    def __init__(self, config=None, version=None, progress_callback=None, cancel_check=None):
        if config is None:
            config = AnalysisConfig()
        elif isinstance(config, dict):
            config = AnalysisConfig.from_dict(config)
        elif not isinstance(config, AnalysisConfig):
            raise ConfigurationError(f"config must be an AnalysisConfig or a mapping, got {type(config).__name__}")
        self.config = config
        self.version = version or DEFAULT_VERSION
        self.progress_callback = progress_callback
        self.cancel_check = cancel_check

    def _progress(self, phase, current, total=None):
        if self.progress_callback is not None:
            self.progress_callback(phase, current, total)

    def analyze(self, commits, repo_path=None, generated_at=None, start=None, end=None):
        """Analyze a sequence of raw commit entries or CommitRecords.

        Args:
            commits: Iterable of raw mappings or CommitRecords.
            repo_path: Repository location recorded in the metadata.
            generated_at: Fixed generation timestamp, for reproducible output.
            start: First day of the daily-trend window; defaults to the first commit's day.
            end: Last day of the daily-trend window; defaults to the last commit's day.

        Returns:
            AnalysisReport

        Raises:
            ConfigurationError: If ``start`` or ``end`` cannot be parsed, or start is after end.
                Checked before any commit is read.
            MalformedCommitError: On the first commit that cannot be normalized.
            AnalysisCancelledError: If ``cancel_check`` fires.
        """
        config = self.config
        warnings = WarningCollector()
        total = len(commits) if hasattr(commits, "__len__") else None

        files = FileAggregator(warnings)
        authors = AuthorAggregator(config.business_hours, config.author_timezone)
        governance = GovernanceScorer(config.governance_weights, config.thresholds)
        team = TeamAggregator(config.author_timezone, config.bus_factor_target, config.active_contributor_days)
        trends = DailyTrendsAnalyzer(
            config.trends_timezone,
            config.business_hours,
            config.retouch_days,
            config.ownership_window_days,
            config.thresholds.short_subject_length,
        )
        totals = RepositoryTotals(config.trends_timezone)
        start, end = trends.resolve_window(start, end)
        stages = (files, authors, governance, team, trends, totals)

        logger.info(f"Analyzing commits{f' for {repo_path}' if repo_path else ''}")
        previous = None
        out_of_order = False
        processed = 0
        for index, raw in enumerate(commits):
            if self.cancel_check is not None and self.cancel_check():
                logger.info(f"Analysis cancelled after {processed} commits")
                raise AnalysisCancelledError(processed)

            commit = normalize_commit(raw, index=index, config=config, warnings=warnings)
            if previous is not None and commit.timestamp < previous and not out_of_order:
                out_of_order = True
                message = f"Commits are not in ascending timestamp order (first at #{index}, {commit.hash})"
                logger.warning(message)
                warnings.add(message)
            previous = commit.timestamp

            for stage in stages:
                stage.add(commit)
            processed += 1
            self._progress("commits", processed, total)

        logger.info(f"Folded {processed} commits from {len(authors)} authors touching {len(files)} files")

        self._progress("finalize", 0, 4)
        reference_time = config.reference_time or totals.last
        file_stats = files.finalize(reference_time, config.risk_weights, config.hotspot_author_threshold)
        author_stats = authors.finalize()
        governance_analysis = governance.finalize()
        self._progress("finalize", 1, 4)

        large = sum(1 for size in totals.sizes if size > config.thresholds.large_commit_lines)
        risks = analyze_risk(file_stats, large, config, reference_time)
        team_score = team.finalize(author_stats, file_stats, governance_analysis, reference_time)
        self._progress("finalize", 2, 4)

        daily = trends.finalize(start=start, end=end)
        self._progress("finalize", 3, 4)

        report = assemble_report(
            totals,
            author_stats,
            file_stats,
            governance_analysis,
            risks,
            team_score,
            daily,
            config,
            self.version,
            repo_path=repo_path,
            warnings=warnings.as_tuple(),
            generated_at=generated_at,
        )
        self._progress("finalize", 4, 4)
        logger.info(
            f"Analysis complete: {report.repository.total_commits} commits, "
            f"activity index {report.repository.activity_index:.2f}, {len(warnings)} warnings"
        )
        return report

import pytest

from gitspark.analyzer import DEFAULT_VERSION, GitAnalyzer
from gitspark.config import AnalysisConfig
from gitspark.exceptions import AnalysisCancelledError, ConfigurationError, MalformedCommitError
from gitspark.normalizer import normalize_commits

GENERATED_AT = "2024-06-01T00:00:00Z"


class TestConfiguration:
    def test_defaults(self):
        analyzer = GitAnalyzer()
        assert analyzer.config == AnalysisConfig()
        assert analyzer.version == DEFAULT_VERSION

    def test_mapping_config(self):
        assert GitAnalyzer({"trends_timezone": "UTC"}).config.trends_timezone == "UTC"

    def test_bad_config_fails_before_any_commit(self):
        with pytest.raises(ConfigurationError):
            GitAnalyzer({"risk_weights": {"churn": 0.9}})
        with pytest.raises(ConfigurationError):
            GitAnalyzer("not a config")


class TestAnalyze:
    def test_deterministic_output(self, sample_commits):
        analyzer = GitAnalyzer()
        first = analyzer.analyze(sample_commits, generated_at=GENERATED_AT)
        second = GitAnalyzer().analyze(list(sample_commits), generated_at=GENERATED_AT)
        assert first.to_json() == second.to_json()
        assert first == second

    def test_input_order_does_not_change_metrics(self, sample_commits):
        forward = GitAnalyzer().analyze(sample_commits, generated_at=GENERATED_AT)
        backward = GitAnalyzer().analyze(list(reversed(sample_commits)), generated_at=GENERATED_AT)

        assert backward.repository == forward.repository
        assert backward.authors == forward.authors
        assert backward.files == forward.files
        assert backward.daily_trends == forward.daily_trends
        assert len(backward.metadata.warnings) == 1
        assert "ascending" in backward.metadata.warnings[0]
        assert forward.metadata.warnings == ()

    def test_rename_history_does_not_depend_on_input_order(self, raw_commit):
        commits = [
            raw_commit("2024-01-01T12:00:00Z", files=[("old.py", 10, 0)]),
            raw_commit(
                "2024-01-02T12:00:00Z",
                files=[{"path": "new.py", "status": "renamed", "old_path": "old.py", "insertions": 1, "deletions": 1}],
            ),
        ]
        forward = GitAnalyzer().analyze(commits, generated_at=GENERATED_AT)
        backward = GitAnalyzer().analyze(list(reversed(commits)), generated_at=GENERATED_AT)

        assert [(f.path, f.commits) for f in forward.files] == [("new.py", 2)]
        assert backward.files == forward.files
        assert len(backward.metadata.warnings) == 1
        assert "ascending" in backward.metadata.warnings[0]

    def test_accepts_generator_and_records(self, sample_commits):
        records = list(normalize_commits(sample_commits))
        from_records = GitAnalyzer().analyze(iter(records), generated_at=GENERATED_AT)
        from_raw = GitAnalyzer().analyze(sample_commits, generated_at=GENERATED_AT)
        assert from_records.to_json() == from_raw.to_json()

    def test_malformed_commit_aborts(self, raw_commit):
        commits = [raw_commit("2024-01-01"), {"hash": "cafebabe", "timestamp": "2024-01-02", "insertions": -3}]
        with pytest.raises(MalformedCommitError) as excinfo:
            GitAnalyzer().analyze(commits)
        assert excinfo.value.index == 1
        assert excinfo.value.commit_hash == "cafebabe"

    def test_non_fatal_warnings_are_collected(self, raw_commit):
        commits = [
            raw_commit("2024-01-01", body="Co-authored-by: someone"),
            raw_commit("2024-01-02", files=[{"path": "b.py", "status": "renamed"}]),
        ]
        report = GitAnalyzer().analyze(commits, generated_at=GENERATED_AT)
        assert len(report.metadata.warnings) == 2
        assert report.repository.total_commits == 2

    def test_empty_input(self):
        report = GitAnalyzer().analyze([], generated_at=GENERATED_AT)
        assert report.repository.total_commits == 0
        assert report.repository.activity_index == 0.0
        assert report.repository.first_commit is None
        assert report.authors == ()
        assert report.hotspots == ()
        assert report.daily_trends.flow == ()
        assert report.team_score.overall == 0
        assert report.governance.score == 0.0
        report.to_json()

    def test_single_author_single_file(self, raw_commit):
        commits = [
            raw_commit(day, email="a@x.com", files=[("f.ts", churn, 0)])
            for day, churn in (("2024-01-01T12:00:00Z", 10), ("2024-01-02T12:00:00Z", 0), ("2024-01-03T12:00:00Z", 5))
        ]
        report = GitAnalyzer().analyze(commits, generated_at=GENERATED_AT)
        (author,) = report.authors
        (file,) = report.files
        assert dict(file.ownership) == {"a@x.com": 1.0}
        assert author.commits == 3
        assert author.churn == 15
        assert report.team_score.consistency.bus_factor_percentage == 100.0

    def test_globs_from_config(self, raw_commit):
        analyzer = GitAnalyzer(AnalysisConfig(ignore_globs=("*.lock",)))
        report = analyzer.analyze([raw_commit("2024-01-01", files=[("a.py", 1, 0), ("poetry.lock", 900, 0)])])
        assert [f.path for f in report.files] == ["a.py"]
        assert report.repository.total_churn == 1

    def test_daily_window(self, raw_commit):
        report = GitAnalyzer({"trends_timezone": "UTC"}).analyze(
            [raw_commit("2024-01-10T12:00:00Z")], start="2024-01-01", end="2024-01-31"
        )
        assert len(report.daily_trends.flow) == 31
        assert len(report.timeline) == 31


class TestProgressAndCancellation:
    def test_progress_callback(self, sample_commits):
        calls = []
        GitAnalyzer(progress_callback=lambda *args: calls.append(args)).analyze(sample_commits)

        assert calls[:4] == [("commits", i, 4) for i in range(1, 5)]
        assert calls[-1] == ("finalize", 4, 4)

    def test_unknown_total_for_generators(self, sample_commits):
        calls = []
        GitAnalyzer(progress_callback=lambda *args: calls.append(args)).analyze(iter(sample_commits))
        assert calls[0] == ("commits", 1, None)

    def test_cancel(self, sample_commits):
        seen = []

        def cancel_check():
            seen.append(1)
            return len(seen) > 2

        with pytest.raises(AnalysisCancelledError) as excinfo:
            GitAnalyzer(cancel_check=cancel_check).analyze(sample_commits)
        assert excinfo.value.processed == 2


class TestTrendWindow:
    def _tracked(self, raw_commit, seen):
        for day in ("2024-02-01", "2024-02-05"):
            commit = raw_commit(day)
            seen.append(commit["hash"])
            yield commit

    def test_reversed_window_fails_before_reading_commits(self, raw_commit):
        seen = []
        with pytest.raises(ConfigurationError) as excinfo:
            GitAnalyzer().analyze(self._tracked(raw_commit, seen), start="2024-02-10", end="2024-02-01")
        assert excinfo.value.field == "start"
        assert seen == []

    @pytest.mark.parametrize("bound", ["start", "end"])
    def test_unparseable_bound(self, raw_commit, bound):
        seen = []
        with pytest.raises(ConfigurationError) as excinfo:
            GitAnalyzer().analyze(self._tracked(raw_commit, seen), **{bound: "not-a-date"})
        assert excinfo.value.field == bound
        assert seen == []

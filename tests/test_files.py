import pytest

from gitspark.exceptions import WarningCollector
from gitspark.files import FileAggregator, detect_language, language_totals, ownership_shares


class TestOwnershipShares:
    def test_shares_sum_to_one(self):
        shares = ownership_shares({"a@x.com": 30, "b@x.com": 10, "c@x.com": 60})
        assert sum(shares.values()) == pytest.approx(1.0, abs=1e-9)
        assert shares["c@x.com"] == pytest.approx(0.6)
        assert list(shares) == ["a@x.com", "b@x.com", "c@x.com"]

    def test_zero_churn_splits_equally(self):
        shares = ownership_shares({"a@x.com": 0, "b@x.com": 0, "c@x.com": 0})
        assert sum(shares.values()) == pytest.approx(1.0, abs=1e-9)
        assert all(v == pytest.approx(1 / 3) for v in shares.values())

    def test_empty(self):
        assert len(ownership_shares({})) == 0


class TestDetectLanguage:
    def test_known(self):
        assert detect_language("src/app.PY") == "Python"
        assert detect_language("web/index.tsx") == "TypeScript"

    def test_unknown(self):
        assert detect_language("Makefile") is None


class TestFileAggregator:
    def test_single_author_scenario(self, commit_record):
        """Three commits by one author on one file with churns 10, 0 and 5."""
        agg = FileAggregator()
        for day, churn in (("2024-01-01", 10), ("2024-01-02", 0), ("2024-01-03", 5)):
            agg.add(commit_record(day, email="a@x.com", files=[("f.ts", churn, 0)]))

        (stats,) = agg.finalize()
        assert stats.path == "f.ts"
        assert stats.commits == 3
        assert stats.churn == 15
        assert dict(stats.ownership) == {"a@x.com": 1.0}
        assert stats.language == "TypeScript"
        assert str(stats.first_change.date()) == "2024-01-01"
        assert str(stats.last_change.date()) == "2024-01-03"

    def test_ownership_sums_to_one_for_zero_churn_file(self, commit_record):
        agg = FileAggregator()
        agg.add(commit_record("2024-01-01", email="a@x.com", files=[("empty.txt", 0, 0)]))
        agg.add(commit_record("2024-01-02", email="b@x.com", files=[("empty.txt", 0, 0)]))

        (stats,) = agg.finalize()
        assert sum(stats.ownership.values()) == pytest.approx(1.0, abs=1e-9)
        assert stats.authors == ("a@x.com", "b@x.com")

    def test_author_keys_are_case_folded(self, commit_record):
        agg = FileAggregator()
        agg.add(commit_record("2024-01-01", email="Jo@X.com", files=[("a.py", 1, 0)]))
        agg.add(commit_record("2024-01-02", email="jo@x.com", files=[("a.py", 1, 0)]))
        (stats,) = agg.finalize()
        assert stats.authors == ("jo@x.com",)

    def test_coupling_counts_co_changed_files(self, commit_record):
        agg = FileAggregator()
        agg.add(commit_record("2024-01-01", files=[("a.py", 1, 0), ("b.py", 1, 0), ("c.py", 1, 0)]))
        agg.add(commit_record("2024-01-02", files=[("a.py", 1, 0)]))
        files = {f.path: f for f in agg.finalize()}
        assert files["a.py"].coupling == 2
        assert files["b.py"].coupling == 2

    def test_rename_carries_history(self, commit_record):
        agg = FileAggregator()
        agg.add(commit_record("2024-01-01", email="a@x.com", files=[("old.py", 10, 0)]))
        agg.add(
            commit_record(
                "2024-01-02",
                email="b@x.com",
                files=[{"path": "new.py", "insertions": 2, "deletions": 1, "status": "renamed", "old_path": "old.py"}],
            )
        )
        (stats,) = agg.finalize()
        assert stats.path == "new.py"
        assert stats.commits == 2
        assert stats.churn == 13
        assert stats.authors == ("a@x.com", "b@x.com")

    def test_rename_resolves_regardless_of_input_order(self, commit_record):
        warnings = WarningCollector()
        agg = FileAggregator(warnings)
        agg.add(
            commit_record(
                "2024-01-02",
                email="b@x.com",
                files=[{"path": "new.py", "insertions": 2, "deletions": 1, "status": "renamed", "old_path": "old.py"}],
            )
        )
        agg.add(commit_record("2024-01-01", email="a@x.com", files=[("old.py", 10, 0)]))
        assert [(f.path, f.commits) for f in agg.finalize()] == [("new.py", 2)]
        assert len(warnings) == 0

    def test_path_reused_after_rename_starts_fresh(self, commit_record):
        agg = FileAggregator()
        agg.add(commit_record("2024-01-03", files=[{"path": "old.py", "status": "added", "insertions": 4}]))
        agg.add(commit_record("2024-01-02", files=[{"path": "new.py", "status": "renamed", "old_path": "old.py"}]))
        agg.add(commit_record("2024-01-01", files=[("old.py", 10, 0)]))
        files = {f.path: f.commits for f in agg.finalize()}
        assert files == {"new.py": 2, "old.py": 1}

    def test_unresolved_rename_warns_once(self, commit_record):
        warnings = WarningCollector()
        agg = FileAggregator(warnings)
        for i in range(3):
            agg.add(
                commit_record(
                    f"2024-01-0{i + 1}",
                    files=[{"path": f"new{i}.py", "status": "renamed", "old_path": f"gone{i}.py"}],
                )
            )
        agg.finalize()
        assert len(warnings) == 1
        assert warnings.as_tuple()[0].startswith("3 renamed file(s)")

    def test_sorted_by_churn_then_path(self, commit_record):
        agg = FileAggregator()
        agg.add(commit_record("2024-01-01", files=[("b.py", 5, 0), ("a.py", 5, 0), ("c.py", 50, 0)]))
        assert [f.path for f in agg.finalize()] == ["c.py", "a.py", "b.py"]

    def test_scores_are_bounded(self, commit_record):
        agg = FileAggregator()
        agg.add(commit_record("2024-01-01", files=[("a.py", 100, 0), ("b.py", 1, 0)]))
        for f in agg.finalize():
            assert 0.0 <= f.risk_score <= 1.0
            assert 0.0 <= f.hotspot_score <= 1.0

    def test_empty(self):
        assert FileAggregator().finalize() == ()


class TestLanguageTotals:
    def test_totals(self, commit_record):
        agg = FileAggregator()
        agg.add(commit_record("2024-01-01", files=[("a.py", 5, 5), ("b.py", 1, 0), ("c.js", 2, 0), ("LICENSE", 9, 0)]))
        assert dict(language_totals(agg.finalize())) == {"JavaScript": 2, "Python": 11}

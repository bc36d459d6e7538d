import json

import pandas as pd
import pytest

from gitspark.config import (
    AnalysisConfig,
    BusinessHours,
    GovernanceThresholds,
    GovernanceWeights,
    RiskWeights,
    load_config,
    validate_timezone,
)
from gitspark.exceptions import ConfigurationError


class TestWeights:
    """Test weight validation."""

    def test_defaults_sum_to_one(self):
        RiskWeights()
        GovernanceWeights()

    def test_sum_within_tolerance(self):
        RiskWeights(churn=0.3000000001, recency=0.2, ownership=0.2, coupling=0.15, size=0.15)

    def test_bad_sum(self):
        with pytest.raises(ConfigurationError) as excinfo:
            RiskWeights(churn=0.5)
        assert excinfo.value.field == "risk"
        assert excinfo.value.code == "CONFIGURATION_ERROR"

    def test_negative_weight(self):
        with pytest.raises(ConfigurationError):
            GovernanceWeights(conventional=0.6, traceability=-0.2, length=0.3, no_wip=0.2, no_revert=0.1)

    def test_non_numeric_weight(self):
        with pytest.raises(ConfigurationError):
            GovernanceWeights(conventional="0.4")


class TestBusinessHours:
    def test_window(self):
        hours = BusinessHours()
        assert not hours.is_after_hours(8)
        assert hours.is_after_hours(18)
        assert hours.is_after_hours(7)

    def test_weekends_are_out_of_hours(self):
        hours = BusinessHours()
        assert hours.is_out_of_hours(10, 5)
        assert not hours.is_out_of_hours(10, 4)
        assert not BusinessHours(weekdays_only=False).is_out_of_hours(10, 6)

    @pytest.mark.parametrize("start,end", [(18, 8), (8, 8), (-1, 10), (8, 25)])
    def test_invalid_window(self, start, end):
        with pytest.raises(ConfigurationError):
            BusinessHours(start=start, end=end)


class TestThresholds:
    def test_min_above_max(self):
        with pytest.raises(ConfigurationError):
            GovernanceThresholds(adequate_length_min=80, adequate_length_max=72)

    def test_negative(self):
        with pytest.raises(ConfigurationError):
            GovernanceThresholds(large_commit_lines=-1)


class TestAnalysisConfig:
    def test_defaults(self):
        config = AnalysisConfig()
        assert config.trends_timezone == "America/Chicago"
        assert config.author_timezone is None
        assert config.bus_factor_target == 80.0

    def test_unknown_timezone(self):
        with pytest.raises(ConfigurationError) as excinfo:
            AnalysisConfig(trends_timezone="Mars/Olympus_Mons")
        assert excinfo.value.field == "trends_timezone"

    def test_validate_timezone(self):
        assert validate_timezone("Europe/Berlin") == "Europe/Berlin"
        with pytest.raises(ConfigurationError):
            validate_timezone("")

    @pytest.mark.parametrize("target", [0, 101, -5])
    def test_bus_factor_target_range(self, target):
        with pytest.raises(ConfigurationError):
            AnalysisConfig(bus_factor_target=target)

    def test_non_positive_window(self):
        with pytest.raises(ConfigurationError):
            AnalysisConfig(retouch_days=0)

    def test_reference_time_is_localized(self):
        config = AnalysisConfig(reference_time="2024-01-01 12:00")
        assert config.reference_time == pd.Timestamp("2024-01-01 12:00", tz="UTC")

    def test_globs_become_tuples(self):
        config = AnalysisConfig(ignore_globs=["*.lock"])
        assert config.ignore_globs == ("*.lock",)

    def test_with_options(self):
        config = AnalysisConfig().with_options(max_hotspots=3)
        assert config.max_hotspots == 3
        with pytest.raises(ConfigurationError):
            AnalysisConfig().with_options(max_hotspots=0)


class TestFromDict:
    def test_flat(self):
        config = AnalysisConfig.from_dict(
            {"trends_timezone": "UTC", "business_hours": {"start": 9, "end": 17}, "retouch_days": 7}
        )
        assert config.trends_timezone == "UTC"
        assert config.business_hours == BusinessHours(start=9, end=17)
        assert config.retouch_days == 7

    def test_nested_file_layout(self):
        config = AnalysisConfig.from_dict(
            {
                "version": "1.0",
                "analysis": {
                    "excludePaths": ["node_modules/*"],
                    "timezone": "Europe/London",
                    "weights": {
                        "risk": {"churn": 0.2, "recency": 0.2, "ownership": 0.2, "coupling": 0.2, "size": 0.2},
                    },
                },
                "output": {"defaultFormat": "html"},
            }
        )
        assert config.ignore_globs == ("node_modules/*",)
        assert config.trends_timezone == "Europe/London"
        assert config.risk_weights.churn == 0.2

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError):
            AnalysisConfig.from_dict({"colour": "blue"})

    def test_unknown_group_key(self):
        with pytest.raises(ConfigurationError) as excinfo:
            AnalysisConfig.from_dict({"business_hours": {"lunch": 12}})
        assert excinfo.value.field == "business_hours"

    def test_bad_weights(self):
        with pytest.raises(ConfigurationError):
            AnalysisConfig.from_dict({"governance_weights": {"conventional": 1.0, "traceability": 0.5}})

    def test_to_dict_round_trip(self):
        config = AnalysisConfig(ignore_globs=("*.min.js",), reference_time="2024-01-01T00:00:00Z")
        data = config.to_dict()
        json.dumps(data)
        assert AnalysisConfig.from_dict(data) == config


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path):
        assert load_config(repo_path=str(tmp_path)) == AnalysisConfig()

    def test_reads_repo_file(self, tmp_path):
        (tmp_path / ".git-spark.json").write_text(json.dumps({"analysis": {"timezone": "UTC"}}))
        assert load_config(repo_path=str(tmp_path)).trends_timezone == "UTC"

    def test_explicit_path(self, tmp_path):
        (tmp_path / "custom.json").write_text(json.dumps({"max_hotspots": 4}))
        assert load_config("custom.json", repo_path=str(tmp_path)).max_hotspots == 4

    def test_missing_explicit_path(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        (tmp_path / ".git-spark.json").write_text("{not json")
        with pytest.raises(ConfigurationError):
            load_config(repo_path=str(tmp_path))

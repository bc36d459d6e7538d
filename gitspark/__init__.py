from importlib.metadata import PackageNotFoundError, version

from gitspark.analyzer import DEFAULT_VERSION, GitAnalyzer
from gitspark.cache import DiskCache, EphemeralCache
from gitspark.config import AnalysisConfig, load_config
from gitspark.exceptions import (
    AnalysisCancelledError,
    ConfigurationError,
    GitError,
    GitSparkError,
    MalformedCommitError,
)
from gitspark.normalizer import normalize_commit, normalize_commits
from gitspark.report import AnalysisReport
from gitspark.repository import Repository

try:
    __version__ = version("git-spark")
except PackageNotFoundError:
    __version__ = DEFAULT_VERSION

__all__ = [
    "AnalysisCancelledError",
    "AnalysisConfig",
    "AnalysisReport",
    "ConfigurationError",
    "DiskCache",
    "EphemeralCache",
    "GitAnalyzer",
    "GitError",
    "GitSparkError",
    "MalformedCommitError",
    "Repository",
    "load_config",
    "normalize_commit",
    "normalize_commits",
]

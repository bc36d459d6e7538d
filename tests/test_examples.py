"""
Tests to verify that the example scripts run without errors.
"""

import subprocess
import sys
from pathlib import Path

import pytest

EXAMPLES_DIR = Path(__file__).parent.parent / "examples"

# scripts that take a repository path as their first argument
REPOSITORY_SCRIPTS = ["analyze_repository.py", "cached_reports.py"]
STANDALONE_SCRIPTS = ["raw_commits.py"]


def _run(script, *args):
    script_path = EXAMPLES_DIR / script
    assert script_path.exists(), f"Example script {script} not found"
    try:
        return subprocess.run(
            [sys.executable, str(script_path), *args],
            cwd=EXAMPLES_DIR,
            capture_output=True,
            text=True,
            timeout=300,
        )
    except subprocess.TimeoutExpired:
        pytest.fail(f"Script {script} timed out after 5 minutes")


def _check(result, script):
    assert result.returncode == 0, (
        f"Script {script} failed with return code {result.returncode}\n"
        f"stdout: {result.stdout}\n"
        f"stderr: {result.stderr}"
    )


@pytest.mark.slow
@pytest.mark.parametrize("script", REPOSITORY_SCRIPTS)
def test_repository_example_scripts(script, git_repo):
    """Run each repository example against the temporary fixture repository."""
    result = _run(script, str(git_repo))
    _check(result, script)
    assert "git repository: sample_repo" in result.stdout or "Analysis timings" in result.stdout


@pytest.mark.slow
@pytest.mark.parametrize("script", STANDALONE_SCRIPTS)
def test_standalone_example_scripts(script):
    result = _run(script)
    _check(result, script)
    assert "conventional commits: 2/3" in result.stdout


@pytest.mark.slow
def test_analyze_repository_logs_progress(git_repo):
    """The progress logger reports every finalization step through the gitspark logger."""
    result = _run("analyze_repository.py", str(git_repo))
    _check(result, "analyze_repository.py")
    assert "gitspark - INFO - finalize: 4/4" in result.stderr

"""
Shared pytest fixtures for git-spark tests.
"""

import itertools

import pytest
from git import Actor, Repo

from gitspark.normalizer import normalize_commit

_hashes = itertools.count(1)


def make_raw_commit(
    timestamp,
    author="Alice",
    email="alice@example.com",
    subject="feat: change things",
    body="",
    files=None,
    commit_hash=None,
    **extra,
):
    """Build a raw commit mapping.

    ``files`` is a list of ``(path, insertions, deletions)`` tuples or full file dicts.
    """
    entries = []
    for f in files if files is not None else [("src/app.py", 10, 2)]:
        if isinstance(f, dict):
            entries.append(f)
        else:
            path, insertions, deletions = f
            entries.append({"path": path, "insertions": insertions, "deletions": deletions})
    raw = {
        "hash": commit_hash or f"{next(_hashes):040x}",
        "author": author,
        "author_email": email,
        "timestamp": timestamp,
        "subject": subject,
        "body": body,
        "files": entries,
    }
    raw.update(extra)
    return raw


@pytest.fixture
def raw_commit():
    """Factory for raw commit mappings."""
    return make_raw_commit


@pytest.fixture
def commit_record():
    """Factory for normalized CommitRecords."""

    def factory(*args, **kwargs):
        return normalize_commit(make_raw_commit(*args, **kwargs))

    return factory


@pytest.fixture
def sample_commits():
    """A small two-author history spread over a week, in ascending order."""
    return [
        make_raw_commit("2024-03-04T09:00:00+00:00", subject="feat: add parser", files=[("src/parser.py", 120, 0)]),
        make_raw_commit(
            "2024-03-04T15:30:00+00:00",
            author="Bob",
            email="bob@example.com",
            subject="fix: handle empty input #12",
            files=[("src/parser.py", 8, 3), ("tests/test_parser.py", 40, 0)],
        ),
        make_raw_commit(
            "2024-03-06T22:15:00+00:00",
            subject="wip",
            files=[("src/parser.py", 5, 5), ("README.md", 12, 0)],
        ),
        make_raw_commit(
            "2024-03-09T11:00:00+00:00",
            author="Bob",
            email="bob@example.com",
            subject="refactor(parser): split tokenizer",
            body="Co-authored-by: Alice <alice@example.com>",
            files=[("src/parser.py", 30, 60), ("src/tokenizer.py", 70, 0)],
        ),
    ]


def _commit(repo, message, author, when):
    actor = Actor(*author)
    date = f"{when} +0000"
    return repo.index.commit(message, author=actor, committer=actor, author_date=date, commit_date=date)


@pytest.fixture
def git_repo(tmp_path):
    """A four-commit repository on branch 'main': add, modify, rename, delete."""
    path = tmp_path / "sample_repo"
    path.mkdir()
    repo = Repo.init(path)
    alice = ("Alice", "alice@example.com")
    bob = ("Bob", "bob@example.com")

    (path / "README.md").write_text("# sample\n\nhello\n")
    (path / "app.py").write_text("".join(f"line {i}\n" for i in range(10)))
    repo.index.add(["README.md", "app.py"])
    _commit(repo, "feat: initial app", alice, 1704103200)  # 2024-01-01 10:00 UTC
    repo.git.branch("-M", "main")

    (path / "app.py").write_text("".join(f"line {i}\n" for i in range(9)) + "changed\nextra\n")
    repo.index.add(["app.py"])
    _commit(repo, "fix: handle empty input #12", bob, 1704189600)  # 2024-01-02 10:00 UTC

    repo.index.move(["app.py", "main.py"])
    _commit(repo, "refactor: rename app module", alice, 1704276000)  # 2024-01-03 10:00 UTC

    repo.index.remove(["README.md"], working_tree=True)
    _commit(repo, "docs: drop readme", bob, 1704448800)  # 2024-01-05 10:00 UTC

    yield path
    repo.close()


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")

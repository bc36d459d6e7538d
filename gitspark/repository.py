"""
.. module:: repository
   :synopsis: Reads commit history from a local git repository with GitPython

The repository adapter is the only part of gitspark that touches git. It runs a single
``git log --numstat --summary`` over the requested range, parses it into raw commit
entries and hands them to :class:`~gitspark.analyzer.GitAnalyzer`.

"""

import os
import re

from git import BadName, GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from gitspark.analyzer import DEFAULT_VERSION, GitAnalyzer
from gitspark.cache import fetch_or_compute, report_fingerprint
from gitspark.config import AnalysisConfig, load_config
from gitspark.exceptions import GitError
from gitspark.logging import logger

RECORD_SEP = "\x1e"
FIELD_SEP = "\x1f"
HEADER_END = "\x1d"
LOG_FORMAT = "%x1e%H%x1f%h%x1f%an%x1f%ae%x1f%aI%x1f%P%x1f%s%x1f%b%x1d"

_BRACE_RENAME_RE = re.compile(r"^(?P<prefix>.*)\{(?P<old>.*) => (?P<new>.*)\}(?P<suffix>.*)$")
_SUMMARY_RE = re.compile(r"^ (?P<kind>create|delete) mode \d+ (?P<path>.+)$")


def _unquote(path):
    # core.quotepath wraps non-ASCII paths in quotes with octal escapes
    if len(path) >= 2 and path[0] == '"' and path[-1] == '"':
        return path[1:-1].encode("ascii", "backslashreplace").decode("unicode_escape").encode("latin-1").decode("utf-8", "replace")
    return path


def split_rename(path):
    """Resolve a numstat path into ``(old_path, new_path)``.

    Handles both ``src/{a => b}/f.py`` and ``old.py => new.py``. ``old_path`` is None when the
    path is not a rename.
    """
    match = _BRACE_RENAME_RE.match(path)
    if match:
        prefix, suffix = match.group("prefix"), match.group("suffix")
        old = f"{prefix}{match.group('old')}{suffix}".replace("//", "/")
        new = f"{prefix}{match.group('new')}{suffix}".replace("//", "/")
        return old, new
    if " => " in path:
        old, new = path.split(" => ", 1)
        return old, new
    return None, path


def _line_count(value):
    # binary files report "-"
    return 0 if value == "-" else int(value)


def parse_log_output(output):
    """Parse ``git log`` output produced with :data:`LOG_FORMAT` into raw commit entries.

    Args:
        output: Text written by ``git log --numstat --summary -M --format=LOG_FORMAT``.

    Yields:
        dict: One raw entry per commit, in the order git printed them.
    """
    for record in output.split(RECORD_SEP):
        if not record.strip():
            continue
        header, _, stats = record.partition(HEADER_END)
        parts = header.split(FIELD_SEP)
        if len(parts) != 8:
            logger.warning(f"Skipping unparseable git log record: {header[:80]!r}")
            continue
        commit_hash, short_hash, author, email, date, parents, subject, body = parts

        files = {}
        statuses = {}
        for line in stats.splitlines():
            if not line.strip():
                continue
            summary = _SUMMARY_RE.match(line)
            if summary:
                statuses[_unquote(summary.group("path"))] = "added" if summary.group("kind") == "create" else "deleted"
                continue
            cols = line.split("\t")
            if len(cols) != 3:
                continue
            old_path, path = split_rename(_unquote(cols[2]))
            files[path] = {
                "path": path,
                "insertions": _line_count(cols[0]),
                "deletions": _line_count(cols[1]),
                "status": "renamed" if old_path is not None else "modified",
                "old_path": old_path,
            }

        for path, status in statuses.items():
            if path in files and files[path]["old_path"] is None:
                files[path]["status"] = status

        yield {
            "hash": commit_hash,
            "short_hash": short_hash,
            "author": author,
            "author_email": email,
            "timestamp": date,
            "parents": parents.split(),
            "subject": subject,
            "body": body.strip(),
            "files": list(files.values()),
        }


class Repository:
    """A local git repository to analyze.

    Args:
        working_dir (Optional[str]): Path to the repository. Defaults to the current directory.
        default_branch (Optional[str]): Branch analyzed when none is given. If None, 'main'
            is used when it exists, then 'master'.
        cache_backend (Optional[object]): An :class:`~gitspark.cache.EphemeralCache` or
            :class:`~gitspark.cache.DiskCache` holding whole reports.
        config (Optional[AnalysisConfig | dict]): Analysis options. When None, options are
            read from ``.git-spark.json`` in the working directory if present.

    Raises:
        GitError: If the path is not a git repository.
        ValueError: If default_branch is None and neither 'main' nor 'master' exists.

    Examples:
        >>> repo = Repository('/path/to/repo', cache_backend=EphemeralCache())
        >>> report = repo.analyze(since='2024-01-01')
        >>> print(report.to_json())
    """

    def __init__(self, working_dir=None, default_branch=None, cache_backend=None, config=None):
        self.git_dir = str(working_dir) if working_dir is not None else os.getcwd()
        try:
            self.repo = Repo(self.git_dir)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise GitError(f"Not a git repository: {self.git_dir}") from e
        self.cache_backend = cache_backend

        if config is None:
            config = load_config(repo_path=self.git_dir)
        elif isinstance(config, dict):
            config = AnalysisConfig.from_dict(config)
        self.config = config

        if default_branch is None:
            if self.has_branch("main"):
                self.default_branch = "main"
            elif self.has_branch("master"):
                self.default_branch = "master"
            else:
                raise ValueError(
                    "Could not detect default branch. Neither 'main' nor 'master' exists. "
                    "Please specify default_branch explicitly."
                )
        else:
            self.default_branch = default_branch

        logger.info(
            f"Repository [{self._repo_name()}] instantiated at directory: {self.git_dir} "
            f"with default branch: {self.default_branch}"
        )

    def has_branch(self, branch):
        """True if ``branch`` exists locally or on any remote."""
        try:
            names = {head.name for head in self.repo.heads}
            for remote in self.repo.remotes:
                names.update(ref.remote_head for ref in remote.refs)
        except GitCommandError as e:
            logger.warning(f"Could not check branches in repo '{self._repo_name()}': {e}")
            return False
        return branch in names

    def head_commit(self, branch=None):
        """Resolved hash of the tip of ``branch``."""
        branch = branch or self.default_branch
        try:
            return self.repo.commit(branch).hexsha
        except (BadName, ValueError, GitCommandError) as e:
            raise GitError(f"Cannot resolve revision '{branch}' in {self._repo_name()}: {e}") from e

    def _log_args(self, branch, since, until, limit):
        args = [branch, "--numstat", "--summary", "-M", "--reverse", f"--format={LOG_FORMAT}", "--"]
        kwargs = {}
        if since is not None:
            kwargs["since"] = str(since)
        if until is not None:
            kwargs["until"] = str(until)
        if limit is not None:
            kwargs["max_count"] = int(limit)
        return args, kwargs

    def commits(self, branch=None, since=None, until=None, limit=None):
        """Raw commit entries in ascending timestamp order, ready for normalization.

        Args:
            branch (Optional[str]): Branch or revision. Defaults to default_branch.
            since (Optional[str]): Only commits after this date (any format git accepts).
            until (Optional[str]): Only commits before this date.
            limit (Optional[int]): Keep only the most recent ``limit`` commits.

        Returns:
            list: Raw commit dicts accepted by :func:`~gitspark.normalizer.normalize_commit`.

        Raises:
            GitError: If git fails.
        """
        branch = branch or self.default_branch
        args, kwargs = self._log_args(branch, since, until, limit)
        logger.info(f"Reading commit log of {self._repo_name()} on {branch}")
        try:
            output = self.repo.git.log(*args, **kwargs)
        except GitCommandError as e:
            raise GitError(f"git log failed in {self._repo_name()}: {e.stderr or e}", git_command=e.command) from e

        entries = list(parse_log_output(output))
        logger.info(f"Read {len(entries)} commits from {self._repo_name()}")
        return entries

    def cache_key(self, branch=None, since=None, until=None, limit=None):
        """Cache key of the report for this range: ``report||<repo>||<sha256>``."""
        branch = branch or self.default_branch
        rev_range = {"branch": branch, "since": since, "until": until, "limit": limit}
        digest = report_fingerprint(
            os.path.abspath(self.git_dir), self.head_commit(branch), rev_range, self.config.to_dict()
        )
        return f"report||{self._repo_name()}||{digest}"

    def analyze(
        self,
        branch=None,
        since=None,
        until=None,
        limit=None,
        force_refresh=False,
        generated_at=None,
        progress_callback=None,
        cancel_check=None,
    ):
        """Analyze a commit range and return the full report.

        When a cache backend is configured, the whole report is cached under a fingerprint of
        the repository path, resolved HEAD, range arguments and options, so any new commit
        or option change produces a fresh report.

        Args:
            branch (Optional[str]): Branch or revision. Defaults to default_branch.
            since (Optional[str]): Only commits after this date.
            until (Optional[str]): Only commits before this date.
            limit (Optional[int]): Keep only the most recent ``limit`` commits.
            force_refresh (bool): Recompute even if a cached report exists.
            generated_at: Fixed generation timestamp for reproducible output.
            progress_callback: Passed through to :class:`GitAnalyzer`.
            cancel_check: Passed through to :class:`GitAnalyzer`.

        Returns:
            AnalysisReport
        """

        def compute():
            analyzer = GitAnalyzer(
                self.config,
                version=_package_version(),
                progress_callback=progress_callback,
                cancel_check=cancel_check,
            )
            return analyzer.analyze(
                self.commits(branch=branch, since=since, until=until, limit=limit),
                repo_path=os.path.abspath(self.git_dir),
                generated_at=generated_at,
            )

        if self.cache_backend is None:
            return compute()
        key = self.cache_key(branch=branch, since=since, until=until, limit=limit)
        return fetch_or_compute(self.cache_backend, key, compute, force_refresh=force_refresh)

    def invalidate_cache(self, pattern=None):
        """Drop cached reports of this repository.

        Returns:
            int: Number of entries removed.
        """
        if self.cache_backend is None:
            logger.warning(f"No cache backend configured for repository '{self.repo_name}' - cannot invalidate cache")
            return 0
        repo_pattern = f"report||{self.repo_name}||{pattern or '*'}"
        removed = self.cache_backend.invalidate_cache(pattern=repo_pattern)
        logger.info(f"Invalidated {removed} cache entries for repository '{self.repo_name}'")
        return removed

    def get_cache_stats(self):
        if self.cache_backend is None:
            return {"repository": self.repo_name, "cache_backend": None, "repository_entries": 0, "global_cache_stats": None}

        prefix = f"report||{self.repo_name}||"
        entries = [k for k in self.cache_backend.list_cached_keys() if str(k["key"]).startswith(prefix)]
        return {
            "repository": self.repo_name,
            "cache_backend": type(self.cache_backend).__name__,
            "repository_entries": len(entries),
            "global_cache_stats": self.cache_backend.get_cache_stats(),
        }

    @property
    def repo_name(self):
        return self._repo_name()

    def _repo_name(self):
        """Name of the directory holding the repository, or 'unknown_repo'."""
        reponame = os.path.basename(os.path.normpath(self.repo.working_tree_dir or self.git_dir))
        if reponame.strip() == "":
            return "unknown_repo"
        return reponame

    def __str__(self):
        return f"git repository: {self._repo_name()} at: {self.git_dir}"


def _package_version():
    from gitspark import __version__

    return __version__ or DEFAULT_VERSION

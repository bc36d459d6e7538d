"""
.. module:: exceptions
   :synopsis: Error taxonomy for gitspark

Fatal errors (bad configuration, malformed input, cancellation, git failures) are raised as
subclasses of :class:`GitSparkError`. Non-fatal conditions never raise; they are collected on
the report's warning list instead.
"""


class GitSparkError(Exception):
    """Base class for every error raised by gitspark."""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class ConfigurationError(GitSparkError):
    """Raised when analysis options are invalid. Always raised before any commit is processed."""

    def __init__(self, message, field=None):
        super().__init__(message, code="CONFIGURATION_ERROR")
        self.field = field


class MalformedCommitError(GitSparkError):
    """Raised when a raw commit entry cannot be turned into a CommitRecord."""

    def __init__(self, message, index=None, commit_hash=None):
        where = f"commit #{index}" if index is not None else "commit"
        if commit_hash:
            where = f"{where} ({commit_hash})"
        super().__init__(f"Malformed {where}: {message}", code="MALFORMED_COMMIT")
        self.index = index
        self.commit_hash = commit_hash


class AnalysisCancelledError(GitSparkError):
    """Raised when the caller's cancellation check fires during a fold."""

    def __init__(self, processed):
        super().__init__(f"Analysis cancelled after {processed} commits", code="CANCELLED")
        self.processed = processed


class GitError(GitSparkError):
    """Raised when the git repository cannot be read."""

    def __init__(self, message, git_command=None):
        super().__init__(message, code="GIT_ERROR")
        self.git_command = git_command


class WarningCollector:
    """Accumulates non-fatal analysis warnings in the order they were raised.

    Identical messages are kept once, so a repeated condition does not flood the report.
    """

    def __init__(self):
        self._messages = []
        self._seen = set()

    def add(self, message):
        if message in self._seen:
            return
        self._seen.add(message)
        self._messages.append(message)

    def __len__(self):
        return len(self._messages)

    def __iter__(self):
        return iter(self._messages)

    def as_tuple(self):
        return tuple(self._messages)

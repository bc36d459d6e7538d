"""
.. module:: messages
   :synopsis: Pattern classification of commit messages and file paths

Everything here is plain regular-expression matching over observable text. Nothing tries to
judge whether a message is "good"; callers only count matches.
"""

import re

CONVENTIONAL_TYPES = ("feat", "fix", "docs", "style", "refactor", "perf", "test", "chore", "ci", "build", "revert")

CONVENTIONAL_RE = re.compile(r"^(?:" + "|".join(CONVENTIONAL_TYPES) + r")(?:\([^)]+\))?!?: .+")
ISSUE_NUMBER_RE = re.compile(r"#\d+")
JIRA_KEY_RE = re.compile(r"\b[A-Z][A-Z0-9]+-\d+\b")
CLOSING_KEYWORD_RE = re.compile(r"\b(?:close[sd]|fixe[sd]|resolve[sd])\b", re.IGNORECASE)
WIP_RE = re.compile(r"\bwip\b|work in progress", re.IGNORECASE)
REVERT_RE = re.compile(r"revert", re.IGNORECASE)

GITHUB_MERGE_RE = re.compile(r"Merge pull request #\d+", re.IGNORECASE)
GITLAB_MERGE_RE = re.compile(r"Merge branch '.*' into", re.IGNORECASE)
AZURE_DEVOPS_MERGE_RE = re.compile(r"Merged PR \d+:", re.IGNORECASE)

REFACTOR_RE = re.compile(r"\b(?:refactor(?:ing|ed|s)?|cleanup|clean up|restructur(?:e|ed|ing)|reorganiz(?:e|ed|ing))\b", re.IGNORECASE)
BUGFIX_RE = re.compile(r"\b(?:fix(?:e[sd])?|bug(?:fix)?s?|hotfix(?:es)?|patch(?:e[sd])?|resolve[sd]?)\b", re.IGNORECASE)
DOCS_RE = re.compile(r"\b(?:docs?|documentation|readme|comments?)\b", re.IGNORECASE)

TEST_PATH_RE = re.compile(
    r"(?:^|/)(?:tests?|specs?|__tests__)/"
    r"|(?:^|/)test_[^/]+$"
    r"|_test\.[^/.]+$"
    r"|\.(?:test|spec)\.[^/.]+$",
    re.IGNORECASE,
)
DOC_PATH_RE = re.compile(r"(?:^|/)(?:docs?|documentation)/|(?:^|/)readme[^/]*$|\.(?:md|rst|adoc)$", re.IGNORECASE)

CO_AUTHOR_PREFIX_RE = re.compile(r"^\s*co-authored-by\s*:\s*(.*)$", re.IGNORECASE)
CO_AUTHOR_VALUE_RE = re.compile(r"^(?P<name>[^<>]*?)\s*<(?P<email>[^<>\s]+@[^<>\s]+)>\s*$")


def is_conventional(subject):
    """True when the subject follows ``type(scope)!: description``."""
    return bool(CONVENTIONAL_RE.match(subject or ""))


def has_issue_reference(message):
    message = message or ""
    return bool(ISSUE_NUMBER_RE.search(message) or JIRA_KEY_RE.search(message) or CLOSING_KEYWORD_RE.search(message))


def is_wip(message):
    return bool(WIP_RE.search(message or ""))


def is_revert(message):
    return bool(REVERT_RE.search(message or ""))


def is_refactor(message):
    return bool(REFACTOR_RE.search(message or ""))


def is_bugfix(message):
    return bool(BUGFIX_RE.search(message or ""))


def is_documentation(message, paths=()):
    """True for a docs-keyword message or a commit touching documentation files."""
    if DOCS_RE.search(message or ""):
        return True
    return any(DOC_PATH_RE.search(p) for p in paths)


def is_test_path(path):
    return bool(TEST_PATH_RE.search(path))


def merge_platform(message):
    """Name the hosting platform whose merge-commit convention ``message`` follows, or None."""
    message = message or ""
    if GITHUB_MERGE_RE.search(message):
        return "github"
    if GITLAB_MERGE_RE.search(message):
        return "gitlab"
    if AZURE_DEVOPS_MERGE_RE.search(message):
        return "azure-devops"
    return None


def parse_co_author_trailers(message):
    """Extract ``Co-authored-by:`` trailers from a commit message.

    Returns:
        tuple: ``(pairs, malformed)`` where ``pairs`` is a list of ``(name, email)`` in message
        order and ``malformed`` lists the raw values that had no ``Name <email>`` form.
    """
    pairs = []
    malformed = []
    for line in (message or "").splitlines():
        prefix = CO_AUTHOR_PREFIX_RE.match(line)
        if not prefix:
            continue
        value = prefix.group(1).strip()
        parsed = CO_AUTHOR_VALUE_RE.match(value)
        if parsed is None:
            malformed.append(value)
            continue
        pairs.append((parsed.group("name").strip(), parsed.group("email").strip()))
    return pairs, malformed

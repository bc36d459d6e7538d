"""
.. module:: normalizer
   :synopsis: Turns raw parsed commit entries into canonical CommitRecords

A raw entry is a mapping as produced by a log parser (or an existing :class:`CommitRecord`).
Recognised keys:

* ``hash`` (required), ``short_hash``
* ``author`` / ``author_name``, ``author_email`` / ``email``
* ``timestamp`` / ``date`` (required): ISO string, datetime, pandas Timestamp or epoch seconds
* ``subject``, ``body``, ``message``
* ``insertions``, ``deletions`` (used only when ``files`` is absent)
* ``files``: list of mappings (``path``, ``insertions``, ``deletions``, ``status``, ``old_path``)
  or :class:`FileChange` objects
* ``is_merge`` or ``parents`` (merge when there are two or more)
* ``co_authors``: optional explicit list; otherwise parsed from ``Co-authored-by:`` trailers
"""

import fnmatch
import numbers
from dataclasses import fields, replace

import pandas as pd

from gitspark.exceptions import MalformedCommitError
from gitspark.logging import logger
from gitspark.messages import parse_co_author_trailers
from gitspark.models import FILE_STATUSES, RENAME_STATUSES, CoAuthor, CommitRecord, FileChange

STATUS_CODES = {"A": "added", "M": "modified", "D": "deleted", "R": "renamed", "C": "copied", "T": "modified"}


def _warn(warnings, message):
    logger.warning(message)
    if warnings is not None:
        warnings.add(message)


def coerce_timestamp(value):
    """Convert ``value`` to a tz-aware pandas Timestamp. Naive values are taken as UTC.

    Raises:
        ValueError: If the value cannot be interpreted as a point in time.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"not a timestamp: {value!r}")
    if isinstance(value, numbers.Real):
        ts = pd.to_datetime(value, unit="s", utc=True)
    else:
        ts = pd.Timestamp(value)
    if ts is pd.NaT or pd.isna(ts):
        raise ValueError(f"not a timestamp: {value!r}")
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return ts


def _count(value, what, index, commit_hash):
    if value is None:
        return 0
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise MalformedCommitError(f"{what} must be an integer, got {value!r}", index, commit_hash)
    try:
        value = int(value)
    except (TypeError, ValueError) as e:
        raise MalformedCommitError(f"{what} must be an integer, got {value!r}", index, commit_hash) from e
    if value < 0:
        raise MalformedCommitError(f"{what} must not be negative, got {value}", index, commit_hash)
    return value


def _status(value, index, commit_hash):
    if not value:
        return "modified"
    value = str(value)
    lowered = value.lower()
    if lowered in FILE_STATUSES:
        return lowered
    # git name-status letters, possibly with a similarity score such as R087
    code = value[0].upper()
    if code in STATUS_CODES and (len(value) == 1 or value[1:].isdigit()):
        return STATUS_CODES[code]
    raise MalformedCommitError(f"unknown file status {value!r}", index, commit_hash)


def normalize_file_change(raw, index=0, commit_hash=None, warnings=None):
    """Build one FileChange, repairing status/old_path mismatches with a warning."""
    if isinstance(raw, FileChange):
        raw = {f.name: getattr(raw, f.name) for f in fields(FileChange)}
    if not isinstance(raw, dict):
        raise MalformedCommitError(f"file entry must be a mapping, got {type(raw).__name__}", index, commit_hash)

    path = raw.get("path")
    if not isinstance(path, str) or not path.strip():
        raise MalformedCommitError("file entry has an empty path", index, commit_hash)

    status = _status(raw.get("status"), index, commit_hash)
    old_path = raw.get("old_path") or raw.get("oldPath") or None

    if status in RENAME_STATUSES and old_path is None:
        _warn(warnings, f"Commit {commit_hash}: {status} file '{path}' has no old path; treated as modified")
        status = "modified"
    elif old_path is not None and status not in RENAME_STATUSES:
        _warn(warnings, f"Commit {commit_hash}: file '{path}' has an old path but status '{status}'; treated as renamed")
        status = "renamed"

    return FileChange(
        path=path,
        insertions=_count(raw.get("insertions"), "insertions", index, commit_hash),
        deletions=_count(raw.get("deletions"), "deletions", index, commit_hash),
        status=status,
        old_path=old_path,
    )


def path_included(path, include_globs=(), ignore_globs=()):
    """Apply include/ignore fnmatch globs to a repository-relative path."""
    if include_globs and not any(fnmatch.fnmatch(path, g) for g in include_globs):
        return False
    return not any(fnmatch.fnmatch(path, g) for g in ignore_globs)


def _co_authors(raw_list, message, commit_hash, warnings):
    if raw_list is None:
        pairs, malformed = parse_co_author_trailers(message)
        for value in malformed:
            _warn(warnings, f"Commit {commit_hash}: unparseable Co-authored-by trailer '{value}'")
    else:
        pairs = []
        for item in raw_list:
            if isinstance(item, CoAuthor):
                pairs.append((item.name, item.email))
            elif isinstance(item, dict) and item.get("email"):
                pairs.append((item.get("name") or "", item["email"]))
            else:
                _warn(warnings, f"Commit {commit_hash}: unparseable co-author entry {item!r}")

    seen = set()
    out = []
    for name, email in pairs:
        key = email.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(CoAuthor(name=name, email=key))
    return tuple(out)


def _split_message(raw):
    message = raw.get("message")
    subject = raw.get("subject")
    body = raw.get("body")
    if message is None:
        subject = subject or ""
        body = body or ""
        message = f"{subject}\n\n{body}" if body else subject
    elif subject is None:
        lines = message.strip("\n").split("\n", 1)
        subject = lines[0].strip()
        body = lines[1].strip("\n") if len(lines) > 1 else ""
    return subject.strip(), (body or "").strip(), message.strip()


def normalize_commit(raw, index=0, config=None, warnings=None):
    """Turn one raw parsed commit into a CommitRecord.

    Args:
        raw: A mapping (see module docs) or an existing CommitRecord.
        index: Position in the input stream, used in error messages.
        config: Optional AnalysisConfig; its include/ignore globs filter file paths.
        warnings: Optional WarningCollector for non-fatal repairs.

    Returns:
        CommitRecord

    Raises:
        MalformedCommitError: If a required field is missing or a value is invalid.
    """
    include_globs = config.include_globs if config is not None else ()
    ignore_globs = config.ignore_globs if config is not None else ()

    if isinstance(raw, CommitRecord):
        if not include_globs and not ignore_globs:
            return raw
        kept = tuple(f for f in raw.files if path_included(f.path, include_globs, ignore_globs))
        return replace(
            raw,
            files=kept,
            files_changed=len(kept),
            insertions=sum(f.insertions for f in kept),
            deletions=sum(f.deletions for f in kept),
        )

    if not isinstance(raw, dict):
        raise MalformedCommitError(f"expected a mapping, got {type(raw).__name__}", index)

    commit_hash = raw.get("hash")
    if not isinstance(commit_hash, str) or not commit_hash.strip():
        raise MalformedCommitError("missing required field 'hash'", index)
    commit_hash = commit_hash.strip()

    raw_ts = raw.get("timestamp", raw.get("date"))
    if raw_ts is None:
        raise MalformedCommitError("missing required field 'timestamp'", index, commit_hash)
    try:
        timestamp = coerce_timestamp(raw_ts)
    except (TypeError, ValueError, OverflowError) as e:
        raise MalformedCommitError(f"invalid timestamp {raw_ts!r}: {e}", index, commit_hash) from e

    author_email = (raw.get("author_email") or raw.get("email") or "").strip()
    author = (raw.get("author") or raw.get("author_name") or "").strip() or author_email or "unknown"
    subject, body, message = _split_message(raw)

    if "files" in raw and raw["files"] is not None:
        changes = [normalize_file_change(f, index, commit_hash, warnings) for f in raw["files"]]
        changes = tuple(c for c in changes if path_included(c.path, include_globs, ignore_globs))
        insertions = sum(c.insertions for c in changes)
        deletions = sum(c.deletions for c in changes)
    else:
        changes = ()
        insertions = _count(raw.get("insertions"), "insertions", index, commit_hash)
        deletions = _count(raw.get("deletions"), "deletions", index, commit_hash)

    if "is_merge" in raw:
        is_merge = bool(raw["is_merge"])
    else:
        is_merge = len(raw.get("parents") or ()) > 1

    return CommitRecord(
        hash=commit_hash,
        short_hash=raw.get("short_hash") or commit_hash[:7],
        author=author,
        author_email=author_email,
        author_key=author_email.lower() or author.lower(),
        timestamp=timestamp,
        subject=subject,
        body=body,
        message=message,
        insertions=insertions,
        deletions=deletions,
        files_changed=len(changes),
        is_merge=is_merge,
        co_authors=_co_authors(raw.get("co_authors"), message, commit_hash, warnings),
        files=changes,
    )


def normalize_commits(commits, config=None, warnings=None):
    """Lazily normalize an iterable of raw commits, failing on the first malformed record."""
    for index, raw in enumerate(commits):
        yield normalize_commit(raw, index=index, config=config, warnings=warnings)

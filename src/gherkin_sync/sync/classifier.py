"""Turn path-level diff records into typed ``FileChange`` entries.

Diff records are the lines of ``git diff --name-status --find-renames``:
a status token (a letter optionally followed by a similarity score, e.g.
``R97``) and one or two paths, tab separated.  Only records touching a
spec file are kept.  Records that do not have this shape are dropped.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from ..config_schema import DEFAULT_FEATURE_EXTENSION
from .models import ChangeKind, FileChange

logger = logging.getLogger(__name__)

_STATUS_PATTERN = re.compile(r"^[A-Z]\d*$")
# Whitespace-separated fallback for records that lost their tabs.
_RECORD_PATTERN = re.compile(r"^([A-Z]\d*)\s+(.+?)(?:\s+(.+))?$")

_OLD_PATH_KINDS = {ChangeKind.DELETED.value, ChangeKind.RENAMED.value}
_NEW_PATH_KINDS = {
    ChangeKind.ADDED.value,
    ChangeKind.MODIFIED.value,
    ChangeKind.RENAMED.value,
}


def _split_record(record: str) -> tuple[str, str, str | None] | None:
    if "\t" in record:
        parts = [p for p in record.split("\t") if p]
        if len(parts) not in (2, 3):
            return None
        status = parts[0].strip()
        if not _STATUS_PATTERN.match(status):
            return None
        return status, parts[1], parts[2] if len(parts) == 3 else None

    match = _RECORD_PATTERN.match(record)
    if not match:
        return None
    status, first, second = match.groups()
    return status, first, second


def parse_diff_record(
    record: str, extension: str = DEFAULT_FEATURE_EXTENSION
) -> FileChange | None:
    """Parse one diff record.

    Args:
        record: A single ``--name-status`` line.
        extension: Spec-file suffix; records touching no such path are dropped.

    Returns:
        The change, or ``None`` when the record is malformed, has a status
        other than A / M / D / R, or touches no spec file.
    """
    parts = _split_record(record.rstrip("\r\n"))
    if parts is None:
        if record.strip():
            logger.debug("Dropping malformed diff record: %r", record)
        return None

    status, first, second = parts
    letter = status[0]
    old_path = first if letter in _OLD_PATH_KINDS else None
    new_path = (second or first) if letter in _NEW_PATH_KINDS else None

    if old_path is None and new_path is None:
        logger.debug("Dropping unsupported diff status %s for %s", status, first)
        return None

    touches_spec = any(
        p is not None and p.endswith(extension) for p in (old_path, new_path)
    )
    if not touches_spec:
        return None

    return FileChange(status=status, old_path=old_path, new_path=new_path)


def classify(
    diff_records: Iterable[str], extension: str = DEFAULT_FEATURE_EXTENSION
) -> list[FileChange]:
    """Classify diff records into spec-file changes, preserving order."""
    changes: list[FileChange] = []
    for record in diff_records:
        change = parse_diff_record(record, extension)
        if change is not None:
            changes.append(change)
    return changes


def classify_tracked_files(
    paths: Iterable[str], extension: str = DEFAULT_FEATURE_EXTENSION
) -> list[FileChange]:
    """Synthesize an Added change for every tracked spec file (initial sync)."""
    return [
        FileChange(status=ChangeKind.ADDED.value, new_path=path.strip())
        for path in paths
        if path.strip().endswith(extension)
    ]

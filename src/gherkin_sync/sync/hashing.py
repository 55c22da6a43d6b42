"""Content addressing for features and scenarios.

A hash is SHA-1 over ``"{path}:{content}"``.  The path is part of the
input, so a file moved without edits gets new hashes; renames are linked
back to their previous identity by the scenario matcher and the rename
status of the diff, never by hash equality.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence

from .models import ScenarioRecord, Step

PATH_SEPARATOR = ":"


def content_hash(content: str, path: str) -> str:
    """Return the 40-character hex SHA-1 digest of *path* and *content*.

    No normalisation is applied; callers pass already-normalised text.
    """
    data = f"{path}{PATH_SEPARATOR}{content}"
    return hashlib.sha1(data.encode("utf-8")).hexdigest()


def steps_text(steps: Sequence[Step]) -> str:
    """Join step lines with newlines."""
    return "\n".join(step.line for step in steps)


def scenario_hash(steps: Sequence[Step], path: str) -> str:
    return content_hash(steps_text(steps), path)


def feature_hash(
    description: str,
    background: Sequence[Step] | None,
    scenarios: Sequence[ScenarioRecord],
    path: str,
) -> str:
    """Hash a whole feature.

    The hashed text is the description plus a newline (when non-empty),
    then the background step lines, then every scenario's step lines in
    source order.  The background and the first scenario are concatenated
    without a separator; existing remote hashes depend on this layout.
    """
    content = ""
    if description:
        content += description + "\n"
    if background is not None:
        content += steps_text(background)
    content += "\n".join(steps_text(s.steps) for s in scenarios)
    return content_hash(content, path)

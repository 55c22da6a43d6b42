"""Link each new scenario of a file to its previous version.

Signals, strongest first (first match wins):

1. Hash equality: the scenario's steps and path are unchanged.
2. Title equality with an old scenario not already claimed.
3. Position: only when old and new scenario counts are equal, map by index.

Otherwise the scenario is new.  Old hashes that no new scenario claims
become deletion markers, except for added files.

The positional tier can mis-map when several scenarios are reordered and
retitled in one commit while the count stays the same.
"""

from __future__ import annotations

import logging

from .models import MatchResult, MatchTier, ProcessedChange, ScenarioMatch

logger = logging.getLogger(__name__)


def match_scenarios(processed: ProcessedChange) -> MatchResult:
    """Match the new scenarios of *processed* against its old scenarios."""
    new = processed.document.scenarios if processed.document else []
    old = processed.old_scenarios
    old_hashes = {s.hash for s in old}

    decisions: list[ScenarioMatch | None] = [None] * len(new)
    claimed: set[str] = set()

    for index, scenario in enumerate(new):
        if scenario.hash in old_hashes:
            decisions[index] = ScenarioMatch(
                index=index, prev_hash=scenario.hash, tier=MatchTier.HASH
            )
            claimed.add(scenario.hash)

    for index, scenario in enumerate(new):
        if decisions[index] is not None:
            continue
        for candidate in old:
            if candidate.title == scenario.title and candidate.hash not in claimed:
                decisions[index] = ScenarioMatch(
                    index=index, prev_hash=candidate.hash, tier=MatchTier.TITLE
                )
                claimed.add(candidate.hash)
                break

    if len(old) == len(new):
        for index in range(len(new)):
            if decisions[index] is None:
                logger.debug(
                    "%s: scenario %r matched by position only",
                    processed.change.display_path,
                    new[index].title,
                )
                decisions[index] = ScenarioMatch(
                    index=index, prev_hash=old[index].hash, tier=MatchTier.POSITION
                )

    matches = [
        d if d is not None else ScenarioMatch(index=i)
        for i, d in enumerate(decisions)
    ]

    deleted: list[str] = []
    if not processed.change.is_addition:
        kept = {s.hash for s in new} | {m.prev_hash for m in matches if m.prev_hash}
        for scenario in old:
            if scenario.hash not in kept and scenario.hash not in deleted:
                deleted.append(scenario.hash)

    return MatchResult(matches=matches, deleted=deleted)

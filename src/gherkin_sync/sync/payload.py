"""Assemble the ``SyncDelta`` submitted to the service."""

from __future__ import annotations

from collections.abc import Iterable

from .matcher import match_scenarios
from .models import (
    DeltaChange,
    FeaturePayload,
    IdentityMap,
    ProcessedChange,
    ScenarioPayload,
    SpecDocument,
    SyncDelta,
)


def _feature_payload(
    processed: ProcessedChange, document: SpecDocument, identities: IdentityMap
) -> FeaturePayload:
    prev_hash = (
        processed.old_feature_hash if processed.change.is_rename else None
    )
    return FeaturePayload(
        hash=document.feature_hash,
        title=document.title,
        description=document.description,
        background=document.background,
        prev_hash=prev_hash,
        suite_id=identities.suite_id(processed.old_feature_hash),
    )


def _scenario_payloads(
    processed: ProcessedChange, document: SpecDocument, identities: IdentityMap
) -> list[ScenarioPayload]:
    result = match_scenarios(processed)
    # Steps are only left out when the diff proves the content is unchanged.
    include_steps = not processed.change.is_pure_rename

    entries: list[ScenarioPayload] = []
    for match in result.matches:
        scenario = document.scenarios[match.index]
        entries.append(
            ScenarioPayload(
                hash=scenario.hash,
                title=scenario.title,
                prev_hash=match.prev_hash,
                case_id=identities.case_id(match.prev_hash),
                steps=list(scenario.steps) if include_steps else None,
            )
        )

    entries.extend(_deletion_markers(result.deleted))
    return entries


def _deletion_markers(prev_hashes: Iterable[str]) -> list[ScenarioPayload]:
    return [
        ScenarioPayload(prev_hash=prev_hash, deleted=True)
        for prev_hash in prev_hashes
    ]


def build_change(
    processed: ProcessedChange, identities: IdentityMap
) -> DeltaChange:
    """Build the delta entry for one processed file change."""
    change = processed.change
    document = processed.document
    if document is None:
        # A file that still exists but lost its Feature heading drops every
        # old scenario; a deleted file is removed remotely as a whole suite.
        orphaned = (
            list(dict.fromkeys(processed.old_scenario_hashes))
            if change.new_path is not None
            else []
        )
        return DeltaChange(
            status=change.status,
            old_path=change.old_path,
            new_path=change.new_path,
            scenarios=_deletion_markers(orphaned) if orphaned else None,
        )
    return DeltaChange(
        status=change.status,
        old_path=change.old_path,
        new_path=change.new_path,
        feature=_feature_payload(processed, document, identities),
        scenarios=_scenario_payloads(processed, document, identities),
    )


def build_delta(
    project_id: int | str,
    prev_revision: str | None,
    head_revision: str,
    changes: Iterable[ProcessedChange],
    identities: IdentityMap,
) -> SyncDelta:
    """Build the full delta, one entry per processed change in diff order."""
    return SyncDelta(
        project_id=int(project_id),
        prev_commit=prev_revision,
        head_commit=head_revision,
        changes=[build_change(p, identities) for p in changes],
    )

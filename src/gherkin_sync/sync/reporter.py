"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync runs:

- ``format_sync_summary`` -- per-category counts returned by the service.
- ``format_delta_preview`` -- dry-run listing of the computed delta.
- ``format_sync_report`` -- full post-run report.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import SyncStage

if TYPE_CHECKING:
    from .models import SyncDelta, SyncOutcome, SyncReport

# (attribute, verb, noun) in display order
_COUNT_LINES = (
    ("created_suites", "Created", "suite(s)"),
    ("created_cases", "Created", "test case(s)"),
    ("renamed_suites", "Renamed", "suite(s)"),
    ("renamed_cases", "Renamed", "test case(s)"),
    ("updated_cases", "Updated", "test case(s)"),
    ("deleted_suites", "Deleted", "suite(s)"),
    ("deleted_cases", "Deleted", "test case(s)"),
)

NO_CHANGES_MESSAGE = (
    "No changes were required - everything is already in sync"
)

# ------------------------------------------------------------------
# Service outcome
# ------------------------------------------------------------------


def format_sync_summary(outcome: SyncOutcome) -> str:
    """Format the service's counts.

    Only non-zero categories are listed.  When every count is zero the
    no-changes note is shown instead.

    Args:
        outcome: Counts returned by the submit call.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = ["Synchronization Results:"]

    for attr, verb, noun in _COUNT_LINES:
        count = getattr(outcome, attr)
        if count > 0:
            lines.append(f"  {verb} {count} {noun}")

    if outcome.warnings:
        lines.append("")
        lines.append("Warnings:")
        for warning in outcome.warnings:
            lines.append(f"  {warning}")

    if outcome.total_changes == 0:
        lines.append(f"  {NO_CHANGES_MESSAGE}")

    return "\n".join(lines)


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_delta_preview(delta: SyncDelta) -> str:
    """Format a dry-run preview of a delta, one block per file change.

    Scenario lines show the new hash prefix and how the scenario was
    linked to its previous version (``prev``) and remote case (``case``).
    """
    lines: list[str] = []
    lines.append("DRY RUN -- Nothing will be submitted")
    lines.append(f"Project: {delta.project_id}")
    lines.append(f"Commits: {delta.prev_commit or '(none)'} -> {delta.head_commit}")
    lines.append("")

    if not delta.changes:
        lines.append("No changes needed.")
        return "\n".join(lines)

    for change in delta.changes:
        if change.old_path and change.new_path and change.old_path != change.new_path:
            where = f"{change.old_path} -> {change.new_path}"
        else:
            where = change.new_path or change.old_path or ""
        lines.append(f"[{change.status}] {where}")

        if change.feature is not None:
            suite = (
                f" (suite {change.feature.suite_id})"
                if change.feature.suite_id is not None
                else ""
            )
            lines.append(f"  Feature: {change.feature.title}{suite}")

        for scenario in change.scenarios or []:
            if scenario.deleted:
                lines.append(f"  - deleted {scenario.prev_hash}")
                continue
            notes = []
            if scenario.prev_hash:
                notes.append(f"prev {scenario.prev_hash[:8]}")
            if scenario.case_id is not None:
                notes.append(f"case {scenario.case_id}")
            suffix = f" ({', '.join(notes)})" if notes else " (new)"
            lines.append(f"  * {scenario.title}{suffix}")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Full report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a finished run for the terminal.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    if report.stage == SyncStage.NO_OP:
        return "Already in sync - nothing to do"

    lines: list[str] = []
    if report.dry_run and report.delta is not None:
        lines.append(format_delta_preview(report.delta))
        lines.append("")
    elif report.outcome is not None:
        lines.append(format_sync_summary(report.outcome))
        lines.append("")

    if report.skipped:
        lines.append(f"Skipped {len(report.skipped)} file(s):")
        for result in report.skipped:
            lines.append(f"  {result.change.display_path}: {result.error}")
        lines.append("")

    if not report.dry_run:
        lines.append("Synchronization completed successfully")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Args:
        report: The sync report.

    Returns:
        Dict with run info, service counts, skipped files and the delta.
    """
    data: dict = {
        "project_id": report.project_id,
        "dry_run": report.dry_run,
        "stage": report.stage.value,
        "prev_commit": report.prev_commit,
        "head_commit": report.head_commit,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "changes": len(report.delta.changes) if report.delta else 0,
        "skipped": [
            {"path": r.change.display_path, "error": r.error}
            for r in report.skipped
        ],
    }
    if report.outcome is not None:
        data["outcome"] = report.outcome.model_dump(by_alias=True)
    if report.dry_run and report.delta is not None:
        data["delta"] = report.delta.to_payload()
    return data

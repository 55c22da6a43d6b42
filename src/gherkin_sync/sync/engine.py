"""Orchestrator for one synchronisation run.

The ``SyncEngine`` walks these stages in order:

1. ``FETCHING_STATE``       -- ask the service for the last synced commit.
2. ``COMPARING_REVISIONS``  -- diff it against HEAD (or list every spec
   file on an initial sync).  Ends in ``NO_OP`` when nothing changed.
3. ``PROCESSING_CHANGES``   -- extract old/new documents per file.
4. ``RESOLVING_IDENTITIES`` -- one batched resolve of every old hash.
5. ``BUILDING_PAYLOAD``     -- match scenarios and assemble the delta.
6. ``SUBMITTING``           -- send the delta in a single request.
7. ``REPORTING_RESULTS``    -- return a ``SyncReport``.

Work is strictly sequential.  Per-file processing errors are collected
into the report; any other error moves the engine to ``FAILED`` and is
re-raised to the caller.  Nothing is retried.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from ..config_schema import DEFAULT_FEATURE_EXTENSION
from ..errors import ConfigurationError, GitError, PayloadWriteError
from .classifier import classify, classify_tracked_files
from .identity import IdentityResolver, collect_old_hashes
from .models import (
    FileChange,
    IdentityMap,
    ProcessedChange,
    ProcessingResult,
    SyncDelta,
    SyncOutcome,
    SyncReport,
    SyncStage,
)
from .payload import build_delta
from .processor import ChangeProcessor

if TYPE_CHECKING:
    from ..core.client import SyncApiClient
    from ..core.git import GitRepository

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncEngine:
    """Run the change reconciliation against a repository and the service.

    Args:
        client: Service client for state, resolve and submit calls.
        repo: Repository to read revisions and file contents from.
        project_id: Remote project identifier.
        debug: Echo raw diff records and the outgoing payload to progress.
        feature_extension: Spec-file suffix.
        warn_uncommitted: Warn about uncommitted spec files first.
        progress: Called with one human-readable line per progress event.
        payload_file: When set, the delta JSON is written here before submitting.
    """

    def __init__(
        self,
        client: SyncApiClient,
        repo: GitRepository,
        project_id: int,
        debug: bool = False,
        feature_extension: str = DEFAULT_FEATURE_EXTENSION,
        warn_uncommitted: bool = True,
        progress: ProgressCallback | None = None,
        payload_file: Path | None = None,
    ) -> None:
        self.client = client
        self.repo = repo
        self.project_id = int(project_id)
        self.debug = debug
        self.feature_extension = feature_extension
        self.warn_uncommitted = warn_uncommitted
        self.payload_file = payload_file
        self._progress = progress
        self.stage = SyncStage.IDLE

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self, dry_run: bool = False) -> SyncReport:
        """Execute one sync run.

        Args:
            dry_run: If ``True``, build the delta but do not submit it.

        Returns:
            A ``SyncReport`` in stage ``NO_OP`` or ``REPORTING_RESULTS``.

        Raises:
            ConfigurationError: If the working directory is not a git repository.
            GitError: If a repository-level git command fails.
            ApiError: If any service call fails.
            PayloadWriteError: If the payload file cannot be written.
        """
        self.stage = SyncStage.IDLE
        started_at = _now()
        try:
            return self._run(dry_run, started_at)
        except Exception as exc:
            self._enter(SyncStage.FAILED)
            logger.error("Sync failed: %s", exc)
            raise

    def _run(self, dry_run: bool, started_at: str) -> SyncReport:
        if not self.repo.is_repository():
            raise ConfigurationError(
                f"Not in a Git repository: {self.repo.root}. "
                "Run this command from within a Git repository."
            )

        if self.warn_uncommitted:
            self._check_uncommitted()

        # Step 1: last synced commit
        self._enter(SyncStage.FETCHING_STATE)
        self._emit("Fetching sync state...")
        prev_commit = self.client.fetch_sync_state(self.project_id)
        self._emit(f"Last synced commit: {prev_commit or 'none (initial sync)'}")

        # Step 2: diff
        self._enter(SyncStage.COMPARING_REVISIONS)
        head_commit = self.repo.head_revision()
        self._emit(f"Current HEAD commit: {head_commit}")

        if prev_commit == head_commit:
            self._emit("Already up to date, no sync needed")
            return self._no_op(dry_run, started_at, prev_commit, head_commit)

        self._emit("Analyzing changes...")
        changes = self._find_changes(prev_commit, head_commit)
        self._emit(f"Found {len(changes)} change(s)")
        if not changes:
            self._emit("No changes to sync")
            return self._no_op(dry_run, started_at, prev_commit, head_commit)

        # Step 3: per-file extraction
        self._enter(SyncStage.PROCESSING_CHANGES)
        self._emit("Processing changes and calculating hashes...")
        processor = ChangeProcessor(self.repo, head_commit)
        results = processor.process_all(changes, prev_commit)
        processed = [r.processed for r in results if r.processed is not None]
        skipped = [r for r in results if not r.ok]
        for result in skipped:
            self._emit(
                f"Warning: could not process {result.change.display_path}: {result.error}"
            )

        # Step 4: identities
        self._enter(SyncStage.RESOLVING_IDENTITIES)
        self._emit("Resolving existing item IDs...")
        identities = self._resolve(processed)

        # Step 5: payload
        self._enter(SyncStage.BUILDING_PAYLOAD)
        self._emit("Building sync payload...")
        delta = build_delta(
            self.project_id, prev_commit, head_commit, processed, identities
        )
        self._write_payload(delta)

        # Step 6: submit
        outcome: SyncOutcome | None = None
        if dry_run:
            self._emit("Dry run: payload not submitted")
        else:
            self._enter(SyncStage.SUBMITTING)
            self._emit("Syncing with the service...")
            outcome = self.client.submit_delta(delta)

        self._enter(SyncStage.REPORTING_RESULTS)
        return self._report(
            dry_run,
            started_at,
            prev_commit,
            head_commit,
            delta=delta,
            outcome=outcome,
            skipped=skipped,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _find_changes(
        self, prev_commit: str | None, head_commit: str
    ) -> list[FileChange]:
        if prev_commit:
            records = self.repo.diff_name_status(prev_commit, head_commit)
            if self.debug:
                for record in records:
                    self._emit(f"  {record}")
            return classify(records, self.feature_extension)

        tracked = self.repo.list_tracked_files(head_commit)
        return classify_tracked_files(tracked, self.feature_extension)

    def _resolve(self, processed: list[ProcessedChange]) -> IdentityMap:
        features, scenarios = collect_old_hashes(processed)
        return IdentityResolver(self.client).resolve(
            self.project_id, features, scenarios
        )

    def _write_payload(self, delta: SyncDelta) -> None:
        payload = delta.to_payload()
        if self.debug:
            self._emit(json.dumps(payload, indent=2))
        if self.payload_file is None:
            return
        try:
            self.payload_file.write_text(
                json.dumps(payload, indent=2) + "\n", encoding="utf-8"
            )
        except OSError as exc:
            raise PayloadWriteError(
                f"Could not write payload to {self.payload_file}: {exc}"
            ) from exc
        self._emit(f"Payload written to {self.payload_file}")

    def _check_uncommitted(self) -> None:
        """Warn about spec files with uncommitted changes; never blocks the run."""
        try:
            status = self.repo.working_tree_status()
        except GitError as exc:
            logger.warning("Could not check for uncommitted changes: %s", exc)
            return

        pending = status.matching(self.feature_extension)
        if not pending:
            return
        logger.warning("%d uncommitted spec file(s)", len(pending))
        self._emit(
            "Warning: You have uncommitted changes in the following "
            f"{self.feature_extension} files:"
        )
        for path in pending:
            self._emit(f"  {path}")
        self._emit(
            "These changes will not be synced. Commit them first to include them."
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _enter(self, stage: SyncStage) -> None:
        logger.debug("Stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage

    def _emit(self, message: str) -> None:
        logger.info(message)
        if self._progress is not None:
            self._progress(message)

    def _no_op(
        self,
        dry_run: bool,
        started_at: str,
        prev_commit: str | None,
        head_commit: str,
    ) -> SyncReport:
        self._enter(SyncStage.NO_OP)
        return self._report(dry_run, started_at, prev_commit, head_commit)

    def _report(
        self,
        dry_run: bool,
        started_at: str,
        prev_commit: str | None,
        head_commit: str,
        delta: SyncDelta | None = None,
        outcome: SyncOutcome | None = None,
        skipped: list[ProcessingResult] | None = None,
    ) -> SyncReport:
        return SyncReport(
            project_id=self.project_id,
            dry_run=dry_run,
            stage=self.stage,
            prev_commit=prev_commit,
            head_commit=head_commit,
            delta=delta,
            outcome=outcome,
            skipped=skipped or [],
            started_at=started_at,
            completed_at=_now(),
        )

"""Load and extract the old and new versions of each changed file.

Per-file failures (the file cannot be read at a revision, or the parser
rejects it) are captured in a ``ProcessingResult`` and logged; they never
abort the run.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..errors import ProcessingError
from .extractor import extract
from .models import FileChange, ProcessedChange, ProcessingResult

if TYPE_CHECKING:
    from ..core.git import GitRepository

logger = logging.getLogger(__name__)


class ChangeProcessor:
    """Extract documents for file changes between two revisions.

    Args:
        repo: Repository to read file contents from.
        head_revision: Revision holding the new content.
    """

    def __init__(self, repo: GitRepository, head_revision: str) -> None:
        self.repo = repo
        self.head_revision = head_revision

    def process(
        self, change: FileChange, prior_revision: str | None
    ) -> ProcessingResult:
        """Process one change.

        The old document is read from *prior_revision* when there is one
        and the change has an old path; the new document is read from the
        head revision when the change has a new path.

        Returns:
            A result carrying either the ``ProcessedChange`` or the error.
        """
        try:
            processed = self._process(change, prior_revision)
        except ProcessingError as exc:
            logger.warning(
                "Could not process %s: %s", change.display_path, exc
            )
            return ProcessingResult(change=change, error=str(exc))
        return ProcessingResult(change=change, processed=processed)

    def process_all(
        self, changes: list[FileChange], prior_revision: str | None
    ) -> list[ProcessingResult]:
        """Process changes sequentially, in diff order."""
        return [self.process(change, prior_revision) for change in changes]

    def _process(
        self, change: FileChange, prior_revision: str | None
    ) -> ProcessedChange:
        old_feature_hash = None
        old_scenarios = []
        # A modified file keeps its path, so its new path is also the old one.
        old_path = change.old_path or change.new_path
        if prior_revision and old_path and not change.is_addition:
            old_content = self.repo.file_content_at(prior_revision, old_path)
            old_doc = extract(old_content, old_path)
            if old_doc is not None:
                old_feature_hash = old_doc.feature_hash
                old_scenarios = list(old_doc.scenarios)

        document = None
        if change.new_path:
            new_content = self.repo.file_content_at(
                self.head_revision, change.new_path
            )
            document = extract(new_content, change.new_path)

        return ProcessedChange(
            change=change,
            old_feature_hash=old_feature_hash,
            old_scenarios=old_scenarios,
            document=document,
        )

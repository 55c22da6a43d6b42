"""Change reconciliation between a git repository and the sync service.

Public API for turning the commits since the last synchronisation into
an identity-preserving delta of features (suites) and scenarios (cases).

Architecture
------------
Every feature and scenario is content-addressed: its hash covers the
normalised step text plus the file path.  Old hashes (from the last
synced commit) are resolved to remote ids in one batch, and each new
scenario is linked to an old one by hash, title, or position, so the
service updates records in place instead of duplicating them.

Modules:

- ``hashing``    -- SHA-1 content addressing for features and scenarios.
- ``extractor``  -- Gherkin text to ``SpecDocument``.
- ``classifier`` -- diff records to ``FileChange`` entries.
- ``processor``  -- ``ChangeProcessor``: old/new documents per change.
- ``identity``   -- ``IdentityResolver``: old hashes to remote ids.
- ``matcher``    -- three-tier scenario matching and deletion markers.
- ``payload``    -- ``SyncDelta`` assembly.
- ``engine``     -- ``SyncEngine``: orchestrates a full run.
- ``models``     -- data contracts.
- ``reporter``   -- human-readable and JSON output.

Usage example
-------------
::

    from gherkin_sync.core import GitRepository, SyncApiClient
    from gherkin_sync.sync import SyncEngine, format_sync_report

    engine = SyncEngine(
        client=SyncApiClient(config),
        repo=GitRepository("."),
        project_id=config.project_id,
        progress=print,
    )

    preview = engine.run(dry_run=True)
    print(format_sync_report(preview))
"""

from .engine import SyncEngine
from .extractor import extract
from .hashing import content_hash
from .matcher import match_scenarios
from .models import (
    FileChange,
    IdentityMap,
    ProcessedChange,
    SpecDocument,
    SyncDelta,
    SyncOutcome,
    SyncReport,
    SyncStage,
)
from .payload import build_delta
from .reporter import (
    format_delta_preview,
    format_sync_report,
    format_sync_summary,
    report_to_json,
)

__all__ = [
    "FileChange",
    "IdentityMap",
    "ProcessedChange",
    "SpecDocument",
    "SyncDelta",
    "SyncEngine",
    "SyncOutcome",
    "SyncReport",
    "SyncStage",
    "build_delta",
    "content_hash",
    "extract",
    "format_delta_preview",
    "format_sync_report",
    "format_sync_summary",
    "match_scenarios",
    "report_to_json",
]

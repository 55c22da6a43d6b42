"""Pydantic models for the change-reconciliation pipeline.

Defines the data contracts passed between the sync modules:

- ``Step``, ``ScenarioRecord``, ``SpecDocument``: normalised parse of a
  feature file, with content hashes.
- ``ChangeKind``, ``FileChange``: one path-level entry of a revision diff.
- ``ProcessedChange``, ``ProcessingResult``: a file change enriched with
  its old and new documents, or the error that prevented it.
- ``IdentityMap``: old hashes resolved to remote suite / case ids.
- ``MatchTier``, ``ScenarioMatch``, ``MatchResult``: scenario matcher output.
- ``FeaturePayload``, ``ScenarioPayload``, ``DeltaChange``, ``SyncDelta``:
  the wire payload submitted to the remote service.
- ``SyncOutcome``: counts returned by the service after a submit.
- ``SyncStage``, ``SyncReport``: orchestrator state and run summary.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

# ---------------------------------------------------------------------------
# Parsed documents
# ---------------------------------------------------------------------------


class Step(BaseModel):
    """A single Gherkin step.

    Attributes:
        keyword: Step keyword without trailing whitespace (``Given``, ``And``, ``*``).
        text: Step text following the keyword.
        separator: Whitespace the keyword carried in the source.  Most
            dialects end keywords with a space; some (``ja`` ``前提``) do not.
            Kept for hashing only, never sent.
    """

    keyword: str
    text: str
    separator: str = Field(default=" ", exclude=True)

    model_config = {"frozen": True}

    @property
    def line(self) -> str:
        """The step as written in the source; this is what gets hashed."""
        return f"{self.keyword}{self.separator}{self.text}"


class ScenarioRecord(BaseModel):
    """A scenario with its steps and content hash.

    Attributes:
        title: Scenario name.
        steps: Steps in source order.
        hash: Content hash over the step lines and the file path.
    """

    title: str
    steps: list[Step] = []
    hash: str

    model_config = {"frozen": True}


class SpecDocument(BaseModel):
    """Normalised parse of one feature file.

    Attributes:
        path: Repository path the document was read from.
        title: Feature name.
        description: Free text between the Feature line and the first block.
        background: Background steps, or ``None`` without a Background block.
        scenarios: Scenarios in source order.
        feature_hash: Content hash over description, background and
            scenario steps, plus the file path.
    """

    path: str
    title: str
    description: str = ""
    background: list[Step] | None = None
    scenarios: list[ScenarioRecord] = []
    feature_hash: str

    model_config = {"frozen": True}

    @property
    def scenario_hashes(self) -> list[str]:
        return [s.hash for s in self.scenarios]


# ---------------------------------------------------------------------------
# Revision diff
# ---------------------------------------------------------------------------


class ChangeKind(str, Enum):
    """Path-level change kinds kept from a revision diff."""

    ADDED = "A"
    MODIFIED = "M"
    DELETED = "D"
    RENAMED = "R"


class FileChange(BaseModel):
    """One spec-file entry of a revision diff.

    Attributes:
        status: Status code verbatim from the VCS (``A``, ``M``, ``D``,
            ``R100``, ``R97`` ...).
        old_path: Path at the previous revision (Deleted / Renamed only).
        new_path: Path at the head revision (Added / Modified / Renamed only).
    """

    status: str
    old_path: str | None = None
    new_path: str | None = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_paths(self) -> FileChange:
        if self.old_path is None and self.new_path is None:
            raise ValueError("a file change needs at least one path")
        kind = self.kind
        if kind == ChangeKind.ADDED and self.old_path is not None:
            raise ValueError("an added file has no old path")
        if kind == ChangeKind.DELETED and self.new_path is not None:
            raise ValueError("a deleted file has no new path")
        if kind == ChangeKind.RENAMED and (
            self.old_path is None or self.new_path is None
        ):
            raise ValueError("a renamed file needs both paths")
        return self

    @property
    def kind(self) -> ChangeKind:
        return ChangeKind(self.status[:1])

    @property
    def similarity(self) -> int | None:
        """Rename similarity percentage, ``None`` for non-renames."""
        if self.kind != ChangeKind.RENAMED or not self.status[1:].isdigit():
            return None
        return int(self.status[1:])

    @property
    def is_addition(self) -> bool:
        return self.kind == ChangeKind.ADDED

    @property
    def is_rename(self) -> bool:
        return self.kind == ChangeKind.RENAMED

    @property
    def is_pure_rename(self) -> bool:
        """True for a 100%-similarity rename (content byte-identical)."""
        return self.similarity == 100

    @property
    def display_path(self) -> str:
        if self.is_rename:
            return f"{self.old_path} -> {self.new_path}"
        return self.new_path or self.old_path or ""


class ProcessedChange(BaseModel):
    """A ``FileChange`` enriched with its extracted documents.

    Attributes:
        change: The underlying file change.
        old_feature_hash: Feature hash at the previous revision, if any.
        old_scenarios: Scenario records at the previous revision.
        document: The document at the head revision, if the file still
            exists and has a Feature heading.
    """

    change: FileChange
    old_feature_hash: str | None = None
    old_scenarios: list[ScenarioRecord] = []
    document: SpecDocument | None = None

    model_config = {"frozen": True}

    @property
    def old_scenario_hashes(self) -> list[str]:
        return [s.hash for s in self.old_scenarios]


class ProcessingResult(BaseModel):
    """Per-file outcome of the change processor.

    Exactly one of ``processed`` and ``error`` is set.
    """

    change: FileChange
    processed: ProcessedChange | None = None
    error: str | None = None

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        return self.processed is not None


# ---------------------------------------------------------------------------
# Identity resolution
# ---------------------------------------------------------------------------


class RemoteSuite(BaseModel):
    """Remote suite resolved from an old feature hash."""

    suite_id: int

    model_config = {"frozen": True}


class RemoteCase(BaseModel):
    """Remote test case resolved from an old scenario hash."""

    case_id: int

    model_config = {"frozen": True}


class IdentityMap(BaseModel):
    """Old content hashes mapped to existing remote identifiers."""

    suites: dict[str, RemoteSuite] = {}
    cases: dict[str, RemoteCase] = {}

    model_config = {"frozen": True}

    def suite_id(self, feature_hash: str | None) -> int | None:
        if feature_hash is None or feature_hash not in self.suites:
            return None
        return self.suites[feature_hash].suite_id

    def case_id(self, scenario_hash: str | None) -> int | None:
        if scenario_hash is None or scenario_hash not in self.cases:
            return None
        return self.cases[scenario_hash].case_id


# ---------------------------------------------------------------------------
# Scenario matching
# ---------------------------------------------------------------------------


class MatchTier(str, Enum):
    """Which signal linked a new scenario to an old one."""

    HASH = "hash"
    TITLE = "title"
    POSITION = "position"
    NONE = "none"


class ScenarioMatch(BaseModel):
    """Decision for the new scenario at ``index``."""

    index: int
    prev_hash: str | None = None
    tier: MatchTier = MatchTier.NONE

    model_config = {"frozen": True}


class MatchResult(BaseModel):
    """Matches for every new scenario plus old hashes left unclaimed."""

    matches: list[ScenarioMatch] = []
    deleted: list[str] = []

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Wire payload
# ---------------------------------------------------------------------------

_WIRE_CONFIG = {"frozen": True, "populate_by_name": True}


class FeaturePayload(BaseModel):
    """Feature metadata of one change in the delta."""

    hash: str
    title: str
    description: str | None = None
    background: list[Step] | None = None
    prev_hash: str | None = Field(default=None, alias="prevHash")
    suite_id: int | None = Field(default=None, alias="suiteId")

    model_config = _WIRE_CONFIG


class ScenarioPayload(BaseModel):
    """A scenario entry, or a deletion marker when ``deleted`` is set."""

    hash: str | None = None
    title: str | None = None
    prev_hash: str | None = Field(default=None, alias="prevHash")
    case_id: int | None = Field(default=None, alias="caseId")
    steps: list[Step] | None = None
    deleted: bool | None = None

    model_config = _WIRE_CONFIG


class DeltaChange(BaseModel):
    """One file-level entry of the delta."""

    status: str
    old_path: str | None = Field(default=None, alias="oldPath")
    new_path: str | None = Field(default=None, alias="newPath")
    feature: FeaturePayload | None = None
    scenarios: list[ScenarioPayload] | None = None

    model_config = _WIRE_CONFIG

    def to_payload(self) -> dict[str, Any]:
        """Wire form: status and both paths always present (possibly null)."""
        data: dict[str, Any] = {
            "status": self.status,
            "oldPath": self.old_path,
            "newPath": self.new_path,
        }
        if self.feature is not None:
            data["feature"] = self.feature.model_dump(
                by_alias=True, exclude_none=True
            )
        if self.scenarios is not None:
            data["scenarios"] = [
                s.model_dump(by_alias=True, exclude_none=True)
                for s in self.scenarios
            ]
        return data


class SyncDelta(BaseModel):
    """The full delta between two sync points, submitted in one request."""

    project_id: int = Field(alias="projectId")
    prev_commit: str | None = Field(default=None, alias="prevCommit")
    head_commit: str = Field(alias="headCommit")
    changes: list[DeltaChange] = []

    model_config = _WIRE_CONFIG

    def to_payload(self) -> dict[str, Any]:
        return {
            "projectId": self.project_id,
            "prevCommit": self.prev_commit,
            "headCommit": self.head_commit,
            "changes": [c.to_payload() for c in self.changes],
        }


class SyncOutcome(BaseModel):
    """Counts reported by the service after applying a delta."""

    created_suites: int = Field(default=0, alias="createdSuites")
    created_cases: int = Field(default=0, alias="createdCases")
    renamed_suites: int = Field(default=0, alias="renamedSuites")
    renamed_cases: int = Field(default=0, alias="renamedCases")
    updated_cases: int = Field(default=0, alias="updatedCases")
    deleted_suites: int = Field(default=0, alias="deletedSuites")
    deleted_cases: int = Field(default=0, alias="deletedCases")
    warnings: list[str] = []

    model_config = _WIRE_CONFIG

    @property
    def total_changes(self) -> int:
        return (
            self.created_suites
            + self.created_cases
            + self.renamed_suites
            + self.renamed_cases
            + self.updated_cases
            + self.deleted_suites
            + self.deleted_cases
        )


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class SyncStage(str, Enum):
    """States of a sync run."""

    IDLE = "idle"
    FETCHING_STATE = "fetching_state"
    COMPARING_REVISIONS = "comparing_revisions"
    NO_OP = "no_op"
    PROCESSING_CHANGES = "processing_changes"
    RESOLVING_IDENTITIES = "resolving_identities"
    BUILDING_PAYLOAD = "building_payload"
    SUBMITTING = "submitting"
    REPORTING_RESULTS = "reporting_results"
    FAILED = "failed"


class SyncReport(BaseModel):
    """Summary of a finished sync run.

    Attributes:
        project_id: Remote project the run targeted.
        dry_run: Whether submission was skipped.
        stage: Terminal stage (``NO_OP`` or ``REPORTING_RESULTS``).
        prev_commit: Last synced commit reported by the service.
        head_commit: Head commit the delta was computed against.
        delta: The computed delta, ``None`` for a no-op run.
        outcome: Service counts, ``None`` for dry runs and no-ops.
        skipped: Files dropped because they could not be processed.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run finished.
    """

    project_id: int
    dry_run: bool = False
    stage: SyncStage
    prev_commit: str | None = None
    head_commit: str | None = None
    delta: SyncDelta | None = None
    outcome: SyncOutcome | None = None
    skipped: list[ProcessingResult] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

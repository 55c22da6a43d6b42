"""Shared pytest fixtures for gherkin-sync tests."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import Any, Callable

import pytest

from gherkin_sync.config import Config
from gherkin_sync.core.git import WorkingTreeStatus
from gherkin_sync.errors import FetchError
from gherkin_sync.sync.models import SyncDelta, SyncOutcome

USER_LOGIN_PATH = "features/auth/user_login.feature"
ACCOUNT_SETTINGS_PATH = "features/account/account_settings.feature"

USER_LOGIN_FEATURE = """\
Feature: User Login
  As a registered user
  I want to log in to the system

  Background:
    Given the application is running
    And I am on the login page

  Scenario: Successful login
    When I enter valid credentials
    Then I should see the dashboard

  Scenario: Failed login
    When I enter an invalid password
    Then I should see an error message
"""

ACCOUNT_SETTINGS_FEATURE = """\
Feature: Account Settings
  Scenario: Change display name
    Given I am logged in
    When I change my display name to "Ada"
    Then my profile shows "Ada"
"""


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "git: test creates a real git repository"
    )


def pytest_collection_modifyitems(config, items):
    """Skip real-git tests when git is not installed."""
    if shutil.which("git"):
        return
    skip_git = pytest.mark.skip(reason="git executable not available")
    for item in items:
        if "git" in item.keywords:
            item.add_marker(skip_git)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_config():
    """Create a Config instance for testing."""
    return Config(
        api_url="https://api.example.com",
        token="test-token-12345",
        project_id=42,
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every env var that load_config() reads."""
    for key in (
        "TESTCOLLAB_TOKEN",
        "TESTCOLLAB_API_URL",
        "TESTCOLLAB_PROJECT_ID",
        "GHERKIN_SYNC_DEBUG",
        "GHERKIN_SYNC_TIMEOUT",
        "GHERKIN_SYNC_CONFIG",
        "LOG_LEVEL",
        "LOG_FILE",
    ):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


# ---------------------------------------------------------------------------
# Collaborator doubles
# ---------------------------------------------------------------------------


class FakeRepository:
    """In-memory stand-in for GitRepository.

    ``revisions`` maps a revision id to ``{path: content}``; ``diffs`` maps
    ``(from, to)`` to the raw ``--name-status`` records.
    """

    def __init__(
        self,
        revisions: dict[str, dict[str, str]],
        head: str,
        diffs: dict[tuple[str, str], list[str]] | None = None,
        status: WorkingTreeStatus | None = None,
        is_repo: bool = True,
    ) -> None:
        self.root = Path("/repo")
        self.revisions = revisions
        self.head = head
        self.diffs = diffs or {}
        self.status = status or WorkingTreeStatus()
        self.is_repo = is_repo
        self.shown: list[tuple[str, str]] = []

    def is_repository(self) -> bool:
        return self.is_repo

    def head_revision(self) -> str:
        return self.head

    def diff_name_status(self, from_revision: str, to_revision: str) -> list[str]:
        return list(self.diffs.get((from_revision, to_revision), []))

    def list_tracked_files(self, revision: str) -> list[str]:
        return list(self.revisions[revision])

    def file_content_at(self, revision: str, path: str) -> str:
        self.shown.append((revision, path))
        files = self.revisions.get(revision, {})
        if path not in files:
            raise FetchError(
                f"Could not read {path} at {revision}", path=path
            )
        return files[path]

    def working_tree_status(self) -> WorkingTreeStatus:
        return self.status


class FakeSyncClient:
    """Records calls made by the engine and answers with canned data."""

    def __init__(
        self,
        last_synced: str | None = None,
        resolve_body: dict[str, Any] | None = None,
        outcome: SyncOutcome | None = None,
    ) -> None:
        self.last_synced = last_synced
        self.resolve_body = resolve_body or {
            "success": True,
            "results": {"suites": {}, "cases": {}},
        }
        self.outcome = outcome or SyncOutcome()
        self.resolve_calls: list[tuple[int, list[str], list[str]]] = []
        self.submitted: list[SyncDelta] = []

    def fetch_sync_state(self, project_id: int) -> str | None:
        return self.last_synced

    def resolve_ids(
        self, project_id: int, features: list[str], scenarios: list[str]
    ) -> dict[str, Any]:
        self.resolve_calls.append((project_id, features, scenarios))
        return self.resolve_body

    def submit_delta(self, delta: SyncDelta) -> SyncOutcome:
        self.submitted.append(delta)
        return self.outcome


@pytest.fixture
def make_repo() -> Callable[..., FakeRepository]:
    return FakeRepository


@pytest.fixture
def make_client() -> Callable[..., FakeSyncClient]:
    return FakeSyncClient


# ---------------------------------------------------------------------------
# Real git repositories
# ---------------------------------------------------------------------------


class GitWorkspace:
    """Helper around a throwaway git repository in ``tmp_path``."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        self.git("init", "-q")
        self.git("config", "user.email", "sync@example.com")
        self.git("config", "user.name", "Sync Tests")
        self.git("config", "commit.gpgsign", "false")

    def git(self, *args: str) -> str:
        result = subprocess.run(
            ["git", *args],
            cwd=self.root,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()

    def write(self, rel_path: str, content: str | bytes) -> None:
        target = self.root / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")

    def commit(self, message: str) -> str:
        self.git("add", "-A")
        self.git("commit", "-q", "-m", message)
        return self.git("rev-parse", "HEAD")


@pytest.fixture
def git_workspace(tmp_path: Path) -> GitWorkspace:
    return GitWorkspace(tmp_path / "repo")

"""Tests for gherkin_sync.sync.engine -- the sync orchestrator.

The engine runs against in-memory repository and client doubles from
conftest.py, so every stage can be observed without git or a network.
"""

import json
import re
from unittest.mock import MagicMock

import pytest

from gherkin_sync.core.git import WorkingTreeStatus
from gherkin_sync.errors import (
    ApiError,
    ConfigurationError,
    GitError,
    PayloadWriteError,
)
from gherkin_sync.sync.engine import SyncEngine
from gherkin_sync.sync.extractor import extract
from gherkin_sync.sync.models import SyncOutcome, SyncStage

from conftest import (
    ACCOUNT_SETTINGS_FEATURE,
    ACCOUNT_SETTINGS_PATH,
    USER_LOGIN_FEATURE,
    USER_LOGIN_PATH,
)

PROJECT_ID = 42


def _initial_repo(make_repo, **kwargs):
    return make_repo(
        {
            "c1": {
                USER_LOGIN_PATH: USER_LOGIN_FEATURE,
                ACCOUNT_SETTINGS_PATH: ACCOUNT_SETTINGS_FEATURE,
                "README.md": "# docs\n",
            }
        },
        head="c1",
        **kwargs,
    )


def _engine(client, repo, **kwargs):
    messages = []
    engine = SyncEngine(
        client=client,
        repo=repo,
        project_id=PROJECT_ID,
        progress=messages.append,
        **kwargs,
    )
    return engine, messages


# -------------------------------------------------------------------------
# Initial sync
# -------------------------------------------------------------------------


class TestInitialSync:
    def test_every_tracked_spec_file_is_added(self, make_repo, make_client):
        client = make_client(
            outcome=SyncOutcome(created_suites=2, created_cases=3)
        )
        engine, _ = _engine(client, _initial_repo(make_repo))

        report = engine.run()

        assert report.stage == SyncStage.REPORTING_RESULTS
        assert engine.stage == SyncStage.REPORTING_RESULTS
        assert report.outcome.created_cases == 3
        delta = client.submitted[0]
        payload = delta.to_payload()
        assert payload["projectId"] == PROJECT_ID
        assert payload["prevCommit"] is None
        assert payload["headCommit"] == "c1"
        assert [c["status"] for c in payload["changes"]] == ["A", "A"]
        assert {c["newPath"] for c in payload["changes"]} == {
            USER_LOGIN_PATH,
            ACCOUNT_SETTINGS_PATH,
        }

    def test_resolve_skipped(self, make_repo, make_client):
        client = make_client()
        engine, _ = _engine(client, _initial_repo(make_repo))
        engine.run()
        assert client.resolve_calls == []

    def test_scenarios_carry_steps_and_no_ids(self, make_repo, make_client):
        client = make_client()
        engine, _ = _engine(client, _initial_repo(make_repo))
        engine.run()

        changes = {c.new_path: c for c in client.submitted[0].changes}
        login = changes[USER_LOGIN_PATH]
        assert len(login.scenarios) == 2
        assert len(login.feature.background) == 2
        assert all(s.steps for s in login.scenarios)
        assert all(s.case_id is None and s.prev_hash is None for s in login.scenarios)
        assert len(changes[ACCOUNT_SETTINGS_PATH].scenarios) == 1

    def test_two_file_example_delta(self, make_repo, make_client):
        """Login feature (2-step background, 2 scenarios) and account settings
        (no background, 1 scenario) committed together, never synced."""
        repo = make_repo(
            {
                "c1": {
                    USER_LOGIN_PATH: USER_LOGIN_FEATURE,
                    ACCOUNT_SETTINGS_PATH: ACCOUNT_SETTINGS_FEATURE,
                }
            },
            head="c1",
        )
        client = make_client()
        engine, _ = _engine(client, repo)
        engine.run()

        payload = client.submitted[0].to_payload()
        assert payload["prevCommit"] is None
        assert len(payload["changes"]) == 2
        first, second = payload["changes"]
        assert first["status"] == second["status"] == "A"
        assert first["oldPath"] is None
        assert first["feature"]["title"] == "User Login"
        assert len(first["feature"]["background"]) == 2
        assert len(first["scenarios"]) == 2
        for scenario in first["scenarios"]:
            assert scenario["steps"]
            assert re.fullmatch(r"[0-9a-f]{40}", scenario["hash"])
        assert "background" not in second["feature"]
        assert len(second["scenarios"]) == 1


# -------------------------------------------------------------------------
# No-op runs
# -------------------------------------------------------------------------


class TestNoOp:
    def test_already_up_to_date(self, make_repo, make_client):
        client = make_client(last_synced="c1")
        engine, messages = _engine(client, _initial_repo(make_repo))

        report = engine.run()

        assert report.stage == SyncStage.NO_OP
        assert report.delta is None
        assert client.submitted == []
        assert client.resolve_calls == []
        assert "Already up to date, no sync needed" in messages

    def test_no_spec_changes(self, make_repo, make_client):
        repo = make_repo(
            {"c1": {}, "c2": {}},
            head="c2",
            diffs={("c1", "c2"): ["M\tREADME.md", "A\tsrc/app.py"]},
        )
        client = make_client(last_synced="c1")
        engine, messages = _engine(client, repo)

        report = engine.run()

        assert report.stage == SyncStage.NO_OP
        assert client.submitted == []
        assert "No changes to sync" in messages

    def test_second_run_is_idempotent(self, make_repo, make_client):
        client = make_client()
        repo = _initial_repo(make_repo)
        engine, _ = _engine(client, repo)
        engine.run()

        client.last_synced = "c1"
        assert engine.run().stage == SyncStage.NO_OP
        assert len(client.submitted) == 1


# -------------------------------------------------------------------------
# Incremental runs
# -------------------------------------------------------------------------


class TestIncrementalSync:
    def test_pure_rename_links_identities(self, make_repo, make_client):
        new_path = "features/authentication/user_login.feature"
        repo = make_repo(
            {
                "c1": {USER_LOGIN_PATH: USER_LOGIN_FEATURE},
                "c2": {new_path: USER_LOGIN_FEATURE},
            },
            head="c2",
            diffs={("c1", "c2"): [f"R100\t{USER_LOGIN_PATH}\t{new_path}"]},
        )
        old_doc = extract(USER_LOGIN_FEATURE, USER_LOGIN_PATH)
        client = make_client(
            last_synced="c1",
            resolve_body={
                "results": {
                    "suites": {old_doc.feature_hash: {"suiteId": 7}},
                    "cases": {
                        old_doc.scenarios[0].hash: {"caseId": 70},
                        old_doc.scenarios[1].hash: {"caseId": 71},
                    },
                }
            },
        )
        engine, _ = _engine(client, repo)

        engine.run()

        assert client.resolve_calls == [
            (PROJECT_ID, [old_doc.feature_hash], old_doc.scenario_hashes)
        ]
        change = client.submitted[0].to_payload()["changes"][0]
        assert change["status"] == "R100"
        assert change["oldPath"] == USER_LOGIN_PATH
        assert change["newPath"] == new_path
        assert change["feature"]["prevHash"] == old_doc.feature_hash
        assert change["feature"]["suiteId"] == 7
        assert [s["caseId"] for s in change["scenarios"]] == [70, 71]
        assert all("steps" not in s for s in change["scenarios"])

    def test_deleted_file(self, make_repo, make_client):
        repo = make_repo(
            {"c1": {ACCOUNT_SETTINGS_PATH: ACCOUNT_SETTINGS_FEATURE}, "c2": {}},
            head="c2",
            diffs={("c1", "c2"): [f"D\t{ACCOUNT_SETTINGS_PATH}"]},
        )
        client = make_client(last_synced="c1")
        engine, _ = _engine(client, repo)

        engine.run()

        assert client.submitted[0].to_payload()["changes"] == [
            {"status": "D", "oldPath": ACCOUNT_SETTINGS_PATH, "newPath": None}
        ]
        old_doc = extract(ACCOUNT_SETTINGS_FEATURE, ACCOUNT_SETTINGS_PATH)
        assert client.resolve_calls[0][1] == [old_doc.feature_hash]

    def test_unprocessable_file_is_skipped(self, make_repo, make_client):
        repo = make_repo(
            {
                "c1": {},
                "c2": {
                    "broken.feature": "Given an orphan step\n",
                    ACCOUNT_SETTINGS_PATH: ACCOUNT_SETTINGS_FEATURE,
                },
            },
            head="c2",
            diffs={
                ("c1", "c2"): [
                    "A\tbroken.feature",
                    f"A\t{ACCOUNT_SETTINGS_PATH}",
                ]
            },
        )
        client = make_client(last_synced="c1")
        engine, messages = _engine(client, repo)

        report = engine.run()

        assert [c.new_path for c in client.submitted[0].changes] == [
            ACCOUNT_SETTINGS_PATH
        ]
        assert [r.change.new_path for r in report.skipped] == ["broken.feature"]
        assert any("could not process broken.feature" in m for m in messages)


# -------------------------------------------------------------------------
# Dry run and payload output
# -------------------------------------------------------------------------


class TestDryRun:
    def test_nothing_submitted(self, make_repo, make_client):
        client = make_client()
        engine, messages = _engine(client, _initial_repo(make_repo))

        report = engine.run(dry_run=True)

        assert client.submitted == []
        assert report.dry_run
        assert report.outcome is None
        assert len(report.delta.changes) == 2
        assert report.stage == SyncStage.REPORTING_RESULTS
        assert "Dry run: payload not submitted" in messages

    def test_payload_file_written(self, make_repo, make_client, tmp_path):
        target = tmp_path / "delta.json"
        client = make_client()
        engine, _ = _engine(
            client, _initial_repo(make_repo), payload_file=target
        )

        engine.run(dry_run=True)

        data = json.loads(target.read_text(encoding="utf-8"))
        assert data["headCommit"] == "c1"
        assert len(data["changes"]) == 2

    def test_unwritable_payload_file_fails_before_submit(
        self, make_repo, make_client, tmp_path
    ):
        target = tmp_path / "missing-dir" / "delta.json"
        client = make_client()
        engine, _ = _engine(
            client, _initial_repo(make_repo), payload_file=target
        )

        with pytest.raises(PayloadWriteError, match="Could not write payload"):
            engine.run()

        assert engine.stage == SyncStage.FAILED
        assert client.submitted == []

    def test_debug_echoes_diff_and_payload(self, make_repo, make_client):
        repo = make_repo(
            {"c1": {}, "c2": {ACCOUNT_SETTINGS_PATH: ACCOUNT_SETTINGS_FEATURE}},
            head="c2",
            diffs={("c1", "c2"): [f"A\t{ACCOUNT_SETTINGS_PATH}"]},
        )
        client = make_client(last_synced="c1")
        engine, messages = _engine(client, repo, debug=True)

        engine.run(dry_run=True)

        assert f"  A\t{ACCOUNT_SETTINGS_PATH}" in messages
        assert any('"headCommit": "c2"' in m for m in messages)


# -------------------------------------------------------------------------
# Failures
# -------------------------------------------------------------------------


class TestFailures:
    def test_not_a_repository(self, make_repo, make_client):
        engine, _ = _engine(make_client(), _initial_repo(make_repo, is_repo=False))
        with pytest.raises(ConfigurationError, match="Not in a Git repository"):
            engine.run()
        assert engine.stage == SyncStage.FAILED

    def test_submit_error_fails_run(self, make_repo, make_client):
        client = make_client()
        client.submit_delta = MagicMock(side_effect=ApiError("Sync failed: nope", 400))
        engine, _ = _engine(client, _initial_repo(make_repo))

        with pytest.raises(ApiError, match="nope"):
            engine.run()
        assert engine.stage == SyncStage.FAILED

    def test_state_error_fails_run(self, make_repo, make_client):
        client = make_client()
        client.fetch_sync_state = MagicMock(
            side_effect=ApiError("Failed to fetch sync state: Unauthorized", 401)
        )
        engine, _ = _engine(client, _initial_repo(make_repo))

        with pytest.raises(ApiError):
            engine.run()
        assert engine.stage == SyncStage.FAILED
        assert client.submitted == []

    def test_resolve_error_fails_run(self, make_repo, make_client):
        repo = make_repo(
            {"c1": {USER_LOGIN_PATH: USER_LOGIN_FEATURE}, "c2": {USER_LOGIN_PATH: USER_LOGIN_FEATURE}},
            head="c2",
            diffs={("c1", "c2"): [f"M\t{USER_LOGIN_PATH}"]},
        )
        client = make_client(last_synced="c1")
        client.resolve_ids = MagicMock(side_effect=ApiError("Failed to resolve IDs: down"))
        engine, _ = _engine(client, repo)

        with pytest.raises(ApiError):
            engine.run()
        assert client.submitted == []


# -------------------------------------------------------------------------
# Uncommitted files
# -------------------------------------------------------------------------


class TestUncommittedWarning:
    def test_lists_spec_files(self, make_repo, make_client):
        status = WorkingTreeStatus(
            modified=[USER_LOGIN_PATH], untracked=["notes.txt", "draft.feature"]
        )
        engine, messages = _engine(
            make_client(last_synced="c1"), _initial_repo(make_repo, status=status)
        )

        report = engine.run()

        assert report.stage == SyncStage.NO_OP
        assert f"  {USER_LOGIN_PATH}" in messages
        assert "  draft.feature" in messages
        assert "  notes.txt" not in messages

    def test_disabled(self, make_repo, make_client):
        status = WorkingTreeStatus(modified=[USER_LOGIN_PATH])
        engine, messages = _engine(
            make_client(last_synced="c1"),
            _initial_repo(make_repo, status=status),
            warn_uncommitted=False,
        )
        engine.run()
        assert f"  {USER_LOGIN_PATH}" not in messages

    def test_status_failure_does_not_block(self, make_repo, make_client):
        repo = _initial_repo(make_repo)
        repo.working_tree_status = MagicMock(side_effect=GitError("status failed"))
        engine, _ = _engine(make_client(last_synced="c1"), repo)
        assert engine.run().stage == SyncStage.NO_OP

"""Resolve old content hashes to existing remote suite and case ids.

All old hashes of a run are gathered first and resolved with a single
request.  When there is nothing to resolve (initial sync, or only
additions) no request is made at all.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from .models import IdentityMap, ProcessedChange, RemoteCase, RemoteSuite

if TYPE_CHECKING:
    from ..core.client import SyncApiClient

logger = logging.getLogger(__name__)


def collect_old_hashes(
    changes: Iterable[ProcessedChange],
) -> tuple[list[str], list[str]]:
    """Return the unique old feature and scenario hashes, in first-seen order."""
    features: dict[str, None] = {}
    scenarios: dict[str, None] = {}
    for processed in changes:
        if processed.old_feature_hash:
            features[processed.old_feature_hash] = None
        for scenario_hash in processed.old_scenario_hashes:
            scenarios[scenario_hash] = None
    return list(features), list(scenarios)


def _remote_id(entry: Any, key: str) -> int | None:
    """Pull an id out of a resolved entry; accepts ``{key: n}``, ``{"id": n}`` or ``n``."""
    if isinstance(entry, dict):
        value = entry.get(key, entry.get("id"))
    else:
        value = entry
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_identity_response(body: dict[str, Any]) -> IdentityMap:
    """Unwrap ``{"results": {"suites": {...}, "cases": {...}}}`` into an ``IdentityMap``.

    Missing levels default to empty mappings; entries without a usable id
    are skipped.
    """
    results = body.get("results") or {}
    suites: dict[str, RemoteSuite] = {}
    cases: dict[str, RemoteCase] = {}

    for feature_hash, entry in (results.get("suites") or {}).items():
        suite_id = _remote_id(entry, "suiteId")
        if suite_id is not None:
            suites[feature_hash] = RemoteSuite(suite_id=suite_id)

    for scenario_hash, entry in (results.get("cases") or {}).items():
        case_id = _remote_id(entry, "caseId")
        if case_id is not None:
            cases[scenario_hash] = RemoteCase(case_id=case_id)

    return IdentityMap(suites=suites, cases=cases)


class IdentityResolver:
    """Batch-resolve old hashes through the sync service.

    Args:
        client: Service client used for the resolve call.
    """

    def __init__(self, client: SyncApiClient) -> None:
        self.client = client

    def resolve(
        self,
        project_id: int,
        feature_hashes: Iterable[str],
        scenario_hashes: Iterable[str],
    ) -> IdentityMap:
        """Resolve hashes; errors from the client propagate (fatal for the run)."""
        features = list(feature_hashes)
        scenarios = list(scenario_hashes)
        if not features and not scenarios:
            logger.debug("No old hashes to resolve, skipping request")
            return IdentityMap()

        logger.info(
            "Resolving %d feature and %d scenario hashes",
            len(features),
            len(scenarios),
        )
        body = self.client.resolve_ids(project_id, features, scenarios)
        identities = parse_identity_response(body)
        logger.info(
            "Resolved %d suites and %d cases",
            len(identities.suites),
            len(identities.cases),
        )
        return identities

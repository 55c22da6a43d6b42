"""HTTP client for the test-management service's BDD sync endpoints.

Three calls make up the contract:

- ``GET  /bdd/sync``         -- last synced commit for a project.
- ``POST /bdd/resolve-ids``  -- map old content hashes to remote ids.
- ``POST /bdd/sync``         -- apply a ``SyncDelta``.

The API token travels as the ``token`` query parameter.  Any transport
failure or non-2xx answer raises ``ApiError``; nothing is retried.
"""

from __future__ import annotations

import logging
from typing import Any

import requests
from pydantic import ValidationError

from ..config import Config
from ..errors import ApiError
from ..sync.models import SyncDelta, SyncOutcome

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10


class SyncApiClient:
    def __init__(self, config: Config):
        self.config = config
        self.base_url = config.api_url.rstrip("/")
        self._session: requests.Session | None = None

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({"Content-Type": "application/json"})
        return session

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """Best description of a failed response: JSON ``message``, body text, status."""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        text = (response.text or "").strip()
        if text:
            return text
        return f"API request failed ({response.status_code})"

    def _request(
        self,
        method: str,
        endpoint: str,
        action: str,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """
        Make a request to the service and return the decoded JSON body.
        """
        url = f"{self.base_url}{endpoint}"
        query = {"token": self.config.token, **(params or {})}
        logger.debug("%s %s", method, url)

        try:
            response = self.session.request(
                method,
                url,
                params=query,
                json=payload,
                timeout=(CONNECT_TIMEOUT, self.config.request_timeout),
            )
        except requests.RequestException as e:
            raise ApiError(f"{action}: could not reach {self.base_url}: {e}") from e

        logger.debug("%s %s -> %s", method, url, response.status_code)
        if not response.ok:
            raise ApiError(
                f"{action}: {self._error_message(response)}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                f"{action}: response was not valid JSON",
                status_code=response.status_code,
            ) from e

    def fetch_sync_state(self, project_id: int) -> str | None:
        """
        Return the last synced commit for *project_id*, or ``None`` if never synced.
        """
        data = self._request(
            "GET",
            "/bdd/sync",
            "Failed to fetch sync state",
            params={"project": project_id},
        )
        if not isinstance(data, dict):
            return None
        return data.get("lastSyncedCommit") or None

    def resolve_ids(
        self,
        project_id: int,
        features: list[str],
        scenarios: list[str],
    ) -> dict[str, Any]:
        """
        Ask the service which remote suites/cases the given hashes belong to.

        Empty hash lists are omitted from the request body.  Returns the
        raw response body; ``sync.identity`` unwraps it.
        """
        payload: dict[str, Any] = {"projectId": project_id}
        if features:
            payload["features"] = features
        if scenarios:
            payload["scenarios"] = scenarios

        data = self._request(
            "POST", "/bdd/resolve-ids", "Failed to resolve IDs", payload=payload
        )
        return data if isinstance(data, dict) else {}

    def submit_delta(self, delta: SyncDelta) -> SyncOutcome:
        """
        Submit the full delta in a single request and return the service's counts.
        """
        data = self._request(
            "POST", "/bdd/sync", "Sync failed", payload=delta.to_payload()
        )
        if not isinstance(data, dict):
            return SyncOutcome()
        try:
            return SyncOutcome.model_validate(
                {k: v for k, v in data.items() if v is not None}
            )
        except ValidationError as e:
            raise ApiError(
                f"Sync failed: unexpected response from service: {e}"
            ) from e

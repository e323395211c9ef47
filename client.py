from __future__ import annotations

import logging
from typing import Any

import requests

from event_mode import EventStateError
from submission import SubmissionTransportError, SubmitStatus

logger = logging.getLogger(__name__)


class _ApiClient:
    def __init__(self, base_url: str, *, timeout: float = 5.0, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"


class HttpEventStateSource(_ApiClient):
    def fetch(self, identity: str) -> dict[str, Any]:
        try:
            response = self.session.post(
                self._url("/api/event-state"),
                json={"playerName": identity},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise EventStateError(f"event state request failed: {e}") from e
        if not response.ok:
            raise EventStateError(f"event state request returned HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise EventStateError("event state response was not JSON") from e


class HttpScoreSubmitter(_ApiClient):
    def submit(self, identity: str, elapsed_seconds: int, contact: str | None = None) -> SubmitStatus:
        try:
            response = self.session.post(
                self._url("/api/finish"),
                json={"playerName": identity, "contactNumber": contact, "time": elapsed_seconds},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SubmissionTransportError(str(e)) from e
        if response.status_code == 409:
            return SubmitStatus.DUPLICATE
        if 200 <= response.status_code < 300:
            return SubmitStatus.ACCEPTED
        logger.warning("Score submission returned HTTP %s", response.status_code)
        return SubmitStatus.FAILED


def fetch_leaderboard(
    base_url: str,
    *,
    limit: int = 20,
    timeout: float = 5.0,
    session: requests.Session | None = None,
) -> list[dict[str, Any]]:
    http = session or requests.Session()
    response = http.get(f"{base_url.rstrip('/')}/api/leaderboard", params={"limit": limit}, timeout=timeout)
    response.raise_for_status()
    return response.json()

"""HTTP client for the opsdesk server API (operator bearer token)."""

from __future__ import annotations

from typing import Any

import requests

_DEFAULT_TIMEOUT = 10.0


class ServerError(Exception):
    """Server call failed (network, HTTP status or invalid JSON)."""

    pass


class ServerClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._session = session or requests.Session()

    def _request(self, method: str, path: str, json: Any = None) -> Any:
        try:
            resp = self._session.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                headers={"Authorization": f"Bearer {self.token}", "Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ServerError(f"server request failed: {type(e).__name__}") from e

        if not resp.ok:
            raise ServerError(f"server returned HTTP {resp.status_code} for {path}")
        try:
            return resp.json()
        except ValueError as e:
            raise ServerError("server returned invalid JSON") from e

    def save_notifications(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return self._request("POST", "/api/notifications/save", {"messages": messages})["results"]

    def save_cancellations(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return self._request(
            "POST", "/api/notifications/save-cancellations", {"messages": messages}
        )["results"]

    def unread_count(self) -> int:
        return self._request("GET", "/notifications/unread-count")["count"]

    def unread_cancellations_count(self) -> int:
        return self._request("GET", "/cancellations/unread-count")["count"]

"""HTTP client for the upstream chat relay.

Endpoints (base URL from UPSTREAM_API_URL):
- GET {base}/messages/recent?hours=n
- GET {base}/cancellations/recent?hours=n

Both answer ``{"messages": [RawMessage, ...]}`` and require ``X-API-Key``.
"""

from __future__ import annotations

import os
from typing import Any

import requests

from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
TIMEOUT_MESSAGE = "upstream request timed out"


class UpstreamError(Exception):
    """Transient upstream failure (network, timeout, HTTP status, bad JSON)."""

    pass


class UpstreamConfigError(UpstreamError):
    """Upstream URL or API key missing or malformed."""

    pass


class UpstreamClient:
    """Fetches recent message batches from the upstream relay."""

    def __init__(
        self,
        base_url: str | None,
        api_key: str | None,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = (base_url or "").strip().rstrip("/")
        self.api_key = (api_key or "").strip()
        self.timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_env(cls) -> "UpstreamClient":
        """Build a client from UPSTREAM_API_URL / UPSTREAM_API_KEY / UPSTREAM_TIMEOUT_SECONDS."""
        timeout = float(os.environ.get("UPSTREAM_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))
        return cls(
            os.environ.get("UPSTREAM_API_URL"),
            os.environ.get("UPSTREAM_API_KEY"),
            timeout=timeout,
        )

    def validate(self) -> None:
        """Check configuration before any request is made.

        Raises:
            UpstreamConfigError: Missing key/URL, or URL without http(s) scheme.
        """
        if not self.api_key:
            raise UpstreamConfigError("upstream API key is not configured")
        if not self.base_url:
            raise UpstreamConfigError("upstream API URL is not configured")
        if not self.base_url.startswith(("http://", "https://")):
            raise UpstreamConfigError("upstream API URL must start with http:// or https://")

    def get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """GET {base}/{path} and decode the JSON body.

        Raises:
            UpstreamConfigError: Invalid configuration.
            UpstreamError: Timeout, connection error, non-2xx or invalid JSON.
        """
        self.validate()
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {"X-API-Key": self.api_key, "Accept": "application/json"}

        try:
            resp = self._session.get(
                url,
                params=params,
                headers=headers,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except requests.Timeout as e:
            raise UpstreamError(TIMEOUT_MESSAGE) from e
        except requests.RequestException as e:
            raise UpstreamError(f"upstream request failed: {type(e).__name__}") from e

        if not 200 <= resp.status_code < 300:
            logger.warning(
                "upstream returned error status",
                extra={
                    "extra_fields": safe_log_context(
                        path=path,
                        status_code=resp.status_code,
                    )
                },
            )
            raise UpstreamError(f"upstream returned HTTP {resp.status_code}")

        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError("upstream returned invalid JSON") from e

    def fetch_recent(self, path: str, hours: int) -> list[dict[str, Any]]:
        """Fetch the batch for one stream over the last ``hours`` hours."""
        data = self.get_json(path, {"hours": hours})
        if not isinstance(data, dict):
            raise UpstreamError("upstream returned an unexpected payload")

        messages = data.get("messages")
        if messages is None:
            messages = data.get("cancellations", [])
        if not isinstance(messages, list):
            raise UpstreamError("upstream returned an unexpected payload")
        return messages

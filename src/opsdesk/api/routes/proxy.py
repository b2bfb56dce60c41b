"""Upstream relay proxy for clients that cannot reach the upstream directly.

GET /api/proxy/{path} forwards to {UPSTREAM_API_URL}/{path} with the caller's
X-API-Key. Successful JSON answers are cached for 5 seconds per API key,
path and query so bursts of identical polls hit the upstream once. A cached
body is only served to a caller presenting the same key it was fetched with.
"""

from __future__ import annotations

import hashlib
import os
import threading
import time
from typing import Any

import requests
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context

router = APIRouter(prefix="/api/proxy", tags=["proxy"])

logger = get_logger(__name__)

_CACHE_TTL = 5.0
_DEFAULT_TIMEOUT_SECONDS = 15.0

# Response cache: key -> (stored_at, body)
_cache: dict[str, tuple[float, Any]] = {}
_cache_lock = threading.Lock()


def _cache_get(key: str) -> Any | None:
    with _cache_lock:
        item = _cache.get(key)
        if item is None:
            return None
        if time.time() - item[0] >= _CACHE_TTL:
            del _cache[key]
            return None
        return item[1]


def _cache_put(key: str, body: Any) -> None:
    with _cache_lock:
        now = time.time()
        for stale in [k for k, (at, _) in _cache.items() if now - at >= _CACHE_TTL]:
            del _cache[stale]
        _cache[key] = (now, body)


def clear_cache() -> None:
    with _cache_lock:
        _cache.clear()


@router.get("/{path:path}")
def proxy_get(path: str, request: Request) -> JSONResponse:
    """Forward a GET to the upstream relay."""
    api_key = request.headers.get("X-API-Key")
    if not api_key:
        return JSONResponse(status_code=401, content={"error": "API key is required"})

    query = sorted(request.query_params.multi_items())
    key_digest = hashlib.sha256(api_key.encode()).hexdigest()
    cache_key = f"{key_digest}:{path}?{query}"

    cached = _cache_get(cache_key)
    if cached is not None:
        return JSONResponse(status_code=200, content=cached)

    base_url = os.environ.get("UPSTREAM_API_URL", "").rstrip("/")
    if not base_url.startswith(("http://", "https://")):
        return JSONResponse(status_code=500, content={"error": "Upstream not configured"})

    timeout = float(os.environ.get("PROXY_TIMEOUT_SECONDS", _DEFAULT_TIMEOUT_SECONDS))

    try:
        resp = requests.get(
            f"{base_url}/{path}",
            params=query,
            headers={"Accept": "application/json", "X-API-Key": api_key},
            timeout=timeout,
        )
    except requests.Timeout:
        logger.warning(
            "proxy upstream timeout",
            extra={"extra_fields": safe_log_context(path=path, timeout=timeout)},
        )
        return JSONResponse(status_code=504, content={"error": "Upstream request timed out"})
    except requests.RequestException as e:
        logger.error(
            "proxy upstream error",
            extra={"extra_fields": safe_log_context(path=path, error_type=type(e).__name__)},
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Proxy server error", "details": type(e).__name__},
        )

    is_json = "application/json" in resp.headers.get("content-type", "")
    if is_json:
        try:
            body: Any = resp.json()
        except ValueError:
            is_json = False
            body = resp.text
    else:
        body = resp.text

    if resp.ok and is_json:
        _cache_put(cache_key, body)

    return JSONResponse(status_code=resp.status_code, content=body)

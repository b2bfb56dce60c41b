"""Operator bearer-token authentication.

Provides:
- issue_token(): Sign an HS256 operator token (sub = user id)
- verify_token(): Validate a token and return the user id
- get_current_user(): FastAPI dependency for the authenticated operator
- require_internal_api_key(): FastAPI dependency for internal callers
"""

from __future__ import annotations

import hmac
import os
import time
from dataclasses import dataclass

import jwt
from fastapi import HTTPException, Request

from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context

logger = get_logger(__name__)

_ALGORITHM = "HS256"
_DEFAULT_TTL_SECONDS = 12 * 3600


@dataclass
class CurrentUser:
    """Authenticated operator context."""

    id: int
    email: str | None
    name: str | None


def _get_secret() -> str:
    secret = os.environ.get("AUTH_JWT_SECRET")
    if not secret:
        raise HTTPException(status_code=401, detail="Auth not configured")
    return secret


def issue_token(user_id: int, *, secret: str | None = None, ttl_seconds: int = _DEFAULT_TTL_SECONDS) -> str:
    """Sign an operator token for user_id."""
    now = int(time.time())
    payload = {"sub": str(user_id), "iat": now, "exp": now + ttl_seconds}
    return jwt.encode(payload, secret or _get_secret(), algorithm=_ALGORITHM)


def verify_token(token: str) -> int:
    """Verify JWT and return the user id from the subject claim.

    Raises:
        HTTPException: 401 if token is invalid or expired.
    """
    secret = _get_secret()

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")


def _extract_bearer_token(request: Request) -> str:
    """Extract Bearer token from Authorization header.

    Raises:
        HTTPException: 401 if header missing or malformed.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    return parts[1]


def _get_user_from_db(user_id: int) -> CurrentUser | None:
    from opsdesk.infra.db import txn

    with txn() as cur:
        cur.execute("SELECT id, email, name FROM users WHERE id = %s", (user_id,))
        row = cur.fetchone()
        if row is None:
            return None
        return CurrentUser(id=row[0], email=row[1], name=row[2])


def get_current_user(request: Request) -> CurrentUser:
    """FastAPI dependency: get authenticated operator.

    Raises:
        HTTPException: 401 if token invalid/missing, 403 if user not found.
    """
    token = _extract_bearer_token(request)
    user_id = verify_token(token)

    user = _get_user_from_db(user_id)
    if user is None:
        raise HTTPException(status_code=403, detail="User not found")

    return user


def require_internal_api_key(request: Request) -> None:
    """FastAPI dependency: require X-API-Key == INTERNAL_API_KEY.

    Fail-closed when INTERNAL_API_KEY is not configured.
    """
    expected = os.environ.get("INTERNAL_API_KEY", "")
    provided = request.headers.get("X-API-Key", "")

    if not expected:
        logger.error(
            "INTERNAL_API_KEY not configured - fail closed",
            extra={"extra_fields": safe_log_context(path=request.url.path)},
        )
        raise HTTPException(status_code=401, detail="Unauthorized")

    if not provided or not hmac.compare_digest(provided, expected):
        logger.warning(
            "internal auth failed",
            extra={
                "extra_fields": safe_log_context(
                    path=request.url.path,
                    has_key=bool(provided),
                )
            },
        )
        raise HTTPException(status_code=401, detail="Unauthorized")


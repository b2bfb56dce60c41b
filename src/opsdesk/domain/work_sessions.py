"""Work session lifecycle.

A work session is an operator's shift over a set of cabinets. Only open
sessions (end_time IS NULL) receive routed notifications, and a user has at
most one open session at a time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from opsdesk.infra.time import utc_now
from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context

from .store import Store

logger = get_logger(__name__)


class ActiveSessionExistsError(Exception):
    """Raised when the user already has an open work session."""

    pass


class WorkSessionNotFoundError(Exception):
    """Raised when the session does not exist or belongs to another user."""

    pass


class WorkSessionClosedError(Exception):
    """Raised when ending a session that is already closed."""

    pass


def _require_session(tx, user_id: int, session_id: int):
    session = tx.get_session(user_id, session_id)
    if session is None:
        raise WorkSessionNotFoundError(f"Work session {session_id} not found")
    return session


def start_session(
    store: Store,
    user_id: int,
    *,
    cabinet_ids: list[int] | None = None,
    comment: str | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> dict[str, Any]:
    """Open a new work session for the user.

    Raises:
        ActiveSessionExistsError: If the user already has an open session.
    """
    with store.transaction() as tx:
        if tx.get_active_session(user_id) is not None:
            raise ActiveSessionExistsError(user_id)
        session_id = tx.insert_session(user_id, clock(), comment)
        tx.link_cabinets(session_id, list(cabinet_ids or []))
        session = tx.get_session(user_id, session_id)

    logger.info(
        "work session started",
        extra={
            "extra_fields": safe_log_context(
                user_id=user_id,
                session_id=session_id,
                cabinet_count=len(session.cabinets),
            )
        },
    )
    return session.to_dict()


def end_session(
    store: Store,
    user_id: int,
    session_id: int,
    *,
    clock: Callable[[], datetime] = utc_now,
) -> dict[str, Any]:
    """Close an open session and record its duration in whole seconds.

    Raises:
        WorkSessionNotFoundError: Unknown session.
        WorkSessionClosedError: Session already closed.
    """
    with store.transaction() as tx:
        session = _require_session(tx, user_id, session_id)
        if not session.is_active:
            raise WorkSessionClosedError(f"Work session {session_id} is already closed")

        end_time = clock()
        duration = max(0, int((end_time - session.start_time).total_seconds()))
        tx.close_session(session_id, end_time, duration)
        session = tx.get_session(user_id, session_id)

    logger.info(
        "work session ended",
        extra={
            "extra_fields": safe_log_context(
                user_id=user_id,
                session_id=session_id,
                duration_seconds=duration,
            )
        },
    )
    return session.to_dict()


def get_active_session(store: Store, user_id: int) -> dict[str, Any] | None:
    with store.transaction() as tx:
        session = tx.get_active_session(user_id)
    return session.to_dict() if session else None


def list_sessions(store: Store, user_id: int) -> list[dict[str, Any]]:
    with store.transaction() as tx:
        sessions = tx.list_sessions(user_id)
    return [s.to_dict() for s in sessions]


def update_comment(store: Store, user_id: int, session_id: int, comment: str) -> dict[str, Any]:
    with store.transaction() as tx:
        _require_session(tx, user_id, session_id)
        tx.update_session_comment(session_id, comment)
        session = tx.get_session(user_id, session_id)
    return session.to_dict()


def add_cabinets(
    store: Store, user_id: int, session_id: int, cabinet_ids: list[int]
) -> dict[str, Any]:
    """Attach cabinets to a session, open or closed."""
    with store.transaction() as tx:
        _require_session(tx, user_id, session_id)
        tx.link_cabinets(session_id, list(cabinet_ids))
        session = tx.get_session(user_id, session_id)
    return session.to_dict()


def remove_cabinet(
    store: Store, user_id: int, session_id: int, cabinet_id: int
) -> dict[str, Any]:
    with store.transaction() as tx:
        _require_session(tx, user_id, session_id)
        tx.unlink_cabinet(session_id, cabinet_id)
        session = tx.get_session(user_id, session_id)
    return session.to_dict()


def list_cabinets(store: Store) -> list[dict[str, Any]]:
    with store.transaction() as tx:
        cabinets = tx.list_cabinets()
    return [c.to_dict() for c in cabinets]

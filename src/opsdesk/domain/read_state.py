"""Read-state store: per-user notification flags, global cancellation flags.

Every operation degrades gracefully while the schema is not migrated:
reads return empty results, bulk marks report success, single marks report
``{"success": False, "reason": "initializing"}``.
"""

from __future__ import annotations

from typing import Any

from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context

from .store import SchemaNotReadyError, Store

logger = get_logger(__name__)

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100

_NOT_READY = {"success": False, "reason": "initializing"}


class NotificationNotFoundError(Exception):
    """Raised when the notification does not exist."""

    pass


class NotificationAccessDeniedError(Exception):
    """Raised when the notification belongs to another user."""

    pass


class CancellationNotFoundError(Exception):
    """Raised when the cancellation does not exist."""

    pass


def _log_degraded(operation: str) -> None:
    logger.info(
        "read-state degraded, schema not ready",
        extra={"extra_fields": safe_log_context(operation=operation)},
    )


def clamp_limit(limit: int | None) -> int:
    if limit is None:
        return DEFAULT_PAGE_LIMIT
    return max(1, min(MAX_PAGE_LIMIT, limit))


# Notifications (per user)


def get_unread_notifications(store: Store, user_id: int) -> list[dict[str, Any]]:
    try:
        with store.transaction() as tx:
            items = tx.list_unread_notifications(user_id)
    except SchemaNotReadyError:
        _log_degraded("get_unread_notifications")
        return []
    return [n.to_dict() for n in items]


def get_all_notifications(
    store: Store,
    user_id: int,
    *,
    limit: int | None = DEFAULT_PAGE_LIMIT,
    cursor: int | None = None,
) -> dict[str, Any]:
    """Page through a user's notifications, newest first.

    One extra row is fetched to decide whether another page exists;
    ``next_cursor`` is the id of the last returned row, or None on the last page.
    """
    page_size = clamp_limit(limit)
    try:
        with store.transaction() as tx:
            rows = tx.list_notifications_page(user_id, page_size + 1, cursor)
    except SchemaNotReadyError:
        _log_degraded("get_all_notifications")
        return {"items": [], "next_cursor": None}

    has_more = len(rows) > page_size
    rows = rows[:page_size]
    next_cursor = rows[-1].id if has_more and rows else None
    return {"items": [n.to_dict() for n in rows], "next_cursor": next_cursor}


def get_unread_count(store: Store, user_id: int) -> dict[str, int]:
    try:
        with store.transaction() as tx:
            count = tx.count_unread_notifications(user_id)
    except SchemaNotReadyError:
        _log_degraded("get_unread_count")
        return {"count": 0}
    return {"count": count}


def mark_as_read(store: Store, user_id: int, notification_id: int) -> dict[str, Any]:
    """Mark one of the user's notifications as read.

    Raises:
        NotificationNotFoundError: If the notification does not exist.
        NotificationAccessDeniedError: If it belongs to another user
            (unowned rows are not visible to anyone).
    """
    try:
        with store.transaction() as tx:
            notification = tx.get_notification(notification_id)
            if notification is None:
                raise NotificationNotFoundError(f"Notification {notification_id} not found")
            if notification.user_id != user_id:
                raise NotificationAccessDeniedError(
                    f"Notification {notification_id} is not owned by the current user"
                )
            tx.mark_notification_read(notification_id)
    except SchemaNotReadyError:
        _log_degraded("mark_as_read")
        return dict(_NOT_READY)
    return {"success": True}


def mark_all_as_read(store: Store, user_id: int) -> dict[str, Any]:
    try:
        with store.transaction() as tx:
            updated = tx.mark_all_notifications_read(user_id)
    except SchemaNotReadyError:
        _log_degraded("mark_all_as_read")
        return {"success": True}
    return {"success": True, "updated": updated}


# Cancellations (global)


def get_unread_cancellations(store: Store) -> list[dict[str, Any]]:
    try:
        with store.transaction() as tx:
            items = tx.list_unread_cancellations()
    except SchemaNotReadyError:
        _log_degraded("get_unread_cancellations")
        return []
    return [c.to_dict() for c in items]


def get_unread_cancellations_count(store: Store) -> dict[str, int]:
    try:
        with store.transaction() as tx:
            count = tx.count_unread_cancellations()
    except SchemaNotReadyError:
        _log_degraded("get_unread_cancellations_count")
        return {"count": 0}
    return {"count": count}


def mark_cancellation_as_read(store: Store, cancellation_id: int) -> dict[str, Any]:
    """Mark a cancellation as read for everyone.

    Raises:
        CancellationNotFoundError: If the cancellation does not exist.
    """
    try:
        with store.transaction() as tx:
            if tx.get_cancellation(cancellation_id) is None:
                raise CancellationNotFoundError(f"Cancellation {cancellation_id} not found")
            tx.mark_cancellation_read(cancellation_id)
    except SchemaNotReadyError:
        _log_degraded("mark_cancellation_as_read")
        return dict(_NOT_READY)
    return {"success": True}


def mark_all_cancellations_as_read(store: Store) -> dict[str, Any]:
    try:
        with store.transaction() as tx:
            updated = tx.mark_all_cancellations_read()
    except SchemaNotReadyError:
        _log_degraded("mark_all_cancellations_as_read")
        return {"success": True}
    return {"success": True, "updated": updated}

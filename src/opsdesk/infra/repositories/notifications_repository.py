"""Cabinet notifications repository - persistence for routed notifications.

Uses raw SQL with psycopg2 (no ORM).

One upstream message produces one row per recipient (user_id set) or a single
unowned row (user_id NULL). The unique index on
(message_key, COALESCE(user_id, 0)) backs the ingestion existence check.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from opsdesk.domain.models import Notification

_COLUMNS = """
    id, message_key, message_id_str, chat_id, chat_name, cabinet_name,
    cabinet_id, message, "timestamp", is_read, user_id, idex_cabinet_id
"""


def _row_to_notification(row: tuple[Any, ...]) -> Notification:
    return Notification(
        id=row[0],
        message_key=row[1],
        message_id=row[2],
        chat_id=row[3],
        chat_name=row[4] or "",
        cabinet_name=row[5] or "",
        cabinet_id=row[6] or "",
        message=row[7],
        timestamp=row[8],
        is_read=bool(row[9]),
        user_id=row[10],
        idex_cabinet_id=row[11],
    )


def notification_exists(cur: PgCursor, *, message_key: int) -> bool:
    """Check whether any copy of an upstream message is already stored."""
    cur.execute(
        "SELECT 1 FROM cabinet_notifications WHERE message_key = %s LIMIT 1",
        (message_key,),
    )
    return cur.fetchone() is not None


def insert_notification(
    cur: PgCursor,
    *,
    message_key: int,
    message_id: str,
    chat_id: int,
    external_chat_id: int,
    chat_name: str,
    cabinet_name: str,
    cabinet_id: str,
    message: str,
    timestamp: datetime,
    idex_cabinet_id: int | None,
    user_id: int | None,
) -> int | None:
    """Insert one notification copy.

    Returns:
        New row id, or None if the (message_key, user_id) copy already exists.
    """
    cur.execute(
        """
        INSERT INTO cabinet_notifications (
            message_key, message_id_str, chat_id, external_chat_id, chat_name,
            cabinet_name, cabinet_id, message, "timestamp", idex_cabinet_id, user_id
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (message_key, (COALESCE(user_id, 0))) DO NOTHING
        RETURNING id
        """,
        (
            message_key,
            message_id,
            chat_id,
            external_chat_id,
            chat_name,
            cabinet_name,
            cabinet_id,
            message,
            timestamp,
            idex_cabinet_id,
            user_id,
        ),
    )
    row = cur.fetchone()
    return row[0] if row else None


def get_notification(cur: PgCursor, *, notification_id: int) -> Notification | None:
    cur.execute(
        f"SELECT {_COLUMNS} FROM cabinet_notifications WHERE id = %s",
        (notification_id,),
    )
    row = cur.fetchone()
    return _row_to_notification(row) if row else None


def list_unread(cur: PgCursor, *, user_id: int) -> list[Notification]:
    """List a user's unread notifications, newest first."""
    cur.execute(
        f"""
        SELECT {_COLUMNS}
        FROM cabinet_notifications
        WHERE user_id = %s AND is_read = false
        ORDER BY "timestamp" DESC, id DESC
        """,
        (user_id,),
    )
    return [_row_to_notification(r) for r in cur.fetchall()]


def count_unread(cur: PgCursor, *, user_id: int) -> int:
    cur.execute(
        "SELECT COUNT(*) FROM cabinet_notifications WHERE user_id = %s AND is_read = false",
        (user_id,),
    )
    return cur.fetchone()[0]


def list_page(
    cur: PgCursor,
    *,
    user_id: int,
    limit: int,
    cursor: int | None,
) -> list[Notification]:
    """List a user's notifications (read and unread) with keyset pagination.

    Ordered by (timestamp DESC, id DESC). ``cursor`` is the id of the last
    row of the previous page; rows strictly after it in that order are
    returned.
    """
    if cursor is None:
        cur.execute(
            f"""
            SELECT {_COLUMNS}
            FROM cabinet_notifications
            WHERE user_id = %s
            ORDER BY "timestamp" DESC, id DESC
            LIMIT %s
            """,
            (user_id, limit),
        )
    else:
        cur.execute(
            f"""
            SELECT {_COLUMNS}
            FROM cabinet_notifications n
            WHERE n.user_id = %s
              AND ("timestamp", id) < (
                  SELECT "timestamp", id FROM cabinet_notifications WHERE id = %s
              )
            ORDER BY "timestamp" DESC, id DESC
            LIMIT %s
            """,
            (user_id, cursor, limit),
        )
    return [_row_to_notification(r) for r in cur.fetchall()]


def mark_read(cur: PgCursor, *, notification_id: int) -> bool:
    cur.execute(
        "UPDATE cabinet_notifications SET is_read = true WHERE id = %s",
        (notification_id,),
    )
    return cur.rowcount > 0


def mark_all_read(cur: PgCursor, *, user_id: int) -> int:
    """Mark every unread notification of a user as read.

    Returns:
        Number of rows updated.
    """
    cur.execute(
        "UPDATE cabinet_notifications SET is_read = true WHERE user_id = %s AND is_read = false",
        (user_id,),
    )
    return cur.rowcount

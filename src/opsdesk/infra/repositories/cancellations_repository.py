"""Cancellations repository - persistence for global cancellation alerts.

Uses raw SQL with psycopg2 (no ORM). Cancellations are never user-scoped;
read state is a single global flag per row.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from opsdesk.domain.models import Cancellation

_COLUMNS = 'id, chat_id, chat_name, message, message_id, "timestamp", is_read'


def _row_to_cancellation(row: tuple[Any, ...]) -> Cancellation:
    return Cancellation(
        id=row[0],
        chat_id=row[1],
        chat_name=row[2] or "",
        message=row[3],
        message_id=row[4],
        timestamp=row[5],
        is_read=bool(row[6]),
    )


def cancellation_exists(cur: PgCursor, *, chat_id: int, message_id: str) -> bool:
    cur.execute(
        "SELECT 1 FROM cancellations WHERE chat_id = %s AND message_id = %s",
        (chat_id, message_id),
    )
    return cur.fetchone() is not None


def insert_cancellation(
    cur: PgCursor,
    *,
    chat_id: int,
    chat_name: str,
    message: str,
    message_id: str,
    timestamp: datetime,
) -> int | None:
    """Insert a cancellation.

    Returns:
        New row id, or None if (chat_id, message_id) is already stored.
    """
    cur.execute(
        """
        INSERT INTO cancellations (chat_id, chat_name, message, message_id, "timestamp")
        VALUES (%s, %s, %s, %s, %s)
        ON CONFLICT (chat_id, message_id) DO NOTHING
        RETURNING id
        """,
        (chat_id, chat_name, message, message_id, timestamp),
    )
    row = cur.fetchone()
    return row[0] if row else None


def get_cancellation(cur: PgCursor, *, cancellation_id: int) -> Cancellation | None:
    cur.execute(f"SELECT {_COLUMNS} FROM cancellations WHERE id = %s", (cancellation_id,))
    row = cur.fetchone()
    return _row_to_cancellation(row) if row else None


def list_unread(cur: PgCursor) -> list[Cancellation]:
    cur.execute(
        f"""
        SELECT {_COLUMNS}
        FROM cancellations
        WHERE is_read = false
        ORDER BY "timestamp" DESC, id DESC
        """
    )
    return [_row_to_cancellation(r) for r in cur.fetchall()]


def count_unread(cur: PgCursor) -> int:
    cur.execute("SELECT COUNT(*) FROM cancellations WHERE is_read = false")
    return cur.fetchone()[0]


def mark_read(cur: PgCursor, *, cancellation_id: int) -> bool:
    cur.execute("UPDATE cancellations SET is_read = true WHERE id = %s", (cancellation_id,))
    return cur.rowcount > 0


def mark_all_read(cur: PgCursor) -> int:
    cur.execute("UPDATE cancellations SET is_read = true WHERE is_read = false")
    return cur.rowcount

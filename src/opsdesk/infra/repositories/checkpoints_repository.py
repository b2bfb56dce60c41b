"""Poll checkpoints repository - last successful fetch per upstream stream."""

from __future__ import annotations

from datetime import datetime

from psycopg2.extensions import cursor as PgCursor


def get_checkpoint(cur: PgCursor, *, stream: str) -> datetime | None:
    cur.execute("SELECT last_checked_at FROM poll_checkpoints WHERE stream = %s", (stream,))
    row = cur.fetchone()
    return row[0] if row else None


def set_checkpoint(cur: PgCursor, *, stream: str, checked_at: datetime) -> None:
    """Upsert the checkpoint. Never moves it backwards."""
    cur.execute(
        """
        INSERT INTO poll_checkpoints (stream, last_checked_at)
        VALUES (%s, %s)
        ON CONFLICT (stream) DO UPDATE
        SET last_checked_at = GREATEST(poll_checkpoints.last_checked_at, EXCLUDED.last_checked_at),
            updated_at = now()
        """,
        (stream, checked_at),
    )

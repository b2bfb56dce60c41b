"""Work sessions repository - operator shifts and their cabinet sets.

Uses raw SQL with psycopg2 (no ORM).

The partial unique index ``uq_work_sessions_open_per_user`` guarantees at most
one session with end_time IS NULL per user; inserting a second one raises
psycopg2.errors.UniqueViolation, which the store maps to a domain error.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from opsdesk.domain.models import Cabinet, WorkSession

OPEN_SESSION_INDEX = "uq_work_sessions_open_per_user"

_COLUMNS = "id, user_id, start_time, end_time, duration_seconds, comment"


def _load_cabinets(cur: PgCursor, session_ids: list[int]) -> dict[int, tuple[Cabinet, ...]]:
    if not session_ids:
        return {}
    cur.execute(
        """
        SELECT wsc.work_session_id, c.id, c.idex_id, c.login
        FROM work_session_cabinets wsc
        JOIN idex_cabinets c ON c.id = wsc.cabinet_id
        WHERE wsc.work_session_id = ANY(%s)
        ORDER BY c.idex_id
        """,
        (session_ids,),
    )
    grouped: dict[int, list[Cabinet]] = {}
    for r in cur.fetchall():
        grouped.setdefault(r[0], []).append(Cabinet(id=r[1], idex_id=r[2], login=r[3]))
    return {sid: tuple(cabs) for sid, cabs in grouped.items()}


def _build(rows: list[tuple[Any, ...]], cabinets: dict[int, tuple[Cabinet, ...]]) -> list[WorkSession]:
    return [
        WorkSession(
            id=r[0],
            user_id=r[1],
            start_time=r[2],
            end_time=r[3],
            duration_seconds=r[4],
            comment=r[5],
            cabinets=cabinets.get(r[0], ()),
        )
        for r in rows
    ]


def get_active_session(cur: PgCursor, *, user_id: int) -> WorkSession | None:
    cur.execute(
        f"SELECT {_COLUMNS} FROM work_sessions WHERE user_id = %s AND end_time IS NULL",
        (user_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return _build([row], _load_cabinets(cur, [row[0]]))[0]


def get_session(cur: PgCursor, *, user_id: int, session_id: int) -> WorkSession | None:
    cur.execute(
        f"SELECT {_COLUMNS} FROM work_sessions WHERE id = %s AND user_id = %s",
        (session_id, user_id),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return _build([row], _load_cabinets(cur, [row[0]]))[0]


def list_sessions(cur: PgCursor, *, user_id: int) -> list[WorkSession]:
    """List a user's sessions, most recent first."""
    cur.execute(
        f"""
        SELECT {_COLUMNS}
        FROM work_sessions
        WHERE user_id = %s
        ORDER BY start_time DESC, id DESC
        """,
        (user_id,),
    )
    rows = cur.fetchall()
    return _build(rows, _load_cabinets(cur, [r[0] for r in rows]))


def insert_session(
    cur: PgCursor,
    *,
    user_id: int,
    start_time: datetime,
    comment: str | None,
) -> int:
    cur.execute(
        """
        INSERT INTO work_sessions (user_id, start_time, comment)
        VALUES (%s, %s, %s)
        RETURNING id
        """,
        (user_id, start_time, comment),
    )
    return cur.fetchone()[0]


def close_session(
    cur: PgCursor,
    *,
    session_id: int,
    end_time: datetime,
    duration_seconds: int,
) -> bool:
    cur.execute(
        """
        UPDATE work_sessions
        SET end_time = %s, duration_seconds = %s, updated_at = now()
        WHERE id = %s AND end_time IS NULL
        """,
        (end_time, duration_seconds, session_id),
    )
    return cur.rowcount > 0


def update_comment(cur: PgCursor, *, session_id: int, comment: str) -> None:
    cur.execute(
        "UPDATE work_sessions SET comment = %s, updated_at = now() WHERE id = %s",
        (comment, session_id),
    )


def link_cabinets(cur: PgCursor, *, session_id: int, cabinet_ids: list[int]) -> None:
    """Attach cabinets to a session. Unknown cabinet ids are skipped."""
    if not cabinet_ids:
        return
    cur.execute(
        """
        INSERT INTO work_session_cabinets (work_session_id, cabinet_id)
        SELECT %s, c.id FROM idex_cabinets c WHERE c.id = ANY(%s)
        ON CONFLICT (work_session_id, cabinet_id) DO NOTHING
        """,
        (session_id, cabinet_ids),
    )


def unlink_cabinet(cur: PgCursor, *, session_id: int, cabinet_id: int) -> None:
    cur.execute(
        "DELETE FROM work_session_cabinets WHERE work_session_id = %s AND cabinet_id = %s",
        (session_id, cabinet_id),
    )

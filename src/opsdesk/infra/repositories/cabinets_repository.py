"""Cabinets repository - external cabinet lookups and session routing.

Uses raw SQL with psycopg2 (no ORM).
"""

from __future__ import annotations

from psycopg2.extensions import cursor as PgCursor

from opsdesk.domain.models import Cabinet, Recipient


def resolve_cabinet(cur: PgCursor, *, idex_id: int) -> int | None:
    """Map an external cabinet identifier to the internal cabinet id."""
    cur.execute("SELECT id FROM idex_cabinets WHERE idex_id = %s", (idex_id,))
    row = cur.fetchone()
    return row[0] if row else None


def find_active_recipients(cur: PgCursor, *, idex_id: int) -> list[Recipient]:
    """Users with an open work session that includes the given cabinet.

    Only sessions with end_time IS NULL count; a user appears once even if
    several links match.
    """
    cur.execute(
        """
        SELECT DISTINCT ws.user_id, u.name
        FROM work_sessions ws
        JOIN work_session_cabinets wsc ON wsc.work_session_id = ws.id
        JOIN idex_cabinets c ON c.id = wsc.cabinet_id
        LEFT JOIN users u ON u.id = ws.user_id
        WHERE ws.end_time IS NULL
          AND c.idex_id = %s
        ORDER BY ws.user_id
        """,
        (idex_id,),
    )
    return [Recipient(user_id=r[0], name=r[1]) for r in cur.fetchall()]


def list_cabinets(cur: PgCursor) -> list[Cabinet]:
    cur.execute("SELECT id, idex_id, login FROM idex_cabinets ORDER BY idex_id")
    return [Cabinet(id=r[0], idex_id=r[1], login=r[2]) for r in cur.fetchall()]

"""Shared test helpers for opsdesk tests.

This module contains helpers that can be imported by both conftest.py and
individual test files. These are NOT fixtures - they are regular functions
and classes.

MemoryStore implements the storage port used by the domain (the same
surface as opsdesk.infra.store.PgStore) so domain and route tests run
without PostgreSQL.
"""

from __future__ import annotations

import copy
import time
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterator

import jwt

from opsdesk.domain.models import Cabinet, Cancellation, Notification, Recipient, WorkSession
from opsdesk.domain.store import SchemaNotReadyError
from opsdesk.domain.work_sessions import ActiveSessionExistsError

TEST_JWT_SECRET = "test-secret-for-operator-tokens-0123456789"


def create_token(user_id: int, *, secret: str = TEST_JWT_SECRET, exp: int | None = None) -> str:
    """Create a signed operator token for testing."""
    now = int(time.time())
    payload = {"sub": str(user_id), "iat": now, "exp": exp if exp is not None else now + 3600}
    return jwt.encode(payload, secret, algorithm="HS256")


def raw_message(
    message_id: str | int,
    message: str = "[Cab#42] Автоматическое оповещение: new order",
    *,
    chat_id: int = 100,
    chat_name: str = "Ops chat",
    cabinet_name: str = "",
    cabinet_id: str = "",
    timestamp: int = 1700000000,
) -> dict:
    """Build a raw upstream item as the relay sends it."""
    return {
        "chat_id": chat_id,
        "chat_name": chat_name,
        "cabinet_name": cabinet_name,
        "cabinet_id": cabinet_id,
        "message": message,
        "timestamp": timestamp,
        "message_id": message_id,
    }


class _Tables:
    def __init__(self) -> None:
        self.users: dict[int, str | None] = {}
        self.cabinets: dict[int, Cabinet] = {}
        self.sessions: dict[int, dict] = {}
        self.notifications: dict[int, Notification] = {}
        self.cancellations: dict[int, Cancellation] = {}
        self.checkpoints: dict[str, datetime] = {}
        self.next_id = 1

    def new_id(self) -> int:
        value = self.next_id
        self.next_id += 1
        return value


class MemoryTransaction:
    def __init__(self, store: "MemoryStore", tables: _Tables) -> None:
        self._store = store
        self._t = tables

    # Notifications

    def lock_message(self, message_key: int) -> None:
        self._store.locked_keys.append(message_key)

    def notification_exists(self, message_key: int) -> bool:
        return any(n.message_key == message_key for n in self._t.notifications.values())

    def resolve_cabinet(self, idex_id: int) -> int | None:
        for cabinet in self._t.cabinets.values():
            if cabinet.idex_id == idex_id:
                return cabinet.id
        return None

    def find_active_recipients(self, idex_id: int) -> list[Recipient]:
        internal = self.resolve_cabinet(idex_id)
        if internal is None:
            return []
        users = sorted(
            {
                s["user_id"]
                for s in self._t.sessions.values()
                if s["end_time"] is None and internal in s["cabinet_ids"]
            }
        )
        return [Recipient(user_id=u, name=self._t.users.get(u)) for u in users]

    def insert_notification(self, **fields) -> int | None:
        if fields["message_id"] in self._store.fail_message_ids:
            raise RuntimeError("simulated insert failure")
        for n in self._t.notifications.values():
            if n.message_key == fields["message_key"] and (n.user_id or 0) == (fields["user_id"] or 0):
                return None
        new_id = self._t.new_id()
        self._t.notifications[new_id] = Notification(
            id=new_id,
            message_key=fields["message_key"],
            message_id=fields["message_id"],
            chat_id=fields["chat_id"],
            chat_name=fields["chat_name"],
            cabinet_name=fields["cabinet_name"],
            cabinet_id=fields["cabinet_id"],
            message=fields["message"],
            timestamp=fields["timestamp"],
            user_id=fields["user_id"],
            idex_cabinet_id=fields["idex_cabinet_id"],
        )
        return new_id

    def get_notification(self, notification_id: int) -> Notification | None:
        return self._t.notifications.get(notification_id)

    def _user_rows(self, user_id: int) -> list[Notification]:
        rows = [n for n in self._t.notifications.values() if n.user_id == user_id]
        return sorted(rows, key=lambda n: (n.timestamp, n.id), reverse=True)

    def list_unread_notifications(self, user_id: int) -> list[Notification]:
        return [n for n in self._user_rows(user_id) if not n.is_read]

    def count_unread_notifications(self, user_id: int) -> int:
        return len(self.list_unread_notifications(user_id))

    def list_notifications_page(self, user_id: int, limit: int, cursor: int | None) -> list[Notification]:
        rows = self._user_rows(user_id)
        if cursor is not None:
            anchor = self._t.notifications.get(cursor)
            if anchor is None:
                return []
            rows = [n for n in rows if (n.timestamp, n.id) < (anchor.timestamp, anchor.id)]
        return rows[:limit]

    def mark_notification_read(self, notification_id: int) -> None:
        row = self._t.notifications[notification_id]
        self._t.notifications[notification_id] = replace(row, is_read=True)

    def mark_all_notifications_read(self, user_id: int) -> int:
        updated = 0
        for n in self.list_unread_notifications(user_id):
            self.mark_notification_read(n.id)
            updated += 1
        return updated

    # Cancellations

    def cancellation_exists(self, chat_id: int, message_id: str) -> bool:
        return any(
            c.chat_id == chat_id and c.message_id == message_id
            for c in self._t.cancellations.values()
        )

    def insert_cancellation(self, **fields) -> int | None:
        if fields["message_id"] in self._store.fail_message_ids:
            raise RuntimeError("simulated insert failure")
        if self.cancellation_exists(fields["chat_id"], fields["message_id"]):
            return None
        new_id = self._t.new_id()
        self._t.cancellations[new_id] = Cancellation(id=new_id, **fields)
        return new_id

    def get_cancellation(self, cancellation_id: int) -> Cancellation | None:
        return self._t.cancellations.get(cancellation_id)

    def list_unread_cancellations(self) -> list[Cancellation]:
        rows = [c for c in self._t.cancellations.values() if not c.is_read]
        return sorted(rows, key=lambda c: (c.timestamp, c.id), reverse=True)

    def count_unread_cancellations(self) -> int:
        return len(self.list_unread_cancellations())

    def mark_cancellation_read(self, cancellation_id: int) -> None:
        row = self._t.cancellations[cancellation_id]
        self._t.cancellations[cancellation_id] = replace(row, is_read=True)

    def mark_all_cancellations_read(self) -> int:
        unread = self.list_unread_cancellations()
        for c in unread:
            self.mark_cancellation_read(c.id)
        return len(unread)

    # Work sessions and cabinets

    def _session(self, session_id: int) -> WorkSession:
        s = self._t.sessions[session_id]
        cabinets = tuple(
            sorted((self._t.cabinets[c] for c in s["cabinet_ids"]), key=lambda c: c.idex_id)
        )
        return WorkSession(
            id=session_id,
            user_id=s["user_id"],
            start_time=s["start_time"],
            end_time=s["end_time"],
            duration_seconds=s["duration_seconds"],
            comment=s["comment"],
            cabinets=cabinets,
        )

    def get_active_session(self, user_id: int) -> WorkSession | None:
        for sid, s in self._t.sessions.items():
            if s["user_id"] == user_id and s["end_time"] is None:
                return self._session(sid)
        return None

    def get_session(self, user_id: int, session_id: int) -> WorkSession | None:
        s = self._t.sessions.get(session_id)
        if s is None or s["user_id"] != user_id:
            return None
        return self._session(session_id)

    def list_sessions(self, user_id: int) -> list[WorkSession]:
        rows = [self._session(sid) for sid, s in self._t.sessions.items() if s["user_id"] == user_id]
        return sorted(rows, key=lambda s: (s.start_time, s.id), reverse=True)

    def insert_session(self, user_id: int, start_time: datetime, comment: str | None) -> int:
        if self.get_active_session(user_id) is not None:
            raise ActiveSessionExistsError(user_id)
        sid = self._t.new_id()
        self._t.sessions[sid] = {
            "user_id": user_id,
            "start_time": start_time,
            "end_time": None,
            "duration_seconds": None,
            "comment": comment,
            "cabinet_ids": set(),
        }
        return sid

    def close_session(self, session_id: int, end_time: datetime, duration_seconds: int) -> None:
        s = self._t.sessions[session_id]
        if s["end_time"] is None:
            s["end_time"] = end_time
            s["duration_seconds"] = duration_seconds

    def update_session_comment(self, session_id: int, comment: str) -> None:
        self._t.sessions[session_id]["comment"] = comment

    def link_cabinets(self, session_id: int, cabinet_ids: list[int]) -> None:
        known = [c for c in cabinet_ids if c in self._t.cabinets]
        self._t.sessions[session_id]["cabinet_ids"].update(known)

    def unlink_cabinet(self, session_id: int, cabinet_id: int) -> None:
        self._t.sessions[session_id]["cabinet_ids"].discard(cabinet_id)

    def list_cabinets(self) -> list[Cabinet]:
        return sorted(self._t.cabinets.values(), key=lambda c: c.idex_id)

    # Poll checkpoints

    def get_checkpoint(self, stream: str) -> datetime | None:
        return self._t.checkpoints.get(stream)

    def set_checkpoint(self, stream: str, checked_at: datetime) -> None:
        current = self._t.checkpoints.get(stream)
        self._t.checkpoints[stream] = max(current, checked_at) if current else checked_at


class MemoryStore:
    """In-memory store with rollback on exception.

    Set ``schema_ready = False`` to simulate missing tables, and add message
    ids to ``fail_message_ids`` to make their inserts raise.
    """

    def __init__(self) -> None:
        self.tables = _Tables()
        self.schema_ready = True
        self.fail_message_ids: set[str] = set()
        self.locked_keys: list[int] = []

    @contextmanager
    def transaction(self) -> Iterator[MemoryTransaction]:
        if not self.schema_ready:
            raise SchemaNotReadyError('relation "cabinet_notifications" does not exist')
        snapshot = copy.deepcopy(self.tables)
        try:
            yield MemoryTransaction(self, self.tables)
        except Exception:
            self.tables = snapshot
            raise

    # Seeding helpers

    def add_user(self, user_id: int, name: str | None = None) -> int:
        self.tables.users[user_id] = name
        return user_id

    def add_cabinet(self, idex_id: int, login: str | None = None) -> int:
        cabinet_id = self.tables.new_id()
        self.tables.cabinets[cabinet_id] = Cabinet(id=cabinet_id, idex_id=idex_id, login=login)
        return cabinet_id

    def open_session(
        self,
        user_id: int,
        cabinet_ids: list[int],
        *,
        start_time: datetime | None = None,
    ) -> int:
        with self.transaction() as tx:
            sid = tx.insert_session(
                user_id,
                start_time or datetime(2023, 11, 14, 20, 0, tzinfo=timezone.utc),
                None,
            )
            tx.link_cabinets(sid, cabinet_ids)
        return sid

    def close_session(self, session_id: int, end_time: datetime | None = None) -> None:
        s = self.tables.sessions[session_id]
        s["end_time"] = end_time or datetime(2023, 11, 14, 21, 0, tzinfo=timezone.utc)
        s["duration_seconds"] = int((s["end_time"] - s["start_time"]).total_seconds())

    def notifications(self) -> list[Notification]:
        return sorted(self.tables.notifications.values(), key=lambda n: n.id)

    def cancellations(self) -> list[Cancellation]:
        return sorted(self.tables.cancellations.values(), key=lambda c: c.id)

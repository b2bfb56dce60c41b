"""PostgreSQL-backed storage for the notification domain.

PgStore.transaction() opens one short transaction (see infra.db.txn) and
yields a PgTransaction bound to its cursor. psycopg2 "missing table/column"
errors are translated into SchemaNotReadyError so the domain can degrade
softly while migrations have not run.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

import psycopg2
from psycopg2 import errors as pg_errors
from psycopg2.extensions import cursor as PgCursor

from opsdesk.domain.models import Cabinet, Cancellation, Notification, Recipient, WorkSession
from opsdesk.domain.store import SchemaNotReadyError
from opsdesk.domain.work_sessions import ActiveSessionExistsError
from opsdesk.infra.db import advisory_xact_lock, is_schema_not_ready, txn
from opsdesk.infra.repositories import (
    cabinets_repository,
    cancellations_repository,
    checkpoints_repository,
    notifications_repository,
    work_sessions_repository,
)
from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context

logger = get_logger(__name__)


class PgTransaction:
    """Transaction implementation over a psycopg2 cursor."""

    def __init__(self, cur: PgCursor) -> None:
        self._cur = cur

    # Notifications

    def lock_message(self, message_key: int) -> None:
        advisory_xact_lock(self._cur, message_key)

    def notification_exists(self, message_key: int) -> bool:
        return notifications_repository.notification_exists(self._cur, message_key=message_key)

    def resolve_cabinet(self, idex_id: int) -> int | None:
        return cabinets_repository.resolve_cabinet(self._cur, idex_id=idex_id)

    def find_active_recipients(self, idex_id: int) -> list[Recipient]:
        return cabinets_repository.find_active_recipients(self._cur, idex_id=idex_id)

    def insert_notification(self, **fields) -> int | None:
        return notifications_repository.insert_notification(self._cur, **fields)

    def get_notification(self, notification_id: int) -> Notification | None:
        return notifications_repository.get_notification(self._cur, notification_id=notification_id)

    def list_unread_notifications(self, user_id: int) -> list[Notification]:
        return notifications_repository.list_unread(self._cur, user_id=user_id)

    def count_unread_notifications(self, user_id: int) -> int:
        return notifications_repository.count_unread(self._cur, user_id=user_id)

    def list_notifications_page(
        self, user_id: int, limit: int, cursor: int | None
    ) -> list[Notification]:
        return notifications_repository.list_page(
            self._cur, user_id=user_id, limit=limit, cursor=cursor
        )

    def mark_notification_read(self, notification_id: int) -> None:
        notifications_repository.mark_read(self._cur, notification_id=notification_id)

    def mark_all_notifications_read(self, user_id: int) -> int:
        return notifications_repository.mark_all_read(self._cur, user_id=user_id)

    # Cancellations

    def cancellation_exists(self, chat_id: int, message_id: str) -> bool:
        return cancellations_repository.cancellation_exists(
            self._cur, chat_id=chat_id, message_id=message_id
        )

    def insert_cancellation(self, **fields) -> int | None:
        return cancellations_repository.insert_cancellation(self._cur, **fields)

    def get_cancellation(self, cancellation_id: int) -> Cancellation | None:
        return cancellations_repository.get_cancellation(self._cur, cancellation_id=cancellation_id)

    def list_unread_cancellations(self) -> list[Cancellation]:
        return cancellations_repository.list_unread(self._cur)

    def count_unread_cancellations(self) -> int:
        return cancellations_repository.count_unread(self._cur)

    def mark_cancellation_read(self, cancellation_id: int) -> None:
        cancellations_repository.mark_read(self._cur, cancellation_id=cancellation_id)

    def mark_all_cancellations_read(self) -> int:
        return cancellations_repository.mark_all_read(self._cur)

    # Work sessions and cabinets

    def get_active_session(self, user_id: int) -> WorkSession | None:
        return work_sessions_repository.get_active_session(self._cur, user_id=user_id)

    def get_session(self, user_id: int, session_id: int) -> WorkSession | None:
        return work_sessions_repository.get_session(
            self._cur, user_id=user_id, session_id=session_id
        )

    def list_sessions(self, user_id: int) -> list[WorkSession]:
        return work_sessions_repository.list_sessions(self._cur, user_id=user_id)

    def insert_session(self, user_id: int, start_time: datetime, comment: str | None) -> int:
        try:
            return work_sessions_repository.insert_session(
                self._cur, user_id=user_id, start_time=start_time, comment=comment
            )
        except pg_errors.UniqueViolation as exc:
            if exc.diag.constraint_name == work_sessions_repository.OPEN_SESSION_INDEX:
                raise ActiveSessionExistsError(user_id) from exc
            raise

    def close_session(self, session_id: int, end_time: datetime, duration_seconds: int) -> None:
        work_sessions_repository.close_session(
            self._cur,
            session_id=session_id,
            end_time=end_time,
            duration_seconds=duration_seconds,
        )

    def update_session_comment(self, session_id: int, comment: str) -> None:
        work_sessions_repository.update_comment(self._cur, session_id=session_id, comment=comment)

    def link_cabinets(self, session_id: int, cabinet_ids: list[int]) -> None:
        work_sessions_repository.link_cabinets(
            self._cur, session_id=session_id, cabinet_ids=cabinet_ids
        )

    def unlink_cabinet(self, session_id: int, cabinet_id: int) -> None:
        work_sessions_repository.unlink_cabinet(
            self._cur, session_id=session_id, cabinet_id=cabinet_id
        )

    def list_cabinets(self) -> list[Cabinet]:
        return cabinets_repository.list_cabinets(self._cur)

    # Poll checkpoints

    def get_checkpoint(self, stream: str) -> datetime | None:
        return checkpoints_repository.get_checkpoint(self._cur, stream=stream)

    def set_checkpoint(self, stream: str, checked_at: datetime) -> None:
        checkpoints_repository.set_checkpoint(self._cur, stream=stream, checked_at=checked_at)


class PgStore:
    """Store backed by DATABASE_URL. Each transaction uses its own connection."""

    @contextmanager
    def transaction(self) -> Iterator[PgTransaction]:
        try:
            with txn() as cur:
                yield PgTransaction(cur)
        except psycopg2.Error as exc:
            if is_schema_not_ready(exc):
                logger.warning(
                    "notification schema not ready",
                    extra={
                        "extra_fields": safe_log_context(
                            pgcode=exc.pgcode,
                            error_type=type(exc).__name__,
                        )
                    },
                )
                raise SchemaNotReadyError(str(exc)) from exc
            raise


_store: PgStore | None = None


def get_store() -> PgStore:
    """Process-wide PgStore instance."""
    global _store
    if _store is None:
        _store = PgStore()
    return _store

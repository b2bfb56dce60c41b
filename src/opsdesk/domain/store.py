"""Storage port used by the notification domain.

Domain code opens one transaction per unit of work
(``with store.transaction() as tx: ...``) and talks to ``tx`` only.
The PostgreSQL implementation lives in opsdesk.infra.store.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol

from .models import Cabinet, Cancellation, Notification, Recipient, WorkSession


class SchemaNotReadyError(Exception):
    """Raised when the backing tables are not migrated yet.

    Recoverable: reads degrade to empty results, writes to soft failures.
    """

    pass


class Transaction(Protocol):
    """Operations available inside one storage transaction."""

    # Notifications
    def lock_message(self, message_key: int) -> None: ...

    def notification_exists(self, message_key: int) -> bool: ...

    def resolve_cabinet(self, idex_id: int) -> int | None: ...

    def find_active_recipients(self, idex_id: int) -> list[Recipient]: ...

    def insert_notification(
        self,
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
    ) -> int | None: ...

    def get_notification(self, notification_id: int) -> Notification | None: ...

    def list_unread_notifications(self, user_id: int) -> list[Notification]: ...

    def count_unread_notifications(self, user_id: int) -> int: ...

    def list_notifications_page(
        self, user_id: int, limit: int, cursor: int | None
    ) -> list[Notification]: ...

    def mark_notification_read(self, notification_id: int) -> None: ...

    def mark_all_notifications_read(self, user_id: int) -> int: ...

    # Cancellations
    def cancellation_exists(self, chat_id: int, message_id: str) -> bool: ...

    def insert_cancellation(
        self,
        *,
        chat_id: int,
        chat_name: str,
        message: str,
        message_id: str,
        timestamp: datetime,
    ) -> int | None: ...

    def get_cancellation(self, cancellation_id: int) -> Cancellation | None: ...

    def list_unread_cancellations(self) -> list[Cancellation]: ...

    def count_unread_cancellations(self) -> int: ...

    def mark_cancellation_read(self, cancellation_id: int) -> None: ...

    def mark_all_cancellations_read(self) -> int: ...

    # Work sessions and cabinets
    def get_active_session(self, user_id: int) -> WorkSession | None: ...

    def get_session(self, user_id: int, session_id: int) -> WorkSession | None: ...

    def list_sessions(self, user_id: int) -> list[WorkSession]: ...

    def insert_session(self, user_id: int, start_time: datetime, comment: str | None) -> int: ...

    def close_session(self, session_id: int, end_time: datetime, duration_seconds: int) -> None: ...

    def update_session_comment(self, session_id: int, comment: str) -> None: ...

    def link_cabinets(self, session_id: int, cabinet_ids: list[int]) -> None: ...

    def unlink_cabinet(self, session_id: int, cabinet_id: int) -> None: ...

    def list_cabinets(self) -> list[Cabinet]: ...

    # Poll checkpoints
    def get_checkpoint(self, stream: str) -> datetime | None: ...

    def set_checkpoint(self, stream: str, checked_at: datetime) -> None: ...


class Store(Protocol):
    def transaction(self) -> AbstractContextManager[Transaction]: ...

"""Notification subsystem models.

RawMessage is the upstream wire shape (validated with pydantic); everything
else is a plain frozen dataclass read back from storage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from opsdesk.infra.time import to_epoch_millis


class RawMessage(BaseModel):
    """One message as returned by the upstream chat relay.

    Transient: never persisted as-is.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    chat_id: int = Field(0, validation_alias=AliasChoices("chat_id", "chatId"))
    chat_name: str = Field("", validation_alias=AliasChoices("chat_name", "chatName"))
    cabinet_name: str = Field("", validation_alias=AliasChoices("cabinet_name", "cabinetName"))
    cabinet_id: str = Field("", validation_alias=AliasChoices("cabinet_id", "cabinetId"))
    message: str
    timestamp: int = Field(validation_alias=AliasChoices("timestamp", "timestampSeconds"))
    message_id: str | int = Field(validation_alias=AliasChoices("message_id", "messageId"))

    @field_validator("cabinet_id", "chat_name", "cabinet_name", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    @field_validator("message_id")
    @classmethod
    def _require_message_id(cls, value: str | int) -> str | int:
        if isinstance(value, str) and not value.strip():
            raise ValueError("message_id must not be empty")
        return value

    @property
    def message_id_str(self) -> str:
        return str(self.message_id)


@dataclass(frozen=True)
class Recipient:
    """A user with an open work session on the notification's cabinet."""

    user_id: int
    name: str | None = None


@dataclass(frozen=True)
class Notification:
    """A persisted, possibly recipient-scoped, cabinet notification."""

    id: int
    message_key: int
    message_id: str
    chat_id: int
    chat_name: str
    cabinet_name: str
    cabinet_id: str
    message: str
    timestamp: datetime
    is_read: bool = False
    user_id: int | None = None
    idex_cabinet_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        from opsdesk.domain.classification import strip_boilerplate

        return {
            "id": self.id,
            "message_key": self.message_key,
            "message_id": self.message_id,
            "chat_id": self.chat_id,
            "chat_name": self.chat_name,
            "cabinet_name": self.cabinet_name,
            "cabinet_id": self.cabinet_id,
            "message": self.message,
            "display_message": strip_boilerplate(self.message),
            "timestamp": to_epoch_millis(self.timestamp),
            "is_read": self.is_read,
            "user_id": self.user_id,
            "idex_cabinet_id": self.idex_cabinet_id,
        }


@dataclass(frozen=True)
class Cancellation:
    """A persisted, globally scoped cancellation alert."""

    id: int
    chat_id: int
    chat_name: str
    message: str
    message_id: str
    timestamp: datetime
    is_read: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "chat_id": self.chat_id,
            "chat_name": self.chat_name,
            "message": self.message,
            "message_id": self.message_id,
            "timestamp": to_epoch_millis(self.timestamp),
            "is_read": self.is_read,
        }


@dataclass(frozen=True)
class Cabinet:
    id: int
    idex_id: int
    login: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "idex_id": self.idex_id, "login": self.login}


@dataclass(frozen=True)
class WorkSession:
    """A user's monitoring shift over a set of cabinets."""

    id: int
    user_id: int
    start_time: datetime
    end_time: datetime | None = None
    duration_seconds: int | None = None
    comment: str | None = None
    cabinets: tuple[Cabinet, ...] = field(default_factory=tuple)

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_seconds": self.duration_seconds,
            "comment": self.comment,
            "cabinets": [c.to_dict() for c in self.cabinets],
        }


ItemStatus = Literal["saved", "saved_with_users", "duplicate", "ignored", "not_saved", "error"]


@dataclass(frozen=True)
class ItemResult:
    """Per-item ingestion outcome."""

    status: ItemStatus
    message_id: str | int | None
    kind: Literal["notification", "cancellation"] | None = None
    users: tuple[str, ...] = ()
    reason: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status, "message_id": self.message_id}
        if self.kind is not None:
            data["kind"] = self.kind
        if self.status == "saved_with_users":
            data["users"] = list(self.users)
        if self.reason is not None:
            data["reason"] = self.reason
        if self.error is not None:
            data["error"] = self.error
        return data

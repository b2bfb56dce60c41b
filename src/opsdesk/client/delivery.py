"""Delivery of new items to the operator: desktop, sound, listeners.

Each batch is filtered against the per-process seen set first, so an item is
alerted at most once per process lifetime. Channels are isolated: a failing
desktop backend never silences the sound, and vice versa.
"""

from __future__ import annotations

from typing import Any

from opsdesk.domain.classification import strip_boilerplate
from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context

from .desktop import DesktopNotifier
from .sound import SoundChain
from .state import AlertState

logger = get_logger(__name__)

MAX_INDIVIDUAL_DESKTOP = 3
_PREVIEW_LEN = 200


def _preview(item: dict[str, Any]) -> str:
    text = strip_boilerplate(str(item.get("message", "")))
    return text[:_PREVIEW_LEN]


def _notification_title(item: dict[str, Any]) -> str:
    cabinet = item.get("cabinet_name") or item.get("cabinetName") or item.get("chat_name") or item.get("chatName")
    return f"Cabinet {cabinet}" if cabinet else "New notification"


def _cancellation_title(item: dict[str, Any]) -> str:
    chat = item.get("chat_name") or item.get("chatName")
    return f"Cancellation: {chat}" if chat else "Cancellation"


class DeliveryClient:
    def __init__(self, state: AlertState, sound: SoundChain, desktop: DesktopNotifier) -> None:
        self.state = state
        self.sound = sound
        self.desktop = desktop

    def add_notifications(self, batch: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Alert on unseen notifications; returns the items that were new."""
        fresh = self.state.filter_unseen("notifications", batch)
        if fresh:
            self._deliver("notifications", fresh, _notification_title, exhaustive_sound=False)
        return fresh

    def add_cancellations(self, batch: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Alert on unseen cancellations, using every available sound strategy."""
        fresh = self.state.filter_unseen("cancellations", batch)
        if fresh:
            self._deliver("cancellations", fresh, _cancellation_title, exhaustive_sound=True)
        return fresh

    def _deliver(self, stream: str, items: list[dict[str, Any]], title, *, exhaustive_sound: bool) -> None:
        self._desktop(stream, items, title)
        self._sound(stream, exhaustive=exhaustive_sound)
        self._notify_listeners(stream, items)

    def _channel_failed(self, channel: str, stream: str, exc: Exception) -> None:
        logger.debug(
            "delivery channel failed",
            extra={
                "extra_fields": safe_log_context(
                    channel=channel,
                    stream=stream,
                    error_type=type(exc).__name__,
                )
            },
        )

    def _desktop(self, stream: str, items: list[dict[str, Any]], title) -> None:
        if not self.desktop.enabled:
            return
        for item in items[:MAX_INDIVIDUAL_DESKTOP]:
            try:
                self.desktop.show(title(item), _preview(item))
            except Exception as e:
                self._channel_failed("desktop", stream, e)
        extra = len(items) - MAX_INDIVIDUAL_DESKTOP
        if extra > 0:
            try:
                self.desktop.show("Opsdesk", f"{extra} more new {stream}")
            except Exception as e:
                self._channel_failed("desktop", stream, e)

    def _sound(self, stream: str, *, exhaustive: bool) -> None:
        # Audio is only allowed after the operator has interacted with the client
        if not self.state.has_interacted:
            return
        try:
            self.sound.play(exhaustive=exhaustive)
        except Exception as e:
            self._channel_failed("sound", stream, e)

    def _notify_listeners(self, stream: str, items: list[dict[str, Any]]) -> None:
        for listener in self.state.listeners():
            try:
                listener(stream, items)
            except Exception as e:
                self._channel_failed("listener", stream, e)

"""Per-process alert state of the operator client.

One AlertState is owned by ClientApp and passed to everything that needs it.
``init()`` resets it for a fresh run, ``dispose()`` releases listeners and
clears caches on shutdown.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Any, Callable

from opsdesk.polling.poller import ErrorSlot

RECENT_LIMIT = 50

Listener = Callable[[str, list[dict[str, Any]]], None]


class AlertState:
    def __init__(self, recent_limit: int = RECENT_LIMIT) -> None:
        self._lock = threading.Lock()
        self._recent_limit = recent_limit
        self._initialized = False
        self._seen: dict[str, set[str]] = {}
        self._recent: dict[str, deque[dict[str, Any]]] = {}
        self._badges: dict[str, int] = {}
        self._listeners: list[Listener] = []
        self.has_interacted = False
        self.errors = ErrorSlot()

    @property
    def initialized(self) -> bool:
        return self._initialized

    def init(self) -> None:
        with self._lock:
            self._seen = {"notifications": set(), "cancellations": set()}
            self._recent = {
                "notifications": deque(maxlen=self._recent_limit),
                "cancellations": deque(maxlen=self._recent_limit),
            }
            self._badges = {"notifications": 0, "cancellations": 0}
            self.has_interacted = False
            self.errors = ErrorSlot()
            self._initialized = True

    def dispose(self) -> None:
        with self._lock:
            self._listeners.clear()
            self._seen.clear()
            self._recent.clear()
            self._badges.clear()
            self._initialized = False

    def mark_interacted(self) -> None:
        self.has_interacted = True

    def filter_unseen(self, stream: str, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Return items whose message_id was never seen and remember them.

        Items without a message_id are dropped. Duplicates inside the same
        batch are kept once.
        """
        fresh: list[dict[str, Any]] = []
        with self._lock:
            seen = self._seen.setdefault(stream, set())
            for item in items:
                message_id = item.get("message_id", item.get("messageId"))
                if message_id is None:
                    continue
                key = str(message_id)
                if key in seen:
                    continue
                seen.add(key)
                fresh.append(item)
            recent = self._recent.setdefault(stream, deque(maxlen=self._recent_limit))
            for item in fresh:
                recent.appendleft(item)
        return fresh

    def recent(self, stream: str) -> list[dict[str, Any]]:
        """Recently alerted items, newest first."""
        with self._lock:
            return list(self._recent.get(stream, ()))

    def set_badge(self, stream: str, count: int) -> None:
        with self._lock:
            self._badges[stream] = count

    def badge(self, stream: str) -> int:
        with self._lock:
            return self._badges.get(stream, 0)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for new items; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def listeners(self) -> list[Listener]:
        with self._lock:
            return list(self._listeners)

"""Poller: fetch one upstream stream and hand the batch to a sink.

The same Poller objects are driven by every scheduler (foreground loop,
background APScheduler jobs, wake-up endpoint). A poll run is:

1. capture ``now``
2. compute the lookback from the last checkpoint
3. fetch
4. hand the batch to the sink (a sink raises IncompleteBatchError when items
   were not persisted)
5. save the checkpoint ``= now``

Any failure in steps 3-4 leaves the checkpoint untouched, so the next run
re-requests the same window and dedup absorbs the overlap.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Protocol

from opsdesk.domain.store import SchemaNotReadyError, Store
from opsdesk.infra.time import utc_now
from opsdesk.observability.correlation import correlation_scope
from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context

from .streams import PollStream, lookback_hours

logger = get_logger(__name__)

Source = Callable[[str, int], list[dict[str, Any]]]
Sink = Callable[[list[dict[str, Any]]], Any]


class IncompleteBatchError(RuntimeError):
    """Some items of a fetched batch were not persisted; the window must be re-fetched."""

    def __init__(self, stream: str, message_ids: list[Any]) -> None:
        super().__init__(f"{len(message_ids)} item(s) of {stream} not persisted")
        self.stream = stream
        self.message_ids = message_ids


def raise_for_unpersisted(stream: str, results: list[dict[str, Any]]) -> None:
    """Raise IncompleteBatchError if any per-item result must be retried.

    ``not_saved`` items and items that failed after validation are retried.
    Invalid items carry no ``kind`` and would fail the same way again, so
    they never hold the checkpoint back.
    """
    pending = [
        r.get("message_id")
        for r in results
        if r.get("status") == "not_saved" or (r.get("status") == "error" and r.get("kind") is not None)
    ]
    if pending:
        raise IncompleteBatchError(stream, pending)


class CheckpointStore(Protocol):
    def load(self, stream: str) -> datetime | None: ...

    def save(self, stream: str, checked_at: datetime) -> None: ...


class ErrorSlot:
    """Last poll error per stream, shared with whoever displays status."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._errors: dict[str, str] = {}

    def set(self, stream: str, message: str) -> None:
        with self._lock:
            self._errors[stream] = message

    def clear(self, stream: str) -> None:
        with self._lock:
            self._errors.pop(stream, None)

    def get(self, stream: str) -> str | None:
        with self._lock:
            return self._errors.get(stream)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._errors)


class StoreCheckpoints:
    """Server-side checkpoints in the poll_checkpoints table.

    Degrades while the table is not migrated: load returns None (default
    lookback) and save is skipped.
    """

    def __init__(self, store: Store) -> None:
        self._store = store

    def load(self, stream: str) -> datetime | None:
        try:
            with self._store.transaction() as tx:
                return tx.get_checkpoint(stream)
        except SchemaNotReadyError:
            return None

    def save(self, stream: str, checked_at: datetime) -> None:
        try:
            with self._store.transaction() as tx:
                tx.set_checkpoint(stream, checked_at)
        except SchemaNotReadyError:
            logger.warning(
                "checkpoint not saved, schema not ready",
                extra={"extra_fields": safe_log_context(stream=stream)},
            )


class MemoryCheckpoints:
    """Process-local checkpoints."""

    def __init__(self) -> None:
        self._values: dict[str, datetime] = {}

    def load(self, stream: str) -> datetime | None:
        return self._values.get(stream)

    def save(self, stream: str, checked_at: datetime) -> None:
        self._values[stream] = checked_at


@dataclass(frozen=True)
class PollOutcome:
    stream: str
    ok: bool
    hours: int
    fetched: int = 0
    error: str | None = None
    checked_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stream": self.stream,
            "ok": self.ok,
            "hours": self.hours,
            "fetched": self.fetched,
            "error": self.error,
        }


class Poller:
    """Polls one stream. Runs are serialized per instance."""

    def __init__(
        self,
        stream: PollStream,
        *,
        source: Source,
        sink: Sink,
        checkpoints: CheckpointStore,
        error_slot: ErrorSlot | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.stream = stream
        self._source = source
        self._sink = sink
        self._checkpoints = checkpoints
        self.error_slot = error_slot or ErrorSlot()
        self._clock = clock
        self._run_lock = threading.Lock()

    def poll_once(self) -> PollOutcome:
        with self._run_lock, correlation_scope(f"poll-{self.stream.name}"):
            return self._run()

    def _run(self) -> PollOutcome:
        name = self.stream.name
        now = self._clock()
        last_checked = self._checkpoints.load(name)
        hours = lookback_hours(last_checked, now, self.stream.default_hours)

        try:
            batch = self._source(self.stream.path, hours)
            self._sink(batch)
        except Exception as e:
            message = str(e) or type(e).__name__
            self.error_slot.set(name, message)
            logger.warning(
                "poll failed",
                extra={
                    "extra_fields": safe_log_context(
                        stream=name,
                        hours=hours,
                        error=message,
                        error_type=type(e).__name__,
                    )
                },
            )
            return PollOutcome(stream=name, ok=False, hours=hours, error=message)

        if last_checked is None or now >= last_checked:
            self._checkpoints.save(name, now)
        self.error_slot.clear(name)

        logger.info(
            "poll completed",
            extra={
                "extra_fields": safe_log_context(
                    stream=name,
                    hours=hours,
                    fetched=len(batch),
                )
            },
        )
        return PollOutcome(stream=name, ok=True, hours=hours, fetched=len(batch), checked_at=now)

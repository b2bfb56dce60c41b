"""Server-side pollers: upstream → ingestion, checkpoints in the database."""

from __future__ import annotations

from typing import Any

from opsdesk.domain.ingestion import ingest_batch
from opsdesk.domain.store import Store

from .poller import ErrorSlot, Poller, StoreCheckpoints, raise_for_unpersisted
from .streams import CANCELLATIONS, NOTIFICATIONS, PollStream
from .upstream import UpstreamClient


def _ingest_sink(stream: PollStream, store: Store):
    def sink(batch: list[dict[str, Any]]) -> None:
        results = ingest_batch(batch, stream=stream.name, store=store)
        raise_for_unpersisted(stream.name, [r.to_dict() for r in results])

    return sink


def build_server_pollers(
    store: Store,
    upstream: UpstreamClient | None = None,
    error_slot: ErrorSlot | None = None,
) -> dict[str, Poller]:
    """Build one Poller per stream, keyed by stream name."""
    upstream = upstream or UpstreamClient.from_env()
    error_slot = error_slot or ErrorSlot()
    checkpoints = StoreCheckpoints(store)

    return {
        stream.name: Poller(
            stream,
            source=upstream.fetch_recent,
            sink=_ingest_sink(stream, store),
            checkpoints=checkpoints,
            error_slot=error_slot,
        )
        for stream in (NOTIFICATIONS, CANCELLATIONS)
    }


_pollers: dict[str, Poller] | None = None


def get_server_pollers() -> dict[str, Poller]:
    """Process-wide pollers shared by the wake-up endpoints and the worker."""
    global _pollers
    if _pollers is None:
        from opsdesk.infra.store import get_store

        _pollers = build_server_pollers(get_store())
    return _pollers

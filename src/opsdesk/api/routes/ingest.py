"""Ingestion endpoints: batch save from operator clients and background wake-up."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from opsdesk.api.auth import CurrentUser, get_current_user, require_internal_api_key
from opsdesk.domain.ingestion import ingest_batch
from opsdesk.domain.store import Store
from opsdesk.observability.correlation import get_correlation_id
from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context
from opsdesk.polling.poller import Poller

router = APIRouter(prefix="/api/notifications", tags=["ingest"])

logger = get_logger(__name__)


class SaveBatchRequest(BaseModel):
    """Raw upstream items; each one is validated individually."""

    messages: list[Any] | None = None
    cancellations: list[Any] | None = None

    def items(self) -> list[Any]:
        if self.messages is not None:
            return self.messages
        return self.cancellations or []


def _get_store() -> Store:
    """Get store (allows override in tests)."""
    from opsdesk.infra.store import get_store

    return get_store()


def _get_pollers() -> dict[str, Poller]:
    """Get server pollers (allows override in tests)."""
    from opsdesk.polling.server import get_server_pollers

    return get_server_pollers()


def _save(stream: str, body: SaveBatchRequest, user: CurrentUser) -> dict:
    items = body.items()
    logger.info(
        "save batch received",
        extra={
            "extra_fields": safe_log_context(
                correlationId=get_correlation_id(),
                stream=stream,
                user_id=user.id,
                batch_size=len(items),
            )
        },
    )
    results = ingest_batch(items, stream=stream, store=_get_store())
    return {"results": [r.to_dict() for r in results]}


@router.post("/save")
def save_notifications(
    body: SaveBatchRequest,
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    """Ingest a batch fetched by an operator client from the messages stream.

    Returns one result per item: saved, saved_with_users (with user names),
    duplicate, not_saved (schema not ready) or error.
    """
    return _save("notifications", body, user)


@router.post("/save-cancellations")
def save_cancellations(
    body: SaveBatchRequest,
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    """Ingest a batch from the cancellations stream (``messages`` or ``cancellations``)."""
    return _save("cancellations", body, user)


@router.post("/process", dependencies=[Depends(require_internal_api_key)])
def process_now() -> dict:
    """Run one poll per stream synchronously (cron-style wake-up).

    Requires X-API-Key equal to INTERNAL_API_KEY.
    """
    outcomes = [poller.poll_once() for poller in _get_pollers().values()]
    return {
        "ok": all(o.ok for o in outcomes),
        "results": [o.to_dict() for o in outcomes],
    }

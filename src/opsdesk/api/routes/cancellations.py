"""Cancellation read-state endpoints. Cancellations are shared by all operators."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Path

from opsdesk.api.auth import get_current_user
from opsdesk.domain import read_state
from opsdesk.domain.read_state import CancellationNotFoundError
from opsdesk.domain.store import Store

router = APIRouter(
    prefix="/cancellations",
    tags=["cancellations"],
    dependencies=[Depends(get_current_user)],
)


def _get_store() -> Store:
    """Get store (allows override in tests)."""
    from opsdesk.infra.store import get_store

    return get_store()


@router.get("/unread")
def list_unread() -> list[dict]:
    return read_state.get_unread_cancellations(_get_store())


@router.get("/unread-count")
def unread_count() -> dict:
    return read_state.get_unread_cancellations_count(_get_store())


@router.post("/read-all")
def mark_all_read() -> dict:
    return read_state.mark_all_cancellations_as_read(_get_store())


@router.post("/{cancellation_id}/read")
def mark_read(cancellation_id: int = Path(..., ge=1)) -> dict:
    """Mark a cancellation as read for everyone. 404 if it does not exist."""
    try:
        return read_state.mark_cancellation_as_read(_get_store(), cancellation_id)
    except CancellationNotFoundError:
        raise HTTPException(status_code=404, detail="Cancellation not found")

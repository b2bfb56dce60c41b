"""Notification read-state endpoints (per operator)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from opsdesk.api.auth import CurrentUser, get_current_user
from opsdesk.domain import read_state
from opsdesk.domain.read_state import (
    DEFAULT_PAGE_LIMIT,
    MAX_PAGE_LIMIT,
    NotificationAccessDeniedError,
    NotificationNotFoundError,
)
from opsdesk.domain.store import Store

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _get_store() -> Store:
    """Get store (allows override in tests)."""
    from opsdesk.infra.store import get_store

    return get_store()


@router.get("/unread")
def list_unread(user: CurrentUser = Depends(get_current_user)) -> list[dict]:
    """Unread notifications routed to the current operator, newest first."""
    return read_state.get_unread_notifications(_get_store(), user.id)


@router.get("/unread-count")
def unread_count(user: CurrentUser = Depends(get_current_user)) -> dict:
    return read_state.get_unread_count(_get_store(), user.id)


@router.get("")
def list_notifications(
    user: CurrentUser = Depends(get_current_user),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    cursor: int | None = Query(None, description="Id of the last item of the previous page"),
) -> dict:
    """All notifications of the current operator, paginated."""
    return read_state.get_all_notifications(_get_store(), user.id, limit=limit, cursor=cursor)


@router.post("/read-all")
def mark_all_read(user: CurrentUser = Depends(get_current_user)) -> dict:
    return read_state.mark_all_as_read(_get_store(), user.id)


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: int = Path(..., ge=1),
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    """Mark one notification as read.

    404 if it does not exist, 403 if it belongs to another operator.
    """
    try:
        return read_state.mark_as_read(_get_store(), user.id, notification_id)
    except NotificationNotFoundError:
        raise HTTPException(status_code=404, detail="Notification not found")
    except NotificationAccessDeniedError:
        raise HTTPException(status_code=403, detail="Access denied")

"""Work session endpoints: operators open a shift over a set of cabinets.

Notifications for a cabinet are routed only to operators whose session is
currently open and includes that cabinet.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Path
from pydantic import BaseModel, Field

from opsdesk.api.auth import CurrentUser, get_current_user
from opsdesk.domain import work_sessions
from opsdesk.domain.store import Store
from opsdesk.domain.work_sessions import (
    ActiveSessionExistsError,
    WorkSessionClosedError,
    WorkSessionNotFoundError,
)

router = APIRouter(prefix="/work-sessions", tags=["work-sessions"])


class StartSessionRequest(BaseModel):
    cabinet_ids: list[int] = Field(default_factory=list)
    comment: str | None = None


class UpdateCommentRequest(BaseModel):
    comment: str


class AddCabinetsRequest(BaseModel):
    cabinet_ids: list[int] = Field(min_length=1)


def _get_store() -> Store:
    """Get store (allows override in tests)."""
    from opsdesk.infra.store import get_store

    return get_store()


@router.get("")
def list_sessions(user: CurrentUser = Depends(get_current_user)) -> list[dict]:
    return work_sessions.list_sessions(_get_store(), user.id)


@router.get("/active")
def get_active(user: CurrentUser = Depends(get_current_user)) -> dict:
    """Current open session, ``{"session": null}`` when there is none."""
    return {"session": work_sessions.get_active_session(_get_store(), user.id)}


@router.post("", status_code=201)
def start_session(
    body: StartSessionRequest,
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    """Open a session. 400 if the operator already has an open one."""
    try:
        return work_sessions.start_session(
            _get_store(),
            user.id,
            cabinet_ids=body.cabinet_ids,
            comment=body.comment,
        )
    except ActiveSessionExistsError:
        raise HTTPException(status_code=400, detail="Active work session already exists")


@router.post("/{session_id}/end")
def end_session(
    session_id: int = Path(..., ge=1),
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    try:
        return work_sessions.end_session(_get_store(), user.id, session_id)
    except WorkSessionNotFoundError:
        raise HTTPException(status_code=404, detail="Work session not found")
    except WorkSessionClosedError:
        raise HTTPException(status_code=400, detail="Work session already ended")


@router.patch("/{session_id}")
def update_comment(
    body: UpdateCommentRequest,
    session_id: int = Path(..., ge=1),
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    try:
        return work_sessions.update_comment(_get_store(), user.id, session_id, body.comment)
    except WorkSessionNotFoundError:
        raise HTTPException(status_code=404, detail="Work session not found")


@router.post("/{session_id}/cabinets")
def add_cabinets(
    body: AddCabinetsRequest,
    session_id: int = Path(..., ge=1),
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    try:
        return work_sessions.add_cabinets(_get_store(), user.id, session_id, body.cabinet_ids)
    except WorkSessionNotFoundError:
        raise HTTPException(status_code=404, detail="Work session not found")


@router.delete("/{session_id}/cabinets/{cabinet_id}")
def remove_cabinet(
    session_id: int = Path(..., ge=1),
    cabinet_id: int = Path(..., ge=1),
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    try:
        return work_sessions.remove_cabinet(_get_store(), user.id, session_id, cabinet_id)
    except WorkSessionNotFoundError:
        raise HTTPException(status_code=404, detail="Work session not found")

"""Cabinet catalog endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from opsdesk.api.auth import get_current_user
from opsdesk.domain import work_sessions
from opsdesk.domain.store import Store

router = APIRouter(prefix="/cabinets", tags=["cabinets"])


def _get_store() -> Store:
    """Get store (allows override in tests)."""
    from opsdesk.infra.store import get_store

    return get_store()


@router.get("", dependencies=[Depends(get_current_user)])
def list_cabinets() -> list[dict]:
    """Cabinets an operator can attach to a work session."""
    return work_sessions.list_cabinets(_get_store())

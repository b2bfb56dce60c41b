"""Public-facing routes (APP_ROLE=public)."""

from fastapi import APIRouter

from opsdesk.api.routes import cabinets, cancellations, ingest, notifications, proxy, work_sessions

router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


router.include_router(ingest.router)
router.include_router(proxy.router)
router.include_router(notifications.router)
router.include_router(cancellations.router)
router.include_router(work_sessions.router)
router.include_router(cabinets.router)

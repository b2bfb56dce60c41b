"""FastAPI application factory.

The public role serves operators and the relay clients; the worker role adds
the per-stream wake-up endpoints driven by an external scheduler.
"""

import os
from typing import Literal, get_args

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from opsdesk.domain.ingestion import INITIALIZING_REASON
from opsdesk.domain.store import SchemaNotReadyError
from opsdesk.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context

from .routers import public, worker

logger = get_logger(__name__)

AppRole = Literal["public", "worker"]


def create_app(role: AppRole | None = None) -> FastAPI:
    """Create the API app for a role.

    Args:
        role: Explicit role. If None, read from APP_ROLE (default "public").

    Raises:
        ValueError: Unknown role.
    """
    if role is None:
        role = os.environ.get("APP_ROLE", "public")  # type: ignore[assignment]
    if role not in get_args(AppRole):
        raise ValueError(f"unknown APP_ROLE: {role!r}")

    app = FastAPI(
        title="Opsdesk",
        docs_url=None,
        redoc_url=None,
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    @app.exception_handler(SchemaNotReadyError)
    async def schema_not_ready_handler(request: Request, exc: SchemaNotReadyError) -> JSONResponse:
        # Migrations still running; clients retry on their next tick
        logger.warning(
            "schema not ready",
            extra={"extra_fields": safe_log_context(path=request.url.path)},
        )
        return JSONResponse(status_code=503, content={"error": INITIALIZING_REASON})

    app.include_router(public.router)

    if role == "worker":
        app.include_router(worker.router)

    return app

"""Worker routes: periodic wake-up for one upstream stream."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from opsdesk.api.auth import require_internal_api_key
from opsdesk.observability.correlation import get_correlation_id
from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context
from opsdesk.polling.poller import Poller

router = APIRouter(
    prefix="/tasks/poll",
    tags=["tasks"],
    dependencies=[Depends(require_internal_api_key)],
)

logger = get_logger(__name__)


def _get_pollers() -> dict[str, Poller]:
    """Get server pollers (allows override in tests)."""
    from opsdesk.polling.server import get_server_pollers

    return get_server_pollers()


@router.post("/{stream}")
def poll_stream(stream: str) -> JSONResponse:
    """Run one poll of ``stream`` (notifications | cancellations).

    Always 200 once the stream is known: a failed poll is reported in the
    body and retried on the next wake-up with the same checkpoint.
    """
    poller = _get_pollers().get(stream)
    if poller is None:
        raise HTTPException(status_code=404, detail="Unknown stream")

    outcome = poller.poll_once()

    logger.info(
        "poll task completed",
        extra={
            "extra_fields": safe_log_context(
                correlationId=get_correlation_id(),
                stream=stream,
                ok=outcome.ok,
                fetched=outcome.fetched,
            )
        },
    )
    return JSONResponse(status_code=200, content=outcome.to_dict())

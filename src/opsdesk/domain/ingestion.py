"""Ingestion/dedup service: single entry point for raw upstream batches.

Used by the save endpoints (batches pushed by operator clients) and by the
server-side pollers. Every item is processed in its own transaction:

validate → classify → lock → existence check → route → insert

so one bad item never aborts the batch, and re-ingesting a batch never
creates a second copy of an already stored message.
"""

from __future__ import annotations

from typing import Any, Iterable, Literal

from pydantic import ValidationError

from opsdesk.infra.time import from_unix_seconds
from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context

from .classification import CancellationCandidate, NotificationCandidate, classify
from .identifiers import bound_chat_id, derive_message_key
from .models import ItemResult, RawMessage
from .routing import parse_external_cabinet_id, route
from .store import SchemaNotReadyError, Store

logger = get_logger(__name__)

Stream = Literal["notifications", "cancellations"]

INITIALIZING_REASON = "initializing"


def _raw_message_id(item: Any) -> str | int | None:
    if isinstance(item, dict):
        return item.get("message_id", item.get("messageId"))
    return None


def _ingest_cancellation(store: Store, candidate: CancellationCandidate) -> ItemResult:
    raw = candidate.raw
    message_id = raw.message_id_str

    with store.transaction() as tx:
        if tx.cancellation_exists(raw.chat_id, message_id):
            return ItemResult(status="duplicate", message_id=raw.message_id, kind="cancellation")

        new_id = tx.insert_cancellation(
            chat_id=raw.chat_id,
            chat_name=raw.chat_name,
            message=raw.message,
            message_id=message_id,
            timestamp=from_unix_seconds(raw.timestamp),
        )

    if new_id is None:
        return ItemResult(status="duplicate", message_id=raw.message_id, kind="cancellation")
    return ItemResult(status="saved", message_id=raw.message_id, kind="cancellation")


def _ingest_notification(store: Store, candidate: NotificationCandidate) -> ItemResult:
    raw = candidate.raw
    message_key = derive_message_key(raw.message_id, chat_id=raw.chat_id)

    with store.transaction() as tx:
        # Serializes the foreground and background pollers on the same message
        tx.lock_message(message_key)

        if tx.notification_exists(message_key):
            return ItemResult(status="duplicate", message_id=raw.message_id, kind="notification")

        idex_id = parse_external_cabinet_id(candidate.cabinet_id)
        idex_cabinet_id = tx.resolve_cabinet(idex_id) if idex_id is not None else None
        recipients = route(tx, candidate.cabinet_id)

        fields = {
            "message_key": message_key,
            "message_id": raw.message_id_str,
            "chat_id": bound_chat_id(raw.chat_id),
            "external_chat_id": raw.chat_id,
            "chat_name": raw.chat_name,
            "cabinet_name": candidate.cabinet_name,
            "cabinet_id": candidate.cabinet_id,
            "message": raw.message,
            "timestamp": from_unix_seconds(raw.timestamp),
            "idex_cabinet_id": idex_cabinet_id,
        }

        if not recipients:
            new_id = tx.insert_notification(user_id=None, **fields)
            if new_id is None:
                return ItemResult(status="duplicate", message_id=raw.message_id, kind="notification")
            return ItemResult(status="saved", message_id=raw.message_id, kind="notification")

        delivered: list[str] = []
        for recipient in recipients:
            if tx.insert_notification(user_id=recipient.user_id, **fields) is not None:
                delivered.append(recipient.name or str(recipient.user_id))

    if not delivered:
        return ItemResult(status="duplicate", message_id=raw.message_id, kind="notification")
    return ItemResult(
        status="saved_with_users",
        message_id=raw.message_id,
        kind="notification",
        users=tuple(delivered),
    )


def ingest_one(item: Any, *, stream: Stream, store: Store) -> ItemResult:
    """Ingest a single raw upstream item.

    Never raises: every outcome is reported as an ItemResult.
    """
    message_id = _raw_message_id(item)

    try:
        raw = RawMessage.model_validate(item)
    except ValidationError as e:
        logger.warning(
            "invalid upstream item",
            extra={
                "extra_fields": safe_log_context(
                    stream=stream,
                    error_count=e.error_count(),
                )
            },
        )
        return ItemResult(status="error", message_id=message_id, error="invalid message")

    candidate = classify(raw)

    try:
        if isinstance(candidate, CancellationCandidate):
            return _ingest_cancellation(store, candidate)
        if stream == "cancellations":
            return ItemResult(status="ignored", message_id=raw.message_id, kind="notification")
        return _ingest_notification(store, candidate)
    except SchemaNotReadyError:
        return ItemResult(
            status="not_saved",
            message_id=raw.message_id,
            kind=candidate.kind,
            reason=INITIALIZING_REASON,
        )
    except Exception as e:
        logger.exception(
            "ingestion failed for item",
            extra={
                "extra_fields": safe_log_context(
                    stream=stream,
                    kind=candidate.kind,
                    message_id=raw.message_id_str,
                    error_type=type(e).__name__,
                )
            },
        )
        return ItemResult(
            status="error",
            message_id=raw.message_id,
            kind=candidate.kind,
            error=str(e) or type(e).__name__,
        )


def ingest_batch(messages: Iterable[Any], *, stream: Stream, store: Store) -> list[ItemResult]:
    """Ingest a batch of raw upstream items.

    Args:
        messages: Raw items as decoded from JSON (dicts).
        stream: Which upstream stream the batch came from.
        store: Storage to persist into.

    Returns:
        One ItemResult per input item, in input order.
    """
    results = [ingest_one(item, stream=stream, store=store) for item in messages]

    counts: dict[str, int] = {}
    for result in results:
        counts[result.status] = counts.get(result.status, 0) + 1

    logger.info(
        "batch ingested",
        extra={
            "extra_fields": safe_log_context(
                stream=stream,
                batch_size=len(results),
                **counts,
            )
        },
    )
    return results

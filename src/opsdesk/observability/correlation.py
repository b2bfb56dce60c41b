"""Correlation ID management for request and poll-run tracing."""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Iterator

# Accessible across the request handler and any poll run it triggers
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"


def generate_correlation_id(prefix: str | None = None) -> str:
    """Generate a new correlation ID.

    Poll runs outside of an HTTP request get a prefixed ID
    (e.g. ``poll-notifications:<uuid>``) so log lines can be grouped per stream.
    """
    cid = str(uuid.uuid4())
    if prefix:
        return f"{prefix}:{cid}"
    return cid


def get_correlation_id() -> str:
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    correlation_id_var.reset(token)


@contextmanager
def correlation_scope(prefix: str) -> Iterator[str]:
    """Bind a fresh correlation ID unless one is already set.

    Scheduler threads start with an empty context, HTTP-triggered polls
    inherit the request's ID.
    """
    existing = get_correlation_id()
    if existing:
        yield existing
        return

    token = set_correlation_id(generate_correlation_id(prefix))
    try:
        yield get_correlation_id()
    finally:
        reset_correlation_id(token)

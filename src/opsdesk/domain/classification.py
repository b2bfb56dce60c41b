"""Classify upstream messages into notifications and cancellations.

The upstream relay has no typed discriminator: a cancellation is a message
whose text carries a fixed marker phrase. All string matching on message
content lives in this module.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

from .models import RawMessage

CANCELLATION_MARKER = "невозможно обработать"

# "[Cabinet#42] Автоматическое оповещение: ..." boilerplate added by the relay
_BOILERPLATE_PREFIX = re.compile(r"\[[^\]]*\]\s*Автоматическое оповещение:\s*")

# "[name#external_id]" tag identifying the cabinet inside the text
_CABINET_TAG = re.compile(r"\[([^\]#]*)#([^\]]*)\]")


@dataclass(frozen=True)
class NotificationCandidate:
    """A message to be stored and routed to users with open sessions."""

    raw: RawMessage
    cabinet_id: str
    cabinet_name: str
    kind: Literal["notification"] = "notification"


@dataclass(frozen=True)
class CancellationCandidate:
    """A message reporting an operation that could not be processed."""

    raw: RawMessage
    kind: Literal["cancellation"] = "cancellation"


Classified = NotificationCandidate | CancellationCandidate


def is_cancellation_text(text: str) -> bool:
    return CANCELLATION_MARKER in text.casefold()


def strip_boilerplate(text: str) -> str:
    """Remove the relay's boilerplate prefix for display."""
    return _BOILERPLATE_PREFIX.sub("", text)


def extract_cabinet(text: str) -> tuple[str, str] | None:
    """Parse the ``[name#id]`` cabinet tag.

    Returns:
        (cabinet_name, external_cabinet_id) or None when the text has no tag.
    """
    match = _CABINET_TAG.search(text)
    if match is None:
        return None
    name, external_id = match.group(1).strip(), match.group(2).strip()
    if not external_id:
        return None
    return name, external_id


def classify(raw: RawMessage) -> Classified:
    """Tag a raw message as a notification or a cancellation.

    Cabinet fields missing from the upstream payload are filled from the
    text tag when present.
    """
    if is_cancellation_text(raw.message):
        return CancellationCandidate(raw=raw)

    cabinet_id = raw.cabinet_id.strip()
    cabinet_name = raw.cabinet_name.strip()
    if not cabinet_id or not cabinet_name:
        tag = extract_cabinet(raw.message)
        if tag is not None:
            cabinet_name = cabinet_name or tag[0]
            cabinet_id = cabinet_id or tag[1]

    return NotificationCandidate(raw=raw, cabinet_id=cabinet_id, cabinet_name=cabinet_name)

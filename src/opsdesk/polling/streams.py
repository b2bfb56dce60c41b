"""Upstream streams and lookback computation."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class PollStream:
    """One upstream stream polled independently of the other."""

    name: str
    path: str
    default_hours: int


NOTIFICATIONS = PollStream(name="notifications", path="messages/recent", default_hours=3)
CANCELLATIONS = PollStream(name="cancellations", path="cancellations/recent", default_hours=24)

STREAMS = {s.name: s for s in (NOTIFICATIONS, CANCELLATIONS)}


def get_stream(name: str) -> PollStream:
    """Look up a stream by name.

    Raises:
        KeyError: Unknown stream.
    """
    return STREAMS[name]


def lookback_hours(last_checked: datetime | None, now: datetime, default_hours: int) -> int:
    """Whole hours to request so nothing since the last checkpoint is missed.

    ``max(1, ceil((now - last_checked) / 1h))``, or ``default_hours`` when
    there is no checkpoint yet.
    """
    if last_checked is None:
        return default_hours
    elapsed = (now - last_checked) / timedelta(hours=1)
    return max(1, math.ceil(elapsed))

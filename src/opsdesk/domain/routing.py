"""Session router: who receives a cabinet notification.

A notification goes to every user whose currently open work session
(end_time IS NULL) includes the cabinet named by the notification. Closed
sessions never receive, even if they covered the message timestamp.
"""

from __future__ import annotations

from .models import Recipient
from .store import Transaction


def parse_external_cabinet_id(cabinet_id: str | int | None) -> int | None:
    """Parse the upstream cabinet identifier, None if it is not numeric."""
    if cabinet_id is None:
        return None
    text = str(cabinet_id).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def route(tx: Transaction, external_cabinet_id: str | int | None) -> list[Recipient]:
    """Resolve recipients for a notification.

    Returns:
        Distinct recipients (possibly empty). Non-numeric cabinet ids route
        to nobody.
    """
    idex_id = parse_external_cabinet_id(external_cabinet_id)
    if idex_id is None:
        return []

    seen: set[int] = set()
    recipients: list[Recipient] = []
    for recipient in tx.find_active_recipients(idex_id):
        if recipient.user_id in seen:
            continue
        seen.add(recipient.user_id)
        recipients.append(recipient)
    return recipients

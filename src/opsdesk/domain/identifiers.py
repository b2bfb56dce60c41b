"""Stable identifiers for upstream messages.

Upstream message ids are only unique within one chat, so the message key is
always derived from the (chat, message) pair: a SHA-256 over both, folded to
63 bits. The same upstream message maps to the same key across processes and
restarts, and equal message ids in different chats never share a key.
"""

import hashlib

CHAT_ID_MAX = 2_147_483_647  # INT4 upper bound
_INT64_MAX = 2**63 - 1


def derive_message_key(message_id: str | int, *, chat_id: int) -> int:
    """Derive the stable 64-bit key for an upstream message.

    Args:
        message_id: Upstream message identifier (string or int).
        chat_id: Upstream chat the message was posted in (raw, unbounded).

    Returns:
        Non-negative integer that fits in a signed BIGINT.
    """
    text = str(message_id).strip()
    digest = hashlib.sha256(f"{chat_id}:{text}".encode()).digest()
    return int.from_bytes(digest[:8], "big") & _INT64_MAX


def bound_chat_id(chat_id: int) -> int:
    """Fold an external chat id into the positive INT4 range.

    Telegram-style chat ids are often negative or exceed INT4; the raw
    value is kept separately as external_chat_id.
    """
    if 0 < chat_id <= CHAT_ID_MAX:
        return chat_id
    folded = abs(chat_id) % CHAT_ID_MAX
    return folded or 1

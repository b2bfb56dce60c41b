"""Redaction helpers for safe logging. Upstream payloads and credentials must pass through these."""

import re
from typing import Any

# Credentials and contact data that should never appear in logs
_BEARER_PATTERN = re.compile(r"(?i)bearer\s+[A-Za-z0-9._~+/=-]+")
_API_KEY_PATTERN = re.compile(r"[A-Za-z0-9_\-]{32,}")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_REDACTED = "[REDACTED]"

# Keys whose values are logged by size only
_BODY_KEYS = frozenset({"message", "text", "body"})


def redact_string(value: str) -> str:
    """Redact credential and e-mail patterns from a string."""
    result = _BEARER_PATTERN.sub(_REDACTED, value)
    result = _API_KEY_PATTERN.sub(_REDACTED, result)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    return result


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        # Structure only, never values
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple, set, frozenset)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted.

    Message bodies are reduced to their length.
    """
    context: dict[str, str] = {}
    for key, value in kwargs.items():
        if key in _BODY_KEYS and isinstance(value, str):
            context[f"{key}_len"] = str(len(value))
        else:
            context[key] = redact_value(value)
    return context

"""Desktop notifications through plyer.

Permission is requested lazily: enabling the toggle sends a confirmation
notification, and if the platform backend refuses, the toggle stays off.
"""

from __future__ import annotations

from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context

logger = get_logger(__name__)

APP_NAME = "Opsdesk"


def _notify(title: str, message: str, timeout: int) -> None:
    from plyer import notification

    notification.notify(title=title, message=message, app_name=APP_NAME, timeout=timeout)


class DesktopNotifier:
    def __init__(self, *, enabled: bool = False, timeout: int = 10) -> None:
        self.enabled = enabled
        self.timeout = timeout
        self._granted = False

    def request_permission(self) -> bool:
        """Probe the platform backend once; True if notifications can be shown."""
        if self._granted:
            return True
        try:
            _notify(APP_NAME, "Desktop notifications enabled", self.timeout)
        except Exception as e:
            logger.info(
                "desktop notifications unavailable",
                extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
            )
            return False
        self._granted = True
        return True

    def set_enabled(self, enabled: bool) -> bool:
        """Toggle notifications; returns the resulting state."""
        if enabled and not self.request_permission():
            self.enabled = False
        else:
            self.enabled = enabled
        return self.enabled

    def show(self, title: str, message: str) -> None:
        """Show one notification. Raises if the backend fails."""
        if not self.enabled:
            return
        _notify(title, message, self.timeout)

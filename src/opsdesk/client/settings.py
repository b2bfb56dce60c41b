"""Operator client settings, persisted as a JSON file.

Location: OPSDESK_CLIENT_CONFIG, default ``~/.opsdesk/client.json``.
The poll checkpoints of the foreground pollers live here too.
"""

from __future__ import annotations

import os
import threading
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context

logger = get_logger(__name__)

_DEFAULT_PATH = Path.home() / ".opsdesk" / "client.json"


class ClientSettings(BaseModel):
    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    upstream_api_url: str = ""
    upstream_api_key: str = ""
    server_url: str = "http://localhost:8000"
    server_token: str = ""
    poll_interval_seconds: float = Field(5.0, gt=0)
    sound_enabled: bool = True
    pc_beep_enabled: bool = True
    desktop_notifications_enabled: bool = False
    last_checked: datetime | None = None
    last_cancellation_checked: datetime | None = None


def default_settings_path() -> Path:
    configured = os.environ.get("OPSDESK_CLIENT_CONFIG")
    return Path(configured).expanduser() if configured else _DEFAULT_PATH


class SettingsFile:
    """Load/save ClientSettings. Saves are serialized and written atomically."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or default_settings_path()
        self._lock = threading.Lock()

    def load(self) -> ClientSettings:
        if not self.path.exists():
            return ClientSettings()
        try:
            return ClientSettings.model_validate_json(self.path.read_text(encoding="utf-8"))
        except ValueError:
            logger.warning(
                "invalid client settings file, using defaults",
                extra={"extra_fields": safe_log_context(path=str(self.path))},
            )
            return ClientSettings()

    def save(self, settings: ClientSettings) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(".tmp")
            tmp.write_text(settings.model_dump_json(indent=2), encoding="utf-8")
            tmp.replace(self.path)


# Settings field holding the checkpoint of each stream
_CHECKPOINT_FIELDS = {
    "notifications": "last_checked",
    "cancellations": "last_cancellation_checked",
}


class SettingsCheckpoints:
    """Poll checkpoints kept in the client settings file."""

    def __init__(self, settings: ClientSettings, settings_file: SettingsFile) -> None:
        self._settings = settings
        self._file = settings_file

    def load(self, stream: str) -> datetime | None:
        return getattr(self._settings, _CHECKPOINT_FIELDS[stream])

    def save(self, stream: str, checked_at: datetime) -> None:
        setattr(self._settings, _CHECKPOINT_FIELDS[stream], checked_at)
        self._file.save(self._settings)

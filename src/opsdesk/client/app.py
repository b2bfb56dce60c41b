"""Operator client composition root.

ClientApp owns the AlertState and wires the foreground pollers:

upstream fetch → delivery (alerts) → save batch to server → refresh badges

A failed save fails the poll, so the checkpoint stays put and the batch is
sent again on the next run; the seen set keeps it from alerting twice.
"""

from __future__ import annotations

from typing import Any

from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context
from opsdesk.polling.poller import Poller, raise_for_unpersisted
from opsdesk.polling.schedulers import ForegroundPollLoop
from opsdesk.polling.streams import CANCELLATIONS, NOTIFICATIONS
from opsdesk.polling.upstream import UpstreamClient

from .api_client import ServerClient
from .delivery import DeliveryClient
from .desktop import DesktopNotifier
from .settings import SettingsCheckpoints, SettingsFile
from .sound import SoundChain, default_chain
from .state import AlertState

logger = get_logger(__name__)


class ClientApp:
    def __init__(
        self,
        settings_file: SettingsFile | None = None,
        *,
        upstream: UpstreamClient | None = None,
        server: ServerClient | None = None,
        sound: SoundChain | None = None,
        desktop: DesktopNotifier | None = None,
        state: AlertState | None = None,
    ) -> None:
        self.settings_file = settings_file or SettingsFile()
        self.settings = self.settings_file.load()
        s = self.settings

        self.state = state or AlertState()
        self.upstream = upstream or UpstreamClient(s.upstream_api_url, s.upstream_api_key)
        self.server = server or ServerClient(s.server_url, s.server_token)
        self.desktop = desktop or DesktopNotifier(enabled=s.desktop_notifications_enabled)
        self.delivery = DeliveryClient(
            self.state,
            sound or default_chain(sound_enabled=s.sound_enabled, pc_beep_enabled=s.pc_beep_enabled),
            self.desktop,
        )

        checkpoints = SettingsCheckpoints(self.settings, self.settings_file)
        self.pollers = {
            NOTIFICATIONS.name: Poller(
                NOTIFICATIONS,
                source=self.upstream.fetch_recent,
                sink=self._notifications_sink,
                checkpoints=checkpoints,
                error_slot=self.state.errors,
            ),
            CANCELLATIONS.name: Poller(
                CANCELLATIONS,
                source=self.upstream.fetch_recent,
                sink=self._cancellations_sink,
                checkpoints=checkpoints,
                error_slot=self.state.errors,
            ),
        }
        self.loop = ForegroundPollLoop(self.pollers.values(), interval=s.poll_interval_seconds)

    def start(self) -> None:
        self.state.init()
        # init() replaces the error slot; pollers must report into the live one
        for poller in self.pollers.values():
            poller.error_slot = self.state.errors
        self.loop.start()

    def stop(self) -> None:
        self.loop.stop()
        self.state.dispose()

    def mark_interacted(self) -> None:
        self.state.mark_interacted()

    def set_desktop_notifications(self, enabled: bool) -> bool:
        """Toggle desktop notifications; stays off when permission is refused."""
        result = self.desktop.set_enabled(enabled)
        self.settings.desktop_notifications_enabled = result
        self.settings_file.save(self.settings)
        return result

    def refresh_badges(self) -> None:
        try:
            self.state.set_badge("notifications", self.server.unread_count())
            self.state.set_badge("cancellations", self.server.unread_cancellations_count())
        except Exception as e:
            logger.debug(
                "badge refresh failed",
                extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
            )

    def _notifications_sink(self, batch: list[dict[str, Any]]) -> None:
        self.delivery.add_notifications(batch)
        results = self.server.save_notifications(batch) if batch else []
        self.refresh_badges()
        raise_for_unpersisted(NOTIFICATIONS.name, results)

    def _cancellations_sink(self, batch: list[dict[str, Any]]) -> None:
        self.delivery.add_cancellations(batch)
        results = self.server.save_cancellations(batch) if batch else []
        self.refresh_badges()
        raise_for_unpersisted(CANCELLATIONS.name, results)

"""Schedulers driving Poller instances.

- ForegroundPollLoop: one daemon thread per stream, used by the operator
  client. Polls immediately, then waits ``interval`` after each completed run.
- BackgroundPollScheduler: APScheduler BackgroundScheduler with one interval
  job per stream, used by the server-side worker.

Both keep polling sequential per stream; the two streams run independently.
"""

from __future__ import annotations

import threading
from typing import Iterable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context

from .poller import Poller

logger = get_logger(__name__)

DEFAULT_INTERVAL_SECONDS = 5.0


class ForegroundPollLoop:
    """Thread-per-stream polling loop with explicit start/stop."""

    def __init__(self, pollers: Iterable[Poller], *, interval: float = DEFAULT_INTERVAL_SECONDS) -> None:
        self._pollers = list(pollers)
        self.interval = interval
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._threads = [
            threading.Thread(
                target=self._loop,
                args=(poller,),
                name=f"poll-{poller.stream.name}",
                daemon=True,
            )
            for poller in self._pollers
        ]
        for thread in self._threads:
            thread.start()
        logger.info(
            "foreground polling started",
            extra={"extra_fields": safe_log_context(streams=len(self._threads), interval=self.interval)},
        )

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []

    def _loop(self, poller: Poller) -> None:
        while not self._stop.is_set():
            # poll_once records its own failures; anything else must not kill the thread
            try:
                poller.poll_once()
            except Exception:
                logger.exception(
                    "unexpected error in poll loop",
                    extra={"extra_fields": safe_log_context(stream=poller.stream.name)},
                )
            self._stop.wait(self.interval)


class BackgroundPollScheduler:
    """APScheduler-backed polling for the worker process."""

    def __init__(
        self,
        pollers: Iterable[Poller],
        *,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        scheduler: BackgroundScheduler | None = None,
    ) -> None:
        self._pollers = list(pollers)
        self.interval = interval
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")

    def start(self) -> None:
        for poller in self._pollers:
            self.scheduler.add_job(
                poller.poll_once,
                trigger=IntervalTrigger(seconds=self.interval),
                id=f"poll_{poller.stream.name}",
                name=f"Poll {poller.stream.name}",
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
        self.scheduler.start()
        logger.info(
            "background polling scheduler started",
            extra={"extra_fields": safe_log_context(jobs=len(self._pollers), interval=self.interval)},
        )

    def shutdown(self, wait: bool = True) -> None:
        self.scheduler.shutdown(wait=wait)
        logger.info("background polling scheduler stopped")

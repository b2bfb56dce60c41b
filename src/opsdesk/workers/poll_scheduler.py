"""Background poller worker.

Usage:
    DATABASE_URL=... UPSTREAM_API_URL=... UPSTREAM_API_KEY=... opsdesk-poller

Polls both upstream streams every POLL_INTERVAL_SECONDS (default 5) and feeds
the ingestion service. Runs until interrupted.
"""

from __future__ import annotations

import os
import signal
import sys
import threading

from opsdesk.observability.logging import get_logger
from opsdesk.observability.redaction import safe_log_context

logger = get_logger(__name__)


def main() -> None:
    if not os.environ.get("DATABASE_URL"):
        sys.stderr.write("ERROR: DATABASE_URL not set\n")
        sys.exit(1)

    # Import after env validation so missing DB doesn't blow up on import
    from opsdesk.polling.schedulers import DEFAULT_INTERVAL_SECONDS, BackgroundPollScheduler
    from opsdesk.polling.server import get_server_pollers
    from opsdesk.polling.upstream import UpstreamConfigError, UpstreamClient

    try:
        UpstreamClient.from_env().validate()
    except UpstreamConfigError as e:
        sys.stderr.write(f"ERROR: {e}\n")
        sys.exit(1)

    interval = float(os.environ.get("POLL_INTERVAL_SECONDS", DEFAULT_INTERVAL_SECONDS))
    scheduler = BackgroundPollScheduler(get_server_pollers().values(), interval=interval)

    stop = threading.Event()

    def _handle_signal(signum, frame) -> None:
        logger.info(
            "shutdown requested",
            extra={"extra_fields": safe_log_context(signal=signum)},
        )
        stop.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    scheduler.start()
    try:
        stop.wait()
    finally:
        scheduler.shutdown()


if __name__ == "__main__":
    main()

"""Operator client entry point.

Usage:
    opsdesk-client [--config PATH] [--desktop | --no-desktop]

Press Enter once to allow sound alerts; Ctrl-C to quit.
"""

from __future__ import annotations

import argparse
import sys
import threading
from pathlib import Path

from opsdesk.observability.logging import set_log_stream
from opsdesk.polling.upstream import UpstreamConfigError

from .app import ClientApp
from .settings import SettingsFile


def _wait_for_interaction(app: ClientApp) -> None:
    for _ in sys.stdin:
        app.mark_interacted()
        sys.stdout.write("Sound alerts enabled.\n")
        return


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="opsdesk-client")
    parser.add_argument("--config", type=Path, default=None, help="settings JSON file")
    parser.add_argument("--desktop", action=argparse.BooleanOptionalAction, default=None)
    args = parser.parse_args(argv)

    # stdout carries the operator prompts
    set_log_stream(sys.stderr)

    app = ClientApp(SettingsFile(args.config) if args.config else None)

    try:
        app.upstream.validate()
    except UpstreamConfigError as e:
        sys.stderr.write(f"ERROR: {e}\n")
        sys.exit(1)

    if args.desktop is not None:
        enabled = app.set_desktop_notifications(args.desktop)
        if args.desktop and not enabled:
            sys.stderr.write("WARNING: desktop notifications unavailable, keeping them off\n")

    app.start()
    sys.stdout.write("Polling started. Press Enter to enable sound alerts, Ctrl-C to quit.\n")
    threading.Thread(target=_wait_for_interaction, args=(app,), daemon=True).start()

    stop = threading.Event()
    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        app.stop()


if __name__ == "__main__":
    main()

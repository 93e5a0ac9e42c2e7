"""CLI entrypoint to launch the inhibit bridge."""

from __future__ import annotations

import argparse
import signal
import sys
from pathlib import Path
from typing import List, Optional

from inhibit_bridge.core.exceptions import BridgeError
from inhibit_bridge.core.settings import BridgeSettings, parse_duration
from inhibit_bridge.utils.logging import configure_logging, get_logger


logger = get_logger("InhibitBridgeCLI")


def _duration(value: str) -> float:
    try:
        seconds = parse_duration(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    if seconds <= 0:
        raise argparse.ArgumentTypeError("duration must be positive")
    return seconds


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inhibit-bridge",
        description="Bridge org.freedesktop.ScreenSaver inhibit requests to systemd-logind idle inhibitors.",
    )
    parser.add_argument(
        "--heartbeat-interval",
        type=_duration,
        default=None,
        help="How long to wait between active lock peer validations, e.g. 10s or 500ms (default: 10s)",
    )
    parser.add_argument("--config", type=Path, default=None, help="Optional path to a YAML settings file")
    parser.add_argument("--debug", action="store_true", default=None, help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = BridgeSettings.load(
            args.config,
            heartbeat_interval=args.heartbeat_interval,
            debug=args.debug,
        )
    except (OSError, ValueError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2
    configure_logging(debug=settings.debug)

    import dbus.mainloop.glib
    from gi.repository import GLib

    from inhibit_bridge.core.service import InhibitBridge

    dbus.mainloop.glib.DBusGMainLoop(set_as_default=True)
    dbus.mainloop.glib.threads_init()

    try:
        bridge = InhibitBridge.from_settings(settings)
        bridge.start()
    except BridgeError as exc:
        logger.error("Setup failure: %s", exc)
        return 1
    logger.info("%s running.", settings.program)

    loop = GLib.MainLoop()

    def on_signal(signame: str) -> bool:
        logger.info("%s: Received signal %s. Shutting down...", settings.program, signame)
        loop.quit()
        return GLib.SOURCE_REMOVE

    for signum in (signal.SIGINT, signal.SIGTERM):
        GLib.unix_signal_add(GLib.PRIORITY_HIGH, signum, on_signal, signal.Signals(signum).name)

    try:
        loop.run()
    finally:
        bridge.stop()
    logger.info("Goodbye.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

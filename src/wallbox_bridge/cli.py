"""Command line entry point: ``wallbox-mqtt-bridge CONFIG``."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import signal
import sys
from collections.abc import Sequence
from types import FrameType

from wallbox_bridge._redact import redact_for_log
from wallbox_bridge.bridge import WallboxBridge
from wallbox_bridge.config import BridgeConfig
from wallbox_bridge.datasource.wallbox import RedisSqlDataSource
from wallbox_bridge.exceptions import BridgeConfigError, BridgeError

_LOG = logging.getLogger("wallbox_bridge")

EXIT_OK = 0
EXIT_FATAL = 1


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="wallbox-mqtt-bridge",
        description="Publish a Wallbox charger's state as MQTT discovery entities.",
    )
    parser.add_argument("config", help="Path to the bridge INI config file.")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = BridgeConfig.from_file(args.config)
    except BridgeConfigError as exc:
        _LOG.error("Invalid configuration: %s", exc)
        return EXIT_FATAL
    _LOG.debug("Loaded config %s", redact_for_log(dataclasses.asdict(config)))

    try:
        source = RedisSqlDataSource.connect(config)
    except BridgeError as exc:
        _LOG.error("Could not connect to the charger data source: %s", exc)
        return EXIT_FATAL

    bridge = WallboxBridge(config, source)

    def on_signal(signum: int, _frame: FrameType | None) -> None:
        _LOG.debug("Received signal %s", signal.Signals(signum).name)
        bridge.request_shutdown()

    signal.signal(signal.SIGINT, on_signal)
    signal.signal(signal.SIGTERM, on_signal)

    try:
        bridge.run()
    except BridgeError as exc:
        _LOG.error("Bridge stopped: %s", exc)
        return EXIT_FATAL
    except Exception:
        _LOG.exception("Bridge stopped on an unexpected error")
        return EXIT_FATAL
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

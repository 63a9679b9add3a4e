"""Entry point for the sensor bridge process.

Usage:
    sensor-bridge <port> [--serial-port DEV] [--baud N] [--simulate] [--no-console]

Opens the sensor board's serial link, starts ingesting readings, and serves
one-shot client requests on <port> until the operator types q, or the
process receives SIGINT/SIGTERM.

Other settings come from the environment (see sensor_bridge.config).
"""

import argparse
import logging
import sys
from typing import List, Optional

from sensor_bridge import protocol
from sensor_bridge.config import BridgeConfig
from sensor_bridge.errors import BridgeStartupError, ConfigError, SerialIOError
from sensor_bridge.lifecycle import (
    SensorBridge,
    ShutdownSignal,
    install_signal_handlers,
    watch_console,
)
from sensor_bridge.transport import Transport

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STARTUP_FAILED = 1
EXIT_BAD_CONFIG = 2


def _port_number(text: str) -> int:
    try:
        port = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port number: {text!r}")
    if not (1 <= port <= 65535):
        raise argparse.ArgumentTypeError(f"port must be 1-65535, got {port}")
    return port


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sensor-bridge",
        description="Bridge a serial temperature sensor to watch clients over TCP",
    )
    parser.add_argument("port", type=_port_number, help="TCP port to listen on")
    parser.add_argument("--serial-port", help="Sensor board device (overrides SERIAL_PORT)")
    parser.add_argument("--baud", type=int, help="Serial baud rate (overrides SERIAL_BAUD)")
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use a simulated sensor board instead of a serial device",
    )
    parser.add_argument(
        "--no-console",
        action="store_true",
        help="Do not watch stdin for q to quit",
    )
    return parser


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def open_transport(config: BridgeConfig, simulate: bool) -> Transport:
    """Open the device link named by the config, or a simulated board.

    Raises:
        BridgeStartupError: If the serial device cannot be opened
    """
    if simulate:
        from fakes.fake_serial import FakeSerial

        board = FakeSerial(timeout=config.serial_timeout_s)
        board.start_streaming(period_s=1.0)
        logger.info("Using simulated sensor board")
        return Transport(board)

    try:
        return Transport.open(
            config.serial_port, baud=config.baud, timeout_s=config.serial_timeout_s
        )
    except SerialIOError as e:
        raise BridgeStartupError(f"Couldn't establish a connection with the sensor board: {e}") from e


def main(argv: Optional[List[str]] = None) -> int:
    """Run the bridge until shutdown.

    Returns:
        Process exit status
    """
    args = build_parser().parse_args(argv)

    try:
        config = BridgeConfig.from_env(
            args.port,
            serial_port=args.serial_port,
            baud=args.baud,
        )
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_BAD_CONFIG

    setup_logging(config.log_level)
    logger.info(
        f"Starting sensor bridge on {config.host}:{config.port} "
        f"(device {'simulated' if args.simulate else config.serial_port}, "
        f"{config.log_capacity} reading history, {protocol.TOGGLE_RESEND_COUNT}x toggle debounce)"
    )

    try:
        transport = open_transport(config, args.simulate)
    except BridgeStartupError as e:
        logger.error(str(e))
        return EXIT_STARTUP_FAILED

    shutdown = ShutdownSignal()
    bridge = SensorBridge(config, transport, shutdown=shutdown)

    try:
        bridge.start()
    except BridgeStartupError as e:
        logger.error(str(e))
        bridge.stop()
        return EXIT_STARTUP_FAILED

    install_signal_handlers(shutdown)
    if not args.no_console:
        watch_console(shutdown)
        print("Type q and press Enter to stop the bridge.")

    bridge.wait()
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

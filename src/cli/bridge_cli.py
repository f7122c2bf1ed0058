"""
Command line front end for SerialBridge.

Opens both ports, runs the bridge until the operator presses return (or
Ctrl+C) or a port fails, then closes everything and exits with 0 for a
user break and 1 for any error.
"""

import argparse
import logging
import signal
import sys
from typing import List, Optional

from src.core.bridge_engine import BridgeSettings, SerialBridgeCore
from src.core.errors import BridgeError, UserBreak
from src.core.events import Endpoint
from src.core.port_config import list_serial_ports, open_serial_port, parse_port_definition
from src.core.port_workers import UserBreakListener
from src.core.traffic_log import setup_logging

EXIT_OK = 0
EXIT_FAILURE = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="serial-bridge",
        description="Bridge two serial ports, forwarding data and mirroring "
                    "CTS/DSR onto RTS/DTR, while logging the traffic."
    )
    parser.add_argument("-l", "--left-port", default="COM1,19200,N,8,1",
                        help="Left port definition PORT,BAUD,PARITY,DATABITS,STOPBITS")
    parser.add_argument("--left-label", default="Left Port",
                        help="an arbitrary label for the left port, used for better distinction in the logs")
    parser.add_argument("-r", "--right-port", default="COM2,19200,N,8,1",
                        help="Right port definition PORT,BAUD,PARITY,DATABITS,STOPBITS")
    parser.add_argument("--right-label", default="Right Port",
                        help="an arbitrary label for the right port, used for better distinction in the logs")
    parser.add_argument("-o", "--output", default="",
                        help="log file. leave this empty to log to console only")
    parser.add_argument("-t", "--read-timeout", type=int, default=100,
                        help="Read timeout in ms. Adjust this to better detect packet boundaries")
    parser.add_argument("--read-buffer", type=int, default=4096,
                        help="Read buffer size")
    parser.add_argument("--log-control-flow", action="store_true",
                        help="Log control flow (CTS / DSR)")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level")
    parser.add_argument("--list-ports", action="store_true",
                        help="List available serial ports and exit")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.list_ports:
        for description in list_serial_ports():
            print(description)
        return EXIT_OK

    try:
        logger = setup_logging(args.output or None, args.log_level)
    except OSError as e:
        print(f"error opening file: {e}", file=sys.stderr)
        return EXIT_FAILURE

    if args.read_timeout < 0 or args.read_buffer < 1:
        logger.error("Read timeout must be >= 0 and read buffer >= 1")
        return EXIT_FAILURE

    # Parse both definitions before touching any device
    links = []
    for definition, label in ((args.left_port, args.left_label), (args.right_port, args.right_label)):
        try:
            links.append(parse_port_definition(definition))
        except BridgeError as e:
            logger.error(f"error opening port to {label}: {e}")
            return EXIT_FAILURE
    left_link, right_link = links

    read_timeout = args.read_timeout / 1000.0
    left_port = right_port = None
    try:
        left_port = open_serial_port(left_link, read_timeout, args.left_label, logger)
        right_port = open_serial_port(right_link, read_timeout, args.right_label, logger)

        left, right = Endpoint.pair(left_port, args.left_label, right_port, args.right_label)
        settings = BridgeSettings(
            read_buffer_size=args.read_buffer,
            log_control_flow=args.log_control_flow,
        )
        return run_bridge(left, right, settings, logger)

    except BridgeError as e:
        logger.error(str(e))
        return EXIT_FAILURE

    finally:
        for port in (left_port, right_port):
            if port is not None:
                port.close()


def run_bridge(left: Endpoint, right: Endpoint, settings: BridgeSettings,
               logger: logging.Logger, console=None) -> int:
    """Run the bridge between two opened endpoints and map the cause to an exit code."""
    router = SerialBridgeCore(left, right, settings, logger)

    def signal_handler(signum, frame):
        """Handle Ctrl+C gracefully."""
        router.report_user_break()

    previous_handler = signal.signal(signal.SIGINT, signal_handler)
    try:
        logger.info("Both ports successfully opened. starting proxy threads... Press return to quit")
        UserBreakListener(router.coordinator, console, logger).start()
        cause = router.run()
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if isinstance(cause, UserBreak):
        logger.info(str(cause))
        return EXIT_OK

    logger.error(str(cause))
    return EXIT_FAILURE

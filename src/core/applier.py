"""
Applies routed events to the destination endpoint.

A control-line change observed on one port is mirrored on the other port's
matching output line (CTS -> RTS, DSR -> DTR). A data chunk is written in
full to the other port and logged as a hex dump.
"""

import logging
from typing import Any, Optional

from src.core.errors import PORT_ERRORS, ControlLineError, PortWriteError
from src.core.events import ControlLine, Endpoint, EventKind, PortEvent
from src.core.traffic_log import format_control_record, format_data_record


def write_all(port: Any, data: bytes) -> int:
    """Write every byte of data, continuing after short writes.

    Args:
        port: Serial handle with a write() returning the count written
        data: Bytes to write

    Returns:
        Number of bytes written (always len(data))
    """
    bytes_written = 0
    while bytes_written < len(data):
        n = port.write(data[bytes_written:])
        # Some handles report nothing on a complete write
        if n is None:
            n = len(data) - bytes_written
        bytes_written += n
    return bytes_written


class SignalApplier:
    """Applies one event to one endpoint and logs what was done."""

    def __init__(self, log_control_flow: bool = False, logger: Optional[logging.Logger] = None):
        self.log_control_flow = log_control_flow
        self.logger = logger or logging.getLogger('SerialBridge')

    def apply(self, destination: Endpoint, event: PortEvent) -> None:
        """Apply event to destination.

        Raises:
            ControlLineError: setting RTS/DTR on the destination failed
            PortWriteError: writing the chunk to the destination failed
        """
        if event.kind is EventKind.CONTROL:
            self.apply_control(destination, event.line, event.state)
        else:
            self.apply_data(destination, event.data)

    def apply_control(self, destination: Endpoint, line: ControlLine, state: bool) -> None:
        if self.log_control_flow:
            self.logger.info(format_control_record(destination.direction, line.value, state))

        output_line = line.output_line
        try:
            if output_line == "RTS":
                destination.port.rts = state
            else:
                destination.port.dtr = state
        except PORT_ERRORS as e:
            raise ControlLineError(
                f"error setting {output_line} on {destination.label} port to value {state}: {e}",
                destination.label, output_line, state
            ) from e

    def apply_data(self, destination: Endpoint, data: bytes) -> None:
        try:
            write_all(destination.port, data)
        except PORT_ERRORS as e:
            raise PortWriteError(f"error writing data to {destination.label}: {e}",
                                 destination.label) from e

        self.logger.info(format_data_record(destination.direction, data))

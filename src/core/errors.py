"""
Exception types raised by the serial bridge.

Every fatal condition ends up at the ShutdownCoordinator as one of these,
so the terminal cause always carries the label of the endpoint involved.
"""

from typing import Optional

import serial

# Exceptions pyserial raises for failed port operations
PORT_ERRORS = (serial.SerialException, OSError, ValueError)


class BridgeError(Exception):
    """Base class for all serial bridge failures."""

    def __init__(self, message: str, label: Optional[str] = None):
        super().__init__(message)
        self.label = label


class PortConfigError(BridgeError):
    """A port definition string does not match PORT,BAUD,PARITY,DATABITS,STOPBITS."""

    def __init__(self, definition: str, detail: Optional[str] = None):
        message = f"invalid serial port definition: {definition}"
        if detail:
            message += f" (inner error: {detail})"
        super().__init__(message)
        self.definition = definition


class PortOpenError(BridgeError):
    """The serial device could not be opened or configured."""


class PortReadError(BridgeError):
    """Reading data or sampling the modem status lines failed."""


class PortWriteError(BridgeError):
    """Writing forwarded bytes to the destination port failed."""


class ControlLineError(BridgeError):
    """Setting RTS or DTR on the destination port failed."""

    def __init__(self, message: str, label: str, line: str, state: bool):
        super().__init__(message, label)
        self.line = line
        self.state = state


class UserBreak(BridgeError):
    """The operator asked the bridge to stop. Not an I/O failure."""

    def __init__(self, message: str = "break by user"):
        super().__init__(message)

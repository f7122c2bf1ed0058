"""
Port definition parsing and serial port opening.

A port is described on the command line as PORT,BAUD,PARITY,DATABITS,STOPBITS,
for example ``COM5,19200,N,8,1`` or ``/dev/ttyUSB0,115200,e,7,2``.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

import serial
import serial.tools.list_ports

from src.core.errors import PortConfigError, PortOpenError


PORT_DEFINITION_PATTERN = re.compile(r'^(.*?),(\d{3,7}),([neomsNEOMS]),([5678]),(1|1.5|2)$')

PARITY_BY_LETTER = {
    'n': serial.PARITY_NONE,
    'o': serial.PARITY_ODD,
    'm': serial.PARITY_MARK,
    's': serial.PARITY_SPACE,
    'e': serial.PARITY_EVEN,
}

STOP_BITS_BY_TEXT = {
    '1': serial.STOPBITS_ONE,
    '1.5': serial.STOPBITS_ONE_POINT_FIVE,
    '2': serial.STOPBITS_TWO,
}


@dataclass(frozen=True)
class SerialLinkConfig:
    """Line settings for one serial port, parsed once at startup."""
    port: str
    baud_rate: int
    parity: str
    data_bits: int
    stop_bits: float

    def describe(self) -> str:
        """Render the settings back into PORT,BAUD,PARITY,DATABITS,STOPBITS form."""
        stop_bits = {serial.STOPBITS_ONE: '1',
                     serial.STOPBITS_ONE_POINT_FIVE: '1.5',
                     serial.STOPBITS_TWO: '2'}[self.stop_bits]
        return f"{self.port},{self.baud_rate},{self.parity},{self.data_bits},{stop_bits}"


def parse_port_definition(definition: str) -> SerialLinkConfig:
    """Parse a PORT,BAUD,PARITY,DATABITS,STOPBITS string.

    Args:
        definition: The string as given by the user

    Returns:
        The validated SerialLinkConfig

    Raises:
        PortConfigError: naming the original string when it does not match
    """
    match = PORT_DEFINITION_PATTERN.match(definition)
    if match is None:
        raise PortConfigError(definition)

    port, baud_text, parity_letter, data_bits_text, stop_bits_text = match.groups()

    try:
        baud_rate = int(baud_text)
        data_bits = int(data_bits_text)
    except ValueError as e:
        raise PortConfigError(definition, str(e)) from e

    parity = PARITY_BY_LETTER.get(parity_letter.lower())
    stop_bits = STOP_BITS_BY_TEXT.get(stop_bits_text)
    if parity is None or stop_bits is None:
        raise PortConfigError(definition)

    return SerialLinkConfig(
        port=port,
        baud_rate=baud_rate,
        parity=parity,
        data_bits=data_bits,
        stop_bits=stop_bits,
    )


def open_serial_port(link: SerialLinkConfig, read_timeout: float, label: str,
                     logger: Optional[logging.Logger] = None) -> serial.Serial:
    """Open and configure a serial port.

    Args:
        link: Parsed line settings
        read_timeout: Read timeout in seconds, bounds every blocking read
        label: Endpoint label used in error messages
        logger: Logger for progress messages

    Returns:
        The opened serial.Serial handle

    Raises:
        PortOpenError: if the device cannot be opened with these settings
    """
    logger = logger or logging.getLogger('SerialBridge')
    logger.info(f"Opening serial port ({label}): {link.describe()}")
    try:
        return serial.Serial(
            port=link.port,
            baudrate=link.baud_rate,
            parity=link.parity,
            bytesize=link.data_bits,
            stopbits=link.stop_bits,
            timeout=read_timeout,
        )
    except (serial.SerialException, ValueError, OSError) as e:
        raise PortOpenError(f"error opening port to {label}: {e}", label) from e


def list_serial_ports() -> List[str]:
    """Describe every serial port pyserial can see, sorted by device name."""
    ports = sorted(serial.tools.list_ports.comports(), key=lambda p: p.device)
    return [f"{p.device} - {p.description}" for p in ports]

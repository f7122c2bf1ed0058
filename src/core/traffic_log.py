"""
Logging setup and traffic formatting for the serial bridge.

Console output is always enabled; an optional log file receives the same
records through a size-rotated handler.
"""

import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

LOGGER_NAME = 'SerialBridge'
LOG_FORMAT = '[%(asctime)s] [%(levelname)s] [%(threadName)s] %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Width of the "[YYYY-mm-dd HH:MM:SS] " timestamp prefix; dump lines are indented past it
DUMP_INDENT = ' ' * 22

BYTES_PER_LINE = 16


def setup_logging(output_file: Optional[str] = None, level: str = "INFO") -> logging.Logger:
    """Setup console logging and optional append-only file logging.

    Args:
        output_file: Log file path, or None/empty for console only
        level: Logging level name

    Returns:
        The configured bridge logger

    Raises:
        OSError: if the log file cannot be opened
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))

    # Clear any existing handlers
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if output_file:
        file_handler = RotatingFileHandler(
            output_file,
            mode='a',
            maxBytes=0,  # never roll over
            backupCount=0
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def hex_dump(data: bytes) -> str:
    """Render bytes as a canonical hex dump, 16 bytes per line.

    >>> hex_dump(b'AB')
    '00000000  41 42                                             |AB|'
    """
    lines = []
    for offset in range(0, len(data), BYTES_PER_LINE):
        row = data[offset:offset + BYTES_PER_LINE]
        hex_cells = [f"{b:02x}" for b in row]
        left = ' '.join(hex_cells[:8])
        right = ' '.join(hex_cells[8:])
        hex_part = f"{left:<23}  {right:<23}"
        text = ''.join(chr(b) if 32 <= b < 127 else '.' for b in row)
        lines.append(f"{offset:08x}  {hex_part}  |{text}|")
    return '\n'.join(lines)


def format_data_record(direction: str, data: bytes) -> str:
    """Direction line followed by the indented hex dump of the bytes."""
    dump_lines = hex_dump(data).split('\n')
    return f"{direction}\n" + '\n'.join(DUMP_INDENT + line for line in dump_lines)


def format_control_record(direction: str, line: str, state: bool) -> str:
    return f"{direction}: {line} {'set' if state else 'clear'}"

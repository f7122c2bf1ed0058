"""
Per-port worker loops: control line monitor, data reader and the console
user-break listener.

Monitors and readers hand each event to the router through an emit callable
that blocks until the router takes the event, and returns False once the
bridge is cancelled. Failures are reported to the ShutdownCoordinator and
end the loop; cancellation ends it silently.
"""

import logging
import sys
import threading
from typing import Callable, Dict, List, Optional, TextIO

from src.core.errors import PORT_ERRORS, PortReadError, UserBreak
from src.core.events import ControlLine, Endpoint, PortEvent
from src.core.shutdown import ShutdownCoordinator

EmitFn = Callable[[PortEvent], bool]

CONTROL_POLL_INTERVAL = 0.01  # 10ms
READER_PAUSE = 0.01


class ControlMonitor:
    """Polls CTS and DSR on one port and emits each transition once.

    Last-known states start unknown, so the first sample of each line is
    always emitted, whether set or clear.
    """

    def __init__(self, endpoint: Endpoint, emit: EmitFn, coordinator: ShutdownCoordinator,
                 poll_interval: float = CONTROL_POLL_INTERVAL,
                 logger: Optional[logging.Logger] = None):
        self.endpoint = endpoint
        self.emit = emit
        self.coordinator = coordinator
        self.poll_interval = poll_interval
        self.logger = logger or logging.getLogger('SerialBridge')
        self.last_state: Dict[ControlLine, Optional[bool]] = {
            ControlLine.CTS: None,
            ControlLine.DSR: None,
        }

    def poll_once(self) -> List[PortEvent]:
        """Sample CTS then DSR and return the changes since the last poll.

        Raises:
            serial.SerialException, OSError: if the modem status cannot be read
        """
        port = self.endpoint.port
        samples = [
            (ControlLine.CTS, bool(port.cts)),
            (ControlLine.DSR, bool(port.dsr)),
        ]

        events = []
        for line, state in samples:
            if self.last_state[line] != state:
                self.last_state[line] = state
                events.append(PortEvent.control(line, state))
        return events

    def run(self) -> None:
        self.logger.debug(f"Control monitor started for {self.endpoint.label}")
        cancel = self.coordinator.cancel_event

        while not cancel.is_set():
            try:
                events = self.poll_once()
            except PORT_ERRORS as e:
                self.coordinator.report(PortReadError(
                    f"error getting status bits from {self.endpoint.label}: {e}",
                    self.endpoint.label))
                return

            for event in events:
                if not self.emit(event):
                    return

            if cancel.wait(self.poll_interval):
                break

        self.logger.debug(f"Control monitor for {self.endpoint.label} shutting down")


class DataReader:
    """Reads bytes from one port and emits them as data chunks."""

    def __init__(self, endpoint: Endpoint, emit: EmitFn, coordinator: ShutdownCoordinator,
                 buffer_size: int = 4096, pause: float = READER_PAUSE,
                 logger: Optional[logging.Logger] = None):
        if buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")
        self.endpoint = endpoint
        self.emit = emit
        self.coordinator = coordinator
        self.buffer_size = buffer_size
        self.pause = pause
        self.logger = logger or logging.getLogger('SerialBridge')

    def read_once(self) -> Optional[PortEvent]:
        """Perform one read bounded by the port's read timeout.

        Returns:
            A data chunk event, or None if the read timed out with no bytes

        Raises:
            serial.SerialException, OSError: on a read failure
        """
        port = self.endpoint.port
        # Take everything already buffered, otherwise block for the first byte
        size = min(port.in_waiting, self.buffer_size) or 1
        data = port.read(size)
        if not data:
            return None
        return PortEvent.chunk(data)

    def run(self) -> None:
        self.logger.debug(f"Data reader started for {self.endpoint.label}")
        cancel = self.coordinator.cancel_event

        while not cancel.is_set():
            try:
                event = self.read_once()
            except PORT_ERRORS as e:
                self.coordinator.report(PortReadError(
                    f"error reading serial port {self.endpoint.label}: {e}",
                    self.endpoint.label))
                return

            if event is not None and not self.emit(event):
                return

            if cancel.wait(self.pause):
                break

        self.logger.debug(f"Data reader for {self.endpoint.label} shutting down")


class UserBreakListener:
    """Waits for one line of console input and reports a user break."""

    def __init__(self, coordinator: ShutdownCoordinator, stream: Optional[TextIO] = None,
                 logger: Optional[logging.Logger] = None):
        self.coordinator = coordinator
        self.stream = stream if stream is not None else sys.stdin
        self.logger = logger or logging.getLogger('SerialBridge')
        self.thread: Optional[threading.Thread] = None

    def listen(self) -> None:
        try:
            received = self.stream.read(1)
        except (OSError, ValueError) as e:
            self.logger.warning(f"Console input unavailable, press Ctrl+C to stop: {e}")
            return

        if not received:
            # EOF: no console attached, only a signal can stop the bridge
            self.logger.debug("Console input closed, user break disabled")
            return

        self.coordinator.report(UserBreak())

    def start(self) -> threading.Thread:
        """Start listening on a daemon thread; a console read cannot be cancelled."""
        self.thread = threading.Thread(target=self.listen, name="UserBreak")
        self.thread.daemon = True
        self.thread.start()
        return self.thread

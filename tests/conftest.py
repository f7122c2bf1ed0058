"""
Shared fixtures for SerialBridge tests.

FakeSerialPort stands in for serial.Serial with scripted reads, modem
status lines and recorded writes, so the bridge runs without hardware.
"""

import threading
import time
from collections import deque
from typing import List, Optional

import pytest
import serial

from src.core.bridge_engine import BridgeSettings
from src.core.events import Endpoint


class FakeSerialPort:
    """In-memory serial port.

    Tests inject received chunks with inject(), flip cts/dsr directly and
    read back what the bridge did through writes, rts_history and
    dtr_history.
    """

    def __init__(self, name: str = "FAKE", timeout: float = 0.01):
        self.name = name
        self.timeout = timeout
        self.is_open = True
        self.cts = False
        self.dsr = False
        self.rts_history: List[bool] = []
        self.dtr_history: List[bool] = []
        self.writes: List[bytes] = []
        self.write_calls = 0

        # Failure injection
        self.read_error: Optional[Exception] = None
        self.status_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self.line_error: Optional[Exception] = None
        self.max_write: Optional[int] = None
        self.write_delay = 0.0
        self.write_started = threading.Event()

        self._rx: deque = deque()
        self._lock = threading.Lock()

    def inject(self, data: bytes) -> None:
        with self._lock:
            self._rx.append(bytes(data))

    @property
    def in_waiting(self) -> int:
        if self.read_error:
            raise self.read_error
        with self._lock:
            return len(self._rx[0]) if self._rx else 0

    def read(self, size: int = 1) -> bytes:
        if self.read_error:
            raise self.read_error
        with self._lock:
            if self._rx:
                chunk = self._rx.popleft()
                data, rest = chunk[:size], chunk[size:]
                if rest:
                    self._rx.appendleft(rest)
                return data
        time.sleep(self.timeout)
        return b''

    def write(self, data: bytes) -> int:
        with self._lock:
            self.write_calls += 1
        self.write_started.set()
        if self.write_delay:
            time.sleep(self.write_delay)
        if self.write_error:
            raise self.write_error
        n = len(data) if self.max_write is None else min(len(data), self.max_write)
        with self._lock:
            self.writes.append(bytes(data[:n]))
        return n

    def written(self) -> bytes:
        with self._lock:
            return b''.join(self.writes)

    def _line_state(self, name: str):
        if self.status_error:
            raise self.status_error
        return getattr(self, '_' + name)

    @property
    def cts(self) -> bool:
        return self._line_state('cts')

    @cts.setter
    def cts(self, value: bool) -> None:
        self._cts = value

    @property
    def dsr(self) -> bool:
        return self._line_state('dsr')

    @dsr.setter
    def dsr(self, value: bool) -> None:
        self._dsr = value

    @property
    def rts(self) -> bool:
        return self.rts_history[-1] if self.rts_history else False

    @rts.setter
    def rts(self, value: bool) -> None:
        if self.line_error:
            raise self.line_error
        self.rts_history.append(value)

    @property
    def dtr(self) -> bool:
        return self.dtr_history[-1] if self.dtr_history else False

    @dtr.setter
    def dtr(self, value: bool) -> None:
        if self.line_error:
            raise self.line_error
        self.dtr_history.append(value)

    def close(self) -> None:
        self.is_open = False


def wait_for(predicate, timeout: float = 2.0, interval: float = 0.005) -> bool:
    """Poll predicate until it returns True or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def fake_port():
    return FakeSerialPort()


@pytest.fixture
def endpoints():
    """Left and right endpoints backed by fake ports."""
    return Endpoint.pair(FakeSerialPort("COM5"), "Left Port", FakeSerialPort("COM6"), "Right Port")


@pytest.fixture
def fast_settings():
    return BridgeSettings(
        read_buffer_size=4096,
        log_control_flow=True,
        poll_interval=0.002,
        reader_pause=0.002,
        router_poll=0.002,
        join_timeout=5.0,
    )


@pytest.fixture
def port_error():
    return serial.SerialException("device disconnected")

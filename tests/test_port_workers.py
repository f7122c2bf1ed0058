"""
Tests for the control line monitor, data reader and user-break listener.
"""

import io
import threading

import pytest

from conftest import FakeSerialPort, wait_for
from src.core.errors import PortReadError, UserBreak
from src.core.events import ControlLine, Endpoint, PortEvent
from src.core.port_workers import ControlMonitor, DataReader, UserBreakListener
from src.core.shutdown import ShutdownCoordinator


@pytest.fixture
def endpoint():
    return Endpoint(FakeSerialPort("COM5"), "Left Port", "Left Port <- Right Port")


@pytest.fixture
def coordinator():
    return ShutdownCoordinator()


class Collector:
    """emit() target that records events and stays accepting until told otherwise."""

    def __init__(self):
        self.events = []
        self.accepting = True
        self.lock = threading.Lock()

    def __call__(self, event):
        with self.lock:
            self.events.append(event)
        return self.accepting


def test_first_sample_is_always_emitted(endpoint, coordinator):
    monitor = ControlMonitor(endpoint, Collector(), coordinator)
    endpoint.port.cts = True
    endpoint.port.dsr = False

    assert monitor.poll_once() == [
        PortEvent.control(ControlLine.CTS, True),
        PortEvent.control(ControlLine.DSR, False),
    ]


def test_repeated_samples_are_silent(endpoint, coordinator):
    monitor = ControlMonitor(endpoint, Collector(), coordinator)
    monitor.poll_once()
    endpoint.port.cts = True
    assert monitor.poll_once() == [PortEvent.control(ControlLine.CTS, True)]
    assert monitor.poll_once() == []
    assert monitor.poll_once() == []


def test_both_changes_emitted_cts_first(endpoint, coordinator):
    monitor = ControlMonitor(endpoint, Collector(), coordinator)
    monitor.poll_once()
    endpoint.port.cts = True
    endpoint.port.dsr = True
    assert monitor.poll_once() == [
        PortEvent.control(ControlLine.CTS, True),
        PortEvent.control(ControlLine.DSR, True),
    ]


def test_every_transition_is_surfaced(endpoint, coordinator):
    collector = Collector()
    monitor = ControlMonitor(endpoint, collector, coordinator, poll_interval=0.001)
    thread = threading.Thread(target=monitor.run)
    thread.start()
    try:
        assert wait_for(lambda: len(collector.events) == 2)
        endpoint.port.dsr = True
        assert wait_for(lambda: len(collector.events) == 3)
        endpoint.port.dsr = False
        assert wait_for(lambda: len(collector.events) == 4)
    finally:
        coordinator.begin_shutdown()
        thread.join(2)

    assert not thread.is_alive()
    assert [e.state for e in collector.events if e.line is ControlLine.DSR] == [False, True, False]
    assert coordinator.cause is None


def test_monitor_reports_sampling_failure(endpoint, coordinator, port_error):
    endpoint.port.status_error = port_error
    monitor = ControlMonitor(endpoint, Collector(), coordinator)
    monitor.run()

    assert isinstance(coordinator.cause, PortReadError)
    assert coordinator.cause.label == "Left Port"


def test_monitor_stops_when_emit_is_refused(endpoint, coordinator):
    collector = Collector()
    collector.accepting = False
    ControlMonitor(endpoint, collector, coordinator).run()
    assert len(collector.events) == 1
    assert coordinator.cause is None


def test_read_once_returns_available_bytes(endpoint, coordinator):
    reader = DataReader(endpoint, Collector(), coordinator, buffer_size=4096)
    endpoint.port.inject(b"\x41\x42")
    assert reader.read_once() == PortEvent.chunk(b"AB")
    assert reader.read_once() is None


def test_read_once_respects_buffer_size(endpoint, coordinator):
    reader = DataReader(endpoint, Collector(), coordinator, buffer_size=4)
    endpoint.port.inject(b"0123456789")
    assert reader.read_once().data == b"0123"
    assert reader.read_once().data == b"4567"
    assert reader.read_once().data == b"89"


def test_reader_preserves_order(endpoint, coordinator):
    collector = Collector()
    reader = DataReader(endpoint, collector, coordinator, buffer_size=3, pause=0.001)
    endpoint.port.inject(b"\x41\x42")
    endpoint.port.inject(b"\x43")
    endpoint.port.inject(b"DEFGH")

    thread = threading.Thread(target=reader.run)
    thread.start()
    try:
        assert wait_for(lambda: sum(len(e.data) for e in collector.events) == 8)
    finally:
        coordinator.begin_shutdown()
        thread.join(2)

    assert not thread.is_alive()
    assert b"".join(e.data for e in collector.events) == b"ABCDEFGH"
    assert coordinator.cause is None


def test_reader_reports_failure(endpoint, coordinator, port_error):
    endpoint.port.read_error = port_error
    DataReader(endpoint, Collector(), coordinator).run()
    assert isinstance(coordinator.cause, PortReadError)
    assert coordinator.cause.label == "Left Port"


def test_reader_rejects_empty_buffer(endpoint, coordinator):
    with pytest.raises(ValueError):
        DataReader(endpoint, Collector(), coordinator, buffer_size=0)


def test_user_break_on_keypress(coordinator):
    UserBreakListener(coordinator, io.StringIO("\n")).start().join(2)
    assert isinstance(coordinator.cause, UserBreak)


def test_closed_console_does_not_break(coordinator):
    UserBreakListener(coordinator, io.StringIO("")).start().join(2)
    assert not coordinator.triggered

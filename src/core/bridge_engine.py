"""
SerialBridge core - bidirectional serial proxy engine.

Architecture:
- Left and right endpoints, each with a control line monitor and a data reader
- One router loop takes every event and hands it to a new applier thread
  for the opposite endpoint
- The first fatal cause (I/O error or user break) stops the whole bridge;
  in-flight writes are allowed to finish before the run returns

Appliers are not serialized per destination. Two chunks for the same port
may be written out of order if their writes race.
"""

import logging
import queue
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from src.core.applier import SignalApplier
from src.core.errors import BridgeError, UserBreak
from src.core.events import Endpoint, EventKind, PortEvent
from src.core.port_workers import (
    CONTROL_POLL_INTERVAL, READER_PAUSE, ControlMonitor, DataReader
)
from src.core.shutdown import BridgeState, ShutdownCoordinator, WorkTracker


@dataclass(frozen=True)
class BridgeSettings:
    """Runtime settings shared by all bridge components, built once at startup."""
    read_buffer_size: int = 4096
    log_control_flow: bool = False
    poll_interval: float = CONTROL_POLL_INTERVAL
    reader_pause: float = READER_PAUSE
    router_poll: float = 0.01
    join_timeout: Optional[float] = None


class EventInbox:
    """Hand-off point between the port workers and the router.

    Holds at most one event. put() blocks until the router has room,
    re-checking cancellation so no worker stays stuck after shutdown.
    """

    def __init__(self, cancel_event: threading.Event, poll: float = 0.01):
        self.cancel_event = cancel_event
        self.poll = poll
        self._queue: queue.Queue = queue.Queue(maxsize=1)

    def put(self, source: Endpoint, event: PortEvent) -> bool:
        """Offer an event from source.

        Returns:
            True once the event is queued for the router, False if cancelled
            first. A queued event is dropped if shutdown begins before the
            router reads it.
        """
        item = (source, event)
        while not self.cancel_event.is_set():
            try:
                self._queue.put(item, timeout=self.poll)
                return True
            except queue.Full:
                continue
        return False

    def get(self, timeout: float) -> Optional[Tuple[Endpoint, PortEvent]]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


class SerialBridgeCore:
    """Forwards data and mirrors control lines between two serial endpoints."""

    def __init__(self, left: Endpoint, right: Endpoint,
                 settings: Optional[BridgeSettings] = None,
                 logger: Optional[logging.Logger] = None):
        self.left = left
        self.right = right
        self.settings = settings or BridgeSettings()
        self.logger = logger or logging.getLogger('SerialBridge')

        self.state = BridgeState.STARTING
        self.coordinator = ShutdownCoordinator(self.logger)
        self.tracker = WorkTracker(self.logger)
        self.inbox = EventInbox(self.coordinator.cancel_event, self.settings.router_poll)
        self.applier = SignalApplier(self.settings.log_control_flow, self.logger)

        # Statistics
        self.bytes_forwarded: Dict[str, int] = {left.direction: 0, right.direction: 0}
        self.control_changes: Dict[str, int] = {left.direction: 0, right.direction: 0}
        self.events_dispatched = 0
        self.start_time: Optional[datetime] = None
        self._stats_lock = threading.Lock()

    def opposite(self, endpoint: Endpoint) -> Endpoint:
        return self.right if endpoint is self.left else self.left

    def _emitter(self, source: Endpoint):
        def emit(event: PortEvent) -> bool:
            return self.inbox.put(source, event)
        return emit

    def start(self) -> None:
        """Launch monitors and readers for both endpoints."""
        if self.state is not BridgeState.STARTING:
            self.logger.warning(f"Bridge cannot start from state {self.state.value}")
            return

        for endpoint in (self.left, self.right):
            emit = self._emitter(endpoint)
            monitor = ControlMonitor(endpoint, emit, self.coordinator,
                                     self.settings.poll_interval, self.logger)
            reader = DataReader(endpoint, emit, self.coordinator,
                                self.settings.read_buffer_size, self.settings.reader_pause,
                                self.logger)
            self.tracker.spawn(monitor.run, f"{endpoint.label}-Monitor")
            self.tracker.spawn(reader.run, f"{endpoint.label}-Reader")

        self.start_time = datetime.now()
        self.state = BridgeState.RUNNING
        self.logger.info(f"Started {self.tracker.active_count()} port worker threads")

    def route(self) -> Optional[BridgeError]:
        """Dispatch events until the first fatal cause arrives.

        Returns:
            The cause that ended routing
        """
        while not self.coordinator.triggered:
            item = self.inbox.get(self.settings.router_poll)
            if item is None:
                continue
            source, event = item
            self._dispatch(self.opposite(source), event)

        return self.coordinator.cause

    def _dispatch(self, destination: Endpoint, event: PortEvent) -> None:
        with self._stats_lock:
            self.events_dispatched += 1
            sequence = self.events_dispatched
        self.tracker.spawn(self._apply, f"Apply-{destination.label}-{sequence}", destination, event)

    def _apply(self, destination: Endpoint, event: PortEvent) -> None:
        try:
            self.applier.apply(destination, event)
        except BridgeError as e:
            self.coordinator.report(e)
            return

        with self._stats_lock:
            if event.kind is EventKind.DATA:
                self.bytes_forwarded[destination.direction] += len(event.data)
            else:
                self.control_changes[destination.direction] += 1

    def report_user_break(self) -> None:
        self.coordinator.report(UserBreak())

    def stop(self) -> None:
        """Cancel all workers and wait for in-flight reads and writes to finish."""
        if self.state is BridgeState.STOPPED:
            return

        self.state = BridgeState.SHUTTING_DOWN
        self.logger.info("Stopping SerialBridge...")
        self.coordinator.begin_shutdown()
        self.tracker.join_all(self.settings.join_timeout)
        self.state = BridgeState.STOPPED
        self.logger.info("SerialBridge stopped")

    def run(self) -> Optional[BridgeError]:
        """Start, route until a fatal cause, then stop.

        Returns:
            The terminal cause (UserBreak for a clean stop)
        """
        self.start()
        try:
            cause = self.route()
        finally:
            self.stop()
        return cause

    def get_status(self) -> Dict[str, Any]:
        """Snapshot of bridge state and traffic counters."""
        uptime_seconds = 0.0
        if self.start_time:
            uptime_seconds = (datetime.now() - self.start_time).total_seconds()

        with self._stats_lock:
            return {
                "state": self.state.value,
                "left": self.left.label,
                "right": self.right.label,
                "uptime_seconds": round(uptime_seconds, 1),
                "active_threads": self.tracker.active_count(),
                "events_dispatched": self.events_dispatched,
                "bytes_forwarded": self.bytes_forwarded.copy(),
                "control_changes": self.control_changes.copy(),
                "cause": str(self.coordinator.cause) if self.coordinator.cause else None,
            }

"""
Single-cause shutdown coordination and worker thread tracking.
"""

import logging
import threading
from enum import Enum
from typing import Callable, List, Optional

from src.core.errors import BridgeError


class BridgeState(Enum):
    """Lifecycle of one bridge run."""
    STARTING = "Starting"
    RUNNING = "Running"
    SHUTTING_DOWN = "Shutting down"
    STOPPED = "Stopped"


class ShutdownCoordinator:
    """Collects the first fatal cause and broadcasts cancellation.

    Any thread may call report(). Only the first cause is kept; everything
    reported afterwards is logged and dropped. The cancellation event is
    shared by every monitor, reader and hand-off loop and is only set once
    the run is shutting down.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('SerialBridge')
        self.cancel_event = threading.Event()
        self._triggered = threading.Event()
        self._cause: Optional[BridgeError] = None
        self._lock = threading.Lock()

    def report(self, cause: BridgeError) -> bool:
        """Report a fatal cause.

        Args:
            cause: The error (or UserBreak) that should end the run

        Returns:
            True if this was the first cause and will be acted upon
        """
        with self._lock:
            if self._cause is not None:
                self.logger.debug(f"Ignoring cause after shutdown was requested: {cause}")
                return False
            self._cause = cause
            self._triggered.set()
        return True

    @property
    def triggered(self) -> bool:
        return self._triggered.is_set()

    @property
    def cause(self) -> Optional[BridgeError]:
        return self._cause

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until a cause has been reported or the timeout expires."""
        return self._triggered.wait(timeout)

    def begin_shutdown(self) -> None:
        """Cancel all polling and reading loops."""
        self.cancel_event.set()


class WorkTracker:
    """Launches worker threads and waits for all of them on shutdown."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('SerialBridge')
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()

    def spawn(self, target: Callable[..., None], name: str, *args) -> threading.Thread:
        """Start a tracked thread running target(*args)."""
        thread = threading.Thread(target=target, args=args, name=name)
        thread.daemon = True
        with self._lock:
            # Drop finished workers so long runs do not accumulate thread objects
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()
        return thread

    def active_count(self) -> int:
        with self._lock:
            return len([t for t in self._threads if t.is_alive()])

    def join_all(self, timeout: Optional[float] = None) -> bool:
        """Wait for every tracked thread to exit.

        Args:
            timeout: Limit in seconds per thread, None waits indefinitely

        Returns:
            True if all threads exited, False if the timeout expired first
        """
        while True:
            with self._lock:
                pending = [t for t in self._threads if t.is_alive()]
            if not pending:
                return True
            for thread in pending:
                thread.join(timeout)
                if timeout is not None and thread.is_alive():
                    self.logger.warning(f"Thread {thread.name} did not finish within {timeout}s")
                    return False

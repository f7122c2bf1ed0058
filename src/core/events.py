"""
Endpoints and the events that flow between them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple


class ControlLine(Enum):
    """Monitored input lines, each mirrored onto an output line of the other port."""
    CTS = "CTS"
    DSR = "DSR"

    @property
    def output_line(self) -> str:
        """Name of the output line this input is mirrored to."""
        return "RTS" if self is ControlLine.CTS else "DTR"


class EventKind(Enum):
    CONTROL = "control"
    DATA = "data"


@dataclass(frozen=True)
class PortEvent:
    """A control-line transition or a chunk of received bytes.

    Exactly one variant is populated. Use PortEvent.control() or
    PortEvent.chunk() rather than the constructor.
    """
    line: Optional[ControlLine] = None
    state: Optional[bool] = None
    data: Optional[bytes] = None

    def __post_init__(self):
        is_control = self.line is not None and self.state is not None
        is_data = self.data is not None
        if is_control == is_data:
            raise ValueError("PortEvent must be exactly one of control change or data chunk")
        if is_data and len(self.data) == 0:
            raise ValueError("Data chunk must not be empty")

    @classmethod
    def control(cls, line: ControlLine, state: bool) -> 'PortEvent':
        return cls(line=line, state=bool(state))

    @classmethod
    def chunk(cls, data: bytes) -> 'PortEvent':
        return cls(data=bytes(data))

    @property
    def kind(self) -> EventKind:
        return EventKind.DATA if self.data is not None else EventKind.CONTROL


@dataclass
class Endpoint:
    """One side of the bridge.

    The port handle is owned by this endpoint for the whole run. The
    direction string describes traffic arriving at this endpoint and is
    only used in log lines.
    """
    port: Any
    label: str
    direction: str

    @classmethod
    def pair(cls, left_port: Any, left_label: str,
             right_port: Any, right_label: str) -> Tuple['Endpoint', 'Endpoint']:
        """Build the left and right endpoints with matching direction strings."""
        left = cls(left_port, left_label, f"{left_label} <- {right_label}")
        right = cls(right_port, right_label, f"{left_label} -> {right_label}")
        return left, right

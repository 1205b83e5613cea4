#!/usr/bin/env python3
"""
PTK data model.

One canonical set of records shared by every trace dialect:
- Operation: a single observed byte transfer
- CommandResponsePair: one command and the responses attributed to it
- ProtocolCommandProfile: all pairs sharing a command's canonical hex key

Format-specific tokenizers convert into these; nothing downstream knows which
grammar produced an Operation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import List, Optional


class Direction(str, Enum):
    TO_DEVICE = "to_device"
    FROM_DEVICE = "from_device"

    @property
    def arrow(self) -> str:
        return "PC→Device" if self is Direction.TO_DEVICE else "Device→PC"


class TimingState(str, Enum):
    MEASURED = "measured"
    NO_RESPONSE = "no_response"
    # Timestamps missing, unparseable or going backwards.
    UNKNOWN = "unknown"


def hex_key(data: bytes) -> str:
    """Canonical identity of a payload: lowercase hex, no separators."""
    return bytes(data).hex()


def printable_ascii(data: bytes) -> str:
    return "".join(chr(b) if 32 <= b <= 126 else "." for b in data)


def format_hex_bytes(data: bytes) -> str:
    return " ".join(f"{b:02X}" for b in data)


def format_duration(delta: Optional[timedelta]) -> str:
    if delta is None:
        return "unknown"
    us = delta / timedelta(microseconds=1)
    # Unit is chosen after rounding so 999.96ms reads 1.00s, not 1000.0ms.
    if round(us) < 1000:
        return f"{int(round(us))}µs"
    ms = round(us / 1000.0, 1)
    if ms < 1000:
        return f"{ms:.1f}ms"
    return f"{us / 1_000_000.0:.2f}s"


@dataclass(frozen=True)
class Operation:
    direction: Direction
    timestamp: str
    channel_id: str
    payload: bytes
    source_line: int

    def __post_init__(self) -> None:
        if not self.payload:
            raise ValueError("Operation payload must not be empty")

    @property
    def hex(self) -> str:
        return hex_key(self.payload)

    @property
    def ascii(self) -> str:
        return printable_ascii(self.payload)

    @property
    def length(self) -> int:
        return len(self.payload)


@dataclass
class CommandResponsePair:
    command: Operation
    responses: List[Operation] = field(default_factory=list)
    sequence_id: int = 0
    time_delta: Optional[timedelta] = None
    timing: TimingState = TimingState.NO_RESPONSE

    # Set by the classifier.
    is_handshake: bool = False
    data_category: str = ""
    description: str = ""
    command_label: str = ""
    response_label: str = ""

    @property
    def first_response(self) -> Optional[Operation]:
        return self.responses[0] if self.responses else None

    @property
    def response_bytes(self) -> bytes:
        return b"".join(r.payload for r in self.responses)

    @property
    def response_hex(self) -> str:
        return hex_key(self.response_bytes)

    @property
    def time_delta_text(self) -> str:
        if self.timing is TimingState.MEASURED:
            return format_duration(self.time_delta)
        if self.timing is TimingState.NO_RESPONSE:
            return "-"
        return "~unknown"


@dataclass
class ProtocolCommandProfile:
    hex_key: str
    occurrences: int = 1
    response_variants: List[str] = field(default_factory=list)
    timing_average: str = "unknown"
    timing_average_us: Optional[float] = None
    success_rate: Optional[float] = None
    description: str = ""
    data_category: str = ""

    command_label: str = ""
    response_pattern: str = ""
    response_hex: str = ""
    is_handshake: bool = False
    timestamp_first: str = ""
    timestamp_last: str = ""
    line_numbers: List[int] = field(default_factory=list)

    @property
    def success_rate_text(self) -> str:
        if self.success_rate is None:
            return "n/a"
        return f"{self.success_rate:.1f}%"

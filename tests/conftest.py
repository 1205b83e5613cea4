"""
Shared fixtures: small traces in each supported dialect.
"""

import pytest

from ptk.config import AnalyzerConfig
from ptk.models import Direction, Operation


SYSCALL_TRACE = [
    '10:00:00.000000 write(3, "\\x02\\x41\\x42", 3) = 3',
    '10:00:00.001000 read(3, "\\x06", 1) = 1',
]

HEXDUMP_TRACE = [
    "4242 10:00:00.000000 write(5, \"PROGRAM\", 7) = 7",
    " | 00000  50 52 4f 47 52 41 4d                             PROGRAM          |",
    "4242 10:00:00.000500 read(5, \"\\x06\", 64) = 1",
    " | 00000  06                                               .                |",
    "4242 10:00:00.002000 write(5, \"...\", 20) = 20",
    " | 00000  57 00 10 00 11 22 33 44  55 66 77 88 99 aa bb cc  W....\"3DUfw.... |",
    " | 00010  dd ee f0 01                                       ....             |",
    "4242 10:00:00.003000 read(5, \"\\x06\", 64) = 1",
    " | 00000  06                                               .                |",
]

TAGGED_TRACE = [
    "RSP: 15",
    "CMD: 02 50 52",
    "RSP: 06",
    "CMD: 52 00 10",
    "RSP: 06 00 00",
]


@pytest.fixture
def config():
    """Default analyzer settings."""
    return AnalyzerConfig()


@pytest.fixture
def syscall_lines():
    return list(SYSCALL_TRACE)


@pytest.fixture
def hexdump_lines():
    return list(HEXDUMP_TRACE)


@pytest.fixture
def tagged_lines():
    return list(TAGGED_TRACE)


@pytest.fixture
def write_trace(tmp_path):
    """Write lines to a trace file under tmp_path and return its path."""

    def _write(lines, name="capture.log"):
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_op():
    """Build an Operation with sensible defaults."""

    def _make(payload, direction=Direction.TO_DEVICE, timestamp="10:00:00.000000", line=1, channel="3"):
        return Operation(
            direction=direction,
            timestamp=timestamp,
            channel_id=channel,
            payload=bytes(payload),
            source_line=line,
        )

    return _make
